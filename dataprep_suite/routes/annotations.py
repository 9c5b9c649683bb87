"""
Field annotation endpoints.

All endpoints are prefixed with /api/field-annotations.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..db.base import get_db
from ..schemas.annotations import BulkAnnotationRequest, DetectPiiRequest, FieldAnnotationCreate
from ..services.annotations import FieldAnnotationService
from ..storage import StorageProvider, get_storage

router = APIRouter(prefix="/field-annotations", tags=["field-annotations"])


@router.get("")
async def list_annotations(
    data_source_id: Optional[str] = None,
    pii_only: bool = False,
    search: Optional[str] = Query(None, min_length=1),
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> List[Dict[str, Any]]:
    service = FieldAnnotationService(db, storage)
    if search:
        annotations = service.search(search)
    else:
        annotations = service.list(data_source_id=data_source_id, pii_only=pii_only)
    return [a.to_dict() for a in annotations]


@router.post("")
async def upsert_annotation(
    annotation: FieldAnnotationCreate,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    """Create or update the annotation for a data source field."""
    return FieldAnnotationService(db, storage).upsert(annotation).to_dict()


@router.post("/bulk")
async def bulk_upsert_annotations(
    request: BulkAnnotationRequest,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> List[Dict[str, Any]]:
    saved = FieldAnnotationService(db, storage).bulk_upsert(request.annotations)
    return [a.to_dict() for a in saved]


@router.post("/detect-pii")
async def detect_pii(
    request: DetectPiiRequest,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    """Propose PII annotations from field names and sample values."""
    return FieldAnnotationService(db, storage).detect_pii(request.data_source_id, persist=request.persist)


@router.get("/{annotation_id}")
async def get_annotation(
    annotation_id: str,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    annotation = FieldAnnotationService(db, storage).get(annotation_id)
    if not annotation:
        raise HTTPException(status_code=404, detail="Field annotation not found")
    return annotation.to_dict()


@router.delete("/{annotation_id}", status_code=204)
async def delete_annotation(
    annotation_id: str,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> None:
    FieldAnnotationService(db, storage).delete(annotation_id)
