"""
Synthetic dataset endpoints.

All endpoints are prefixed with /api/synthetic.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from ..db.base import get_db
from ..schemas.synthetic import AddToDataSourceRequest, SyntheticDatasetCreate, SyntheticDatasetUpdate
from ..services.synthetic import SyntheticDataService
from ..storage import StorageProvider, get_storage

router = APIRouter(prefix="/synthetic", tags=["synthetic"])


@router.get("")
async def list_datasets(
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> List[Dict[str, Any]]:
    return [d.to_dict() for d in SyntheticDataService(db, storage).list(status=status)]


@router.post("", status_code=201)
async def create_dataset(
    dataset: SyntheticDatasetCreate,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    return SyntheticDataService(db, storage).create(dataset).to_dict()


@router.get("/templates")
async def list_templates() -> Dict[str, Dict[str, Dict[str, Any]]]:
    """Built-in schemas selectable by ``data_type``."""
    return SyntheticDataService.templates()


@router.get("/jobs")
async def list_jobs(
    dataset_id: Optional[str] = None,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> List[Dict[str, Any]]:
    return [j.to_dict() for j in SyntheticDataService(db, storage).list_jobs(dataset_id=dataset_id)]


@router.get("/jobs/{job_id}")
async def get_job(
    job_id: str,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    return SyntheticDataService(db, storage).get_job_or_raise(job_id).to_dict()


@router.delete("/jobs/{job_id}", status_code=204)
async def delete_job(
    job_id: str,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> None:
    SyntheticDataService(db, storage).delete_job(job_id)


@router.get("/{dataset_id}")
async def get_dataset(
    dataset_id: str,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    return SyntheticDataService(db, storage).get_or_raise(dataset_id).to_dict()


@router.put("/{dataset_id}")
async def update_dataset(
    dataset_id: str,
    update: SyntheticDatasetUpdate,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    return SyntheticDataService(db, storage).update(dataset_id, update).to_dict()


@router.delete("/{dataset_id}", status_code=204)
async def delete_dataset(
    dataset_id: str,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> None:
    SyntheticDataService(db, storage).delete(dataset_id)


@router.get("/{dataset_id}/preview")
async def preview_dataset(
    dataset_id: str,
    max_records: int = Query(5, ge=1, le=100),
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    return SyntheticDataService(db, storage).preview(dataset_id, max_records=max_records)


@router.post("/{dataset_id}/generate")
async def generate_dataset(
    dataset_id: str,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    """Generate records now; the returned job carries the outcome."""
    return SyntheticDataService(db, storage).generate(dataset_id).to_dict()


@router.get("/{dataset_id}/download")
async def download_dataset(
    dataset_id: str,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Response:
    content, media_type, filename = SyntheticDataService(db, storage).download(dataset_id)
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/{dataset_id}/add-to-data-source", status_code=201)
async def add_to_data_source(
    dataset_id: str,
    request: AddToDataSourceRequest,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    source = SyntheticDataService(db, storage).add_to_data_source(dataset_id, name=request.name)
    return source.to_dict()
