"""
Pipeline endpoints.

All endpoints are prefixed with /api/pipelines.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db.base import get_db
from ..schemas.pipelines import PipelineCreate, PipelineStatusUpdate, PipelineUpdate
from ..services.pipelines import PipelineService

router = APIRouter(prefix="/pipelines", tags=["pipelines"])


@router.get("")
async def list_pipelines(
    status: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
) -> List[Dict[str, Any]]:
    return [p.to_dict() for p in PipelineService(db).list(status=status, limit=limit, offset=offset)]


@router.post("", status_code=201)
async def create_pipeline(pipeline: PipelineCreate, db: Session = Depends(get_db)) -> Dict[str, Any]:
    return PipelineService(db).create(pipeline).to_dict()


@router.get("/{pipeline_id}")
async def get_pipeline(pipeline_id: str, db: Session = Depends(get_db)) -> Dict[str, Any]:
    return PipelineService(db).get_or_raise(pipeline_id).to_dict()


@router.put("/{pipeline_id}")
async def update_pipeline(
    pipeline_id: str, update: PipelineUpdate, db: Session = Depends(get_db)
) -> Dict[str, Any]:
    return PipelineService(db).update(pipeline_id, update).to_dict()


@router.delete("/{pipeline_id}", status_code=204)
async def delete_pipeline(pipeline_id: str, db: Session = Depends(get_db)) -> None:
    PipelineService(db).delete(pipeline_id)


@router.post("/{pipeline_id}/validate")
async def validate_pipeline(pipeline_id: str, db: Session = Depends(get_db)) -> Dict[str, Any]:
    return PipelineService(db).validate(pipeline_id)


@router.get("/{pipeline_id}/execution-order")
async def execution_order(pipeline_id: str, db: Session = Depends(get_db)) -> Dict[str, Any]:
    return {"pipeline_id": pipeline_id, "order": PipelineService(db).execution_order(pipeline_id)}


@router.patch("/{pipeline_id}/status")
async def set_pipeline_status(
    pipeline_id: str, body: PipelineStatusUpdate, db: Session = Depends(get_db)
) -> Dict[str, Any]:
    return PipelineService(db).set_status(pipeline_id, body.status.value).to_dict()
