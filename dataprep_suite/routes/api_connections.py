"""
API connection endpoints.

All endpoints are prefixed with /api/api-connections.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db.base import get_db
from ..schemas.connections import ApiConnectionCreate, ApiConnectionUpdate, ApiImportRequest
from ..services.api_connections import ApiConnectionService
from ..storage import StorageProvider, get_storage

router = APIRouter(prefix="/api-connections", tags=["api-connections"])


@router.get("")
async def list_api_connections(
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> List[Dict[str, Any]]:
    return [c.to_dict() for c in ApiConnectionService(db, storage).list(status=status)]


@router.post("", status_code=201)
async def create_api_connection(
    connection: ApiConnectionCreate,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    return ApiConnectionService(db, storage).create(connection).to_dict()


@router.get("/{connection_id}")
async def get_api_connection(
    connection_id: str,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    return ApiConnectionService(db, storage).get_or_raise(connection_id).to_dict()


@router.put("/{connection_id}")
async def update_api_connection(
    connection_id: str,
    update: ApiConnectionUpdate,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    return ApiConnectionService(db, storage).update(connection_id, update).to_dict()


@router.delete("/{connection_id}", status_code=204)
async def delete_api_connection(
    connection_id: str,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> None:
    ApiConnectionService(db, storage).delete(connection_id)


@router.post("/{connection_id}/test")
async def test_api_connection(
    connection_id: str,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    """Call the endpoint once and record whether it answered."""
    return await ApiConnectionService(db, storage).test(connection_id)


@router.post("/{connection_id}/fetch")
async def fetch_api_data(
    connection_id: str,
    max_pages: int = Query(1, ge=1, le=100),
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    """Preview records from the endpoint without storing them."""
    return await ApiConnectionService(db, storage).fetch(connection_id, max_pages=max_pages)


@router.post("/{connection_id}/import", status_code=201)
async def import_api_data(
    connection_id: str,
    request: ApiImportRequest,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    """Fetch records and store them in the connection's data source."""
    source = await ApiConnectionService(db, storage).import_data(
        connection_id, max_pages=request.max_pages, data_source_name=request.data_source_name
    )
    return source.to_dict()
