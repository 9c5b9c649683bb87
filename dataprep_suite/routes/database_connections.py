"""
External database connection endpoints.

All endpoints are prefixed with /api/database-connections.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..db.base import get_db
from ..schemas.connections import (
    DatabaseConnectionCreate,
    DatabaseConnectionUpdate,
    QueryRequest,
    RelationalImportRequest,
)
from ..services.database_connections import DatabaseConnectionService
from ..storage import StorageProvider, get_storage

router = APIRouter(prefix="/database-connections", tags=["database-connections"])


@router.get("")
async def list_database_connections(
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> List[Dict[str, Any]]:
    return [c.to_dict() for c in DatabaseConnectionService(db, storage).list()]


@router.post("", status_code=201)
async def create_database_connection(
    connection: DatabaseConnectionCreate,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    service = DatabaseConnectionService(db, storage)
    if service.get_by_name(connection.name):
        raise HTTPException(
            status_code=409,
            detail=f"Database connection '{connection.name}' already exists",
        )
    return service.create(connection).to_dict()


@router.get("/{connection_id}")
async def get_database_connection(
    connection_id: str,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    return DatabaseConnectionService(db, storage).get_or_raise(connection_id).to_dict()


@router.put("/{connection_id}")
async def update_database_connection(
    connection_id: str,
    update: DatabaseConnectionUpdate,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    return DatabaseConnectionService(db, storage).update(connection_id, update).to_dict()


@router.delete("/{connection_id}", status_code=204)
async def delete_database_connection(
    connection_id: str,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> None:
    DatabaseConnectionService(db, storage).delete(connection_id)


@router.post("/{connection_id}/test")
async def test_database_connection(
    connection_id: str,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    return DatabaseConnectionService(db, storage).test(connection_id)


@router.get("/{connection_id}/schema")
async def get_schema(
    connection_id: str,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    """Tables, columns and foreign keys of the external database."""
    return DatabaseConnectionService(db, storage).schema(connection_id)


@router.post("/{connection_id}/query")
async def run_query(
    connection_id: str,
    request: QueryRequest,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    """Run a read-only SELECT with a row limit."""
    return DatabaseConnectionService(db, storage).query(
        connection_id, request.sql, params=request.params, limit=request.limit
    )


@router.get("/{connection_id}/relationships")
async def get_relationships(
    connection_id: str,
    primary_table: Optional[str] = None,
    max_depth: Optional[int] = Query(None, ge=0, le=10),
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    return DatabaseConnectionService(db, storage).relationships(
        connection_id, primary_table=primary_table, max_depth=max_depth
    )


@router.post("/{connection_id}/import", status_code=201)
async def import_relational(
    connection_id: str,
    request: RelationalImportRequest,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    """Import nested records from a primary table into a new data source."""
    source = DatabaseConnectionService(db, storage).import_relational(connection_id, request)
    return source.to_dict()
