"""
Data source endpoints.

All endpoints are prefixed with /api/data-sources.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from ..db.base import get_db
from ..schemas.catalog import ApplyMappingsRequest, AutoMapRequest, FieldMappingCreate
from ..schemas.data_sources import (
    DataSourceCreate,
    DataSourceUpdate,
    RecordUpload,
    RelevantSourcesRequest,
    SummaryUpdate,
)
from ..services.data_sources import DataSourceService
from ..services.field_mappings import FieldMappingService
from ..services.keywords import KeywordService
from ..storage import StorageProvider, get_storage

router = APIRouter(prefix="/data-sources", tags=["data-sources"])


@router.post("", status_code=201)
async def create_data_source(
    source: DataSourceCreate,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    """Create a data source, optionally with initial records."""
    db_source = DataSourceService(db, storage).create(source)
    return db_source.to_dict()


@router.get("")
async def list_data_sources(
    type: Optional[str] = None,
    tag: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> List[Dict[str, Any]]:
    sources = DataSourceService(db, storage).list(source_type=type, tag=tag, limit=limit, offset=offset)
    return [s.to_dict() for s in sources]


@router.post("/relevant")
async def relevant_data_sources(
    request: RelevantSourcesRequest,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    """Rank data sources by keyword match against a question."""
    ids = DataSourceService(db, storage).relevant_sources(request.query)
    return {"query": request.query, "data_source_ids": ids}


@router.get("/{data_source_id}")
async def get_data_source(
    data_source_id: str,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    source = DataSourceService(db, storage).get(data_source_id)
    if not source:
        raise HTTPException(status_code=404, detail="Data source not found")
    return source.to_dict()


@router.put("/{data_source_id}")
async def update_data_source(
    data_source_id: str,
    update: DataSourceUpdate,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    return DataSourceService(db, storage).update(data_source_id, update).to_dict()


@router.delete("/{data_source_id}", status_code=204)
async def delete_data_source(
    data_source_id: str,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> None:
    DataSourceService(db, storage).delete(data_source_id)


# =============================================================================
# Records
# =============================================================================


@router.post("/{data_source_id}/records")
async def upload_records(
    data_source_id: str,
    upload: RecordUpload,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    """Replace the stored records of a data source."""
    source = DataSourceService(db, storage).upload_records(
        data_source_id, records=upload.records, csv_text=upload.csv_text
    )
    return source.to_dict()


@router.get("/{data_source_id}/records")
async def get_records(
    data_source_id: str,
    limit: int = Query(100, ge=1, le=10000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    return DataSourceService(db, storage).get_records(data_source_id, limit=limit, offset=offset)


@router.get("/{data_source_id}/profile")
async def profile_data_source(
    data_source_id: str,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    return DataSourceService(db, storage).profile(data_source_id)


# =============================================================================
# Summaries, tables and keywords
# =============================================================================


@router.put("/{data_source_id}/summary")
async def update_summary(
    data_source_id: str,
    body: SummaryUpdate,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    return DataSourceService(db, storage).update_summary(data_source_id, body.user_summary).to_dict()


@router.get("/{data_source_id}/tables")
async def list_tables(
    data_source_id: str,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> List[Dict[str, Any]]:
    return [t.to_dict() for t in DataSourceService(db, storage).list_tables(data_source_id)]


@router.put("/{data_source_id}/tables/{table_id}/summary")
async def update_table_summary(
    data_source_id: str,
    table_id: str,
    body: SummaryUpdate,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    table = DataSourceService(db, storage).update_table_summary(
        data_source_id, table_id, body.user_summary
    )
    return table.to_dict()


@router.post("/{data_source_id}/keywords")
async def generate_keywords(
    data_source_id: str,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    """Generate query-routing keywords (LLM when configured, else heuristic)."""
    return await KeywordService(DataSourceService(db, storage)).generate_keywords(data_source_id)


# =============================================================================
# Field mappings
# =============================================================================


@router.get("/{data_source_id}/mappings")
async def list_mappings(
    data_source_id: str,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> List[Dict[str, Any]]:
    return [m.to_dict() for m in FieldMappingService(db, storage).list_mappings(data_source_id)]


@router.post("/{data_source_id}/mappings")
async def upsert_mapping(
    data_source_id: str,
    mapping: FieldMappingCreate,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    return FieldMappingService(db, storage).upsert_mapping(data_source_id, mapping).to_dict()


@router.delete("/{data_source_id}/mappings/{source_field_name}", status_code=204)
async def delete_mapping(
    data_source_id: str,
    source_field_name: str,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> None:
    FieldMappingService(db, storage).delete_mapping(data_source_id, source_field_name)


@router.get("/{data_source_id}/mappings/suggestions")
async def mapping_suggestions(
    data_source_id: str,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    return FieldMappingService(db, storage).generate_suggestions(data_source_id)


@router.post("/{data_source_id}/mappings/auto")
async def auto_map(
    data_source_id: str,
    request: AutoMapRequest,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    return FieldMappingService(db, storage).auto_map(
        data_source_id, fields=request.fields, min_confidence=request.min_confidence
    )


@router.post("/{data_source_id}/mappings/apply")
async def apply_mappings(
    data_source_id: str,
    request: ApplyMappingsRequest,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    """Transform records into catalog fields using the source's mappings."""
    return FieldMappingService(db, storage).apply_mappings(
        data_source_id, records=request.records, limit=request.limit
    )


@router.get("/{data_source_id}/transform/download")
async def download_transformed(
    data_source_id: str,
    format: str = Query("json", pattern="^(json|csv)$"),
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Response:
    """The full catalog-mapped dataset as a file."""
    content, media_type, filename = FieldMappingService(db, storage).export_transformed(
        data_source_id, output_format=format
    )
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
