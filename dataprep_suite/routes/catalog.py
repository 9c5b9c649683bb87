"""
Global catalog endpoints: categories, fields, import/export, suggestions and
validation.

All endpoints are prefixed with /api/catalog.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..db.base import get_db
from ..schemas.catalog import (
    CatalogFieldCreate,
    CatalogFieldUpdate,
    CatalogImport,
    CategoryCreate,
    CategoryUpdate,
    SuggestionRequest,
    ValueValidationRequest,
)
from ..services.catalog import CatalogService
from ..services.catalog_standard import IMPORT_TEMPLATE

router = APIRouter(prefix="/catalog", tags=["catalog"])


# =============================================================================
# Categories
# =============================================================================


@router.get("/categories")
async def list_categories(
    active_only: bool = False, db: Session = Depends(get_db)
) -> List[Dict[str, Any]]:
    return [c.to_dict() for c in CatalogService(db).list_categories(active_only=active_only)]


@router.post("/categories", status_code=201)
async def create_category(category: CategoryCreate, db: Session = Depends(get_db)) -> Dict[str, Any]:
    service = CatalogService(db)
    if service.get_category_by_name(category.name):
        raise HTTPException(
            status_code=409,
            detail=f"Category '{category.name}' already exists",
        )
    return service.create_category(category).to_dict()


@router.put("/categories/{category_id}")
async def update_category(
    category_id: str, update: CategoryUpdate, db: Session = Depends(get_db)
) -> Dict[str, Any]:
    return CatalogService(db).update_category(category_id, update).to_dict()


@router.delete("/categories/{category_id}", status_code=204)
async def delete_category(category_id: str, db: Session = Depends(get_db)) -> None:
    CatalogService(db).delete_category(category_id)


# =============================================================================
# Fields
# =============================================================================


@router.get("/fields")
async def list_fields(
    category: Optional[str] = None,
    search: Optional[str] = Query(None, min_length=1),
    db: Session = Depends(get_db),
) -> List[Dict[str, Any]]:
    service = CatalogService(db)
    fields = service.search_fields(search) if search else service.list_fields(category=category)
    return [f.to_dict() for f in fields]


@router.post("/fields", status_code=201)
async def create_field(field: CatalogFieldCreate, db: Session = Depends(get_db)) -> Dict[str, Any]:
    service = CatalogService(db)
    if service.get_field_by_name(field.name):
        raise HTTPException(
            status_code=409,
            detail=f"Catalog field '{field.name}' already exists",
        )
    return service.create_field(field).to_dict()


@router.get("/fields/{field_id}")
async def get_field(field_id: str, db: Session = Depends(get_db)) -> Dict[str, Any]:
    field = CatalogService(db).get_field(field_id)
    if not field:
        raise HTTPException(status_code=404, detail="Catalog field not found")
    return field.to_dict()


@router.put("/fields/{field_id}")
async def update_field(
    field_id: str, update: CatalogFieldUpdate, db: Session = Depends(get_db)
) -> Dict[str, Any]:
    return CatalogService(db).update_field(field_id, update).to_dict()


@router.delete("/fields/{field_id}", status_code=204)
async def delete_field(field_id: str, db: Session = Depends(get_db)) -> None:
    CatalogService(db).delete_field(field_id)


@router.post("/fields/{field_id}/validate")
async def validate_value(
    field_id: str, request: ValueValidationRequest, db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """Check a value against the field's type and validation rules."""
    return CatalogService(db).validate_value(field_id, request.value)


# =============================================================================
# Import and export
# =============================================================================


@router.get("/export")
async def export_catalog(include_standard: bool = True, db: Session = Depends(get_db)) -> JSONResponse:
    return JSONResponse(
        CatalogService(db).export_catalog(include_standard=include_standard),
        headers={"Content-Disposition": 'attachment; filename="catalog-export.json"'},
    )


@router.get("/import-template")
async def import_template() -> Dict[str, Any]:
    return IMPORT_TEMPLATE


@router.post("/import")
async def import_catalog(
    document: CatalogImport, overwrite: bool = False, db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """Create categories and fields from an exported catalog; per-entry errors are reported."""
    return CatalogService(db).import_catalog(document, overwrite=overwrite)


# =============================================================================
# Standard catalog and suggestions
# =============================================================================


@router.post("/initialize")
async def initialize_catalog(db: Session = Depends(get_db)) -> Dict[str, int]:
    """Seed the standard categories and fields (idempotent)."""
    return CatalogService(db).initialize_standard_catalog()


@router.post("/suggestions")
async def suggest_mappings(
    request: SuggestionRequest, db: Session = Depends(get_db)
) -> Dict[str, List[Dict[str, Any]]]:
    service = CatalogService(db)
    return {name: service.suggest_mappings(name) for name in request.fields}
