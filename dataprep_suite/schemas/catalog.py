"""
Catalog, field mapping and transformation schemas.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, constr

from .enums import CatalogDataType, TransformationType


class CategoryCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: constr(min_length=1, max_length=100, pattern=r"^[a-z0-9_]+$")
    display_name: constr(min_length=1, max_length=255)
    description: Optional[str] = None
    color: str = "#6b7280"
    icon: Optional[str] = None
    sort_order: int = 0
    is_active: bool = True


class CategoryUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    display_name: Optional[constr(min_length=1, max_length=255)] = None
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


class ValidationRules(BaseModel):
    """Constraints a catalog field imposes on mapped values."""

    model_config = ConfigDict(extra="forbid")

    min_length: Optional[int] = Field(None, ge=0)
    max_length: Optional[int] = Field(None, ge=0)
    pattern: Optional[str] = None
    enum: Optional[List[Any]] = None
    min: Optional[float] = None
    max: Optional[float] = None
    decimal_places: Optional[int] = Field(None, ge=0)


class CatalogFieldCreate(BaseModel):
    """Request body for a catalog field."""

    model_config = ConfigDict(extra="forbid")

    name: constr(min_length=1, max_length=255, pattern=r"^[a-z][a-z0-9_]*$")
    display_name: constr(min_length=1, max_length=255)
    description: Optional[str] = None
    data_type: CatalogDataType
    category: constr(min_length=1, max_length=100)
    is_required: bool = False
    validation_rules: Optional[ValidationRules] = None
    tags: List[str] = Field(default_factory=list)


class CatalogFieldUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    display_name: Optional[constr(min_length=1, max_length=255)] = None
    description: Optional[str] = None
    data_type: Optional[CatalogDataType] = None
    category: Optional[str] = None
    is_required: Optional[bool] = None
    validation_rules: Optional[ValidationRules] = None
    tags: Optional[List[str]] = None


class TransformationRule(BaseModel):
    """How a source value is converted before it lands in the catalog field.

    - format: ``pattern`` regex replaced by ``replacement``
    - lookup: ``lookup_table`` maps source values to catalog values
    - calculation: ``expression`` in terms of ``$value``
    - conditional: ``conditions`` list of ``{operator, value, result}``
    """

    model_config = ConfigDict(extra="forbid")

    type: TransformationType = TransformationType.DIRECT
    pattern: Optional[str] = None
    replacement: Optional[str] = None
    lookup_table: Optional[Dict[str, Any]] = None
    expression: Optional[str] = None
    conditions: Optional[List[Dict[str, Any]]] = None
    default: Optional[Any] = None


class FieldMappingCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    source_field_name: constr(min_length=1, max_length=255)
    catalog_field_id: constr(min_length=1, max_length=128)
    transformation_rule: Optional[TransformationRule] = None
    confidence: float = Field(1.0, ge=0.0, le=1.0)
    is_manual: bool = True


class SuggestionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    fields: List[str] = Field(..., min_length=1)


class AutoMapRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    fields: Optional[List[str]] = None
    min_confidence: float = Field(0.8, ge=0.0, le=1.0)


class ApplyMappingsRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    records: Optional[List[Dict[str, Any]]] = Field(
        None, description="Records to transform; defaults to the stored records"
    )
    limit: Optional[int] = Field(None, ge=1)


class ValueValidationRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    value: Any = None


class CatalogImport(BaseModel):
    """Catalog import document.

    Fields may be listed at the top level with a ``category`` or nested
    under their category's ``fields``. Entries are validated one by one so a
    bad entry is reported without rejecting the rest.
    """

    model_config = ConfigDict(extra="ignore")

    version: str = "1.0"
    categories: List[Dict[str, Any]] = Field(default_factory=list)
    fields: List[Dict[str, Any]] = Field(default_factory=list)
