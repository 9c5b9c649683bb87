"""
Field annotation schemas.
"""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, constr

from .enums import SemanticType, SensitivityLevel


class FieldAnnotationCreate(BaseModel):
    """Create or update (by data source and field path) an annotation."""

    model_config = ConfigDict(extra="forbid")

    data_source_id: constr(min_length=1, max_length=128)
    field_path: constr(min_length=1, max_length=500)
    field_name: Optional[constr(min_length=1, max_length=255)] = None
    semantic_type: Optional[SemanticType] = None
    description: Optional[str] = None
    business_context: Optional[str] = None
    data_type: Optional[str] = None
    is_pii: bool = False
    pii_type: Optional[str] = None
    sensitivity_level: Optional[SensitivityLevel] = None
    tags: List[str] = Field(default_factory=list)
    example_values: List[Any] = Field(default_factory=list)


class BulkAnnotationRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    annotations: List[FieldAnnotationCreate] = Field(..., min_length=1)


class DetectPiiRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    data_source_id: constr(min_length=1, max_length=128)
    persist: bool = False
