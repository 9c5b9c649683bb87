"""
Synthetic dataset schemas.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, constr

from .enums import OutputFormat


class SyntheticDatasetCreate(BaseModel):
    """A synthetic dataset definition.

    ``schema`` maps field names to ``{"type": ..., ...options}``; a
    ``data_type`` naming a built-in template fills it when omitted.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    name: constr(min_length=1, max_length=255)
    description: Optional[str] = None
    data_type: str = Field("custom", max_length=50)
    schema_: Optional[Dict[str, Dict[str, Any]]] = Field(None, alias="schema")
    record_count: int = Field(100, ge=1)
    output_format: OutputFormat = OutputFormat.JSON
    configuration: Dict[str, Any] = Field(
        default_factory=dict, description="seed, locale, table_name"
    )


class SyntheticDatasetUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    name: Optional[constr(min_length=1, max_length=255)] = None
    description: Optional[str] = None
    schema_: Optional[Dict[str, Dict[str, Any]]] = Field(None, alias="schema")
    record_count: Optional[int] = Field(None, ge=1)
    output_format: Optional[OutputFormat] = None
    configuration: Optional[Dict[str, Any]] = None


class AddToDataSourceRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
