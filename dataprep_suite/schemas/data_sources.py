"""
Data source request schemas.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, constr, model_validator

from .enums import DataSourceType


class DataSourceCreate(BaseModel):
    """Request body for registering a data source."""

    model_config = ConfigDict(extra="forbid")

    name: constr(min_length=1, max_length=255) = Field(..., description="Display name")
    type: DataSourceType = Field(..., description="Origin of the records")
    path: Optional[str] = Field(None, description="File path or URL, if any")
    configuration: Dict[str, Any] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)
    user_summary: Optional[str] = None
    records: Optional[List[Dict[str, Any]]] = Field(
        None, description="Initial records to upload with the source"
    )


class DataSourceUpdate(BaseModel):
    """Partial update; only provided fields change."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[constr(min_length=1, max_length=255)] = None
    path: Optional[str] = None
    configuration: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = None
    tags: Optional[List[str]] = None
    user_summary: Optional[str] = None
    ai_summary: Optional[str] = None


class RecordUpload(BaseModel):
    """Records to store for a data source, as JSON objects or CSV text."""

    model_config = ConfigDict(extra="forbid")

    records: Optional[List[Dict[str, Any]]] = None
    csv_text: Optional[str] = None

    @model_validator(mode="after")
    def _exactly_one_payload(self) -> "RecordUpload":
        if (self.records is None) == (self.csv_text is None):
            raise ValueError("Provide exactly one of 'records' or 'csv_text'")
        return self


class SummaryUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_summary: Optional[str] = Field(None, max_length=20000)


class RelevantSourcesRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    query: constr(min_length=1) = Field(..., description="Natural-language question")
