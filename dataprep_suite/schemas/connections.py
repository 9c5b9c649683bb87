"""
API and database connection schemas.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, constr, model_validator

from .enums import AuthType, DatabaseType, PaginationType


class PaginationConfig(BaseModel):
    """How to walk a paginated upstream API."""

    model_config = ConfigDict(extra="forbid")

    type: PaginationType = PaginationType.NONE
    page_param: str = "page"
    size_param: str = "limit"
    offset_param: str = "offset"
    cursor_param: str = "cursor"
    cursor_path: Optional[str] = Field(
        None, description="Dotted path to the next cursor in the response"
    )
    page_size: int = Field(100, ge=1, le=10000)
    start_page: int = 1


class ApiConnectionCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: constr(min_length=1, max_length=255)
    description: Optional[str] = None
    endpoint: constr(min_length=1, max_length=2000, pattern=r"^https?://")
    method: str = Field("GET", pattern=r"^(GET|POST)$")
    auth_type: AuthType = AuthType.NONE
    auth_config: Dict[str, str] = Field(default_factory=dict)
    headers: Dict[str, str] = Field(default_factory=dict)
    request_body: Optional[Dict[str, Any]] = None
    pagination_config: Optional[PaginationConfig] = None
    data_path: Optional[str] = Field(
        None, description="Dotted path to the record list in the response body"
    )
    timeout: float = Field(30.0, gt=0, le=300)
    tags: List[str] = Field(default_factory=list)


class ApiConnectionUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[constr(min_length=1, max_length=255)] = None
    description: Optional[str] = None
    endpoint: Optional[constr(min_length=1, max_length=2000, pattern=r"^https?://")] = None
    method: Optional[str] = Field(None, pattern=r"^(GET|POST)$")
    auth_type: Optional[AuthType] = None
    auth_config: Optional[Dict[str, str]] = None
    headers: Optional[Dict[str, str]] = None
    request_body: Optional[Dict[str, Any]] = None
    pagination_config: Optional[PaginationConfig] = None
    data_path: Optional[str] = None
    timeout: Optional[float] = Field(None, gt=0, le=300)
    tags: Optional[List[str]] = None


class ApiImportRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    max_pages: int = Field(10, ge=1, le=1000)
    data_source_name: Optional[str] = None


class DatabaseConnectionCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: constr(min_length=1, max_length=255)
    type: DatabaseType
    host: Optional[str] = None
    port: Optional[int] = Field(None, ge=1, le=65535)
    database: constr(min_length=1, max_length=500)
    username: Optional[str] = None
    password: Optional[str] = None
    ssl: bool = False

    @model_validator(mode="after")
    def _host_required_for_servers(self) -> "DatabaseConnectionCreate":
        if self.type != DatabaseType.SQLITE and not self.host:
            raise ValueError(f"host is required for {self.type.value} connections")
        return self


class DatabaseConnectionUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[constr(min_length=1, max_length=255)] = None
    host: Optional[str] = None
    port: Optional[int] = Field(None, ge=1, le=65535)
    database: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    ssl: Optional[bool] = None


class QueryRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    sql: constr(min_length=1)
    params: Optional[Dict[str, Any]] = None
    limit: Optional[int] = Field(None, ge=1)


class RelationalImportRequest(BaseModel):
    """Options for importing a table and its related tables as nested records."""

    model_config = ConfigDict(extra="forbid")

    primary_table: constr(min_length=1)
    max_depth: Optional[int] = Field(None, ge=0, le=10)
    max_records: Optional[int] = Field(None, ge=1, le=100000)
    follow_reverse: bool = True
    included_tables: List[str] = Field(default_factory=list)
    excluded_tables: List[str] = Field(default_factory=list)
    data_source_name: Optional[str] = None
