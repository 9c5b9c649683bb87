"""
Natural-language query schemas.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, constr


class QueryRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    query: constr(min_length=1, max_length=2000)
    max_tokens: Optional[int] = Field(None, ge=100, le=200000)
    max_sources: int = Field(5, ge=1, le=50)
