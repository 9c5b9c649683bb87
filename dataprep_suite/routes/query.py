"""
Natural-language query context endpoints.

All endpoints are prefixed with /api/query.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db.base import get_db
from ..schemas.query import QueryRequest
from ..services.query_context import QueryContextService, extract_keywords

router = APIRouter(prefix="/query", tags=["query"])


@router.post("/ask")
async def ask(request: QueryRequest, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Relevant catalog context and a prompt for a question."""
    return QueryContextService(db).ask(
        request.query, max_tokens=request.max_tokens, max_sources=request.max_sources
    )


@router.get("/context")
async def get_context(
    q: Optional[str] = None,
    full: bool = False,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    service = QueryContextService(db)
    if full:
        return service.gather_full_context()
    return service.get_relevant_context(q)


@router.get("/keywords")
async def get_keywords(q: str = Query(..., min_length=1)) -> Dict[str, Any]:
    return {"query": q, "keywords": extract_keywords(q)}
