"""
Keyword generation for query routing.

Keywords come from an LLM when an API key is configured; otherwise, or when
the call fails, they are derived from table column names and the source name.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

import structlog

from ..db.models import DataSourceModel
from ..primitives import utc_now
from .data_sources import DataSourceService
from .llm import LLMClient, LLMError, extract_json

logger = structlog.get_logger()

KEYWORD_SYSTEM_PROMPT = """You are a data analysis expert. Analyze the provided data source information and generate keywords for query routing.

Generate:
1. Keywords: 10-20 specific terms that would indicate this data source is relevant for a query
2. Categories: 3-5 high-level categories (e.g., "financial", "customer", "medical", "sales")
3. Domain: Single primary domain (e.g., "finance", "healthcare", "e-commerce", "hr")

Respond with JSON only:
{"keywords": ["keyword1", ...], "categories": ["category1", ...], "domain": "primary_domain"}"""

MAX_KEYWORDS = 20


def heuristic_keywords(name: str, columns: List[str]) -> Dict[str, Any]:
    """Keywords from column names (length > 2) and name parts (length > 3)."""
    keywords: List[str] = [c for c in columns if len(c) > 2]
    name_parts = re.split(r"[\s_-]+", name.lower())
    keywords.extend(p for p in name_parts if len(p) > 3)

    unique = list(dict.fromkeys(keywords))
    return {
        "keywords": unique[:MAX_KEYWORDS],
        "categories": ["data"],
        "domain": "general",
        "method": "heuristic",
    }


class KeywordService:
    """Generates and stores ``ai_keywords`` for data sources."""

    def __init__(self, sources: DataSourceService, llm: Optional[LLMClient] = None):
        self.sources = sources
        self.llm = llm or LLMClient()

    def _columns(self, source: DataSourceModel) -> List[str]:
        columns: List[str] = []
        for table in source.tables:
            columns.extend(c.get("name", "") for c in table.schema_info or [])
        if not columns:
            columns = list(source.original_field_names or [])
        return [c for c in dict.fromkeys(columns) if c]

    def build_context(self, source: DataSourceModel) -> str:
        parts = [f"Data Source: {source.name}", f"Type: {source.type}"]
        summary = source.user_summary or source.ai_summary
        if summary:
            parts.append(f"Summary: {summary}")

        if source.tables:
            parts.append(f"\nTables ({len(source.tables)}):")
            for table in source.tables:
                parts.append(f"- {table.table_name}")
                names = [c.get("name", "") for c in table.schema_info or []]
                if names:
                    more = "..." if len(names) > 10 else ""
                    parts.append(f"  Columns: {', '.join(names[:10])}{more}")
        elif source.original_field_names:
            parts.append(f"Columns: {', '.join(source.original_field_names[:20])}")

        records = self.sources.load_records(source)[:3]
        if records:
            parts.append("\nSample data:")
            for i, record in enumerate(records, start=1):
                samples = [
                    f'{k}="{v}"'
                    for k, v in record.items()
                    if isinstance(v, str) and v and len(v) < 50
                ]
                parts.append(f"Record {i}: {', '.join(list(record)[:5])}")
                if samples:
                    parts.append(f"  Sample values: {', '.join(samples[:3])}")
        return "\n".join(parts)

    async def analyze(self, source: DataSourceModel) -> Dict[str, Any]:
        columns = self._columns(source)
        if self.llm.provider is None:
            return heuristic_keywords(source.name, columns)

        context = self.build_context(source)
        try:
            reply = await self.llm.complete(
                KEYWORD_SYSTEM_PROMPT,
                f"Analyze this data source and generate keywords:\n\n{context}",
            )
            result = extract_json(reply)
            raw = result.get("keywords") or []
            if not isinstance(raw, list):
                raise LLMError("LLM keywords are not a list")
            keywords = [str(k) for k in raw if k is not None and str(k).strip()]
            if not keywords:
                raise LLMError("LLM returned no keywords")
            return {
                "keywords": keywords[:MAX_KEYWORDS],
                "categories": result.get("categories") or [],
                "domain": result.get("domain") or "general",
                "method": self.llm.provider,
            }
        except LLMError as e:
            logger.warning(
                "Keyword generation fell back to heuristics",
                data_source_id=source.id,
                error=str(e),
            )
            return heuristic_keywords(source.name, columns)

    async def generate_keywords(self, data_source_id: str) -> Dict[str, Any]:
        """Generate keywords for a source and save them."""
        source = self.sources.get_or_raise(data_source_id)
        analysis = await self.analyze(source)

        source.ai_keywords = analysis["keywords"]
        source.keywords_generated_at = utc_now()
        self.sources.db.commit()
        logger.info(
            "Keywords generated",
            data_source_id=source.id,
            count=len(analysis["keywords"]),
            method=analysis["method"],
        )
        return {"data_source_id": source.id, **analysis}
