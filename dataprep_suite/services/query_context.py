"""
Query context: gathers catalog metadata relevant to a natural-language
question and renders it as a compact prompt.

Matching is plain string normalization and substring containment; nothing
here calls an LLM.
"""

from __future__ import annotations

import re
from itertools import combinations
from typing import Any, Dict, List, Optional, Set

import structlog
from sqlalchemy.orm import Session

from ..config import get_settings
from ..db.models import (
    CatalogFieldModel,
    DataSourceModel,
    DataSourceTableModel,
    FieldAnnotationModel,
    PatternModel,
)

logger = structlog.get_logger()

STOP_WORDS = {"what", "where", "when", "which", "average", "count", "show", "the", "and", "for"}

_PUNCTUATION_RE = re.compile(r"[?!.,;:]")

TRUNCATION_MARKER = "\n... [Context truncated due to size]"


def extract_keywords(query: Optional[str]) -> List[str]:
    if not query:
        return []
    words = _PUNCTUATION_RE.sub("", query.lower()).split()
    return [w for w in words if len(w) > 2 and w not in STOP_WORDS]


def is_id_like(name: str) -> bool:
    lowered = name.lower()
    return lowered == "id" or lowered.endswith("_id")


def _columns(table: DataSourceTableModel) -> List[Dict[str, Any]]:
    """Normalized column dicts from a table's schema info or metadata."""
    raw = (table.meta or {}).get("columns") or table.schema_info or []
    if isinstance(raw, dict):
        raw = raw.get("columns") or raw.get("fields") or []

    foreign_keys = {
        fk.get("column"): fk for fk in (table.meta or {}).get("foreign_keys", []) if fk.get("column")
    }
    primary_key = set((table.meta or {}).get("primary_key") or [])

    columns = []
    for col in raw:
        name = col.get("name") or col.get("column_name") or col.get("field")
        if not name:
            continue
        fk = foreign_keys.get(name)
        columns.append(
            {
                "name": name,
                "type": col.get("type") or col.get("data_type") or "unknown",
                "is_primary_key": bool(col.get("primary_key")) or name in primary_key,
                "is_foreign_key": fk is not None,
                "references": (
                    {"table": fk["referenced_table"], "column": fk["referenced_column"]}
                    if fk
                    else None
                ),
            }
        )
    return columns


def analyze_source_pair(
    first: Dict[str, Any], second: Dict[str, Any], fields: Dict[str, Set[str]]
) -> Dict[str, Any]:
    """Classify how two sources relate by the field names they share."""
    shared = sorted(fields.get(first["id"], set()) & fields.get(second["id"], set()))
    shared_ids = [name for name in shared if is_id_like(name)]
    if len(shared_ids) >= 2 or len(shared) >= 3:
        relationship_type = "strong"
    elif shared:
        relationship_type = "weak"
    else:
        relationship_type = "unrelated"

    allow_join = relationship_type == "strong"
    if shared:
        reason = f"{len(shared)} shared fields ({len(shared_ids)} identifiers): {', '.join(shared[:5])}"
    else:
        reason = "No shared fields"
    return {
        "source1": {"id": first["id"], "name": first["name"]},
        "source2": {"id": second["id"], "name": second["name"]},
        "relationship_type": relationship_type,
        "shared_fields": shared,
        "shared_id_fields": shared_ids,
        "allow_join": allow_join,
        "reason": reason,
    }


def relevance_score(source: Dict[str, Any], query: str) -> float:
    query_lower = query.lower()
    first_word = query_lower.split(" ")[0]
    score = 0.0
    if first_word and first_word in source["name"].lower():
        score += 3
    for keyword in source.get("ai_keywords") or []:
        keyword_lower = str(keyword).lower()
        if keyword_lower in query_lower or query_lower in keyword_lower:
            score += 2
    if source.get("summary") and query_lower in source["summary"].lower():
        score += 1
    if (source.get("record_count") or 0) > 100:
        score += 0.5
    return score


def build_context_prompt(context: Dict[str, Any], max_tokens: int = 4000) -> str:
    """Render context as prompt text, truncated at roughly ``max_tokens``."""
    parts = ["Data catalog context:\n"]

    sources = context.get("data_sources", [])
    if sources:
        parts.append("## Data Sources")
        for source in sources[:10]:
            parts.append(f"- {source['name']} ({source['type']}): {source.get('record_count') or 0} records")
            if source.get("summary"):
                parts.append(f"  Summary: {source['summary'][:200]}")
        parts.append("")

    tables = context.get("tables", [])
    if tables:
        parts.append("## Tables")
        for table in tables[:15]:
            parts.append(
                f"- {table['data_source_name']}.{table['table_name']}: {table.get('record_count') or 0} records"
            )
            columns = table.get("columns") or []
            if columns:
                preview = ", ".join(f"{c['name']} ({c['type']})" for c in columns[:5])
                more = f" ... +{len(columns) - 5} more" if len(columns) > 5 else ""
                parts.append(f"  Columns: {preview}{more}")
        parts.append("")

    fields = context.get("fields", [])
    if 0 < len(fields) < 200:
        parts.append("## Key Fields")
        for field in fields[:30]:
            location = f" [{field['table_name']}]" if field.get("table_name") else ""
            parts.append(f"- {field['field_name']}{location}: {field.get('data_type') or 'unknown'}")
        parts.append("")

    relationships = context.get("relationships", [])
    if relationships:
        parts.append("## Relationships")
        for rel in relationships[:10]:
            parts.append(
                f"- {rel['source_table']}.{rel['source_field']} -> {rel['target_table']}.{rel['target_field']}"
            )
        parts.append("")

    prompt = "\n".join(parts)
    max_chars = max_tokens * 4
    if len(prompt) > max_chars:
        prompt = prompt[:max_chars] + TRUNCATION_MARKER
    return prompt


class QueryContextService:
    """Builds metadata context for natural-language questions."""

    def __init__(self, db: Session):
        self.db = db
        self.settings = get_settings()

    def gather_full_context(self) -> Dict[str, Any]:
        sources = self.db.query(DataSourceModel).order_by(DataSourceModel.name).all()
        names = {s.id: s.name for s in sources}
        data_sources = [
            {
                "id": s.id,
                "name": s.name,
                "type": s.type,
                "summary": s.user_summary or s.ai_summary,
                "record_count": s.record_count,
                "tags": s.tags or [],
                "ai_keywords": s.ai_keywords or [],
                "field_names": s.original_field_names or [],
            }
            for s in sources
        ]

        tables = []
        relationships = []
        db_tables = (
            self.db.query(DataSourceTableModel)
            .order_by(DataSourceTableModel.data_source_id, DataSourceTableModel.table_index)
            .all()
        )
        for table in db_tables:
            columns = _columns(table)
            tables.append(
                {
                    "id": table.id,
                    "data_source_id": table.data_source_id,
                    "data_source_name": names.get(table.data_source_id, "Unknown"),
                    "table_name": table.table_name,
                    "summary": table.user_summary or table.ai_summary,
                    "record_count": table.record_count,
                    "columns": columns,
                }
            )
            for column in columns:
                if column["references"]:
                    relationships.append(
                        {
                            "source_table": table.table_name,
                            "source_field": column["name"],
                            "target_table": column["references"]["table"],
                            "target_field": column["references"]["column"],
                            "type": "foreign_key",
                            "data_source_id": table.data_source_id,
                        }
                    )

        fields = [
            {
                "id": f.id,
                "field_name": f.name,
                "display_name": f.display_name,
                "data_type": f.data_type,
                "category": f.category,
                "description": f.description,
                "table_name": None,
                "data_source_name": None,
            }
            for f in self.db.query(CatalogFieldModel).order_by(CatalogFieldModel.name).all()
        ]
        seen: Set[str] = set()
        for table in tables:
            for column in table["columns"]:
                key = f"{table['table_name']}_{column['name']}".lower()
                if key in seen:
                    continue
                seen.add(key)
                fields.append(
                    {
                        "id": f"{table['id']}_{column['name']}",
                        "field_name": column["name"],
                        "display_name": column["name"],
                        "data_type": column["type"],
                        "category": None,
                        "description": f"Field in {table['table_name']}",
                        "table_name": table["table_name"],
                        "data_source_name": table["data_source_name"],
                    }
                )

        patterns = [
            {
                "id": p.id,
                "name": p.name,
                "description": p.description,
                "category": p.category,
                "regex": p.regex,
                "examples": p.examples or [],
            }
            for p in self.db.query(PatternModel).filter(PatternModel.is_active.is_(True)).all()
        ]

        annotations = [
            {
                "field_path": a.field_path,
                "data_source_id": a.data_source_id,
                "field_name": a.field_name,
                "description": a.description,
                "business_context": a.business_context,
                "is_pii": a.is_pii,
                "pii_type": a.pii_type,
            }
            for a in self.db.query(FieldAnnotationModel).all()
        ]

        return {
            "data_sources": data_sources,
            "tables": tables,
            "fields": fields,
            "patterns": patterns,
            "annotations": annotations,
            "relationships": relationships,
        }

    def get_relevant_context(self, query: Optional[str] = None) -> Dict[str, Any]:
        """Narrow the full context to what the query's keywords touch."""
        full = self.gather_full_context()
        keywords = extract_keywords(query)

        data_sources = full["data_sources"]
        if keywords:
            matched = [s for s in data_sources if self._source_matches(s, keywords)]
            if matched:
                data_sources = matched
            else:
                logger.info("No data sources matched keywords", keywords=keywords)

        source_ids = {s["id"] for s in data_sources}
        tables = [t for t in full["tables"] if t["data_source_id"] in source_ids]
        table_names = {t["table_name"] for t in tables}

        relevant_fields = [
            f
            for f in full["fields"]
            if (f["table_name"] and f["table_name"] in table_names)
            or any(
                kw in f["field_name"].lower() or kw in (f["display_name"] or "").lower()
                for kw in keywords
            )
        ]
        fields = relevant_fields[:100] if relevant_fields else full["fields"][:50]

        return {
            "data_sources": data_sources,
            "tables": tables,
            "fields": fields,
            "patterns": full["patterns"][:20],
            "annotations": [a for a in full["annotations"] if a["data_source_id"] in source_ids][:50],
            "relationships": [r for r in full["relationships"] if r["data_source_id"] in source_ids],
        }

    @staticmethod
    def _source_matches(source: Dict[str, Any], keywords: List[str]) -> bool:
        name = source["name"].lower()
        summary = (source.get("summary") or "").lower()
        if any(kw in name for kw in keywords):
            return True
        if summary and any(kw in summary for kw in keywords):
            return True
        if any(kw in str(tag).lower() for tag in source.get("tags") or [] for kw in keywords):
            return True
        for ai_keyword in source.get("ai_keywords") or []:
            ai_lower = str(ai_keyword).lower()
            if any(kw in ai_lower or ai_lower in kw for kw in keywords):
                return True
        return False

    @staticmethod
    def _source_fields(context: Dict[str, Any]) -> Dict[str, Set[str]]:
        fields: Dict[str, Set[str]] = {
            s["id"]: {str(n).lower() for n in s.get("field_names") or []}
            for s in context["data_sources"]
        }
        for table in context["tables"]:
            fields.setdefault(table["data_source_id"], set()).update(
                c["name"].lower() for c in table["columns"]
            )
        return fields

    def analyze_relationships(self, context: Dict[str, Any], max_sources: int = 5) -> Dict[str, Any]:
        sources = context["data_sources"][:max_sources]
        fields = self._source_fields(context)
        relationships = [analyze_source_pair(a, b, fields) for a, b in combinations(sources, 2)]
        allowed = [
            {"source1_id": r["source1"]["id"], "source2_id": r["source2"]["id"], "reason": r["reason"]}
            for r in relationships
            if r["allow_join"]
        ]
        suggestions = []
        if relationships and not allowed:
            suggestions.append("Sources share no strong keys; query them separately")
        return {"relationships": relationships, "allowed_pairs": allowed, "suggestions": suggestions}

    def select_sources(
        self, sources: List[Dict[str, Any]], analysis: Dict[str, Any], query: Optional[str]
    ) -> List[str]:
        if not query or len(sources) <= 1:
            return [s["id"] for s in sources]

        strong = [r for r in analysis["relationships"] if r["allow_join"]]
        if strong:
            related: List[str] = []
            for rel in strong:
                for end in ("source1", "source2"):
                    if rel[end]["id"] not in related:
                        related.append(rel[end]["id"])
            return related

        ranked = sorted(sources, key=lambda s: relevance_score(s, query), reverse=True)
        return [s["id"] for s in ranked[:2]]

    def get_enhanced_relevant_context(
        self, query: Optional[str] = None, max_sources: int = 5
    ) -> Dict[str, Any]:
        """Relevant context narrowed to sources that can sensibly be combined."""
        context = self.get_relevant_context(query)
        analysis = {"relationships": [], "allowed_pairs": [], "suggestions": []}
        recommended = [s["id"] for s in context["data_sources"]]

        if len(context["data_sources"]) > 1:
            analysis = self.analyze_relationships(context, max_sources)
            recommended = self.select_sources(context["data_sources"], analysis, query)
            if 0 < len(recommended) < len(context["data_sources"]):
                keep = set(recommended)
                context = {
                    **context,
                    "data_sources": [s for s in context["data_sources"] if s["id"] in keep],
                    "tables": [t for t in context["tables"] if t["data_source_id"] in keep],
                    "annotations": [a for a in context["annotations"] if a["data_source_id"] in keep],
                    "relationships": [r for r in context["relationships"] if r["data_source_id"] in keep],
                }
                logger.info("Context narrowed by source relationships", sources=len(keep))

        return {
            "context": context,
            "relationship_analysis": analysis,
            "recommended_sources": recommended,
        }

    def ask(self, query: str, max_tokens: Optional[int] = None, max_sources: int = 5) -> Dict[str, Any]:
        enhanced = self.get_enhanced_relevant_context(query, max_sources)
        prompt = build_context_prompt(
            enhanced["context"], max_tokens or self.settings.query_max_context_tokens
        )
        context = enhanced["context"]
        logger.info(
            "Query context built",
            keywords=extract_keywords(query),
            sources=len(context["data_sources"]),
            prompt_chars=len(prompt),
        )
        return {
            "query": query,
            "keywords": extract_keywords(query),
            "context": context,
            "prompt": prompt,
            "recommended_sources": enhanced["recommended_sources"],
            "relationship_analysis": enhanced["relationship_analysis"],
        }
