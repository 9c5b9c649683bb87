"""
Pattern service: CRUD over sensitive-data patterns and scanning records.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy.orm import Session

from ..db.models import PatternModel
from ..errors import ConflictError, NotFoundError, ValidationFailedError
from ..schemas.patterns import PatternCreate, PatternUpdate
from .data_sources import DataSourceService
from .pattern_testing import (
    drop_refined_matches,
    find_example_matches,
    find_regex_matches,
    run_pattern_test,
)
from .records import flatten_record

logger = structlog.get_logger()


def _check_regexes(regexes: List[Optional[str]]) -> None:
    for regex in regexes:
        if not regex:
            continue
        try:
            re.compile(regex)
        except re.error as e:
            raise ValidationFailedError(
                f"Invalid regular expression {regex!r}: {e}", {"regex": regex}
            ) from e


class PatternService:
    """Service for managing patterns."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_name(self, name: str) -> Optional[PatternModel]:
        return self.db.query(PatternModel).filter(PatternModel.name == name).first()

    def create(self, pattern: PatternCreate) -> PatternModel:
        if self.get_by_name(pattern.name):
            raise ConflictError(f"Pattern with name '{pattern.name}' already exists")
        _check_regexes([pattern.regex, *pattern.regex_patterns])

        db_pattern = PatternModel(
            name=pattern.name,
            type=pattern.type.value,
            category=pattern.category,
            regex=pattern.regex,
            regex_patterns=pattern.regex_patterns,
            examples=pattern.examples,
            context_keywords=pattern.context_keywords,
            description=pattern.description,
            color=pattern.color,
            is_active=pattern.is_active,
        )
        self.db.add(db_pattern)
        self.db.commit()
        self.db.refresh(db_pattern)
        logger.info("Pattern created", pattern_id=db_pattern.id, name=db_pattern.name)
        return db_pattern

    def get(self, pattern_id: str) -> Optional[PatternModel]:
        return self.db.query(PatternModel).filter(PatternModel.id == pattern_id).first()

    def get_or_raise(self, pattern_id: str) -> PatternModel:
        pattern = self.get(pattern_id)
        if not pattern:
            raise NotFoundError("Pattern", pattern_id)
        return pattern

    def list(
        self,
        pattern_type: Optional[str] = None,
        active_only: bool = False,
        limit: int = 100,
        offset: int = 0,
    ) -> List[PatternModel]:
        query = self.db.query(PatternModel)
        if pattern_type:
            query = query.filter(PatternModel.type == pattern_type)
        if active_only:
            query = query.filter(PatternModel.is_active.is_(True))
        return query.order_by(PatternModel.name).offset(offset).limit(limit).all()

    def update(self, pattern_id: str, update: PatternUpdate) -> PatternModel:
        pattern = self.get_or_raise(pattern_id)
        changes = update.model_dump(exclude_unset=True)

        if "name" in changes and changes["name"] != pattern.name:
            if self.get_by_name(changes["name"]):
                raise ConflictError(f"Pattern with name '{changes['name']}' already exists")
        _check_regexes([changes.get("regex"), *(changes.get("regex_patterns") or [])])

        if "type" in changes and changes["type"] is not None:
            changes["type"] = changes["type"].value
        for key, value in changes.items():
            setattr(pattern, key, value)
        self.db.commit()
        self.db.refresh(pattern)
        return pattern

    def delete(self, pattern_id: str) -> None:
        pattern = self.get_or_raise(pattern_id)
        self.db.delete(pattern)
        self.db.commit()

    def test(
        self,
        text: str,
        pattern: Dict[str, Any],
        redaction_style: Optional[str] = None,
    ) -> Dict[str, Any]:
        return run_pattern_test(text, pattern, redaction_style)

    def scan_data_source(
        self,
        sources: DataSourceService,
        data_source_id: str,
        pattern_ids: Optional[List[str]] = None,
        sample_limit: int = 5,
    ) -> Dict[str, Any]:
        """Run patterns over every string value of a source's records."""
        source = sources.get_or_raise(data_source_id)
        records = sources.load_records(source)

        if pattern_ids:
            patterns = [self.get_or_raise(pid) for pid in pattern_ids]
        else:
            patterns = self.list(active_only=True, limit=10000)

        flat_records = [flatten_record(r) for r in records]
        results = []
        for pattern in patterns:
            field_hits: Dict[str, Dict[str, Any]] = {}
            total = 0
            for flat in flat_records:
                for field, value in flat.items():
                    if not isinstance(value, str) or not value:
                        continue
                    found = self._value_matches(value, pattern)
                    if not found:
                        continue
                    hit = field_hits.setdefault(field, {"field": field, "match_count": 0, "samples": []})
                    hit["match_count"] += len(found)
                    total += len(found)
                    for sample in found:
                        if len(hit["samples"]) < sample_limit and sample not in hit["samples"]:
                            hit["samples"].append(sample)
            if total:
                results.append(
                    {
                        "pattern_id": pattern.id,
                        "pattern_name": pattern.name,
                        "pattern_type": pattern.type,
                        "total_matches": total,
                        "fields": list(field_hits.values()),
                    }
                )

        logger.info(
            "Data source scanned",
            data_source_id=source.id,
            patterns=len(patterns),
            patterns_matched=len(results),
        )
        return {
            "data_source_id": source.id,
            "records_scanned": len(records),
            "patterns_checked": len(patterns),
            "results": results,
        }

    def _value_matches(self, value: str, pattern: PatternModel) -> List[str]:
        matches = []
        for regex in [pattern.regex, *(pattern.regex_patterns or [])]:
            if regex:
                matches.extend(find_regex_matches(value, regex))
        if not matches and pattern.examples:
            matches.extend(find_example_matches(value, pattern.examples))
        kept = drop_refined_matches(matches, pattern.excluded_examples or [], pattern.confidence_threshold)
        return list(dict.fromkeys(m.value for m in kept))
