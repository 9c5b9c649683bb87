"""
Dashboard summary counts.
"""

from __future__ import annotations

from typing import Any, Dict

from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from ..db.models import (
    CatalogFieldModel,
    DataSourceModel,
    FieldAnnotationModel,
    FieldMappingModel,
    PatternModel,
    PipelineModel,
    QualityRuleModel,
    RuleExecutionModel,
    SyntheticDatasetModel,
)


class DashboardService:
    def __init__(self, db: Session):
        self.db = db

    def _by_status(self, model) -> Dict[str, int]:
        rows = self.db.query(model.status, func.count(model.id)).group_by(model.status).all()
        return {status: count for status, count in rows}

    def summary(self, recent_limit: int = 10) -> Dict[str, Any]:
        count = lambda model: self.db.query(func.count(model.id)).scalar() or 0  # noqa: E731

        total_records = self.db.query(func.coalesce(func.sum(DataSourceModel.record_count), 0)).scalar()
        pii_fields = (
            self.db.query(func.count(FieldAnnotationModel.id))
            .filter(FieldAnnotationModel.is_pii.is_(True))
            .scalar()
        )
        recent = (
            self.db.query(RuleExecutionModel)
            .order_by(desc(RuleExecutionModel.started_at))
            .limit(recent_limit)
            .all()
        )

        return {
            "data_sources": {
                "total": count(DataSourceModel),
                "total_records": int(total_records or 0),
            },
            "patterns": {
                "total": count(PatternModel),
                "active": self.db.query(func.count(PatternModel.id))
                .filter(PatternModel.is_active.is_(True))
                .scalar(),
            },
            "catalog": {
                "fields": count(CatalogFieldModel),
                "mappings": self.db.query(func.count(FieldMappingModel.id))
                .filter(FieldMappingModel.is_active.is_(True))
                .scalar(),
            },
            "annotations": {"total": count(FieldAnnotationModel), "pii_fields": pii_fields or 0},
            "pipelines": {"total": count(PipelineModel), "by_status": self._by_status(PipelineModel)},
            "quality_rules": {
                "total": count(QualityRuleModel),
                "by_status": self._by_status(QualityRuleModel),
                "recent_executions": [
                    {
                        "id": e.id,
                        "rule_name": e.rule_name,
                        "data_source_name": e.data_source_name,
                        "status": e.status,
                        "records_failed": e.records_failed,
                        "started_at": e.started_at.isoformat() if e.started_at else None,
                    }
                    for e in recent
                ],
            },
            "synthetic": {
                "total": count(SyntheticDatasetModel),
                "by_status": self._by_status(SyntheticDatasetModel),
            },
        }
