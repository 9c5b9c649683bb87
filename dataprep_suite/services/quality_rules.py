"""
Data-quality rule service: CRUD, validation, testing and execution.
"""

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import desc
from sqlalchemy.orm import Session

from ..db.models import QualityRuleModel, RuleExecutionModel
from ..errors import NotFoundError, ValidationFailedError
from ..primitives import utc_now
from ..schemas.quality_rules import QualityRuleCreate, QualityRuleUpdate
from ..storage import StorageProvider
from .data_sources import DataSourceService
from .records import field_names
from .rule_engine import (
    condition_fields,
    describe_group,
    evaluate_group,
    get_field_value,
    validate_group,
)

logger = structlog.get_logger()

MAX_STORED_VIOLATIONS = 1000

RULE_TEMPLATES = [
    {
        "id": "not-null",
        "name": "Required field",
        "description": "Flag records where a field is missing or empty",
        "category": "completeness",
        "type": "validation",
        "conditions": {
            "operator": "OR",
            "conditions": [
                {"field": "{field}", "operator": "is_null"},
                {"field": "{field}", "operator": "is_empty"},
            ],
        },
        "actions": [{"type": "flag_violation", "config": {"severity": "error"}}],
    },
    {
        "id": "email-format",
        "name": "Email format",
        "description": "Flag values that are not valid email addresses",
        "category": "validity",
        "type": "validation",
        "conditions": {
            "operator": "AND",
            "conditions": [
                {"field": "{field}", "operator": "is_not_empty"},
                {
                    "field": "{field}",
                    "operator": "not_contains",
                    "value": "@",
                },
            ],
        },
        "actions": [{"type": "flag_violation", "config": {"severity": "warning"}}],
    },
    {
        "id": "range",
        "name": "Value out of range",
        "description": "Flag numeric values outside an expected range",
        "category": "validity",
        "type": "validation",
        "conditions": {
            "operator": "OR",
            "conditions": [
                {"field": "{field}", "operator": "less_than", "value": 0},
                {"field": "{field}", "operator": "greater_than", "value": 100},
            ],
        },
        "actions": [{"type": "flag_violation", "config": {"severity": "error"}}],
    },
    {
        "id": "allowed-values",
        "name": "Allowed values",
        "description": "Flag values not in an allowed list",
        "category": "consistency",
        "type": "validation",
        "conditions": {
            "operator": "AND",
            "conditions": [
                {"field": "{field}", "operator": "not_in_list", "values": ["A", "B", "C"]},
            ],
        },
        "actions": [
            {"type": "flag_violation", "config": {"severity": "warning"}},
            {"type": "log_issue", "config": {}},
        ],
    },
]


def evaluate_record(rule: Dict[str, Any], record: Dict[str, Any], index: int) -> List[Dict[str, Any]]:
    """Violations a rule produces for one record.

    For validation rules a satisfied condition group is a violation.
    """
    conditions = rule.get("conditions") or {}
    if rule.get("type", "validation") != "validation" or not evaluate_group(conditions, record):
        return []

    first_action = (rule.get("actions") or [{}])[0]
    action_config = first_action.get("config") or {}
    fields = condition_fields(conditions)
    return [
        {
            "record_index": index,
            "line_number": index + 1,
            "field": ", ".join(fields),
            "value": {f: get_field_value(record, f) for f in fields},
            "condition": describe_group(conditions),
            "message": action_config.get("message") or f"Rule \"{rule.get('name')}\" violated",
            "severity": action_config.get("severity", "error"),
        }
    ]


def execute_actions(rule: Dict[str, Any], violations: List[Dict[str, Any]]) -> int:
    executed = 0
    for action in rule.get("actions") or []:
        kind = action.get("type")
        if kind == "flag_violation":
            executed += 1
        elif kind == "log_issue":
            logger.warning(
                "Quality rule violation",
                rule_id=rule.get("id"),
                rule_name=rule.get("name"),
                violations=len(violations),
            )
            executed += 1
        elif kind == "send_alert":
            recipients = (action.get("config") or {}).get("recipients", [])
            logger.info("Quality rule alert", rule_id=rule.get("id"), recipients=recipients)
            executed += 1
    return executed


class QualityRuleService:
    """Service for data-quality rules and their executions."""

    def __init__(self, db: Session, storage: Optional[StorageProvider] = None):
        self.db = db
        self.sources = DataSourceService(db, storage)

    def get_or_raise(self, rule_id: str) -> QualityRuleModel:
        rule = self.db.query(QualityRuleModel).filter(QualityRuleModel.id == rule_id).first()
        if not rule:
            raise NotFoundError("QualityRule", rule_id)
        return rule

    def list(
        self,
        status: Optional[str] = None,
        rule_type: Optional[str] = None,
        category: Optional[str] = None,
    ) -> List[QualityRuleModel]:
        query = self.db.query(QualityRuleModel)
        if status:
            query = query.filter(QualityRuleModel.status == status)
        if rule_type:
            query = query.filter(QualityRuleModel.type == rule_type)
        if category:
            query = query.filter(QualityRuleModel.category == category)
        return query.order_by(desc(QualityRuleModel.created_at)).all()

    @staticmethod
    def templates() -> List[Dict[str, Any]]:
        return RULE_TEMPLATES

    def validate_rule(
        self, rule: Dict[str, Any], available_fields: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        result = validate_group(rule.get("conditions") or {}, available_fields)
        if not rule.get("actions"):
            result["warnings"].append("Rule has no actions")
        return {"is_valid": not result["errors"], **result}

    def _checked(self, data: Dict[str, Any]) -> Dict[str, Any]:
        validation = self.validate_rule(data)
        if not validation["is_valid"]:
            raise ValidationFailedError("Rule conditions are invalid", {"errors": validation["errors"]})
        return data

    def create(self, rule: QualityRuleCreate) -> QualityRuleModel:
        data = self._checked(rule.model_dump(mode="json", exclude_none=True))
        db_rule = QualityRuleModel(**data)
        self.db.add(db_rule)
        self.db.commit()
        self.db.refresh(db_rule)
        logger.info("Quality rule created", rule_id=db_rule.id, name=db_rule.name)
        return db_rule

    def update(self, rule_id: str, update: QualityRuleUpdate) -> QualityRuleModel:
        rule = self.get_or_raise(rule_id)
        changes = update.model_dump(mode="json", exclude_unset=True)
        if changes.get("conditions") is not None:
            self._checked({"conditions": changes["conditions"], "actions": rule.actions})
        if any(key in changes for key in ("conditions", "actions", "config")):
            rule.version = (rule.version or 1) + 1
        for key, value in changes.items():
            setattr(rule, key, value)
        self.db.commit()
        self.db.refresh(rule)
        return rule

    def delete(self, rule_id: str) -> None:
        rule = self.get_or_raise(rule_id)
        self.db.delete(rule)
        self.db.commit()

    def test_rule(
        self,
        rule: Dict[str, Any],
        sample_data: Optional[List[Dict[str, Any]]] = None,
        data_source_id: Optional[str] = None,
        sample_size: int = 100,
    ) -> Dict[str, Any]:
        """Evaluate a rule on sample data without running actions or saving anything."""
        if sample_data is None:
            if not data_source_id:
                raise ValidationFailedError("Provide sample_data or data_source_id")
            source = self.sources.get_or_raise(data_source_id)
            sample_data = self.sources.load_records(source)
        records = sample_data[:sample_size]

        validation = self.validate_rule(rule, field_names(records, flatten=True) if records else None)
        if not validation["is_valid"]:
            raise ValidationFailedError("Rule conditions are invalid", {"errors": validation["errors"]})

        started = time.perf_counter()
        violations = []
        for index, record in enumerate(records):
            violations.extend(evaluate_record(rule, record, index))
        failed = len({v["record_index"] for v in violations})
        return {
            "records_tested": len(records),
            "records_passed": len(records) - failed,
            "records_failed": failed,
            "violations": violations,
            "warnings": validation["warnings"],
            "execution_time_ms": round((time.perf_counter() - started) * 1000, 2),
        }

    def execute_rule(
        self,
        rule_id: str,
        data_source_id: str,
        dry_run: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> RuleExecutionModel:
        """Run a stored rule against a data source and record the execution."""
        db_rule = self.get_or_raise(rule_id)
        source = self.sources.get_or_raise(data_source_id)
        rule = db_rule.to_dict()
        config = rule.get("config") or {}
        max_violations = config.get("max_violations")

        execution = RuleExecutionModel(
            rule_id=db_rule.id,
            rule_name=db_rule.name,
            data_source_id=source.id,
            data_source_name=source.name,
            status="running",
            started_at=utc_now(),
            execution_metadata={"dry_run": dry_run, "limit": limit, "offset": offset, "triggered_by": "manual"},
        )
        started = time.perf_counter()
        processed = passed = failed = actions = 0
        violations: List[Dict[str, Any]] = []
        to_process: List[Dict[str, Any]] = []

        try:
            records = self.sources.load_records(source)
            end = offset + limit if limit is not None else len(records)
            to_process = records[offset:end]

            for index, record in enumerate(to_process, start=offset):
                found = evaluate_record(rule, record, index)
                processed += 1
                if not found:
                    passed += 1
                    continue
                failed += 1
                violations.extend(found)
                if not dry_run:
                    actions += execute_actions(rule, found)
                if max_violations and len(violations) >= max_violations:
                    break
                if config.get("stop_on_failure"):
                    break
            execution.status = "success"
        except Exception as e:
            execution.status = "failed"
            execution.error_message = str(e)
            raise
        finally:
            execution.completed_at = utc_now()
            execution.duration_ms = int((time.perf_counter() - started) * 1000)
            execution.records_processed = processed
            execution.records_passed = passed
            execution.records_failed = failed
            execution.records_skipped = len(to_process) - processed
            execution.actions_executed = actions
            execution.violations = violations[:MAX_STORED_VIOLATIONS]
            self.db.add(execution)
            self.db.commit()

        self.db.refresh(execution)
        logger.info(
            "Quality rule executed",
            rule_id=db_rule.id,
            data_source_id=source.id,
            processed=processed,
            failed=failed,
            dry_run=dry_run,
        )
        return execution

    def list_executions(
        self,
        rule_id: Optional[str] = None,
        data_source_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 50,
    ) -> List[RuleExecutionModel]:
        query = self.db.query(RuleExecutionModel)
        if rule_id:
            query = query.filter(RuleExecutionModel.rule_id == rule_id)
        if data_source_id:
            query = query.filter(RuleExecutionModel.data_source_id == data_source_id)
        if status:
            query = query.filter(RuleExecutionModel.status == status)
        return query.order_by(desc(RuleExecutionModel.started_at)).limit(limit).all()
