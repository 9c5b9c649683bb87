"""
Data-quality rule endpoints.

All endpoints are prefixed with /api/quality-rules.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..db.base import get_db
from ..schemas.quality_rules import (
    QualityRuleCreate,
    QualityRuleUpdate,
    RuleExecuteRequest,
    RuleTestRequest,
    RuleValidateRequest,
)
from ..services.quality_rules import QualityRuleService
from ..storage import StorageProvider, get_storage

router = APIRouter(prefix="/quality-rules", tags=["quality-rules"])


@router.get("")
async def list_rules(
    status: Optional[str] = None,
    type: Optional[str] = None,
    category: Optional[str] = None,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> List[Dict[str, Any]]:
    rules = QualityRuleService(db, storage).list(status=status, rule_type=type, category=category)
    return [r.to_dict() for r in rules]


@router.post("", status_code=201)
async def create_rule(
    rule: QualityRuleCreate,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    return QualityRuleService(db, storage).create(rule).to_dict()


@router.get("/templates")
async def list_templates() -> List[Dict[str, Any]]:
    return QualityRuleService.templates()


@router.post("/test")
async def test_rule(
    request: RuleTestRequest,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    """Evaluate a stored or inline rule on sample data. Nothing is saved."""
    service = QualityRuleService(db, storage)
    if request.rule_id:
        rule = service.get_or_raise(request.rule_id).to_dict()
    elif request.rule:
        rule = request.rule.model_dump(mode="json", exclude_none=True)
    else:
        raise HTTPException(status_code=422, detail="Provide rule_id or rule")

    return service.test_rule(
        rule,
        sample_data=request.sample_data,
        data_source_id=request.data_source_id,
        sample_size=request.sample_size,
    )


@router.post("/validate")
async def validate_rule(
    request: RuleValidateRequest,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    return QualityRuleService(db, storage).validate_rule(
        request.rule, available_fields=request.available_fields
    )


@router.get("/executions")
async def list_executions(
    rule_id: Optional[str] = None,
    data_source_id: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = Query(50, ge=1, le=1000),
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> List[Dict[str, Any]]:
    executions = QualityRuleService(db, storage).list_executions(
        rule_id=rule_id, data_source_id=data_source_id, status=status, limit=limit
    )
    return [e.to_dict() for e in executions]


@router.get("/{rule_id}")
async def get_rule(
    rule_id: str,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    return QualityRuleService(db, storage).get_or_raise(rule_id).to_dict()


@router.put("/{rule_id}")
async def update_rule(
    rule_id: str,
    update: QualityRuleUpdate,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    return QualityRuleService(db, storage).update(rule_id, update).to_dict()


@router.delete("/{rule_id}", status_code=204)
async def delete_rule(
    rule_id: str,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> None:
    QualityRuleService(db, storage).delete(rule_id)


@router.post("/{rule_id}/execute")
async def execute_rule(
    rule_id: str,
    request: RuleExecuteRequest,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    """Run a rule against a data source and record the execution."""
    execution = QualityRuleService(db, storage).execute_rule(
        rule_id,
        request.data_source_id,
        dry_run=request.dry_run,
        limit=request.limit,
        offset=request.offset,
    )
    return execution.to_dict()
