"""
Data-quality rule schemas.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, constr

from .enums import (
    ConditionOperator,
    LogicalOperator,
    RuleActionType,
    RulePriority,
    RuleStatus,
    RuleType,
)


class RuleCondition(BaseModel):
    """A single field comparison."""

    model_config = ConfigDict(extra="forbid")

    id: Optional[str] = None
    field: str
    operator: ConditionOperator
    value: Optional[Any] = None
    values: Optional[List[Any]] = None
    case_sensitive: bool = False


class ConditionGroup(BaseModel):
    """AND/OR combination of conditions and nested groups."""

    model_config = ConfigDict(extra="forbid")

    id: Optional[str] = None
    operator: LogicalOperator = LogicalOperator.AND
    conditions: List[Union[RuleCondition, "ConditionGroup"]] = Field(default_factory=list)


class RuleAction(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: RuleActionType
    config: Dict[str, Any] = Field(default_factory=dict)


class RuleConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    max_violations: Optional[int] = Field(None, ge=1)
    stop_on_failure: bool = False
    sample_size: Optional[int] = Field(None, ge=1)


class QualityRuleCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: constr(min_length=1, max_length=255)
    description: Optional[str] = None
    category: str = Field("general", max_length=100)
    type: RuleType = RuleType.VALIDATION
    status: RuleStatus = RuleStatus.ACTIVE
    priority: RulePriority = RulePriority.MEDIUM
    conditions: ConditionGroup
    actions: List[RuleAction] = Field(default_factory=list)
    config: RuleConfig = Field(default_factory=RuleConfig)
    tags: List[str] = Field(default_factory=list)
    created_by: Optional[str] = None


class QualityRuleUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[constr(min_length=1, max_length=255)] = None
    description: Optional[str] = None
    category: Optional[str] = None
    type: Optional[RuleType] = None
    status: Optional[RuleStatus] = None
    priority: Optional[RulePriority] = None
    conditions: Optional[ConditionGroup] = None
    actions: Optional[List[RuleAction]] = None
    config: Optional[RuleConfig] = None
    tags: Optional[List[str]] = None


class RuleTestRequest(BaseModel):
    """Test a rule (stored or inline) on sample data or a data source."""

    model_config = ConfigDict(extra="forbid")

    rule_id: Optional[str] = None
    rule: Optional[QualityRuleCreate] = None
    sample_data: Optional[List[Dict[str, Any]]] = None
    data_source_id: Optional[str] = None
    sample_size: int = Field(100, ge=1, le=10000)


class RuleValidateRequest(BaseModel):
    """Structural check of a rule body before it is saved."""

    model_config = ConfigDict(extra="forbid")

    rule: Dict[str, Any]
    available_fields: Optional[List[str]] = None


class RuleExecuteRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    data_source_id: constr(min_length=1)
    dry_run: bool = False
    limit: Optional[int] = Field(None, ge=1)
    offset: int = Field(0, ge=0)


ConditionGroup.model_rebuild()
