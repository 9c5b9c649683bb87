"""
Condition evaluation for data-quality rules.

Conditions are plain dicts (as stored on the rule) so the same code serves
stored rules, inline test rules and conditional catalog transformations.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..schemas.enums import ConditionOperator
from .profiling import parse_date
from .records import flatten_record

OPERATORS = {op.value for op in ConditionOperator}

# Operators that do not need a comparison value
UNARY_OPERATORS = {"is_null", "is_not_null", "is_empty", "is_not_empty"}
RANGE_OPERATORS = {"between", "date_between"}
LIST_OPERATORS = {"in_list", "not_in_list"}
DATE_OPERATORS = {"date_before", "date_after", "date_between"}


def is_group(node: Dict[str, Any]) -> bool:
    return isinstance(node, dict) and "conditions" in node


def get_field_value(record: Dict[str, Any], field: str) -> Any:
    """Look a field up directly, then by dotted path."""
    if field in record:
        return record[field]
    if "." in field:
        return flatten_record(record).get(field)
    return None


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return None if number != number else number


def _date(value: Any) -> Optional[datetime]:
    parsed = parse_date(value)
    if parsed is None:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _range(condition: Dict[str, Any]) -> List[Any]:
    values = condition.get("values")
    if values is None and isinstance(condition.get("value"), list):
        values = condition["value"]
    return list(values or [])


def _compare_numbers(left: Any, right: Any, op: str) -> bool:
    a, b = _number(left), _number(right)
    if a is None or b is None:
        return False
    if op == "greater_than":
        return a > b
    if op == "less_than":
        return a < b
    if op == "greater_or_equal":
        return a >= b
    return a <= b


def _equals(left: Any, right: Any, case_sensitive: bool) -> bool:
    if left == right:
        return True
    a, b = _number(left), _number(right)
    if a is not None and b is not None and not isinstance(left, str) and not isinstance(right, str):
        return a == b
    if isinstance(left, str) and isinstance(right, str) and not case_sensitive:
        return left.lower() == right.lower()
    return False


def evaluate_condition(condition: Dict[str, Any], record: Dict[str, Any]) -> bool:
    """Evaluate one ``{field, operator, value, values}`` condition."""
    op = condition.get("operator")
    value = get_field_value(record, condition.get("field", ""))
    expected = condition.get("value")
    case_sensitive = bool(condition.get("case_sensitive", False))

    def norm(text: Any) -> str:
        text = _text(text)
        return text if case_sensitive else text.lower()

    if op == "equals":
        return _equals(value, expected, case_sensitive)
    if op == "not_equals":
        return not _equals(value, expected, case_sensitive)
    if op == "contains":
        return value is not None and norm(expected) in norm(value)
    if op == "not_contains":
        return value is None or norm(expected) not in norm(value)
    if op == "starts_with":
        return value is not None and norm(value).startswith(norm(expected))
    if op == "ends_with":
        return value is not None and norm(value).endswith(norm(expected))
    if op == "regex_match":
        if value is None:
            return False
        try:
            flags = 0 if case_sensitive else re.IGNORECASE
            return re.search(_text(expected), _text(value), flags) is not None
        except re.error:
            return False
    if op in ("greater_than", "less_than", "greater_or_equal", "less_or_equal"):
        return _compare_numbers(value, expected, op)
    if op == "between":
        bounds = _range(condition)
        if len(bounds) < 2:
            return False
        number, low, high = _number(value), _number(bounds[0]), _number(bounds[1])
        if number is None or low is None or high is None:
            return False
        return low <= number <= high
    if op in LIST_OPERATORS:
        options = _range(condition)
        found = any(_equals(value, option, case_sensitive) for option in options)
        return found if op == "in_list" else not found
    if op == "is_null":
        return value is None
    if op == "is_not_null":
        return value is not None
    if op == "is_empty":
        return value is None or (isinstance(value, (str, list, dict)) and len(value) == 0) or (
            isinstance(value, str) and not value.strip()
        )
    if op == "is_not_empty":
        return not (
            value is None
            or (isinstance(value, (list, dict)) and len(value) == 0)
            or (isinstance(value, str) and not value.strip())
        )
    if op in ("date_before", "date_after"):
        left, right = _date(value), _date(expected)
        if left is None or right is None:
            return False
        return left < right if op == "date_before" else left > right
    if op == "date_between":
        bounds = _range(condition)
        if len(bounds) < 2:
            return False
        moment, start, end = _date(value), _date(bounds[0]), _date(bounds[1])
        if moment is None or start is None or end is None:
            return False
        return start <= moment <= end
    return False


def evaluate_group(group: Dict[str, Any], record: Dict[str, Any]) -> bool:
    """AND/OR over conditions and nested groups. An empty group is False."""
    conditions = group.get("conditions") or []
    if not conditions:
        return False
    results = (
        evaluate_group(node, record) if is_group(node) else evaluate_condition(node, record)
        for node in conditions
    )
    if str(group.get("operator", "AND")).upper() == "OR":
        return any(results)
    return all(results)


def condition_fields(group: Dict[str, Any]) -> List[str]:
    """Distinct field names referenced anywhere in a condition group."""
    fields: List[str] = []
    for node in group.get("conditions") or []:
        if is_group(node):
            fields.extend(condition_fields(node))
        elif node.get("field"):
            fields.append(node["field"])
    return list(dict.fromkeys(fields))


def describe_group(group: Dict[str, Any]) -> str:
    parts = []
    for node in group.get("conditions") or []:
        if is_group(node):
            parts.append(f"({describe_group(node)})")
            continue
        op = node.get("operator")
        if op in UNARY_OPERATORS:
            parts.append(f"{node.get('field')} {op}")
        elif op in RANGE_OPERATORS or op in LIST_OPERATORS:
            parts.append(f"{node.get('field')} {op} {_range(node)}")
        else:
            parts.append(f"{node.get('field')} {op} {node.get('value')!r}")
    joiner = f" {str(group.get('operator', 'AND')).upper()} "
    return joiner.join(parts)


def validate_group(
    group: Dict[str, Any], available_fields: Optional[List[str]] = None, path: str = "conditions"
) -> Dict[str, List[str]]:
    """Structural checks on a condition group.

    Returns ``{"errors": [...], "warnings": [...]}``; fields missing from
    ``available_fields`` are warnings, not errors.
    """
    errors: List[str] = []
    warnings: List[str] = []
    conditions = group.get("conditions") or []

    if str(group.get("operator", "AND")).upper() not in ("AND", "OR"):
        errors.append(f"{path}: logical operator must be AND or OR")
    if not conditions:
        errors.append(f"{path}: at least one condition is required")

    for index, node in enumerate(conditions):
        node_path = f"{path}[{index}]"
        if is_group(node):
            nested = validate_group(node, available_fields, node_path)
            errors.extend(nested["errors"])
            warnings.extend(nested["warnings"])
            continue

        field = node.get("field")
        op = node.get("operator")
        if not field:
            errors.append(f"{node_path}: field is required")
        elif available_fields is not None and field not in available_fields:
            warnings.append(f"{node_path}: field '{field}' not found in data")

        if op not in OPERATORS:
            errors.append(f"{node_path}: unknown operator '{op}'")
            continue
        if op in UNARY_OPERATORS:
            continue
        if op in RANGE_OPERATORS:
            if len(_range(node)) != 2:
                errors.append(f"{node_path}: '{op}' requires exactly two values")
            continue
        if op in LIST_OPERATORS:
            if not _range(node):
                errors.append(f"{node_path}: '{op}' requires a list of values")
            continue
        if node.get("value") is None or node.get("value") == "":
            errors.append(f"{node_path}: '{op}' requires a value")
            continue
        if op == "regex_match":
            try:
                re.compile(str(node["value"]))
            except re.error as e:
                errors.append(f"{node_path}: invalid regular expression: {e}")
        elif op in ("greater_than", "less_than", "greater_or_equal", "less_or_equal"):
            if _number(node["value"]) is None:
                errors.append(f"{node_path}: '{op}' requires a numeric value")
        elif op in DATE_OPERATORS and _date(node["value"]) is None:
            errors.append(f"{node_path}: '{op}' requires a date value")

    return {"errors": errors, "warnings": warnings}
