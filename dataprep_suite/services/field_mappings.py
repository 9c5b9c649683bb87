"""
Field mapping service: source-to-catalog mappings and record transformation.
"""

from __future__ import annotations

import ast
import json
import math
import operator
import re
from typing import Any, Dict, List, Optional, Tuple

import structlog
from sqlalchemy.orm import Session

from ..db.models import CatalogFieldModel, DataSourceModel, FieldMappingModel
from ..errors import NotFoundError, ValidationFailedError
from ..primitives import utc_now
from ..schemas.catalog import FieldMappingCreate
from ..storage import StorageProvider
from .catalog import CatalogService, validate_field_value
from .data_sources import DataSourceService, transformed_key
from .records import field_names, records_to_csv
from .rule_engine import evaluate_condition, get_field_value

logger = structlog.get_logger()

MAX_STORED_ERRORS = 100

_BINARY_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: math.pow,
}
_UNARY_OPS = {ast.UAdd: operator.pos, ast.USub: operator.neg}
_FUNCTIONS = {"round": round, "abs": abs, "min": min, "max": max}


def _value_type(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    return "string"


class TransformationError(ValueError):
    """Raised when a transformation rule cannot be applied to a value."""


def evaluate_expression(expression: str, value: Any) -> Any:
    """Evaluate an arithmetic expression over ``$value``.

    Only numbers, ``$value``, the arithmetic operators, parentheses and
    ``round``/``abs``/``min``/``max`` are accepted.
    """
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise TransformationError(f"Value {value!r} is not numeric") from e

    source = expression.replace("$value", "value")
    try:
        tree = ast.parse(source, mode="eval")
    except SyntaxError as e:
        raise TransformationError(f"Invalid expression: {expression}") from e

    def walk(node: ast.AST) -> Any:
        if isinstance(node, ast.Expression):
            return walk(node.body)
        if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)):
            return node.value
        if isinstance(node, ast.Name) and node.id == "value":
            return number
        if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
            return _BINARY_OPS[type(node.op)](walk(node.left), walk(node.right))
        if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
            return _UNARY_OPS[type(node.op)](walk(node.operand))
        if (
            isinstance(node, ast.Call)
            and isinstance(node.func, ast.Name)
            and node.func.id in _FUNCTIONS
            and not node.keywords
        ):
            args = [walk(arg) for arg in node.args]
            if node.func.id == "round" and len(args) == 2:
                args[1] = int(args[1])
            return _FUNCTIONS[node.func.id](*args)
        raise TransformationError(f"Unsupported expression element: {ast.dump(node)}")

    try:
        return walk(tree)
    except (ArithmeticError, TypeError, ValueError) as e:
        raise TransformationError(f"Expression failed: {e}") from e


def transform_value(value: Any, rule: Optional[Dict[str, Any]]) -> Any:
    if not rule:
        return value
    kind = rule.get("type", "direct")
    default = rule.get("default")

    if kind == "direct":
        return value
    if kind == "format":
        if value is None or not rule.get("pattern"):
            return value
        try:
            return re.sub(rule["pattern"], rule.get("replacement") or "", str(value))
        except re.error as e:
            raise TransformationError(f"Invalid format pattern: {e}") from e
    if kind == "lookup":
        table = rule.get("lookup_table") or {}
        key = "" if value is None else str(value)
        if key in table:
            return table[key]
        return default if default is not None else value
    if kind == "calculation":
        if value is None or value == "" or not rule.get("expression"):
            return value
        return evaluate_expression(rule["expression"], value)
    if kind == "conditional":
        for condition in rule.get("conditions") or []:
            check = {
                "field": "value",
                "operator": condition.get("operator"),
                "value": condition.get("value"),
                "values": condition.get("values"),
            }
            if evaluate_condition(check, {"value": value}):
                return condition.get("result")
        return default if default is not None else value
    raise TransformationError(f"Unknown transformation type '{kind}'")


def _has_field(record: Dict[str, Any], path: str) -> bool:
    if path in record:
        return True
    return "." in path and get_field_value(record, path) is not None


def transform_record(
    record: Dict[str, Any], mappings: List[FieldMappingModel]
) -> Dict[str, Any]:
    """Map one record onto catalog field names and validate the results."""
    catalog_data: Dict[str, Any] = {}
    validation_errors: List[Dict[str, Any]] = []
    mapped = 0
    mapped_sources = set()

    for mapping in mappings:
        field: CatalogFieldModel = mapping.catalog_field
        mapped_sources.add(mapping.source_field_name)
        if not _has_field(record, mapping.source_field_name):
            continue
        raw = get_field_value(record, mapping.source_field_name)
        try:
            value = transform_value(raw, mapping.transformation_rule)
        except TransformationError as e:
            validation_errors.append(
                {"field": field.name, "source_field": mapping.source_field_name, "errors": [str(e)]}
            )
            continue

        errors = validate_field_value(field, value)
        if errors:
            validation_errors.append(
                {"field": field.name, "source_field": mapping.source_field_name, "errors": errors}
            )
            continue
        catalog_data[field.name] = value
        mapped += 1

    return {
        "catalog_data": catalog_data,
        "source_data": record,
        "mapping_info": {
            "mapped_fields": mapped,
            "total_fields": len(record),
            "unmapped_fields": [k for k in record if k not in mapped_sources],
            "validation_errors": validation_errors,
        },
    }


class FieldMappingService:
    """Service for mappings between data source fields and catalog fields."""

    def __init__(self, db: Session, storage: Optional[StorageProvider] = None):
        self.db = db
        self.sources = DataSourceService(db, storage)
        self.catalog = CatalogService(db)

    def list_mappings(self, data_source_id: str) -> List[FieldMappingModel]:
        self.sources.get_or_raise(data_source_id)
        return (
            self.db.query(FieldMappingModel)
            .filter(
                FieldMappingModel.source_id == data_source_id,
                FieldMappingModel.is_active.is_(True),
            )
            .order_by(FieldMappingModel.source_field_name)
            .all()
        )

    def _find(self, data_source_id: str, source_field_name: str) -> Optional[FieldMappingModel]:
        return (
            self.db.query(FieldMappingModel)
            .filter(
                FieldMappingModel.source_id == data_source_id,
                FieldMappingModel.source_field_name == source_field_name,
            )
            .first()
        )

    def upsert_mapping(self, data_source_id: str, mapping: FieldMappingCreate) -> FieldMappingModel:
        """Create the mapping for a source field, or replace its target."""
        self.sources.get_or_raise(data_source_id)
        self.catalog.get_field_or_raise(mapping.catalog_field_id)
        rule = None
        if mapping.transformation_rule:
            rule = mapping.transformation_rule.model_dump(mode="json", exclude_none=True)
        if rule and rule.get("type") == "format" and rule.get("pattern"):
            try:
                re.compile(rule["pattern"])
            except re.error as e:
                raise ValidationFailedError(f"Invalid format pattern: {e}") from e

        db_mapping = self._find(data_source_id, mapping.source_field_name)
        if db_mapping is None:
            db_mapping = FieldMappingModel(
                source_id=data_source_id, source_field_name=mapping.source_field_name
            )
            self.db.add(db_mapping)
        db_mapping.catalog_field_id = mapping.catalog_field_id
        db_mapping.transformation_rule = rule
        db_mapping.confidence = mapping.confidence
        db_mapping.is_manual = mapping.is_manual
        db_mapping.is_active = True
        self.db.commit()
        self.sources.storage.delete(transformed_key(data_source_id))
        self.db.refresh(db_mapping)
        logger.info(
            "Field mapping saved",
            data_source_id=data_source_id,
            source_field=mapping.source_field_name,
            catalog_field_id=mapping.catalog_field_id,
        )
        return db_mapping

    def delete_mapping(self, data_source_id: str, source_field_name: str) -> None:
        mapping = self._find(data_source_id, source_field_name)
        if not mapping:
            raise NotFoundError("FieldMapping", f"{data_source_id}:{source_field_name}")
        self.db.delete(mapping)
        self.db.commit()
        self.sources.storage.delete(transformed_key(data_source_id))

    def _source_fields(self, source: DataSourceModel, fields: Optional[List[str]]) -> List[str]:
        if fields:
            return fields
        if source.original_field_names:
            return list(source.original_field_names)
        return field_names(self.sources.load_records(source))

    def generate_suggestions(
        self, data_source_id: str, fields: Optional[List[str]] = None
    ) -> Dict[str, List[Dict[str, Any]]]:
        """Suggestions for every source field that is not mapped yet."""
        source = self.sources.get_or_raise(data_source_id)
        mapped = {m.source_field_name for m in self.list_mappings(data_source_id)}
        return {
            name: self.catalog.suggest_mappings(name)
            for name in self._source_fields(source, fields)
            if name not in mapped
        }

    def auto_map(
        self,
        data_source_id: str,
        fields: Optional[List[str]] = None,
        min_confidence: float = 0.8,
    ) -> Dict[str, Any]:
        """Map each unmapped field to its best suggestion at or above ``min_confidence``."""
        suggestions = self.generate_suggestions(data_source_id, fields)
        created = []
        skipped = []
        for name, options in suggestions.items():
            if not options or options[0]["confidence"] < min_confidence:
                skipped.append(name)
                continue
            best = options[0]
            mapping = self.upsert_mapping(
                data_source_id,
                FieldMappingCreate(
                    source_field_name=name,
                    catalog_field_id=best["catalog_field_id"],
                    confidence=best["confidence"],
                    is_manual=False,
                ),
            )
            created.append(mapping)
        logger.info(
            "Auto-mapping finished",
            data_source_id=data_source_id,
            mapped=len(created),
            skipped=len(skipped),
        )
        return {
            "data_source_id": data_source_id,
            "mappings": [m.to_dict() for m in created],
            "skipped_fields": skipped,
        }

    def apply_mappings(
        self,
        data_source_id: str,
        records: Optional[List[Dict[str, Any]]] = None,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Transform records into catalog shape and record the outcome on the source."""
        source = self.sources.get_or_raise(data_source_id)
        mappings = self.list_mappings(data_source_id)
        if not mappings:
            raise ValidationFailedError(
                "Data source has no field mappings", {"data_source_id": data_source_id}
            )
        full_dataset = records is None and limit is None
        if records is None:
            records = self.sources.load_records(source)
        if limit is not None:
            records = records[:limit]

        results = [transform_record(record, mappings) for record in records]
        errors = [
            {"record_index": index, **error}
            for index, result in enumerate(results)
            for error in result["mapping_info"]["validation_errors"]
        ]
        failed_records = sum(1 for r in results if r["mapping_info"]["validation_errors"])

        source.transformation_status = "completed_with_errors" if errors else "completed"
        source.transformation_errors = errors[:MAX_STORED_ERRORS]
        source.transformation_applied_at = utc_now()
        self.db.commit()
        if full_dataset:
            self.sources.storage.put_json(
                transformed_key(source.id), [r["catalog_data"] for r in results]
            )
        logger.info(
            "Field mappings applied",
            data_source_id=data_source_id,
            records=len(results),
            records_with_errors=failed_records,
        )
        return {
            "data_source_id": data_source_id,
            "status": source.transformation_status,
            "total_records": len(results),
            "records_with_errors": failed_records,
            "records": results,
        }

    def load_transformed(self, data_source_id: str) -> List[Dict[str, Any]]:
        """Catalog-shaped records from the last full apply, applying mappings if there is none."""
        source = self.sources.get_or_raise(data_source_id)
        key = transformed_key(source.id)
        if not self.sources.storage.exists(key):
            self.apply_mappings(data_source_id)
        data = self.sources.storage.get_json(key)
        return data if isinstance(data, list) else []

    def export_transformed(
        self, data_source_id: str, output_format: str = "json"
    ) -> Tuple[bytes, str, str]:
        """The full transformed dataset as ``(content, media_type, filename)``."""
        if output_format not in ("json", "csv"):
            raise ValidationFailedError(
                f"Unsupported export format '{output_format}'", {"formats": ["json", "csv"]}
            )
        source = self.sources.get_or_raise(data_source_id)
        records = self.load_transformed(data_source_id)
        filename = f"{re.sub(r'[^A-Za-z0-9_-]', '_', source.name)}_transformed.{output_format}"

        if output_format == "csv":
            return records_to_csv(records).encode("utf-8"), "text/csv", filename

        fields = []
        for name in field_names(records):
            sample = next((r[name] for r in records if r.get(name) is not None), None)
            fields.append({"name": name, "type": _value_type(sample)})
        document = {
            "source_id": source.id,
            "source_name": source.name,
            "exported_at": utc_now().isoformat(),
            "total_records": len(records),
            "schema": {"fields": fields},
            "records": records,
            "transformation_status": source.transformation_status,
            "validation_errors": len(source.transformation_errors or []),
        }
        logger.info("Transformed data exported", data_source_id=source.id, records=len(records))
        return json.dumps(document, indent=2, default=str).encode("utf-8"), "application/json", filename
