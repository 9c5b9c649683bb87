"""
Global catalog service: categories, fields, mapping suggestions and value
validation.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import structlog
from pydantic import ValidationError
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..db.models import CatalogCategoryModel, CatalogFieldModel
from ..errors import ConflictError, DataPrepError, NotFoundError, ValidationFailedError
from ..primitives import utc_now
from ..schemas.catalog import (
    CatalogFieldCreate,
    CatalogFieldUpdate,
    CatalogImport,
    CategoryCreate,
    CategoryUpdate,
)
from .catalog_standard import COMMON_PATTERNS, STANDARD_CATEGORIES, STANDARD_FIELDS
from .profiling import parse_date

logger = structlog.get_logger()

SUGGESTION_THRESHOLD = 0.5

EXPORT_VERSION = "1.0"
CATEGORY_EXPORT_KEYS = (
    "name", "display_name", "description", "color", "icon", "sort_order", "is_active", "is_standard",
)
FIELD_EXPORT_KEYS = (
    "name", "display_name", "description", "data_type", "category",
    "is_required", "is_standard", "validation_rules", "tags",
)


def normalize_field_name(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "_", name.lower())


def score_field(source_field_name: str, field: CatalogFieldModel) -> Optional[Dict[str, Any]]:
    """Best (confidence, reason) for mapping a source field onto a catalog field."""
    source = normalize_field_name(source_field_name)
    target = field.name.lower()

    if source == target:
        return {"confidence": 1.0, "reason": "Exact field name match"}
    if source in target or target in source:
        return {"confidence": 0.9, "reason": "Field name similarity"}
    if source in normalize_field_name(field.display_name):
        return {"confidence": 0.8, "reason": "Display name similarity"}
    for tag in field.tags or []:
        tag = normalize_field_name(tag)
        if tag and (tag in source or source in tag):
            return {"confidence": 0.7, "reason": f"Tag match: {tag}"}
    for pattern in COMMON_PATTERNS.get(field.name, []):
        if source in pattern or pattern in source:
            return {"confidence": 0.6, "reason": f"Common pattern: {pattern}"}
    return None


def _import_error(error: Exception) -> str:
    if isinstance(error, ValidationError):
        problems = []
        for e in error.errors():
            location = ".".join(str(part) for part in e["loc"]) or "entry"
            problems.append(f"{location}: {e['msg']}")
        return "; ".join(problems)
    if isinstance(error, DataPrepError):
        return error.message
    return str(error)


def _decimal_places(value: Any) -> int:
    try:
        exponent = Decimal(str(value)).normalize().as_tuple().exponent
    except InvalidOperation:
        return 0
    return -exponent if isinstance(exponent, int) and exponent < 0 else 0


def validate_field_value(field: CatalogFieldModel, value: Any) -> List[str]:
    """Errors for a value against a catalog field's type and validation rules."""
    label = field.display_name
    rules = field.validation_rules or {}
    errors: List[str] = []

    if value is None or value == "":
        if field.is_required:
            errors.append(f"{label} is required")
        return errors

    data_type = field.data_type
    if data_type in ("string", "email", "phone", "enum"):
        if not isinstance(value, str):
            return [f"{label} must be a string"]
        if rules.get("min_length") is not None and len(value) < rules["min_length"]:
            errors.append(f"{label} must be at least {rules['min_length']} characters")
        if rules.get("max_length") is not None and len(value) > rules["max_length"]:
            errors.append(f"{label} must be no more than {rules['max_length']} characters")
        if rules.get("pattern") and not re.search(rules["pattern"], value):
            errors.append(f"{label} format is invalid")
        if rules.get("enum") and value not in rules["enum"]:
            errors.append(f"{label} must be one of: {', '.join(map(str, rules['enum']))}")

    elif data_type in ("number", "integer", "currency"):
        if isinstance(value, bool):
            return [f"{label} must be a valid number"]
        try:
            number = float(value)
        except (TypeError, ValueError):
            return [f"{label} must be a valid number"]
        if number != number:
            return [f"{label} must be a valid number"]
        if data_type == "integer" and not number.is_integer():
            errors.append(f"{label} must be a whole number")
        if rules.get("min") is not None and number < rules["min"]:
            errors.append(f"{label} must be at least {rules['min']}")
        if rules.get("max") is not None and number > rules["max"]:
            errors.append(f"{label} must be no more than {rules['max']}")
        places = rules.get("decimal_places")
        if data_type == "currency" and places is not None and _decimal_places(value) > places:
            errors.append(f"{label} must have at most {places} decimal places")

    elif data_type in ("date", "datetime"):
        if parse_date(value) is None:
            errors.append(f"{label} must be a valid date")

    elif data_type == "boolean":
        if not isinstance(value, bool) and str(value).lower() not in ("true", "false", "1", "0"):
            errors.append(f"{label} must be true or false")

    return errors


class CatalogService:
    """Service for catalog categories and fields."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def get_category_by_name(self, name: str) -> Optional[CatalogCategoryModel]:
        return (
            self.db.query(CatalogCategoryModel)
            .filter(CatalogCategoryModel.name == name)
            .first()
        )

    def get_category_or_raise(self, category_id: str) -> CatalogCategoryModel:
        category = (
            self.db.query(CatalogCategoryModel)
            .filter(CatalogCategoryModel.id == category_id)
            .first()
        )
        if not category:
            raise NotFoundError("CatalogCategory", category_id)
        return category

    def list_categories(self, active_only: bool = False) -> List[CatalogCategoryModel]:
        query = self.db.query(CatalogCategoryModel)
        if active_only:
            query = query.filter(CatalogCategoryModel.is_active.is_(True))
        return query.order_by(CatalogCategoryModel.sort_order, CatalogCategoryModel.name).all()

    def create_category(self, category: CategoryCreate, is_standard: bool = False) -> CatalogCategoryModel:
        if self.get_category_by_name(category.name):
            raise ConflictError(f"Category '{category.name}' already exists")
        db_category = CatalogCategoryModel(**category.model_dump(), is_standard=is_standard)
        self.db.add(db_category)
        self.db.commit()
        self.db.refresh(db_category)
        return db_category

    def update_category(self, category_id: str, update: CategoryUpdate) -> CatalogCategoryModel:
        category = self.get_category_or_raise(category_id)
        for key, value in update.model_dump(exclude_unset=True).items():
            setattr(category, key, value)
        self.db.commit()
        self.db.refresh(category)
        return category

    def delete_category(self, category_id: str) -> None:
        category = self.get_category_or_raise(category_id)
        in_use = (
            self.db.query(func.count(CatalogFieldModel.id))
            .filter(CatalogFieldModel.category == category.name)
            .scalar()
        )
        if in_use:
            raise ConflictError(
                f"Category '{category.name}' is used by {in_use} field(s)",
                {"field_count": in_use},
            )
        self.db.delete(category)
        self.db.commit()

    # ------------------------------------------------------------------
    # Fields
    # ------------------------------------------------------------------

    def get_field(self, field_id: str) -> Optional[CatalogFieldModel]:
        return self.db.query(CatalogFieldModel).filter(CatalogFieldModel.id == field_id).first()

    def get_field_or_raise(self, field_id: str) -> CatalogFieldModel:
        field = self.get_field(field_id)
        if not field:
            raise NotFoundError("CatalogField", field_id)
        return field

    def get_field_by_name(self, name: str) -> Optional[CatalogFieldModel]:
        return self.db.query(CatalogFieldModel).filter(CatalogFieldModel.name == name).first()

    def list_fields(self, category: Optional[str] = None) -> List[CatalogFieldModel]:
        query = self.db.query(CatalogFieldModel)
        if category:
            query = query.filter(CatalogFieldModel.category == category)
        return query.order_by(CatalogFieldModel.category, CatalogFieldModel.name).all()

    def search_fields(self, term: str) -> List[CatalogFieldModel]:
        """Fields whose name, display name, description or tags contain ``term``."""
        needle = term.lower()
        pattern = f"%{needle}%"
        matched = (
            self.db.query(CatalogFieldModel)
            .filter(
                or_(
                    func.lower(CatalogFieldModel.name).like(pattern),
                    func.lower(CatalogFieldModel.display_name).like(pattern),
                    func.lower(CatalogFieldModel.description).like(pattern),
                )
            )
            .all()
        )
        seen = {f.id for f in matched}
        for field in self.list_fields():
            if field.id not in seen and any(needle in t.lower() for t in field.tags or []):
                matched.append(field)
        return sorted(matched, key=lambda f: f.name)

    def _check_field(self, category: Optional[str], rules: Optional[Dict[str, Any]]) -> None:
        if category and not self.get_category_by_name(category):
            raise ValidationFailedError(f"Unknown category '{category}'", {"category": category})
        if rules and rules.get("pattern"):
            try:
                re.compile(rules["pattern"])
            except re.error as e:
                raise ValidationFailedError(f"Invalid validation pattern: {e}") from e

    def create_field(self, field: CatalogFieldCreate, is_standard: bool = False) -> CatalogFieldModel:
        if self.get_field_by_name(field.name):
            raise ConflictError(f"Catalog field '{field.name}' already exists")
        data = field.model_dump(exclude_none=True)
        data["data_type"] = field.data_type.value
        self._check_field(field.category, data.get("validation_rules"))

        db_field = CatalogFieldModel(**data, is_standard=is_standard)
        self.db.add(db_field)
        self.db.commit()
        self.db.refresh(db_field)
        logger.info("Catalog field created", field_id=db_field.id, name=db_field.name)
        return db_field

    def update_field(self, field_id: str, update: CatalogFieldUpdate) -> CatalogFieldModel:
        field = self.get_field_or_raise(field_id)
        changes = update.model_dump(exclude_unset=True)
        if changes.get("data_type") is not None:
            changes["data_type"] = changes["data_type"].value
        if "validation_rules" in changes and changes["validation_rules"] is not None:
            changes["validation_rules"] = {
                k: v for k, v in changes["validation_rules"].items() if v is not None
            }
        self._check_field(changes.get("category"), changes.get("validation_rules"))
        for key, value in changes.items():
            setattr(field, key, value)
        self.db.commit()
        self.db.refresh(field)
        return field

    def delete_field(self, field_id: str) -> None:
        field = self.get_field_or_raise(field_id)
        self.db.delete(field)
        self.db.commit()
        logger.info("Catalog field deleted", field_id=field_id)

    # ------------------------------------------------------------------
    # Standard catalog
    # ------------------------------------------------------------------

    def initialize_standard_catalog(self) -> Dict[str, int]:
        """Seed standard categories and fields that are not yet present."""
        categories = 0
        for spec in STANDARD_CATEGORIES:
            if not self.get_category_by_name(spec["name"]):
                self.db.add(CatalogCategoryModel(**spec, is_standard=True))
                categories += 1

        fields = 0
        for spec in STANDARD_FIELDS:
            if not self.get_field_by_name(spec["name"]):
                self.db.add(CatalogFieldModel(**spec, is_standard=True))
                fields += 1

        self.db.commit()
        if categories or fields:
            logger.info("Standard catalog seeded", categories=categories, fields=fields)
        return {"categories_created": categories, "fields_created": fields}

    # ------------------------------------------------------------------
    # Import and export
    # ------------------------------------------------------------------

    def export_catalog(self, include_standard: bool = True) -> Dict[str, Any]:
        """Portable document of categories and fields, keyed by name rather than id.

        Without ``include_standard`` only custom fields are exported, along
        with custom categories and any category those fields use.
        """
        fields = [f for f in self.list_fields() if include_standard or not f.is_standard]
        used = {f.category for f in fields}
        categories = [
            c for c in self.list_categories()
            if include_standard or not c.is_standard or c.name in used
        ]
        return {
            "version": EXPORT_VERSION,
            "exported_at": utc_now().isoformat(),
            "categories": [{key: getattr(c, key) for key in CATEGORY_EXPORT_KEYS} for c in categories],
            "fields": [{key: getattr(f, key) for key in FIELD_EXPORT_KEYS} for f in fields],
        }

    def import_catalog(self, document: CatalogImport, overwrite: bool = False) -> Dict[str, Any]:
        """Create the categories and fields of an exported catalog.

        Existing categories are left alone. Existing fields are skipped, or
        updated when ``overwrite`` is set. Imported entries are never marked
        standard.
        """
        created_categories = 0
        created_fields = 0
        updated_fields = 0
        skipped: List[str] = []
        errors: List[str] = []

        entries = list(document.fields)
        for raw in document.categories:
            name = raw.get("name")
            for nested in raw.get("fields") or []:
                entries.append({**nested, "category": nested.get("category") or name})
            if name and self.get_category_by_name(name):
                skipped.append(f"category:{name}")
                continue
            try:
                data = {k: v for k, v in raw.items() if k in CategoryCreate.model_fields}
                self.create_category(CategoryCreate(**data))
                created_categories += 1
            except (ValidationError, DataPrepError) as e:
                errors.append(f"Category {name!r}: {_import_error(e)}")

        for raw in entries:
            name = raw.get("name")
            try:
                field = CatalogFieldCreate(
                    **{k: v for k, v in raw.items() if k in CatalogFieldCreate.model_fields}
                )
                existing = self.get_field_by_name(field.name)
                if existing is None:
                    self.create_field(field)
                    created_fields += 1
                elif overwrite:
                    self.update_field(existing.id, CatalogFieldUpdate(**field.model_dump(exclude={"name"})))
                    updated_fields += 1
                else:
                    skipped.append(f"field:{field.name}")
            except (ValidationError, DataPrepError) as e:
                errors.append(f"Field {name!r}: {_import_error(e)}")

        imported = created_fields + updated_fields
        logger.info(
            "Catalog imported",
            categories=created_categories,
            fields=created_fields,
            updated=updated_fields,
            errors=len(errors),
        )
        return {
            "success": not errors,
            "message": (
                f"Imported {imported} fields"
                if not errors
                else f"Imported {imported} fields with {len(errors)} errors"
            ),
            "categories_created": created_categories,
            "fields_created": created_fields,
            "fields_updated": updated_fields,
            "skipped": skipped,
            "errors": errors,
        }

    # ------------------------------------------------------------------
    # Suggestions and validation
    # ------------------------------------------------------------------

    def suggest_mappings(self, source_field_name: str) -> List[Dict[str, Any]]:
        suggestions = []
        for field in self.list_fields():
            scored = score_field(source_field_name, field)
            if scored and scored["confidence"] > SUGGESTION_THRESHOLD:
                suggestions.append(
                    {
                        "source_field_name": source_field_name,
                        "catalog_field_id": field.id,
                        "catalog_field_name": field.name,
                        "display_name": field.display_name,
                        "category": field.category,
                        **scored,
                    }
                )
        suggestions.sort(key=lambda s: (-s["confidence"], s["catalog_field_name"]))
        return suggestions

    def validate_value(self, field_id: str, value: Any) -> Dict[str, Any]:
        field = self.get_field_or_raise(field_id)
        errors = validate_field_value(field, value)
        return {"field": field.name, "value": value, "is_valid": not errors, "errors": errors}
