"""
Field annotation service and PII detection.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Tuple

import structlog
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..db.models import FieldAnnotationModel
from ..errors import NotFoundError
from ..schemas.annotations import FieldAnnotationCreate
from ..storage import StorageProvider
from .data_sources import DataSourceService
from .profiling import infer_value_type
from .records import collect_values, field_names

logger = structlog.get_logger()

SAMPLE_LIMIT = 100

# type -> (value regex or None, field name fragments)
PII_PATTERNS: Dict[str, Tuple[Optional[re.Pattern], List[str]]] = {
    "email": (
        re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"),
        ["email", "mail", "emailaddress", "email_address", "contact_email", "user_email"],
    ),
    "ssn": (
        re.compile(r"^\d{3}-?\d{2}-?\d{4}$"),
        ["ssn", "social_security", "social_security_number", "socialsecurity", "ssnum"],
    ),
    "phone": (
        re.compile(r"^[+]?[(]?[0-9]{3}[)]?[-\s.]?[0-9]{3}[-\s.]?[0-9]{4,6}$"),
        ["phone", "telephone", "mobile", "cell", "phone_number", "contact_phone"],
    ),
    "credit_card": (
        re.compile(r"^\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{4}$"),
        ["credit_card", "creditcard", "card_number", "cardnumber", "payment_card"],
    ),
    "name": (
        None,
        ["name", "firstname", "lastname", "first_name", "last_name", "middle_name",
         "full_name", "patient_name", "customer_name", "user_name", "display_name"],
    ),
    "address": (
        None,
        ["address", "street", "city", "state", "zip", "postal", "street_address",
         "home_address", "billing_address", "shipping_address"],
    ),
    "date_of_birth": (None, ["dob", "date_of_birth", "birth_date", "birthdate", "dateofbirth"]),
    "ip_address": (
        re.compile(
            r"^(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}"
            r"(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)$"
        ),
        ["ip_address", "ipaddress", "client_ip", "user_ip"],
    ),
    "passport": (re.compile(r"^[A-Z][0-9]{8}$"), ["passport", "passport_number", "passport_no"]),
    "drivers_license": (None, ["drivers_license", "license_number", "dl_number", "driving_license"]),
    "bank_account": (
        re.compile(r"^\d{8,17}$"),
        ["account_number", "bank_account", "account_no", "iban", "routing_number"],
    ),
    "medical_record": (
        None,
        ["mrn", "medical_record", "medical_record_number", "patient_id", "patient_number"],
    ),
}

RESTRICTED_PII = {"ssn", "credit_card", "bank_account", "passport", "drivers_license"}


def _squash(name: str) -> str:
    return re.sub(r"[_\-.]", "", name.lower())


def detect_pii_type(field_name: str, samples: List[str]) -> Optional[str]:
    """PII type from the field name, else from > 50% of sample values matching."""
    normalized = _squash(field_name)
    for pii_type, (_, names) in PII_PATTERNS.items():
        if any(_squash(n) in normalized for n in names):
            return pii_type

    if samples:
        for pii_type, (regex, _) in PII_PATTERNS.items():
            if regex is None:
                continue
            matched = sum(1 for v in samples if regex.match(v.strip()))
            if matched > len(samples) * 0.5:
                return pii_type
    return None


def semantic_type_for(field_name: str, pii_type: Optional[str]) -> str:
    if pii_type:
        return "pii"
    name = field_name.lower()
    if "id" in name or "key" in name:
        return "identifier"
    if "date" in name or "time" in name or "_at" in name:
        return "timestamp"
    if any(word in name for word in ("count", "total", "amount", "price")):
        return "metric"
    if any(word in name for word in ("type", "status", "category")):
        return "category"
    if any(word in name for word in ("description", "comment", "note")):
        return "text"
    return "other"


def sensitivity_for(pii_type: Optional[str]) -> str:
    if not pii_type:
        return "internal"
    if pii_type in RESTRICTED_PII:
        return "restricted"
    return "confidential"


class FieldAnnotationService:
    """Service for field annotations."""

    def __init__(self, db: Session, storage: Optional[StorageProvider] = None):
        self.db = db
        self.sources = DataSourceService(db, storage)

    def get(self, annotation_id: str) -> Optional[FieldAnnotationModel]:
        return (
            self.db.query(FieldAnnotationModel)
            .filter(FieldAnnotationModel.id == annotation_id)
            .first()
        )

    def get_or_raise(self, annotation_id: str) -> FieldAnnotationModel:
        annotation = self.get(annotation_id)
        if not annotation:
            raise NotFoundError("FieldAnnotation", annotation_id)
        return annotation

    def find(self, data_source_id: str, field_path: str) -> Optional[FieldAnnotationModel]:
        return (
            self.db.query(FieldAnnotationModel)
            .filter(
                FieldAnnotationModel.data_source_id == data_source_id,
                FieldAnnotationModel.field_path == field_path,
            )
            .first()
        )

    def _save(self, annotation: FieldAnnotationCreate) -> FieldAnnotationModel:
        data = annotation.model_dump(mode="json")
        if not data.get("field_name"):
            data["field_name"] = annotation.field_path.split(".")[-1]

        db_annotation = self.find(annotation.data_source_id, annotation.field_path)
        if db_annotation is None:
            db_annotation = FieldAnnotationModel(**data)
            self.db.add(db_annotation)
        else:
            for key, value in data.items():
                setattr(db_annotation, key, value)
        return db_annotation

    def upsert(self, annotation: FieldAnnotationCreate) -> FieldAnnotationModel:
        """Create an annotation, or update the one for the same source and path."""
        self.sources.get_or_raise(annotation.data_source_id)
        db_annotation = self._save(annotation)
        self.db.commit()
        self.db.refresh(db_annotation)
        return db_annotation

    def bulk_upsert(self, annotations: List[FieldAnnotationCreate]) -> List[FieldAnnotationModel]:
        for source_id in {a.data_source_id for a in annotations}:
            self.sources.get_or_raise(source_id)
        saved = [self._save(a) for a in annotations]
        self.db.commit()
        for annotation in saved:
            self.db.refresh(annotation)
        logger.info("Annotations saved", count=len(saved))
        return saved

    def list(self, data_source_id: Optional[str] = None, pii_only: bool = False) -> List[FieldAnnotationModel]:
        query = self.db.query(FieldAnnotationModel)
        if data_source_id:
            query = query.filter(FieldAnnotationModel.data_source_id == data_source_id)
        if pii_only:
            query = query.filter(FieldAnnotationModel.is_pii.is_(True))
        return query.order_by(FieldAnnotationModel.field_path).all()

    def search(self, term: str) -> List[FieldAnnotationModel]:
        pattern = f"%{term.lower()}%"
        return (
            self.db.query(FieldAnnotationModel)
            .filter(
                or_(
                    func.lower(FieldAnnotationModel.field_name).like(pattern),
                    func.lower(FieldAnnotationModel.description).like(pattern),
                    func.lower(FieldAnnotationModel.business_context).like(pattern),
                )
            )
            .order_by(FieldAnnotationModel.field_path)
            .all()
        )

    def delete(self, annotation_id: str) -> None:
        annotation = self.get_or_raise(annotation_id)
        self.db.delete(annotation)
        self.db.commit()

    def detect_pii(self, data_source_id: str, persist: bool = False) -> Dict[str, Any]:
        """Propose annotations for every field of a source's records."""
        source = self.sources.get_or_raise(data_source_id)
        records = self.sources.load_records(source)

        proposals = []
        for path in field_names(records, flatten=True):
            values = collect_values(records, path, limit=SAMPLE_LIMIT)
            samples = [str(v) for v in values if v is not None and str(v).strip()]
            pii_type = detect_pii_type(path.split(".")[-1], samples)
            data_type = infer_value_type(values[0]) if values else None
            proposals.append(
                FieldAnnotationCreate(
                    data_source_id=source.id,
                    field_path=path,
                    field_name=path.split(".")[-1],
                    semantic_type=semantic_type_for(path, pii_type),
                    data_type=data_type,
                    is_pii=pii_type is not None,
                    pii_type=pii_type,
                    sensitivity_level=sensitivity_for(pii_type),
                    tags=["auto-detected", "pii", pii_type] if pii_type else ["auto-detected"],
                    example_values=samples[:3],
                )
            )

        if persist and proposals:
            self.bulk_upsert(proposals)

        pii_fields = [p.field_path for p in proposals if p.is_pii]
        logger.info(
            "PII detection finished",
            data_source_id=source.id,
            fields=len(proposals),
            pii_fields=len(pii_fields),
            persisted=persist,
        )
        return {
            "data_source_id": source.id,
            "fields_analyzed": len(proposals),
            "pii_fields": pii_fields,
            "persisted": persist,
            "annotations": [p.model_dump(mode="json") for p in proposals],
        }
