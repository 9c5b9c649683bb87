"""
Synthetic data generation with Faker.

A dataset schema maps output field names to a field spec::

    {"type": "number", "min": 0, "max": 100, "format": "0.00"}
    {"type": "name", "subtype": "firstName"}
    {"type": "text", "options": ["checking", "savings"]}

Options may also be nested under ``constraints``.
"""

from __future__ import annotations

import csv
import io
import json
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

import structlog
from faker import Faker
from sqlalchemy import desc
from sqlalchemy.orm import Session

from ..config import get_settings
from ..db.models import DataSourceModel, SyntheticDataJobModel, SyntheticDatasetModel
from ..errors import NotFoundError, ValidationFailedError
from ..primitives import utc_now
from ..schemas.data_sources import DataSourceCreate
from ..schemas.enums import DataSourceType
from ..schemas.synthetic import SyntheticDatasetCreate, SyntheticDatasetUpdate
from ..storage import StorageProvider, get_storage
from .data_sources import DataSourceService

logger = structlog.get_logger()

FIELD_TYPES = {
    "name", "email", "phone", "address", "ssn", "creditCard",
    "date", "number", "text", "boolean", "uuid",
}

MEDIA_TYPES = {
    "json": "application/json",
    "csv": "text/csv",
    "sql": "application/sql",
}

SQL_KEYWORDS = {
    "select", "from", "where", "order", "group", "by", "table", "insert", "into",
    "values", "user", "key", "index", "limit", "offset", "default", "check",
}

# Settings whose change invalidates a generated output.
OUTPUT_SETTINGS = ("record_count", "output_format", "configuration")

SCHEMA_TEMPLATES: Dict[str, Dict[str, Dict[str, Any]]] = {
    "users": {
        "id": {"type": "uuid"},
        "firstName": {"type": "name", "subtype": "firstName"},
        "lastName": {"type": "name", "subtype": "lastName"},
        "email": {"type": "email"},
        "phone": {"type": "phone"},
        "dateOfBirth": {"type": "date", "subtype": "birthDate"},
        "address": {"type": "address", "subtype": "street"},
        "city": {"type": "address", "subtype": "city"},
        "state": {"type": "address", "subtype": "state"},
        "zipCode": {"type": "address", "subtype": "zipCode"},
    },
    "financial": {
        "id": {"type": "uuid"},
        "accountNumber": {"type": "number", "min": 1000000000, "max": 9999999999},
        "routingNumber": {"type": "number", "min": 100000000, "max": 999999999},
        "creditCardNumber": {"type": "creditCard"},
        "ssn": {"type": "ssn"},
        "income": {"type": "number", "min": 20000, "max": 200000},
        "creditScore": {"type": "number", "min": 300, "max": 850},
        "accountType": {"type": "text", "options": ["checking", "savings", "credit", "investment"]},
    },
    "medical": {
        "id": {"type": "uuid"},
        "patientId": {"type": "number", "min": 100000, "max": 999999},
        "firstName": {"type": "name", "subtype": "firstName"},
        "lastName": {"type": "name", "subtype": "lastName"},
        "dateOfBirth": {"type": "date", "subtype": "birthDate"},
        "gender": {"type": "text", "options": ["Male", "Female", "Other"]},
        "bloodType": {"type": "text", "options": ["A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-"]},
        "allergies": {"type": "text", "subtype": "sentence"},
        "medications": {"type": "text", "subtype": "sentence"},
        "emergencyContact": {"type": "phone"},
    },
}


def records_key(dataset_id: str) -> str:
    return f"synthetic/{dataset_id}/records.json"


def _options(spec: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(spec.get("constraints") or {})
    merged.update({k: v for k, v in spec.items() if k != "constraints"})
    return merged


def _decimals(spec: Dict[str, Any]) -> int:
    if spec.get("decimals") is not None:
        return int(spec["decimals"])
    if spec.get("subtype") == "currency":
        return 2
    fmt = str(spec.get("format") or "")
    if "." in fmt:
        return len(fmt.split(".", 1)[1])
    return 0


def _parse_bound(value: Any) -> date:
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()


def generate_value(fake: Faker, spec: Dict[str, Any]) -> Any:
    spec = _options(spec)
    kind = spec.get("type")
    subtype = spec.get("subtype")

    if kind == "name":
        if subtype == "firstName":
            return fake.first_name()
        if subtype == "lastName":
            return fake.last_name()
        return fake.name()
    if kind == "email":
        return fake.email()
    if kind == "phone":
        return fake.phone_number()
    if kind == "address":
        if subtype == "street":
            return fake.street_address()
        if subtype == "city":
            return fake.city()
        if subtype == "state":
            return fake.state() if hasattr(fake, "state") else fake.city()
        if subtype == "zipCode":
            return fake.postcode()
        if subtype == "country":
            return fake.country()
        return fake.address().replace("\n", ", ")
    if kind == "ssn":
        digits = str(fake.random_int(min=100000000, max=999999999))
        return f"{digits[:3]}-{digits[3:5]}-{digits[5:]}"
    if kind == "creditCard":
        if subtype in ("visa", "mastercard", "amex", "discover"):
            return fake.credit_card_number(card_type=subtype)
        return fake.credit_card_number()
    if kind == "date":
        if spec.get("min") and spec.get("max"):
            value = fake.date_between(start_date=_parse_bound(spec["min"]), end_date=_parse_bound(spec["max"]))
        elif subtype == "birthDate":
            value = fake.date_of_birth(minimum_age=18, maximum_age=90)
        elif subtype == "recent":
            value = fake.date_time_between(start_date="-30d", end_date="now")
        elif subtype == "future":
            value = fake.date_time_between(start_date="now", end_date="+1y")
        else:
            value = fake.past_date(start_date="-5y")
        return value.isoformat()
    if kind == "number":
        low = spec.get("min", 0)
        high = spec.get("max", low + 1000)
        places = _decimals(spec)
        if places:
            return round(fake.pyfloat(min_value=low, max_value=high, right_digits=places), places)
        if low != int(low) or high != int(high):
            return fake.random.uniform(low, high)
        return fake.random_int(min=int(low), max=int(high))
    if kind == "text":
        if spec.get("options"):
            return fake.random_element(spec["options"])
        if subtype == "sentence":
            return fake.sentence()
        if subtype == "paragraph":
            return fake.paragraph()
        if subtype == "word":
            return fake.word()
        return " ".join(fake.words(3))
    if kind == "boolean":
        return fake.pybool()
    if kind == "uuid":
        return fake.uuid4()
    return fake.word()


def make_faker(configuration: Optional[Dict[str, Any]]) -> Faker:
    configuration = configuration or {}
    fake = Faker(configuration.get("locale") or "en_US")
    if configuration.get("seed") is not None:
        fake.seed_instance(configuration["seed"])
    return fake


def generate_records(
    schema: Dict[str, Dict[str, Any]], count: int, configuration: Optional[Dict[str, Any]] = None
) -> List[Dict[str, Any]]:
    fake = make_faker(configuration)
    return [
        {name: generate_value(fake, spec) for name, spec in schema.items()}
        for _ in range(count)
    ]


def _sql_literal(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        return str(value)
    return "'" + str(value).replace("'", "''") + "'"


def _sql_identifier(name: str) -> str:
    if re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", name) and name.lower() not in SQL_KEYWORDS:
        return name
    return '"' + name.replace('"', '""') + '"'


def serialize_records(records: List[Dict[str, Any]], output_format: str, table_name: str) -> str:
    if output_format == "json":
        return json.dumps(records, indent=2, default=str)
    if not records:
        return ""
    headers = list(records[0])
    if output_format == "csv":
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=headers, lineterminator="\n")
        writer.writeheader()
        writer.writerows(records)
        return buffer.getvalue()
    if output_format == "sql":
        table = re.sub(r"[^a-z0-9_]", "_", table_name.lower())
        columns = ", ".join(_sql_identifier(h) for h in headers)
        return "\n".join(
            f"INSERT INTO {table} ({columns}) VALUES "
            f"({', '.join(_sql_literal(r.get(h)) for h in headers)});"
            for r in records
        )
    raise ValidationFailedError(f"Unsupported output format: {output_format}")


def validate_schema(schema: Dict[str, Dict[str, Any]]) -> None:
    if not schema:
        raise ValidationFailedError("Dataset schema must define at least one field")
    unknown = {name: spec.get("type") for name, spec in schema.items() if spec.get("type") not in FIELD_TYPES}
    if unknown:
        raise ValidationFailedError(
            "Unknown field types in schema",
            {"fields": unknown, "supported": sorted(FIELD_TYPES)},
        )


class SyntheticDataService:
    """Service for synthetic datasets and generation jobs."""

    def __init__(self, db: Session, storage: Optional[StorageProvider] = None):
        self.db = db
        self.storage = storage or get_storage()
        self.settings = get_settings()

    @staticmethod
    def templates() -> Dict[str, Dict[str, Dict[str, Any]]]:
        return SCHEMA_TEMPLATES

    def _check_count(self, record_count: int) -> None:
        if record_count > self.settings.synthetic_max_records:
            raise ValidationFailedError(
                f"record_count must be at most {self.settings.synthetic_max_records}",
                {"record_count": record_count},
            )

    def get_or_raise(self, dataset_id: str) -> SyntheticDatasetModel:
        dataset = (
            self.db.query(SyntheticDatasetModel)
            .filter(SyntheticDatasetModel.id == dataset_id)
            .first()
        )
        if not dataset:
            raise NotFoundError("SyntheticDataset", dataset_id)
        return dataset

    def list(self, status: Optional[str] = None) -> List[SyntheticDatasetModel]:
        query = self.db.query(SyntheticDatasetModel)
        if status:
            query = query.filter(SyntheticDatasetModel.status == status)
        return query.order_by(desc(SyntheticDatasetModel.created_at)).all()

    def create(self, dataset: SyntheticDatasetCreate) -> SyntheticDatasetModel:
        schema = dataset.schema_ or SCHEMA_TEMPLATES.get(dataset.data_type)
        if schema is None:
            raise ValidationFailedError(
                "Provide a schema or a template data_type",
                {"templates": sorted(SCHEMA_TEMPLATES)},
            )
        validate_schema(schema)
        self._check_count(dataset.record_count)

        db_dataset = SyntheticDatasetModel(
            name=dataset.name,
            description=dataset.description,
            data_type=dataset.data_type,
            schema=schema,
            record_count=dataset.record_count,
            output_format=dataset.output_format.value,
            configuration=dataset.configuration,
            status="pending",
        )
        self.db.add(db_dataset)
        self.db.commit()
        self.db.refresh(db_dataset)
        logger.info("Synthetic dataset created", dataset_id=db_dataset.id, fields=len(schema))
        return db_dataset

    def update(self, dataset_id: str, update: SyntheticDatasetUpdate) -> SyntheticDatasetModel:
        dataset = self.get_or_raise(dataset_id)
        changes = update.model_dump(exclude_unset=True)
        stale = any(changes.get(key) is not None for key in ("schema_", *OUTPUT_SETTINGS))
        if changes.get("schema_") is not None:
            validate_schema(changes["schema_"])
            dataset.schema = changes.pop("schema_")
        changes.pop("schema_", None)
        if changes.get("record_count") is not None:
            self._check_count(changes["record_count"])
        if changes.get("output_format") is not None:
            changes["output_format"] = changes["output_format"].value
        if stale:
            # stored output no longer matches the dataset
            dataset.status = "pending"
            dataset.storage_key = None
        for key, value in changes.items():
            setattr(dataset, key, value)
        self.db.commit()
        self.db.refresh(dataset)
        return dataset

    def delete(self, dataset_id: str) -> None:
        dataset = self.get_or_raise(dataset_id)
        for key in {dataset.storage_key, *(j.output_key for j in dataset.jobs)} - {None}:
            self.storage.delete(key)
        self.storage.delete(records_key(dataset.id))
        self.db.delete(dataset)
        self.db.commit()

    def preview(self, dataset_id: str, max_records: int = 5) -> Dict[str, Any]:
        dataset = self.get_or_raise(dataset_id)
        count = min(max_records, dataset.record_count)
        return {
            "dataset_id": dataset.id,
            "records": generate_records(dataset.schema, count, dataset.configuration),
        }

    def generate(self, dataset_id: str) -> SyntheticDataJobModel:
        """Generate the dataset's records, store the serialized output and track a job."""
        dataset = self.get_or_raise(dataset_id)
        job = SyntheticDataJobModel(dataset_id=dataset.id, status="running", started_at=utc_now())
        self.db.add(job)
        dataset.status = "running"
        dataset.error_message = None
        self.db.commit()
        self.db.refresh(job)

        try:
            records = generate_records(dataset.schema, dataset.record_count, dataset.configuration)
            table_name = (dataset.configuration or {}).get("table_name") or dataset.name
            content = serialize_records(records, dataset.output_format, table_name)
            key = self.storage.put(
                f"synthetic/{dataset.id}/{job.id}.{dataset.output_format}",
                content.encode("utf-8"),
                content_type=MEDIA_TYPES[dataset.output_format],
            )
            self.storage.put_json(records_key(dataset.id), records)
        except Exception as e:
            logger.exception("Synthetic generation failed", dataset_id=dataset.id, job_id=job.id)
            job.status = "failed"
            job.error_message = str(e)
            job.completed_at = utc_now()
            dataset.status = "failed"
            dataset.error_message = str(e)
            self.db.commit()
            self.db.refresh(job)
            return job

        job.status = "completed"
        job.progress = 100
        job.records_generated = len(records)
        job.output_key = key
        job.completed_at = utc_now()
        dataset.status = "completed"
        dataset.storage_key = key
        dataset.generated_at = job.completed_at
        self.db.commit()
        self.db.refresh(job)
        logger.info("Synthetic data generated", dataset_id=dataset.id, job_id=job.id, records=len(records))
        return job

    def download(self, dataset_id: str) -> Tuple[bytes, str, str]:
        """Stored output as ``(content, media_type, filename)``."""
        dataset = self.get_or_raise(dataset_id)
        if dataset.status != "completed" or not dataset.storage_key:
            raise ValidationFailedError(
                "Dataset has not been generated yet", {"status": dataset.status}
            )
        content = self.storage.get(dataset.storage_key)
        filename = f"{re.sub(r'[^A-Za-z0-9_-]', '_', dataset.name)}.{dataset.output_format}"
        return content, MEDIA_TYPES[dataset.output_format], filename

    def add_to_data_source(self, dataset_id: str, name: Optional[str] = None) -> DataSourceModel:
        """Turn the dataset's generated records into a ``synthetic`` data source."""
        dataset = self.get_or_raise(dataset_id)
        if dataset.status != "completed" or not dataset.storage_key:
            self.generate(dataset_id)
            self.db.refresh(dataset)
            if dataset.status != "completed":
                raise ValidationFailedError(
                    "Dataset generation failed", {"error": dataset.error_message}
                )

        sources = DataSourceService(self.db, self.storage)
        source = sources.create(
            DataSourceCreate(
                name=name or dataset.name,
                type=DataSourceType.SYNTHETIC,
                configuration={"synthetic_dataset_id": dataset.id, "data_type": dataset.data_type},
                tags=["synthetic"],
                records=self.storage.get_json(records_key(dataset.id)),
            )
        )
        logger.info("Synthetic dataset added as data source", dataset_id=dataset.id, data_source_id=source.id)
        return source

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def list_jobs(self, dataset_id: Optional[str] = None) -> List[SyntheticDataJobModel]:
        query = self.db.query(SyntheticDataJobModel)
        if dataset_id:
            query = query.filter(SyntheticDataJobModel.dataset_id == dataset_id)
        return query.order_by(desc(SyntheticDataJobModel.created_at)).all()

    def get_job_or_raise(self, job_id: str) -> SyntheticDataJobModel:
        job = self.db.query(SyntheticDataJobModel).filter(SyntheticDataJobModel.id == job_id).first()
        if not job:
            raise NotFoundError("SyntheticDataJob", job_id)
        return job

    def delete_job(self, job_id: str) -> None:
        job = self.get_job_or_raise(job_id)
        if job.output_key and job.output_key != job.dataset.storage_key:
            self.storage.delete(job.output_key)
        self.db.delete(job)
        self.db.commit()
