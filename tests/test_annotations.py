"""Tests for field annotations and PII detection."""

import pytest

from dataprep_suite.errors import NotFoundError
from dataprep_suite.schemas.annotations import FieldAnnotationCreate
from dataprep_suite.schemas.data_sources import DataSourceCreate
from dataprep_suite.schemas.enums import DataSourceType
from dataprep_suite.services.annotations import (
    FieldAnnotationService,
    detect_pii_type,
    semantic_type_for,
    sensitivity_for,
)
from dataprep_suite.services.data_sources import DataSourceService


@pytest.fixture
def source(db, storage, sample_records):
    return DataSourceService(db, storage).create(
        DataSourceCreate(name="Customers", type=DataSourceType.JSON, records=sample_records)
    )


class TestDetection:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Email", "email"),
            ("customer_email", "email"),
            ("SSN", "ssn"),
            ("cell-phone", "phone"),
            ("card_number", "credit_card"),
            ("last_name", "name"),
            ("zip", "address"),
            ("DOB", "date_of_birth"),
            ("mrn", "medical_record"),
            ("order_total", None),
        ],
    )
    def test_by_field_name(self, name, expected):
        assert detect_pii_type(name, []) == expected

    def test_by_majority_of_samples(self):
        assert detect_pii_type("col_a", ["123-45-6789", "987654321", "n/a"]) == "ssn"
        assert detect_pii_type("col_b", ["10.0.0.1", "192.168.1.20"]) == "ip_address"
        assert detect_pii_type("col_c", ["a@b.io", "x", "y"]) is None

    def test_semantic_type_and_sensitivity(self):
        assert semantic_type_for("email", "email") == "pii"
        assert semantic_type_for("order_id", None) == "identifier"
        assert semantic_type_for("created_at", None) == "timestamp"
        assert semantic_type_for("line_total", None) == "metric"
        assert semantic_type_for("status", None) == "category"
        assert semantic_type_for("notes", None) == "text"
        assert semantic_type_for("colour", None) == "other"

        assert sensitivity_for(None) == "internal"
        assert sensitivity_for("ssn") == "restricted"
        assert sensitivity_for("email") == "confidential"


class TestFieldAnnotationService:
    def test_upsert_by_source_and_path(self, db, storage, source):
        service = FieldAnnotationService(db, storage)
        first = service.upsert(
            FieldAnnotationCreate(data_source_id=source.id, field_path="address.city", description="City")
        )
        assert first.field_name == "city"

        second = service.upsert(
            FieldAnnotationCreate(
                data_source_id=source.id, field_path="address.city", description="Billing city"
            )
        )
        assert second.id == first.id
        assert second.description == "Billing city"
        assert len(service.list(data_source_id=source.id)) == 1

    def test_upsert_unknown_source(self, db, storage):
        with pytest.raises(NotFoundError):
            FieldAnnotationService(db, storage).upsert(
                FieldAnnotationCreate(data_source_id="missing", field_path="x")
            )

    def test_detect_pii(self, db, storage, source):
        service = FieldAnnotationService(db, storage)
        result = service.detect_pii(source.id)

        assert result["fields_analyzed"] == 6
        assert result["pii_fields"] == ["email", "address.city", "address.zip"]
        assert result["persisted"] is False
        assert service.list(data_source_id=source.id) == []

        by_path = {a["field_path"]: a for a in result["annotations"]}
        assert by_path["email"]["sensitivity_level"] == "confidential"
        assert by_path["email"]["tags"] == ["auto-detected", "pii", "email"]
        assert by_path["email"]["example_values"] == [
            "alice@example.com",
            "bob@example.com",
            "not-an-email",
        ]
        assert by_path["customer_id"]["semantic_type"] == "identifier"
        assert by_path["age"]["data_type"] == "integer"
        assert by_path["signup_date"]["semantic_type"] == "timestamp"

    def test_detect_pii_persists(self, db, storage, source):
        service = FieldAnnotationService(db, storage)
        service.detect_pii(source.id, persist=True)

        assert len(service.list(data_source_id=source.id)) == 6
        assert [a.field_path for a in service.list(pii_only=True)] == [
            "address.city",
            "address.zip",
            "email",
        ]

        # running again updates rather than duplicates
        service.detect_pii(source.id, persist=True)
        assert len(service.list(data_source_id=source.id)) == 6


class TestAnnotationAPI:
    def test_flow(self, client, sample_records):
        source = client.post(
            "/api/data-sources", json={"name": "C", "type": "json", "records": sample_records}
        ).json()

        response = client.post(
            "/api/field-annotations",
            json={
                "data_source_id": source["id"],
                "field_path": "age",
                "semantic_type": "metric",
                "business_context": "Age at signup",
            },
        )
        assert response.status_code == 200
        annotation = response.json()

        response = client.post(
            "/api/field-annotations/bulk",
            json={
                "annotations": [
                    {"data_source_id": source["id"], "field_path": "email", "is_pii": True, "pii_type": "email"},
                    {"data_source_id": source["id"], "field_path": "signup_date"},
                ]
            },
        )
        assert len(response.json()) == 2

        response = client.get("/api/field-annotations", params={"data_source_id": source["id"], "pii_only": True})
        assert [a["field_path"] for a in response.json()] == ["email"]

        response = client.get("/api/field-annotations", params={"search": "signup"})
        assert [a["field_path"] for a in response.json()] == ["age", "signup_date"]

        assert client.delete(f"/api/field-annotations/{annotation['id']}").status_code == 204
        response = client.get(f"/api/field-annotations/{annotation['id']}")
        assert response.status_code == 404
        assert response.json()["detail"] == "Field annotation not found"

    def test_invalid_semantic_type(self, client):
        source = client.post("/api/data-sources", json={"name": "C", "type": "json"}).json()
        response = client.post(
            "/api/field-annotations",
            json={"data_source_id": source["id"], "field_path": "x", "semantic_type": "vibes"},
        )
        assert response.status_code == 422

    def test_detect_pii_endpoint(self, client, sample_records):
        source = client.post(
            "/api/data-sources", json={"name": "C", "type": "json", "records": sample_records}
        ).json()
        response = client.post(
            "/api/field-annotations/detect-pii", json={"data_source_id": source["id"], "persist": True}
        )
        assert response.status_code == 200
        assert response.json()["persisted"] is True

        summary = client.get("/api/dashboard/summary").json()
        assert summary["annotations"] == {"total": 6, "pii_fields": 3}
