"""Tests for sensitive-data patterns: learning, testing, redaction and scanning."""

import re

import pytest

from dataprep_suite.errors import ConflictError, ValidationFailedError
from dataprep_suite.schemas.data_sources import DataSourceCreate
from dataprep_suite.schemas.enums import DataSourceType, PatternType
from dataprep_suite.schemas.patterns import PatternCreate, PatternUpdate
from dataprep_suite.services.data_sources import DataSourceService
from dataprep_suite.services.pattern_testing import (
    PatternMatch,
    filter_overlapping,
    learn_pattern,
    redaction_styles,
    run_pattern_test,
)
from dataprep_suite.services.patterns import PatternService

SSN_PATTERN = {"name": "SSN", "type": "PII", "regex": r"\b\d{3}-\d{2}-\d{4}\b"}


class TestLearnPattern:
    def test_ssn_examples(self):
        assert learn_pattern(["123-45-6789", "987-65-4321"]) == r"\b\d{3}[-.\s]?\d{2}[-.\s]?\d{4}\b"

    def test_email_examples(self):
        regex = learn_pattern(["a@example.com", "b.c@test.org"])
        assert re.search(regex, "reach me at jane@corp.io today").group(0) == "jane@corp.io"

    def test_credit_card_examples_keep_grouping(self):
        regex = learn_pattern(["4111 1111 1111 1111", "5500 0000 0000 0004"])
        assert regex == r"\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b"

    def test_digit_runs_use_length_range(self):
        assert learn_pattern(["12345", "678901"]) == r"\b\d{5,6}\b"

    def test_structural_fallback(self):
        regex = learn_pattern(["AB-1234", "CD-5678"])
        assert regex == r"\b[A-Z]+\-\d+\b"
        assert re.search(regex, "ticket XY-42 closed").group(0) == "XY-42"

    def test_no_examples(self):
        assert learn_pattern(["", "   "]) is None

    def test_single_free_text_example_is_not_generalized(self):
        assert learn_pattern(["Project Falcon"]) is None


class TestRunPatternTest:
    def test_context_match_wins_over_regex_on_same_span(self):
        result = run_pattern_test("My SSN is 123-45-6789.", SSN_PATTERN)

        assert result["statistics"]["total_matches"] == 1
        match = result["matches"][0]
        assert match["value"] == "123-45-6789"
        assert match["method"] == "context"
        assert match["detector"] == "Social Security Number"
        assert match["confidence"] == 0.95
        assert result["redacted_text"] == "My SSN is [REDACTED]."

    @pytest.mark.parametrize(
        "style,expected",
        [
            ("partial", "My SSN is XXX-XX-6789."),
            ("token", "My SSN is [PII-1]."),
            ("mask", "My SSN is ***********."),
        ],
    )
    def test_redaction_styles(self, style, expected):
        result = run_pattern_test("My SSN is 123-45-6789.", SSN_PATTERN, style)
        assert result["redacted_text"] == expected
        assert result["redaction_style"]["type"] == style

    def test_unknown_style_falls_back_to_default(self):
        result = run_pattern_test("My SSN is 123-45-6789.", SSN_PATTERN, "sparkle")
        assert result["redaction_style"] == {"type": "full", "format": "[REDACTED]"}

    def test_example_match_is_case_insensitive(self):
        pattern = {"name": "codename", "type": "CUSTOM", "examples": ["Project Falcon"]}
        result = run_pattern_test("Status of project falcon and Project Eagle", pattern)

        assert result["statistics"]["example_matches"] == 1
        assert result["matches"][0]["value"] == "project falcon"
        assert result["redacted_text"] == "Status of [REDACTED] and Project Eagle"

    def test_tokens_number_from_the_end(self):
        pattern = {"name": "codename", "type": "CUSTOM", "examples": ["alpha"]}
        result = run_pattern_test("alpha then alpha", pattern, "token")
        assert result["redacted_text"] == "[CUSTOM-2] then [CUSTOM-1]"

    def test_no_matches(self):
        result = run_pattern_test("nothing to see", {"name": "x", "type": "CUSTOM", "regex": r"\d+"})
        assert result["matches"] == []
        assert result["statistics"]["average_confidence"] == 0.0
        assert result["redacted_text"] == "nothing to see"

    def test_filter_overlapping_keeps_first_start(self):
        kept = filter_overlapping(
            [
                PatternMatch("bcd", 1, 4, "regex", 0.9),
                PatternMatch("abc", 0, 3, "regex", 0.5),
                PatternMatch("xyz", 10, 13, "regex", 0.5),
            ]
        )
        assert [m.value for m in kept] == ["abc", "xyz"]

    def test_redaction_styles_default_to_custom(self):
        assert redaction_styles("UNKNOWN") == redaction_styles("CUSTOM")
        assert [s["type"] for s in redaction_styles("MEDICAL")] == ["full", "token", "mask"]


class TestPatternService:
    def test_create_rejects_duplicate_name(self, db):
        service = PatternService(db)
        service.create(PatternCreate(name="Email", type=PatternType.PII, regex=r"\S+@\S+"))
        with pytest.raises(ConflictError):
            service.create(PatternCreate(name="Email", type=PatternType.PII))

    def test_create_rejects_invalid_regex(self, db):
        with pytest.raises(ValidationFailedError):
            PatternService(db).create(PatternCreate(name="Broken", type=PatternType.CUSTOM, regex="("))

    def test_update_and_list(self, db):
        service = PatternService(db)
        pattern = service.create(PatternCreate(name="MRN", type=PatternType.MEDICAL))
        service.create(PatternCreate(name="Card", type=PatternType.FINANCIAL, is_active=False))

        updated = service.update(pattern.id, PatternUpdate(type=PatternType.PII, examples=["MRN-12345"]))
        assert updated.type == "PII"
        assert updated.examples == ["MRN-12345"]

        assert [p.name for p in service.list(active_only=True)] == ["MRN"]
        assert [p.name for p in service.list(pattern_type="FINANCIAL")] == ["Card"]

    def test_scan_data_source(self, db, storage, sample_records):
        sources = DataSourceService(db, storage)
        source = sources.create(
            DataSourceCreate(name="Customers", type=DataSourceType.JSON, records=sample_records)
        )
        service = PatternService(db)
        email = service.create(
            PatternCreate(
                name="Email",
                type=PatternType.PII,
                regex=r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b",
            )
        )
        service.create(PatternCreate(name="Zip", type=PatternType.PII, regex=r"\b\d{5}\b", is_active=False))

        result = service.scan_data_source(sources, source.id)
        assert result["records_scanned"] == 3
        assert result["patterns_checked"] == 1
        assert len(result["results"]) == 1
        hit = result["results"][0]
        assert hit["pattern_id"] == email.id
        assert hit["total_matches"] == 2
        assert hit["fields"] == [
            {
                "field": "email",
                "match_count": 2,
                "samples": ["alice@example.com", "bob@example.com"],
            }
        ]

        explicit = service.scan_data_source(sources, source.id, pattern_ids=[email.id])
        assert explicit["patterns_checked"] == 1


class TestPatternAPI:
    def test_crud(self, client):
        response = client.post("/api/patterns", json={"name": "SSN", "type": "PII", "regex": r"\d{3}-\d{2}-\d{4}"})
        assert response.status_code == 201
        pattern = response.json()

        response = client.post("/api/patterns", json={"name": "SSN", "type": "PII"})
        assert response.status_code == 409
        assert "already exists" in response.json()["detail"]

        response = client.put(f"/api/patterns/{pattern['id']}", json={"description": "US SSN"})
        assert response.json()["description"] == "US SSN"

        response = client.delete(f"/api/patterns/{pattern['id']}")
        assert response.status_code == 204
        assert client.get(f"/api/patterns/{pattern['id']}").status_code == 404

    def test_invalid_regex_is_422(self, client):
        response = client.post("/api/patterns", json={"name": "Bad", "type": "CUSTOM", "regex": "[a-"})
        assert response.status_code == 422
        assert response.json()["detail"]["error"] == "VALIDATION_FAILED"

    def test_test_with_stored_pattern(self, client):
        pattern = client.post("/api/patterns", json=SSN_PATTERN).json()
        response = client.post(
            "/api/patterns/test",
            json={"text": "SSN: 123-45-6789", "pattern_id": pattern["id"], "redaction_style": "partial"},
        )
        assert response.status_code == 200
        assert response.json()["redacted_text"] == "SSN: XXX-XX-6789"

    def test_test_with_inline_pattern(self, client):
        response = client.post(
            "/api/patterns/test",
            json={"text": "code alpha", "pattern": {"name": "code", "type": "CUSTOM", "examples": ["alpha"]}},
        )
        assert response.json()["redacted_text"] == "code [REDACTED]"

    def test_test_requires_a_pattern(self, client):
        response = client.post("/api/patterns/test", json={"text": "abc"})
        assert response.status_code == 422
        assert response.json()["detail"] == "Provide pattern_id or pattern"

    def test_learn(self, client):
        response = client.post("/api/patterns/learn", json={"examples": ["123-45-6789"]})
        assert response.json()["regex"] == r"\b\d{3}[-.\s]?\d{2}[-.\s]?\d{4}\b"

    def test_redaction_styles_endpoint(self, client):
        response = client.get("/api/patterns/redaction-styles/financial")
        assert response.json()[1] == {"type": "partial", "format": "****-****-****-####"}

    def test_scan_unknown_source(self, client):
        response = client.post("/api/patterns/scan/missing", json={})
        assert response.status_code == 404
