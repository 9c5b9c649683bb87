"""Tests for pattern feedback, accuracy metrics and refinement."""

import pytest

from dataprep_suite.errors import NotFoundError, ValidationFailedError
from dataprep_suite.schemas.data_sources import DataSourceCreate
from dataprep_suite.schemas.enums import DataSourceType, FeedbackType, PatternType
from dataprep_suite.schemas.patterns import PatternCreate, PatternFeedbackCreate, RefinementRequest
from dataprep_suite.services.data_sources import DataSourceService
from dataprep_suite.services.pattern_feedback import PatternFeedbackService, analyze_false_positives
from dataprep_suite.services.patterns import PatternService

TICKET_REGEX = r"\bT-\d{4}\b"


def negative(text, context=None):
    return PatternFeedbackCreate(
        feedback_type=FeedbackType.NEGATIVE, matched_text=text, surrounding_context=context
    )


def positive(text):
    return PatternFeedbackCreate(feedback_type=FeedbackType.POSITIVE, matched_text=text)


@pytest.fixture
def ticket(db):
    return PatternService(db).create(
        PatternCreate(name="Ticket", type=PatternType.CUSTOM, regex=TICKET_REGEX, examples=["T-1234"])
    )


class TestPatternFeedbackService:
    def test_counts_and_accuracy(self, db, ticket):
        service = PatternFeedbackService(db)
        service.submit_feedback(ticket.id, positive("T-1234"))
        service.submit_feedback(ticket.id, negative("T-0000"))

        db.refresh(ticket)
        assert ticket.feedback_count == 2
        assert ticket.positive_count == 1
        assert ticket.negative_count == 1
        metrics = ticket.accuracy_metrics
        assert metrics["precision"] == 0.5
        assert metrics["recall"] == 0.8
        assert metrics["f1_score"] == pytest.approx(0.6154)
        assert metrics["common_false_positives"] == ["T-0000"]

        listed = service.list_feedback(ticket.id)
        assert listed["total"] == 2
        assert {f["feedback_type"] for f in listed["feedback"]} == {"positive", "negative"}

    def test_repeated_rejection_excludes_text(self, db, ticket):
        service = PatternFeedbackService(db)
        for _ in range(3):
            service.submit_feedback(ticket.id, negative("T-0000"))

        db.refresh(ticket)
        assert ticket.excluded_examples == ["T-0000"]
        assert ticket.last_refined_at is not None
        # 0.7 -> 0.8 -> 0.9, then held below the low-precision ceiling
        assert ticket.confidence_threshold == pytest.approx(0.9)

        result = PatternService(db).test("open T-0000 and T-4321", ticket.to_dict())
        assert [m["value"] for m in result["matches"]] == ["T-4321"]

    def test_exclusions_apply_to_scans(self, db, storage, ticket):
        sources = DataSourceService(db, storage)
        source = sources.create(
            DataSourceCreate(
                name="Tickets",
                type=DataSourceType.JSON,
                records=[{"ref": "T-0000"}, {"ref": "T-4321"}],
            )
        )
        service = PatternFeedbackService(db)
        service.apply_refinements(ticket.id, RefinementRequest(exclude_patterns=["t-0000"]))

        result = PatternService(db).scan_data_source(sources, source.id, pattern_ids=[ticket.id])
        assert result["results"][0]["fields"] == [{"field": "ref", "match_count": 1, "samples": ["T-4321"]}]

    def test_suggest_refinements(self, db, ticket):
        service = PatternFeedbackService(db)
        for _ in range(3):
            service.submit_feedback(ticket.id, negative("T-0000"))
        service.submit_feedback(ticket.id, negative("T-9999"))

        suggestions = service.suggest_refinements(ticket.id)
        assert suggestions["exclude_patterns"] == ["T-0000"]
        assert suggestions["confidence_adjustment"] == 0.1
        assert suggestions["feedback_count"] == 4
        assert suggestions["reasoning"][0] == 'Exclude "T-0000" - reported as false positive 3 times'
        assert "Pattern matching without proper context" in suggestions["analysis"]["issues"]

    def test_apply_refinements(self, db, ticket):
        service = PatternFeedbackService(db)
        refined = service.apply_refinements(
            ticket.id,
            RefinementRequest(regex=r"\bT-[1-9]\d{3}\b", exclude_patterns=["T-1000", "T-1000"], confidence_threshold=0.85),
        )
        assert refined.regex == r"\bT-[1-9]\d{3}\b"
        assert refined.excluded_examples == ["T-1000"]
        assert refined.confidence_threshold == 0.85
        assert refined.last_refined_at is not None

        with pytest.raises(ValidationFailedError):
            service.apply_refinements(ticket.id, RefinementRequest(regex="("))

    def test_needing_refinement_and_statistics(self, db, ticket):
        good = PatternService(db).create(PatternCreate(name="Order", type=PatternType.CUSTOM, regex=r"O-\d+"))
        service = PatternFeedbackService(db)
        service.submit_feedback(ticket.id, negative("T-0000"))
        service.submit_feedback(good.id, positive("O-1"))

        flagged = service.patterns_needing_refinement()
        assert [item["pattern"]["name"] for item in flagged] == ["Ticket"]

        stats = service.statistics()
        assert stats["total_feedback"] == 2
        assert stats["positive_feedback"] == 1
        assert stats["negative_feedback"] == 1
        assert {s["pattern_name"]: s["accuracy"] for s in stats["pattern_stats"]} == {"Ticket": 0.0, "Order": 1.0}

    def test_unknown_pattern(self, db):
        with pytest.raises(NotFoundError):
            PatternFeedbackService(db).submit_feedback("missing", positive("x"))


def test_analyze_false_positives_flags_shapes(db, ticket):
    service = PatternFeedbackService(db)
    for text in ("1111", "2222", "3333"):
        service.submit_feedback(ticket.id, negative(text, context="order total"))
    rows = service._negatives(ticket.id)

    analysis = analyze_false_positives(rows)
    assert analysis["patterns"]["all_digits"] == 3
    assert analysis["patterns"]["repeated_digits"] == 3
    assert "Pattern matching test/invalid data (repeated digits)" in analysis["issues"]
    assert "Pattern should require separators (dashes, spaces, etc.)" in analysis["issues"]


class TestPatternFeedbackAPI:
    def test_feedback_flow(self, client):
        pattern = client.post(
            "/api/patterns", json={"name": "Ticket", "type": "CUSTOM", "regex": TICKET_REGEX}
        ).json()

        response = client.post(
            f"/api/patterns/{pattern['id']}/feedback",
            json={"feedback_type": "negative", "matched_text": "T-0000", "context": "scan"},
        )
        assert response.status_code == 201
        assert response.json()["context"] == "scan"

        listed = client.get(f"/api/patterns/{pattern['id']}/feedback").json()
        assert listed["total"] == 1

        accuracy = client.get(f"/api/patterns/{pattern['id']}/accuracy").json()
        assert accuracy["metrics"]["precision"] == 0.0
        assert accuracy["confidence_threshold"] == pytest.approx(0.8)

        flagged = client.get("/api/patterns/feedback/refinements").json()
        assert [item["pattern"]["id"] for item in flagged] == [pattern["id"]]

        suggestions = client.get(f"/api/patterns/{pattern['id']}/refinements").json()
        assert suggestions["confidence_adjustment"] == 0.1

        refined = client.post(
            f"/api/patterns/{pattern['id']}/refinements", json={"exclude_patterns": ["T-0000"]}
        ).json()
        assert refined["excluded_examples"] == ["T-0000"]

        stats = client.get("/api/patterns/feedback/statistics").json()
        assert stats["total_feedback"] == 1

    def test_feedback_validation(self, client):
        pattern = client.post("/api/patterns", json={"name": "Ticket", "type": "CUSTOM"}).json()
        response = client.post(
            f"/api/patterns/{pattern['id']}/feedback", json={"feedback_type": "maybe", "matched_text": "x"}
        )
        assert response.status_code == 422
        assert client.post("/api/patterns/missing/feedback", json={"feedback_type": "positive", "matched_text": "x"}).status_code == 404
