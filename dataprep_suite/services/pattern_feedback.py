"""
Pattern feedback: users confirm or reject matches, and patterns are refined
from the verdicts.

Each feedback row updates the pattern's counters and accuracy metrics. A
text rejected ``auto_refine_threshold`` times is added to the pattern's
excluded examples, and very low precision raises its confidence threshold.
"""

from __future__ import annotations

import re
from collections import Counter
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from ..db.models import PatternFeedbackModel, PatternModel
from ..errors import ValidationFailedError
from ..primitives import utc_now
from ..schemas.enums import FeedbackType
from ..schemas.patterns import PatternFeedbackCreate, RefinementRequest
from .pattern_testing import learn_pattern
from .patterns import PatternService

logger = structlog.get_logger()

# No false-negative feedback is collected, so recall is an assumed constant.
ASSUMED_RECALL = 0.8
REFINEMENT_THRESHOLD = 0.7
LOW_PRECISION = 0.5
THRESHOLD_STEP = 0.1
MAX_CONFIDENCE_THRESHOLD = 0.95
EXCLUDE_SUGGESTION_COUNT = 3
RECENT_NEGATIVE_LIMIT = 50
COMMON_FALSE_POSITIVES = 5

_SENSITIVE_CONTEXT = re.compile(r"\b(ssn|social|security|tax|tin)\b")


def analyze_false_positives(feedback: List[PatternFeedbackModel]) -> Dict[str, Any]:
    """Count shapes among rejected matches and name the issues they point to."""
    rejected = [f for f in feedback if f.feedback_type == FeedbackType.NEGATIVE.value]
    shapes: Counter = Counter()
    for item in rejected:
        text = item.matched_text
        if text.isdigit():
            shapes["all_digits"] += 1
        if re.fullmatch(r"(\d)\1+", text):
            shapes["repeated_digits"] += 1
        if "-" not in text and " " not in text:
            shapes["no_separators"] += 1
        if text.startswith("0"):
            shapes["leading_zeros"] += 1
        if not _SENSITIVE_CONTEXT.search((item.surrounding_context or "").lower()):
            shapes["no_context_keywords"] += 1

    total = len(rejected)
    issues = []
    if shapes["all_digits"] > total * 0.5:
        issues.append("Pattern matching numbers without proper formatting")
    if shapes["repeated_digits"] > total * 0.3:
        issues.append("Pattern matching test/invalid data (repeated digits)")
    if shapes["no_separators"] > total * 0.6:
        issues.append("Pattern should require separators (dashes, spaces, etc.)")
    if shapes["no_context_keywords"] > total * 0.7:
        issues.append("Pattern matching without proper context")
    return {"issues": issues, "patterns": dict(shapes)}


class PatternFeedbackService:
    """Service for pattern feedback, accuracy metrics and refinement."""

    def __init__(self, db: Session):
        self.db = db
        self.patterns = PatternService(db)

    def _negatives(self, pattern_id: str, limit: Optional[int] = None) -> List[PatternFeedbackModel]:
        query = (
            self.db.query(PatternFeedbackModel)
            .filter(
                PatternFeedbackModel.pattern_id == pattern_id,
                PatternFeedbackModel.feedback_type == FeedbackType.NEGATIVE.value,
            )
            .order_by(desc(PatternFeedbackModel.created_at))
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    def submit_feedback(self, pattern_id: str, feedback: PatternFeedbackCreate) -> PatternFeedbackModel:
        pattern = self.patterns.get_or_raise(pattern_id)
        db_feedback = PatternFeedbackModel(
            pattern_id=pattern.id,
            feedback_type=feedback.feedback_type.value,
            context=feedback.context.value,
            matched_text=feedback.matched_text,
            surrounding_context=feedback.surrounding_context,
            original_confidence=feedback.original_confidence,
            user_comment=feedback.user_comment,
            data_source_id=feedback.data_source_id,
            user_id=feedback.user_id or "system",
            meta=feedback.metadata,
        )
        self.db.add(db_feedback)
        pattern.feedback_count = (pattern.feedback_count or 0) + 1
        if feedback.feedback_type == FeedbackType.POSITIVE:
            pattern.positive_count = (pattern.positive_count or 0) + 1
        else:
            pattern.negative_count = (pattern.negative_count or 0) + 1
        self.db.flush()

        metrics = self._update_accuracy(pattern)
        if feedback.feedback_type == FeedbackType.NEGATIVE:
            self._auto_refine(pattern, feedback.matched_text, metrics)

        self.db.commit()
        self.db.refresh(db_feedback)
        logger.info(
            "Pattern feedback submitted",
            pattern_id=pattern.id,
            feedback_type=db_feedback.feedback_type,
            context=db_feedback.context,
        )
        return db_feedback

    def list_feedback(self, pattern_id: str, limit: int = 100, offset: int = 0) -> Dict[str, Any]:
        self.patterns.get_or_raise(pattern_id)
        query = self.db.query(PatternFeedbackModel).filter(PatternFeedbackModel.pattern_id == pattern_id)
        rows = (
            query.order_by(desc(PatternFeedbackModel.created_at))
            .offset(offset)
            .limit(limit)
            .all()
        )
        return {"feedback": [f.to_dict() for f in rows], "total": query.count()}

    def _update_accuracy(self, pattern: PatternModel) -> Dict[str, Any]:
        rows = (
            self.db.query(PatternFeedbackModel.feedback_type, PatternFeedbackModel.matched_text)
            .filter(PatternFeedbackModel.pattern_id == pattern.id)
            .all()
        )
        total = len(rows)
        positive = sum(1 for kind, _ in rows if kind == FeedbackType.POSITIVE.value)
        rejected = Counter(text for kind, text in rows if kind == FeedbackType.NEGATIVE.value)
        precision = positive / total if total else 0.0
        f1 = 2 * precision * ASSUMED_RECALL / (precision + ASSUMED_RECALL) if precision else 0.0

        metrics = {
            "precision": round(precision, 4),
            "recall": ASSUMED_RECALL,
            "f1_score": round(f1, 4),
            "total_feedback": total,
            "positive_feedback": positive,
            "negative_feedback": total - positive,
            "common_false_positives": [text for text, _ in rejected.most_common(COMMON_FALSE_POSITIVES)],
            "last_updated": utc_now().isoformat(),
        }
        pattern.accuracy_metrics = metrics
        return metrics

    def _auto_refine(self, pattern: PatternModel, matched_text: str, metrics: Dict[str, Any]) -> None:
        rejections = (
            self.db.query(func.count(PatternFeedbackModel.id))
            .filter(
                PatternFeedbackModel.pattern_id == pattern.id,
                PatternFeedbackModel.feedback_type == FeedbackType.NEGATIVE.value,
                PatternFeedbackModel.matched_text == matched_text,
            )
            .scalar()
        )
        excluded = list(pattern.excluded_examples or [])
        if rejections >= pattern.auto_refine_threshold and matched_text not in excluded:
            pattern.excluded_examples = [*excluded, matched_text]
            pattern.last_refined_at = utc_now()
            logger.info("Pattern auto-refined", pattern_id=pattern.id, excluded=matched_text)

        if metrics["precision"] < LOW_PRECISION and pattern.confidence_threshold < 0.9:
            pattern.confidence_threshold = min(
                round(pattern.confidence_threshold + THRESHOLD_STEP, 2), MAX_CONFIDENCE_THRESHOLD
            )
            logger.info(
                "Pattern confidence threshold raised",
                pattern_id=pattern.id,
                confidence_threshold=pattern.confidence_threshold,
            )

    def patterns_needing_refinement(self, threshold: float = REFINEMENT_THRESHOLD) -> List[Dict[str, Any]]:
        """Patterns with feedback whose precision or F1 is below ``threshold``."""
        results = []
        for pattern in self.db.query(PatternModel).filter(PatternModel.feedback_count > 0).all():
            metrics = pattern.accuracy_metrics or {}
            if metrics.get("precision", 0) < threshold or metrics.get("f1_score", 0) < threshold:
                results.append({"pattern": pattern.to_dict(), "metrics": metrics})
        return results

    def suggest_refinements(self, pattern_id: str) -> Dict[str, Any]:
        pattern = self.patterns.get_or_raise(pattern_id)
        recent = self._negatives(pattern.id, RECENT_NEGATIVE_LIMIT)
        reasoning: List[str] = []
        suggestions: List[Dict[str, Any]] = []

        counts = Counter(f.matched_text for f in recent)
        exclude = sorted(text for text, count in counts.items() if count >= EXCLUDE_SUGGESTION_COUNT)
        for text in exclude:
            reasoning.append(f'Exclude "{text}" - reported as false positive {counts[text]} times')
        if exclude:
            suggestions.append(
                {"type": "exclude", "description": "Exclude repeated false positives", "exclude_patterns": exclude}
            )

        metrics = pattern.accuracy_metrics or {}
        confidence_adjustment = None
        if metrics and metrics.get("precision", 1.0) < REFINEMENT_THRESHOLD:
            confidence_adjustment = THRESHOLD_STEP
            reasoning.append(
                f"Increase confidence threshold by 10% due to precision of {metrics['precision'] * 100:.1f}%"
            )

        analysis = analyze_false_positives(recent)
        shapes = analysis["patterns"]
        if shapes.get("no_separators", 0) > 3:
            regex = learn_pattern(pattern.examples or [])
            if regex:
                suggestions.append(
                    {"type": "regex", "description": "Require the formatting seen in the examples", "regex": regex}
                )
        if shapes.get("repeated_digits", 0) > 2:
            suggestions.append(
                {
                    "type": "validation",
                    "description": "Exclude test data made of one repeated digit",
                    "exclude_patterns": sorted({f.matched_text for f in recent if re.fullmatch(r"(\d)\1+", f.matched_text)}),
                }
            )

        return {
            "pattern": {"id": pattern.id, "name": pattern.name, "regex": pattern.regex},
            "accuracy": metrics.get("precision", 1.0) if metrics else 1.0,
            "feedback_count": pattern.feedback_count or 0,
            "exclude_patterns": exclude,
            "confidence_adjustment": confidence_adjustment,
            "reasoning": reasoning,
            "suggestions": suggestions,
            "analysis": analysis,
        }

    def apply_refinements(self, pattern_id: str, refinements: RefinementRequest) -> PatternModel:
        pattern = self.patterns.get_or_raise(pattern_id)
        if refinements.regex:
            try:
                re.compile(refinements.regex)
            except re.error as e:
                raise ValidationFailedError(f"Invalid regular expression: {e}", {"regex": refinements.regex}) from e
            pattern.regex = refinements.regex
        if refinements.exclude_patterns:
            pattern.excluded_examples = list(
                dict.fromkeys([*(pattern.excluded_examples or []), *refinements.exclude_patterns])
            )
        if refinements.confidence_threshold is not None:
            pattern.confidence_threshold = refinements.confidence_threshold
        pattern.last_refined_at = utc_now()
        self._update_accuracy(pattern)
        self.db.commit()
        self.db.refresh(pattern)
        logger.info("Pattern refinements applied", pattern_id=pattern.id)
        return pattern

    def statistics(self) -> Dict[str, Any]:
        total = self.db.query(func.count(PatternFeedbackModel.id)).scalar()
        positive = (
            self.db.query(func.count(PatternFeedbackModel.id))
            .filter(PatternFeedbackModel.feedback_type == FeedbackType.POSITIVE.value)
            .scalar()
        )
        patterns = self.db.query(PatternModel).filter(PatternModel.feedback_count > 0).all()
        stats = [
            {
                "pattern_id": p.id,
                "pattern_name": p.name,
                "feedback_count": p.feedback_count,
                "positive_count": p.positive_count,
                "negative_count": p.negative_count,
                "accuracy": round(p.positive_count / p.feedback_count, 4),
            }
            for p in patterns
        ]
        stats.sort(key=lambda s: (-s["feedback_count"], s["pattern_name"]))
        return {
            "total_feedback": total,
            "positive_feedback": positive,
            "negative_feedback": total - positive,
            "pattern_stats": stats,
        }
