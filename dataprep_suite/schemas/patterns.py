"""
Pattern request schemas.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, constr

from .enums import FeedbackContext, FeedbackType, PatternType, RedactionStyle


class PatternCreate(BaseModel):
    """Request body for a new sensitive-data pattern."""

    model_config = ConfigDict(extra="forbid")

    name: constr(min_length=1, max_length=255)
    type: PatternType
    category: str = Field("custom", max_length=100)
    regex: Optional[str] = Field(None, description="Primary regular expression")
    regex_patterns: List[str] = Field(
        default_factory=list, description="Additional regular expressions"
    )
    examples: List[str] = Field(default_factory=list)
    context_keywords: List[str] = Field(default_factory=list)
    description: Optional[str] = None
    color: str = Field("#6b7280", max_length=50)
    is_active: bool = True


class PatternUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[constr(min_length=1, max_length=255)] = None
    type: Optional[PatternType] = None
    category: Optional[str] = None
    regex: Optional[str] = None
    regex_patterns: Optional[List[str]] = None
    examples: Optional[List[str]] = None
    context_keywords: Optional[List[str]] = None
    description: Optional[str] = None
    color: Optional[str] = None
    is_active: Optional[bool] = None
    excluded_examples: Optional[List[str]] = None
    confidence_threshold: Optional[float] = Field(None, ge=0.0, le=1.0)
    auto_refine_threshold: Optional[int] = Field(None, ge=1)


class PatternTestRequest(BaseModel):
    """Run a pattern (stored or inline) against a piece of text."""

    model_config = ConfigDict(extra="forbid")

    text: str
    pattern_id: Optional[str] = None
    pattern: Optional[PatternCreate] = None
    redaction_style: Optional[RedactionStyle] = None


class LearnPatternRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    examples: List[str] = Field(..., min_length=1)


class ScanRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    pattern_ids: Optional[List[str]] = None


class PatternFeedbackCreate(BaseModel):
    """A verdict on one match: was it really sensitive data?"""

    model_config = ConfigDict(extra="forbid")

    feedback_type: FeedbackType
    context: FeedbackContext = FeedbackContext.DETECTION
    matched_text: constr(min_length=1)
    surrounding_context: Optional[str] = None
    original_confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    user_comment: Optional[str] = None
    data_source_id: Optional[str] = None
    user_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class RefinementRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    regex: Optional[str] = None
    exclude_patterns: Optional[List[str]] = None
    confidence_threshold: Optional[float] = Field(None, ge=0.0, le=1.0)
