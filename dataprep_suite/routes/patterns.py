"""
Sensitive-data pattern endpoints.

All endpoints are prefixed with /api/patterns.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..db.base import get_db
from ..schemas.patterns import (
    LearnPatternRequest,
    PatternCreate,
    PatternFeedbackCreate,
    PatternTestRequest,
    PatternUpdate,
    RefinementRequest,
    ScanRequest,
)
from ..services.data_sources import DataSourceService
from ..services.pattern_feedback import PatternFeedbackService
from ..services.pattern_testing import learn_pattern, redaction_styles
from ..services.patterns import PatternService
from ..storage import StorageProvider, get_storage

router = APIRouter(prefix="/patterns", tags=["patterns"])


@router.post("", status_code=201)
async def create_pattern(pattern: PatternCreate, db: Session = Depends(get_db)) -> Dict[str, Any]:
    service = PatternService(db)

    if service.get_by_name(pattern.name):
        raise HTTPException(
            status_code=409,
            detail=f"Pattern with name '{pattern.name}' already exists",
        )

    return service.create(pattern).to_dict()


@router.get("")
async def list_patterns(
    type: Optional[str] = None,
    active_only: bool = False,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
) -> List[Dict[str, Any]]:
    patterns = PatternService(db).list(pattern_type=type, active_only=active_only, limit=limit, offset=offset)
    return [p.to_dict() for p in patterns]


@router.post("/test")
async def test_pattern(request: PatternTestRequest, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Run a stored or inline pattern against text and redact the matches."""
    service = PatternService(db)
    if request.pattern_id:
        pattern = service.get_or_raise(request.pattern_id).to_dict()
    elif request.pattern:
        pattern = request.pattern.model_dump(mode="json")
    else:
        raise HTTPException(status_code=422, detail="Provide pattern_id or pattern")

    style = request.redaction_style.value if request.redaction_style else None
    return service.test(request.text, pattern, style)


@router.post("/learn")
async def learn(request: LearnPatternRequest) -> Dict[str, Any]:
    """Derive a regular expression from examples."""
    return {"examples": request.examples, "regex": learn_pattern(request.examples)}


@router.get("/redaction-styles/{pattern_type}")
async def get_redaction_styles(pattern_type: str) -> List[Dict[str, str]]:
    return redaction_styles(pattern_type.upper())


@router.post("/scan/{data_source_id}")
async def scan_data_source(
    data_source_id: str,
    request: ScanRequest,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
) -> Dict[str, Any]:
    """Find pattern matches in a data source's records."""
    return PatternService(db).scan_data_source(
        DataSourceService(db, storage), data_source_id, pattern_ids=request.pattern_ids
    )


@router.get("/feedback/statistics")
async def feedback_statistics(db: Session = Depends(get_db)) -> Dict[str, Any]:
    return PatternFeedbackService(db).statistics()


@router.get("/feedback/refinements")
async def patterns_needing_refinement(
    threshold: float = Query(0.7, ge=0.0, le=1.0), db: Session = Depends(get_db)
) -> List[Dict[str, Any]]:
    """Patterns whose feedback precision or F1 score is below the threshold."""
    return PatternFeedbackService(db).patterns_needing_refinement(threshold)


@router.post("/{pattern_id}/feedback", status_code=201)
async def submit_feedback(
    pattern_id: str, feedback: PatternFeedbackCreate, db: Session = Depends(get_db)
) -> Dict[str, Any]:
    return PatternFeedbackService(db).submit_feedback(pattern_id, feedback).to_dict()


@router.get("/{pattern_id}/feedback")
async def list_feedback(
    pattern_id: str,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    return PatternFeedbackService(db).list_feedback(pattern_id, limit=limit, offset=offset)


@router.get("/{pattern_id}/accuracy")
async def pattern_accuracy(pattern_id: str, db: Session = Depends(get_db)) -> Dict[str, Any]:
    pattern = PatternService(db).get_or_raise(pattern_id)
    return {
        "pattern_id": pattern.id,
        "feedback_count": pattern.feedback_count,
        "confidence_threshold": pattern.confidence_threshold,
        "excluded_examples": pattern.excluded_examples or [],
        "metrics": pattern.accuracy_metrics,
    }


@router.get("/{pattern_id}/refinements")
async def suggest_refinements(pattern_id: str, db: Session = Depends(get_db)) -> Dict[str, Any]:
    return PatternFeedbackService(db).suggest_refinements(pattern_id)


@router.post("/{pattern_id}/refinements")
async def apply_refinements(
    pattern_id: str, refinements: RefinementRequest, db: Session = Depends(get_db)
) -> Dict[str, Any]:
    return PatternFeedbackService(db).apply_refinements(pattern_id, refinements).to_dict()


@router.get("/{pattern_id}")
async def get_pattern(pattern_id: str, db: Session = Depends(get_db)) -> Dict[str, Any]:
    pattern = PatternService(db).get(pattern_id)
    if not pattern:
        raise HTTPException(status_code=404, detail="Pattern not found")
    return pattern.to_dict()


@router.put("/{pattern_id}")
async def update_pattern(
    pattern_id: str, update: PatternUpdate, db: Session = Depends(get_db)
) -> Dict[str, Any]:
    return PatternService(db).update(pattern_id, update).to_dict()


@router.delete("/{pattern_id}", status_code=204)
async def delete_pattern(pattern_id: str, db: Session = Depends(get_db)) -> None:
    PatternService(db).delete(pattern_id)
