"""
Pipeline service: graph validation and status lifecycle.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import desc
from sqlalchemy.orm import Session

from ..db.models import PipelineModel
from ..errors import ConflictError, NotFoundError, ValidationFailedError
from ..schemas.pipelines import PipelineCreate, PipelineUpdate

logger = structlog.get_logger()

ALLOWED_TRANSITIONS = {
    "draft": {"active"},
    "active": {"paused", "completed", "error"},
    "paused": {"active", "draft"},
    "error": {"draft", "active"},
    "completed": {"draft"},
}


def topological_order(nodes: List[Dict[str, Any]], edges: List[Dict[str, Any]]) -> Optional[List[str]]:
    """Kahn's algorithm over node ids; None when the graph has a cycle."""
    ids = [n["id"] for n in nodes]
    in_degree = {node_id: 0 for node_id in ids}
    outgoing: Dict[str, List[str]] = {node_id: [] for node_id in ids}
    for edge in edges:
        if edge["source"] in outgoing and edge["target"] in in_degree:
            outgoing[edge["source"]].append(edge["target"])
            in_degree[edge["target"]] += 1

    queue = deque(node_id for node_id in ids if in_degree[node_id] == 0)
    order = []
    while queue:
        current = queue.popleft()
        order.append(current)
        for target in outgoing[current]:
            in_degree[target] -= 1
            if in_degree[target] == 0:
                queue.append(target)
    return order if len(order) == len(ids) else None


def validate_graph(nodes: List[Dict[str, Any]], edges: List[Dict[str, Any]]) -> List[str]:
    errors = []
    ids = [n.get("id") for n in nodes]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        errors.append(f"Duplicate node ids: {', '.join(duplicates)}")

    known = set(ids)
    for index, edge in enumerate(edges):
        label = edge.get("id") or f"#{index}"
        for end in ("source", "target"):
            if edge.get(end) not in known:
                errors.append(f"Edge {label} references unknown {end} node '{edge.get(end)}'")

    if nodes and not any(n.get("type") == "source" for n in nodes):
        errors.append("Pipeline must contain at least one source node")
    if not duplicates and topological_order(nodes, edges) is None:
        errors.append("Pipeline graph contains a cycle")
    return errors


class PipelineService:
    """Service for managing pipelines."""

    def __init__(self, db: Session):
        self.db = db

    def get_or_raise(self, pipeline_id: str) -> PipelineModel:
        pipeline = self.db.query(PipelineModel).filter(PipelineModel.id == pipeline_id).first()
        if not pipeline:
            raise NotFoundError("Pipeline", pipeline_id)
        return pipeline

    def list(self, status: Optional[str] = None, limit: int = 100, offset: int = 0) -> List[PipelineModel]:
        query = self.db.query(PipelineModel)
        if status:
            query = query.filter(PipelineModel.status == status)
        return query.order_by(desc(PipelineModel.created_at)).offset(offset).limit(limit).all()

    def create(self, pipeline: PipelineCreate) -> PipelineModel:
        data = pipeline.model_dump(mode="json")
        db_pipeline = PipelineModel(**data, status="draft", version=1)
        self.db.add(db_pipeline)
        self.db.commit()
        self.db.refresh(db_pipeline)
        logger.info("Pipeline created", pipeline_id=db_pipeline.id, nodes=len(db_pipeline.nodes))
        return db_pipeline

    def update(self, pipeline_id: str, update: PipelineUpdate) -> PipelineModel:
        pipeline = self.get_or_raise(pipeline_id)
        changes = update.model_dump(mode="json", exclude_unset=True)
        graph_changed = any(
            key in changes and changes[key] != getattr(pipeline, key) for key in ("nodes", "edges")
        )
        for key, value in changes.items():
            setattr(pipeline, key, value)
        if graph_changed:
            pipeline.version = (pipeline.version or 1) + 1
        self.db.commit()
        self.db.refresh(pipeline)
        return pipeline

    def delete(self, pipeline_id: str) -> None:
        pipeline = self.get_or_raise(pipeline_id)
        self.db.delete(pipeline)
        self.db.commit()

    def validate(self, pipeline_id: str) -> Dict[str, Any]:
        pipeline = self.get_or_raise(pipeline_id)
        errors = validate_graph(pipeline.nodes or [], pipeline.edges or [])
        return {"pipeline_id": pipeline.id, "is_valid": not errors, "errors": errors}

    def execution_order(self, pipeline_id: str) -> List[str]:
        pipeline = self.get_or_raise(pipeline_id)
        errors = validate_graph(pipeline.nodes or [], pipeline.edges or [])
        if errors:
            raise ValidationFailedError("Pipeline graph is invalid", {"errors": errors})
        return topological_order(pipeline.nodes or [], pipeline.edges or [])

    def set_status(self, pipeline_id: str, status: str) -> PipelineModel:
        pipeline = self.get_or_raise(pipeline_id)
        if status == pipeline.status:
            return pipeline
        if status not in ALLOWED_TRANSITIONS.get(pipeline.status, set()):
            raise ConflictError(
                f"Cannot change pipeline status from '{pipeline.status}' to '{status}'",
                {"from": pipeline.status, "to": status},
            )
        if status == "active":
            errors = validate_graph(pipeline.nodes or [], pipeline.edges or [])
            if errors:
                raise ValidationFailedError(
                    "Pipeline graph is invalid and cannot be activated", {"errors": errors}
                )
        previous = pipeline.status
        pipeline.status = status
        self.db.commit()
        self.db.refresh(pipeline)
        logger.info("Pipeline status changed", pipeline_id=pipeline.id, previous=previous, status=status)
        return pipeline
