"""
Pipeline schemas.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, constr

from .enums import PipelineStatus


class PipelineNode(BaseModel):
    """A node in the pipeline graph (source, transform, analyze, output...)."""

    model_config = ConfigDict(extra="allow")

    id: constr(min_length=1, max_length=128)
    type: constr(min_length=1, max_length=50)
    label: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict)
    position: Optional[Dict[str, float]] = None


class PipelineEdge(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    source: constr(min_length=1, max_length=128)
    target: constr(min_length=1, max_length=128)


class PipelineCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: constr(min_length=1, max_length=255)
    description: Optional[str] = None
    nodes: List[PipelineNode] = Field(default_factory=list)
    edges: List[PipelineEdge] = Field(default_factory=list)
    triggers: List[Dict[str, Any]] = Field(default_factory=list)
    schedule: Optional[Dict[str, Any]] = None
    tags: List[str] = Field(default_factory=list)
    created_by: Optional[str] = None


class PipelineUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[constr(min_length=1, max_length=255)] = None
    description: Optional[str] = None
    nodes: Optional[List[PipelineNode]] = None
    edges: Optional[List[PipelineEdge]] = None
    triggers: Optional[List[Dict[str, Any]]] = None
    schedule: Optional[Dict[str, Any]] = None
    tags: Optional[List[str]] = None


class PipelineStatusUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: PipelineStatus
