"""
SQLAlchemy models for the Data Preparedness Suite.

Sub-structures (schemas, conditions, pipeline graphs, violations) are stored
as JSON columns. Ownership between tables is expressed with ON DELETE CASCADE
foreign keys plus ORM delete-orphan cascades.
"""

from typing import Any, Dict

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..primitives import generate_ulid, isoformat
from .base import Base


class DataSourceModel(Base):
    """A catalogued data source (database import, API, file or synthetic set)."""

    __tablename__ = "data_sources"

    id = Column(String(128), primary_key=True, default=generate_ulid)
    name = Column(String(255), nullable=False, index=True)
    type = Column(String(50), nullable=False, index=True)
    path = Column(Text, nullable=True)
    configuration = Column(JSON, nullable=False, default=dict)
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSON, nullable=False, default=dict)
    record_count = Column(Integer, nullable=False, default=0)
    tags = Column(JSON, nullable=False, default=list)

    # Record blob
    storage_key = Column(String(500), nullable=True)
    storage_provider = Column(String(50), nullable=True)
    original_field_names = Column(JSON, nullable=True)

    # Catalog transformation
    transformation_status = Column(String(50), nullable=True)
    transformation_errors = Column(JSON, nullable=True)
    transformation_applied_at = Column(DateTime(timezone=True), nullable=True)

    # Summaries and keywords
    ai_summary = Column(Text, nullable=True)
    user_summary = Column(Text, nullable=True)
    summary_updated_at = Column(DateTime(timezone=True), nullable=True)
    ai_keywords = Column(JSON, nullable=True)
    keywords_generated_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=func.now(), onupdate=func.now()
    )

    tables = relationship(
        "DataSourceTableModel",
        back_populates="data_source",
        cascade="all, delete-orphan",
        order_by="DataSourceTableModel.table_index",
    )
    field_mappings = relationship(
        "FieldMappingModel", back_populates="source", cascade="all, delete-orphan"
    )
    annotations = relationship(
        "FieldAnnotationModel",
        back_populates="data_source",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_tables: bool = False) -> Dict[str, Any]:
        """Convert model to dictionary."""
        data = {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "path": self.path,
            "configuration": self.configuration or {},
            "metadata": self.meta or {},
            "record_count": self.record_count,
            "tags": self.tags or [],
            "storage_key": self.storage_key,
            "storage_provider": self.storage_provider,
            "original_field_names": self.original_field_names,
            "transformation_status": self.transformation_status,
            "transformation_errors": self.transformation_errors,
            "transformation_applied_at": isoformat(self.transformation_applied_at),
            "ai_summary": self.ai_summary,
            "user_summary": self.user_summary,
            "summary_updated_at": isoformat(self.summary_updated_at),
            "ai_keywords": self.ai_keywords or [],
            "keywords_generated_at": isoformat(self.keywords_generated_at),
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
        if include_tables:
            data["tables"] = [t.to_dict() for t in self.tables]
        return data


class DataSourceTableModel(Base):
    """One table of a multi-table data source (e.g. a relational import)."""

    __tablename__ = "data_source_tables"

    id = Column(String(128), primary_key=True, default=generate_ulid)
    data_source_id = Column(
        String(128),
        ForeignKey("data_sources.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    table_name = Column(String(255), nullable=False)
    table_index = Column(Integer, nullable=False, default=0)
    record_count = Column(Integer, nullable=False, default=0)
    # [{"name": ..., "type": ..., "nullable": ..., "primary_key": ...}]
    schema_info = Column(JSON, nullable=False, default=list)
    meta = Column("metadata", JSON, nullable=False, default=dict)
    ai_summary = Column(Text, nullable=True)
    user_summary = Column(Text, nullable=True)
    summary_updated_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=func.now(), onupdate=func.now()
    )

    data_source = relationship("DataSourceModel", back_populates="tables")

    __table_args__ = (
        UniqueConstraint("data_source_id", "table_name", name="uq_source_table_name"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "data_source_id": self.data_source_id,
            "table_name": self.table_name,
            "table_index": self.table_index,
            "record_count": self.record_count,
            "schema_info": self.schema_info or [],
            "metadata": self.meta or {},
            "ai_summary": self.ai_summary,
            "user_summary": self.user_summary,
            "summary_updated_at": isoformat(self.summary_updated_at),
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


class PatternModel(Base):
    """A sensitive-data detection pattern."""

    __tablename__ = "patterns"

    id = Column(String(128), primary_key=True, default=generate_ulid)
    name = Column(String(255), nullable=False, unique=True, index=True)
    type = Column(String(50), nullable=False, index=True)
    category = Column(String(100), nullable=False, default="custom")
    regex = Column(Text, nullable=True)
    regex_patterns = Column(JSON, nullable=False, default=list)
    examples = Column(JSON, nullable=False, default=list)
    context_keywords = Column(JSON, nullable=False, default=list)
    description = Column(Text, nullable=True)
    color = Column(String(50), nullable=False, default="#6b7280")
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    # Feedback-driven refinement
    feedback_count = Column(Integer, nullable=False, default=0)
    positive_count = Column(Integer, nullable=False, default=0)
    negative_count = Column(Integer, nullable=False, default=0)
    excluded_examples = Column(JSON, nullable=False, default=list)
    confidence_threshold = Column(Float, nullable=False, default=0.7)
    auto_refine_threshold = Column(Integer, nullable=False, default=3)
    accuracy_metrics = Column(JSON, nullable=True)
    last_refined_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=func.now(), onupdate=func.now()
    )

    feedback = relationship(
        "PatternFeedbackModel",
        back_populates="pattern",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "category": self.category,
            "regex": self.regex,
            "regex_patterns": self.regex_patterns or [],
            "examples": self.examples or [],
            "context_keywords": self.context_keywords or [],
            "description": self.description,
            "color": self.color,
            "is_active": self.is_active,
            "feedback_count": self.feedback_count or 0,
            "positive_count": self.positive_count or 0,
            "negative_count": self.negative_count or 0,
            "excluded_examples": self.excluded_examples or [],
            "confidence_threshold": self.confidence_threshold,
            "auto_refine_threshold": self.auto_refine_threshold,
            "accuracy_metrics": self.accuracy_metrics,
            "last_refined_at": isoformat(self.last_refined_at),
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


class PatternFeedbackModel(Base):
    """A user's verdict on one pattern match."""

    __tablename__ = "pattern_feedback"

    id = Column(String(128), primary_key=True, default=generate_ulid)
    pattern_id = Column(
        String(128),
        ForeignKey("patterns.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    feedback_type = Column(String(20), nullable=False)
    context = Column(String(20), nullable=False)
    matched_text = Column(Text, nullable=False)
    surrounding_context = Column(Text, nullable=True)
    original_confidence = Column(Float, nullable=True)
    user_comment = Column(Text, nullable=True)
    data_source_id = Column(String(128), nullable=True)
    user_id = Column(String(255), nullable=False, default="system")
    meta = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now(), index=True)

    pattern = relationship("PatternModel", back_populates="feedback")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "pattern_id": self.pattern_id,
            "feedback_type": self.feedback_type,
            "context": self.context,
            "matched_text": self.matched_text,
            "surrounding_context": self.surrounding_context,
            "original_confidence": self.original_confidence,
            "user_comment": self.user_comment,
            "data_source_id": self.data_source_id,
            "user_id": self.user_id,
            "metadata": self.meta,
            "created_at": isoformat(self.created_at),
        }


class CatalogCategoryModel(Base):
    """Grouping for catalog fields."""

    __tablename__ = "catalog_categories"

    id = Column(String(128), primary_key=True, default=generate_ulid)
    name = Column(String(100), nullable=False, unique=True, index=True)
    display_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    color = Column(String(50), nullable=False, default="#6b7280")
    icon = Column(String(50), nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    is_standard = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=func.now(), onupdate=func.now()
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "description": self.description,
            "color": self.color,
            "icon": self.icon,
            "sort_order": self.sort_order,
            "is_standard": self.is_standard,
            "is_active": self.is_active,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


class CatalogFieldModel(Base):
    """A canonical field in the global data catalog."""

    __tablename__ = "catalog_fields"

    id = Column(String(128), primary_key=True, default=generate_ulid)
    name = Column(String(255), nullable=False, unique=True, index=True)
    display_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    data_type = Column(String(50), nullable=False)
    category = Column(String(100), nullable=False, index=True)
    is_required = Column(Boolean, nullable=False, default=False)
    is_standard = Column(Boolean, nullable=False, default=False)
    validation_rules = Column(JSON, nullable=True)
    tags = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=func.now(), onupdate=func.now()
    )

    mappings = relationship(
        "FieldMappingModel",
        back_populates="catalog_field",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "description": self.description,
            "data_type": self.data_type,
            "category": self.category,
            "is_required": self.is_required,
            "is_standard": self.is_standard,
            "validation_rules": self.validation_rules,
            "tags": self.tags or [],
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


class FieldMappingModel(Base):
    """Mapping of a source field onto a catalog field."""

    __tablename__ = "field_mappings"

    id = Column(String(128), primary_key=True, default=generate_ulid)
    source_id = Column(
        String(128),
        ForeignKey("data_sources.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    source_field_name = Column(String(255), nullable=False)
    catalog_field_id = Column(
        String(128),
        ForeignKey("catalog_fields.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    transformation_rule = Column(JSON, nullable=True)
    confidence = Column(Float, nullable=False, default=1.0)
    is_manual = Column(Boolean, nullable=False, default=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=func.now(), onupdate=func.now()
    )

    source = relationship("DataSourceModel", back_populates="field_mappings")
    catalog_field = relationship("CatalogFieldModel", back_populates="mappings")

    __table_args__ = (
        UniqueConstraint("source_id", "source_field_name", name="uq_mapping_source_field"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source_id": self.source_id,
            "source_field_name": self.source_field_name,
            "catalog_field_id": self.catalog_field_id,
            "catalog_field": self.catalog_field.to_dict() if self.catalog_field else None,
            "transformation_rule": self.transformation_rule,
            "confidence": self.confidence,
            "is_manual": self.is_manual,
            "is_active": self.is_active,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


class FieldAnnotationModel(Base):
    """Business metadata attached to one field of a data source."""

    __tablename__ = "field_annotations"

    id = Column(String(128), primary_key=True, default=generate_ulid)
    data_source_id = Column(
        String(128),
        ForeignKey("data_sources.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    field_path = Column(String(500), nullable=False)
    field_name = Column(String(255), nullable=False)
    semantic_type = Column(String(50), nullable=True)
    description = Column(Text, nullable=True)
    business_context = Column(Text, nullable=True)
    data_type = Column(String(50), nullable=True)
    is_pii = Column(Boolean, nullable=False, default=False, index=True)
    pii_type = Column(String(50), nullable=True)
    sensitivity_level = Column(String(50), nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    example_values = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=func.now(), onupdate=func.now()
    )

    data_source = relationship("DataSourceModel", back_populates="annotations")

    __table_args__ = (
        UniqueConstraint("data_source_id", "field_path", name="uq_annotation_field_path"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "data_source_id": self.data_source_id,
            "field_path": self.field_path,
            "field_name": self.field_name,
            "semantic_type": self.semantic_type,
            "description": self.description,
            "business_context": self.business_context,
            "data_type": self.data_type,
            "is_pii": self.is_pii,
            "pii_type": self.pii_type,
            "sensitivity_level": self.sensitivity_level,
            "tags": self.tags or [],
            "example_values": self.example_values or [],
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


MASKED = "********"


class ApiConnectionModel(Base):
    """Saved configuration for an upstream REST API."""

    __tablename__ = "api_connections"

    id = Column(String(128), primary_key=True, default=generate_ulid)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    endpoint = Column(Text, nullable=False)
    method = Column(String(10), nullable=False, default="GET")
    auth_type = Column(String(20), nullable=False, default="none")
    auth_config = Column(JSON, nullable=False, default=dict)
    headers = Column(JSON, nullable=False, default=dict)
    request_body = Column(JSON, nullable=True)
    pagination_config = Column(JSON, nullable=True)
    data_path = Column(String(255), nullable=True)
    timeout = Column(Float, nullable=False, default=30.0)
    status = Column(String(20), nullable=False, default="inactive", index=True)
    error_message = Column(Text, nullable=True)
    last_tested_at = Column(DateTime(timezone=True), nullable=True)
    data_source_id = Column(
        String(128), ForeignKey("data_sources.id", ondelete="SET NULL"), nullable=True
    )
    tags = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=func.now(), onupdate=func.now()
    )

    def to_dict(self, mask_secrets: bool = True) -> Dict[str, Any]:
        auth_config = dict(self.auth_config or {})
        if mask_secrets:
            auth_config = {k: MASKED for k in auth_config}
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "endpoint": self.endpoint,
            "method": self.method,
            "auth_type": self.auth_type,
            "auth_config": auth_config,
            "headers": self.headers or {},
            "request_body": self.request_body,
            "pagination_config": self.pagination_config,
            "data_path": self.data_path,
            "timeout": self.timeout,
            "status": self.status,
            "error_message": self.error_message,
            "last_tested_at": isoformat(self.last_tested_at),
            "data_source_id": self.data_source_id,
            "tags": self.tags or [],
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


class DatabaseConnectionModel(Base):
    """Saved connection details for an external relational database."""

    __tablename__ = "database_connections"

    id = Column(String(128), primary_key=True, default=generate_ulid)
    name = Column(String(255), nullable=False, unique=True, index=True)
    type = Column(String(20), nullable=False)
    host = Column(String(255), nullable=True)
    port = Column(Integer, nullable=True)
    database = Column(String(500), nullable=False)
    username = Column(String(255), nullable=True)
    password = Column(String(500), nullable=True)
    ssl = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default="inactive")
    error_message = Column(Text, nullable=True)
    last_tested_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=func.now(), onupdate=func.now()
    )

    def to_dict(self, mask_secrets: bool = True) -> Dict[str, Any]:
        password = self.password
        if mask_secrets and password:
            password = MASKED
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "host": self.host,
            "port": self.port,
            "database": self.database,
            "username": self.username,
            "password": password,
            "ssl": self.ssl,
            "status": self.status,
            "error_message": self.error_message,
            "last_tested_at": isoformat(self.last_tested_at),
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


class PipelineModel(Base):
    """A data pipeline graph of source, transform and sink nodes."""

    __tablename__ = "pipelines"

    id = Column(String(128), primary_key=True, default=generate_ulid)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    nodes = Column(JSON, nullable=False, default=list)
    edges = Column(JSON, nullable=False, default=list)
    triggers = Column(JSON, nullable=False, default=list)
    schedule = Column(JSON, nullable=True)
    status = Column(String(20), nullable=False, default="draft", index=True)
    tags = Column(JSON, nullable=False, default=list)
    version = Column(Integer, nullable=False, default=1)
    created_by = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=func.now(), onupdate=func.now()
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "nodes": self.nodes or [],
            "edges": self.edges or [],
            "triggers": self.triggers or [],
            "schedule": self.schedule,
            "status": self.status,
            "tags": self.tags or [],
            "version": self.version,
            "created_by": self.created_by,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


class SyntheticDatasetModel(Base):
    """Definition of a synthetic dataset and its last generated output."""

    __tablename__ = "synthetic_datasets"

    id = Column(String(128), primary_key=True, default=generate_ulid)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    data_type = Column(String(50), nullable=False, default="custom")
    schema = Column(JSON, nullable=False, default=dict)
    record_count = Column(Integer, nullable=False, default=100)
    output_format = Column(String(10), nullable=False, default="json")
    configuration = Column(JSON, nullable=False, default=dict)
    status = Column(String(20), nullable=False, default="pending", index=True)
    storage_key = Column(String(500), nullable=True)
    error_message = Column(Text, nullable=True)
    generated_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=func.now(), onupdate=func.now()
    )

    jobs = relationship(
        "SyntheticDataJobModel",
        back_populates="dataset",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "data_type": self.data_type,
            "schema": self.schema or {},
            "record_count": self.record_count,
            "output_format": self.output_format,
            "configuration": self.configuration or {},
            "status": self.status,
            "storage_key": self.storage_key,
            "error_message": self.error_message,
            "generated_at": isoformat(self.generated_at),
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


class SyntheticDataJobModel(Base):
    """A single generation run for a synthetic dataset."""

    __tablename__ = "synthetic_data_jobs"

    id = Column(String(128), primary_key=True, default=generate_ulid)
    dataset_id = Column(
        String(128),
        ForeignKey("synthetic_datasets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status = Column(String(20), nullable=False, default="pending", index=True)
    progress = Column(Integer, nullable=False, default=0)
    records_generated = Column(Integer, nullable=False, default=0)
    output_key = Column(String(500), nullable=True)
    error_message = Column(Text, nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    dataset = relationship("SyntheticDatasetModel", back_populates="jobs")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "dataset_id": self.dataset_id,
            "status": self.status,
            "progress": self.progress,
            "records_generated": self.records_generated,
            "output_key": self.output_key,
            "error_message": self.error_message,
            "started_at": isoformat(self.started_at),
            "completed_at": isoformat(self.completed_at),
            "created_at": isoformat(self.created_at),
        }


class QualityRuleModel(Base):
    """A data-quality rule: a condition group plus actions."""

    __tablename__ = "quality_rules"

    id = Column(String(128), primary_key=True, default=generate_ulid)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=False, default="general", index=True)
    type = Column(String(20), nullable=False, default="validation", index=True)
    status = Column(String(20), nullable=False, default="active", index=True)
    priority = Column(String(20), nullable=False, default="medium")
    conditions = Column(JSON, nullable=False, default=dict)
    actions = Column(JSON, nullable=False, default=list)
    config = Column(JSON, nullable=False, default=dict)
    tags = Column(JSON, nullable=False, default=list)
    version = Column(Integer, nullable=False, default=1)
    created_by = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=func.now(), onupdate=func.now()
    )

    executions = relationship(
        "RuleExecutionModel",
        back_populates="rule",
        cascade="all, delete-orphan",
    )

    __table_args__ = (Index("ix_quality_rules_status_type", "status", "type"),)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "type": self.type,
            "status": self.status,
            "priority": self.priority,
            "conditions": self.conditions or {},
            "actions": self.actions or [],
            "config": self.config or {},
            "tags": self.tags or [],
            "version": self.version,
            "created_by": self.created_by,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


class RuleExecutionModel(Base):
    """Result of running a quality rule against a data source."""

    __tablename__ = "rule_executions"

    id = Column(String(128), primary_key=True, default=generate_ulid)
    rule_id = Column(
        String(128),
        ForeignKey("quality_rules.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    rule_name = Column(String(255), nullable=False)
    data_source_id = Column(String(128), nullable=True, index=True)
    data_source_name = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default="running", index=True)
    started_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)
    duration_ms = Column(Integer, nullable=True)
    records_processed = Column(Integer, nullable=False, default=0)
    records_passed = Column(Integer, nullable=False, default=0)
    records_failed = Column(Integer, nullable=False, default=0)
    records_skipped = Column(Integer, nullable=False, default=0)
    violations = Column(JSON, nullable=False, default=list)
    actions_executed = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    execution_metadata = Column(JSON, nullable=False, default=dict)

    rule = relationship("QualityRuleModel", back_populates="executions")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "data_source_id": self.data_source_id,
            "data_source_name": self.data_source_name,
            "status": self.status,
            "started_at": isoformat(self.started_at),
            "completed_at": isoformat(self.completed_at),
            "duration_ms": self.duration_ms,
            "records_processed": self.records_processed,
            "records_passed": self.records_passed,
            "records_failed": self.records_failed,
            "records_skipped": self.records_skipped,
            "violations": self.violations or [],
            "actions_executed": self.actions_executed,
            "error_message": self.error_message,
            "execution_metadata": self.execution_metadata or {},
        }
