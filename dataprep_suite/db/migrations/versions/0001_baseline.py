"""baseline schema for the data preparedness suite

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_baseline"
down_revision = None
branch_labels = None
depends_on = None


def _id() -> sa.Column:
    return sa.Column("id", sa.String(length=128), nullable=False, primary_key=True)


def _timestamps(updated: bool = True) -> list:
    columns = [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        )
    ]
    if updated:
        columns.append(
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=True),
                nullable=False,
                server_default=sa.func.now(),
            )
        )
    return columns


def upgrade() -> None:
    op.create_table(
        "data_sources",
        _id(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("path", sa.Text(), nullable=True),
        sa.Column("configuration", sa.JSON(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("record_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("storage_key", sa.String(length=500), nullable=True),
        sa.Column("storage_provider", sa.String(length=50), nullable=True),
        sa.Column("original_field_names", sa.JSON(), nullable=True),
        sa.Column("transformation_status", sa.String(length=50), nullable=True),
        sa.Column("transformation_errors", sa.JSON(), nullable=True),
        sa.Column("transformation_applied_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ai_summary", sa.Text(), nullable=True),
        sa.Column("user_summary", sa.Text(), nullable=True),
        sa.Column("summary_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ai_keywords", sa.JSON(), nullable=True),
        sa.Column("keywords_generated_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_data_sources_name", "data_sources", ["name"])
    op.create_index("ix_data_sources_type", "data_sources", ["type"])

    op.create_table(
        "data_source_tables",
        _id(),
        sa.Column(
            "data_source_id",
            sa.String(length=128),
            sa.ForeignKey("data_sources.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("table_name", sa.String(length=255), nullable=False),
        sa.Column("table_index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("record_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("schema_info", sa.JSON(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("ai_summary", sa.Text(), nullable=True),
        sa.Column("user_summary", sa.Text(), nullable=True),
        sa.Column("summary_updated_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("data_source_id", "table_name", name="uq_source_table_name"),
    )
    op.create_index(
        "ix_data_source_tables_data_source_id", "data_source_tables", ["data_source_id"]
    )

    op.create_table(
        "patterns",
        _id(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("regex", sa.Text(), nullable=True),
        sa.Column("regex_patterns", sa.JSON(), nullable=False),
        sa.Column("examples", sa.JSON(), nullable=False),
        sa.Column("context_keywords", sa.JSON(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("color", sa.String(length=50), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_patterns_name", "patterns", ["name"], unique=True)
    op.create_index("ix_patterns_type", "patterns", ["type"])
    op.create_index("ix_patterns_is_active", "patterns", ["is_active"])

    op.create_table(
        "catalog_categories",
        _id(),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("color", sa.String(length=50), nullable=False),
        sa.Column("icon", sa.String(length=50), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_standard", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_catalog_categories_name", "catalog_categories", ["name"], unique=True)

    op.create_table(
        "catalog_fields",
        _id(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("data_type", sa.String(length=50), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("is_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_standard", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("validation_rules", sa.JSON(), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_catalog_fields_name", "catalog_fields", ["name"], unique=True)
    op.create_index("ix_catalog_fields_category", "catalog_fields", ["category"])

    op.create_table(
        "field_mappings",
        _id(),
        sa.Column(
            "source_id",
            sa.String(length=128),
            sa.ForeignKey("data_sources.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("source_field_name", sa.String(length=255), nullable=False),
        sa.Column(
            "catalog_field_id",
            sa.String(length=128),
            sa.ForeignKey("catalog_fields.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("transformation_rule", sa.JSON(), nullable=True),
        sa.Column("confidence", sa.Float(), nullable=False, server_default="1.0"),
        sa.Column("is_manual", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint("source_id", "source_field_name", name="uq_mapping_source_field"),
    )
    op.create_index("ix_field_mappings_source_id", "field_mappings", ["source_id"])
    op.create_index(
        "ix_field_mappings_catalog_field_id", "field_mappings", ["catalog_field_id"]
    )

    op.create_table(
        "field_annotations",
        _id(),
        sa.Column(
            "data_source_id",
            sa.String(length=128),
            sa.ForeignKey("data_sources.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("field_path", sa.String(length=500), nullable=False),
        sa.Column("field_name", sa.String(length=255), nullable=False),
        sa.Column("semantic_type", sa.String(length=50), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("business_context", sa.Text(), nullable=True),
        sa.Column("data_type", sa.String(length=50), nullable=True),
        sa.Column("is_pii", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("pii_type", sa.String(length=50), nullable=True),
        sa.Column("sensitivity_level", sa.String(length=50), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("example_values", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("data_source_id", "field_path", name="uq_annotation_field_path"),
    )
    op.create_index(
        "ix_field_annotations_data_source_id", "field_annotations", ["data_source_id"]
    )
    op.create_index("ix_field_annotations_is_pii", "field_annotations", ["is_pii"])

    op.create_table(
        "api_connections",
        _id(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("endpoint", sa.Text(), nullable=False),
        sa.Column("method", sa.String(length=10), nullable=False),
        sa.Column("auth_type", sa.String(length=20), nullable=False),
        sa.Column("auth_config", sa.JSON(), nullable=False),
        sa.Column("headers", sa.JSON(), nullable=False),
        sa.Column("request_body", sa.JSON(), nullable=True),
        sa.Column("pagination_config", sa.JSON(), nullable=True),
        sa.Column("data_path", sa.String(length=255), nullable=True),
        sa.Column("timeout", sa.Float(), nullable=False, server_default="30.0"),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("last_tested_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "data_source_id",
            sa.String(length=128),
            sa.ForeignKey("data_sources.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("tags", sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_api_connections_name", "api_connections", ["name"])
    op.create_index("ix_api_connections_status", "api_connections", ["status"])

    op.create_table(
        "database_connections",
        _id(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("host", sa.String(length=255), nullable=True),
        sa.Column("port", sa.Integer(), nullable=True),
        sa.Column("database", sa.String(length=500), nullable=False),
        sa.Column("username", sa.String(length=255), nullable=True),
        sa.Column("password", sa.String(length=500), nullable=True),
        sa.Column("ssl", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("last_tested_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_database_connections_name", "database_connections", ["name"], unique=True
    )

    op.create_table(
        "pipelines",
        _id(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("nodes", sa.JSON(), nullable=False),
        sa.Column("edges", sa.JSON(), nullable=False),
        sa.Column("triggers", sa.JSON(), nullable=False),
        sa.Column("schedule", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_pipelines_name", "pipelines", ["name"])
    op.create_index("ix_pipelines_status", "pipelines", ["status"])

    op.create_table(
        "synthetic_datasets",
        _id(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("data_type", sa.String(length=50), nullable=False),
        sa.Column("schema", sa.JSON(), nullable=False),
        sa.Column("record_count", sa.Integer(), nullable=False, server_default="100"),
        sa.Column("output_format", sa.String(length=10), nullable=False),
        sa.Column("configuration", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("storage_key", sa.String(length=500), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("generated_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_synthetic_datasets_name", "synthetic_datasets", ["name"])
    op.create_index("ix_synthetic_datasets_status", "synthetic_datasets", ["status"])

    op.create_table(
        "synthetic_data_jobs",
        _id(),
        sa.Column(
            "dataset_id",
            sa.String(length=128),
            sa.ForeignKey("synthetic_datasets.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("records_generated", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("output_key", sa.String(length=500), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("ix_synthetic_data_jobs_dataset_id", "synthetic_data_jobs", ["dataset_id"])
    op.create_index("ix_synthetic_data_jobs_status", "synthetic_data_jobs", ["status"])

    op.create_table(
        "quality_rules",
        _id(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("priority", sa.String(length=20), nullable=False),
        sa.Column("conditions", sa.JSON(), nullable=False),
        sa.Column("actions", sa.JSON(), nullable=False),
        sa.Column("config", sa.JSON(), nullable=False),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_quality_rules_name", "quality_rules", ["name"])
    op.create_index("ix_quality_rules_category", "quality_rules", ["category"])
    op.create_index("ix_quality_rules_type", "quality_rules", ["type"])
    op.create_index("ix_quality_rules_status", "quality_rules", ["status"])
    op.create_index("ix_quality_rules_status_type", "quality_rules", ["status", "type"])

    op.create_table(
        "rule_executions",
        _id(),
        sa.Column(
            "rule_id",
            sa.String(length=128),
            sa.ForeignKey("quality_rules.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("rule_name", sa.String(length=255), nullable=False),
        sa.Column("data_source_id", sa.String(length=128), nullable=True),
        sa.Column("data_source_name", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column(
            "started_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column("records_processed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("records_passed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("records_failed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("records_skipped", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("violations", sa.JSON(), nullable=False),
        sa.Column("actions_executed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("execution_metadata", sa.JSON(), nullable=False),
    )
    op.create_index("ix_rule_executions_rule_id", "rule_executions", ["rule_id"])
    op.create_index("ix_rule_executions_data_source_id", "rule_executions", ["data_source_id"])
    op.create_index("ix_rule_executions_status", "rule_executions", ["status"])


def downgrade() -> None:
    op.drop_table("rule_executions")
    op.drop_table("quality_rules")
    op.drop_table("synthetic_data_jobs")
    op.drop_table("synthetic_datasets")
    op.drop_table("pipelines")
    op.drop_table("database_connections")
    op.drop_table("api_connections")
    op.drop_table("field_annotations")
    op.drop_table("field_mappings")
    op.drop_table("catalog_fields")
    op.drop_table("catalog_categories")
    op.drop_table("patterns")
    op.drop_table("data_source_tables")
    op.drop_table("data_sources")
