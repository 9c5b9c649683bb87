"""pattern feedback and refinement

Revision ID: 0002_pattern_feedback
Revises: 0001_baseline
Create Date: 2026-10-17 15:00:00.000000

Adds the pattern_feedback table and the counters, exclusions and
accuracy metrics that feedback maintains on patterns.
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0002_pattern_feedback"
down_revision = "0001_baseline"
branch_labels = None
depends_on = None

PATTERN_COLUMNS = [
    sa.Column("feedback_count", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("positive_count", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("negative_count", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("excluded_examples", sa.JSON(), nullable=False, server_default="[]"),
    sa.Column("confidence_threshold", sa.Float(), nullable=False, server_default="0.7"),
    sa.Column("auto_refine_threshold", sa.Integer(), nullable=False, server_default="3"),
    sa.Column("accuracy_metrics", sa.JSON(), nullable=True),
    sa.Column("last_refined_at", sa.DateTime(timezone=True), nullable=True),
]


def upgrade() -> None:
    for column in PATTERN_COLUMNS:
        op.add_column("patterns", column)

    op.create_table(
        "pattern_feedback",
        sa.Column("id", sa.String(length=128), nullable=False, primary_key=True),
        sa.Column(
            "pattern_id",
            sa.String(length=128),
            sa.ForeignKey("patterns.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("feedback_type", sa.String(length=20), nullable=False),
        sa.Column("context", sa.String(length=20), nullable=False),
        sa.Column("matched_text", sa.Text(), nullable=False),
        sa.Column("surrounding_context", sa.Text(), nullable=True),
        sa.Column("original_confidence", sa.Float(), nullable=True),
        sa.Column("user_comment", sa.Text(), nullable=True),
        sa.Column("data_source_id", sa.String(length=128), nullable=True),
        sa.Column("user_id", sa.String(length=255), nullable=False, server_default="system"),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_pattern_feedback_pattern_id", "pattern_feedback", ["pattern_id"])
    op.create_index("ix_pattern_feedback_created_at", "pattern_feedback", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_pattern_feedback_created_at", table_name="pattern_feedback")
    op.drop_index("ix_pattern_feedback_pattern_id", table_name="pattern_feedback")
    op.drop_table("pattern_feedback")
    with op.batch_alter_table("patterns", schema=None) as batch_op:
        for column in reversed(PATTERN_COLUMNS):
            batch_op.drop_column(column.name)
