"""Pattern engine schema

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    # Create reports table (columns read by the detectors)
    op.create_table(
        "reports",
        sa.Column("report_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("latitude", sa.Float, nullable=True),
        sa.Column("longitude", sa.Float, nullable=True),
        sa.Column("event_date", sa.Date, nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_reports_status_event_date", "reports", ["status", "event_date"])
    op.create_index("idx_reports_category", "reports", ["category"])

    # Create detected_patterns table
    op.create_table(
        "detected_patterns",
        sa.Column("pattern_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("pattern_type", sa.String(50), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("confidence_score", sa.Float, nullable=False),
        sa.Column("significance_score", sa.Float, nullable=False),
        sa.Column("report_count", sa.Integer, nullable=False),
        sa.Column("center_lat", sa.Float, nullable=True),
        sa.Column("center_lng", sa.Float, nullable=True),
        sa.Column("radius_km", sa.Float, nullable=True),
        sa.Column("pattern_start_date", sa.Date, nullable=True),
        sa.Column("pattern_end_date", sa.Date, nullable=True),
        sa.Column("metadata", postgresql.JSONB, nullable=False),
        sa.Column("categories", postgresql.JSONB, nullable=False),
        sa.Column("ai_title", sa.String(200), nullable=True),
        sa.Column("ai_summary", sa.String(500), nullable=True),
        sa.Column("ai_narrative", sa.Text, nullable=True),
        sa.Column("ai_narrative_generated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "first_detected_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "last_updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("previous_significance_score", sa.Float, nullable=True),
        sa.Column("previous_report_count", sa.Integer, nullable=True),
        sa.Column("consecutive_detections", sa.Integer, nullable=False),
        sa.Column("stagnant_runs", sa.Integer, nullable=False),
        sa.Column("last_run_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('emerging', 'active', 'declining', 'historical')",
            name="ck_patterns_status",
        ),
        sa.CheckConstraint(
            "confidence_score >= 0 AND confidence_score <= 1",
            name="ck_patterns_confidence",
        ),
        sa.CheckConstraint(
            "significance_score >= 0 AND significance_score <= 1",
            name="ck_patterns_significance",
        ),
    )
    op.create_index("idx_patterns_type", "detected_patterns", ["pattern_type"])
    op.create_index("idx_patterns_status", "detected_patterns", ["status"])
    op.create_index("idx_patterns_significance", "detected_patterns", ["significance_score"])
    op.create_index("idx_patterns_updated", "detected_patterns", ["last_updated_at"])
    op.create_index("idx_patterns_center", "detected_patterns", ["center_lat", "center_lng"])

    # Create pattern_reports link table
    op.create_table(
        "pattern_reports",
        sa.Column("link_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "pattern_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("detected_patterns.pattern_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "report_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("reports.report_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("relevance_score", sa.Float, nullable=False),
        sa.Column(
            "added_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("pattern_id", "report_id", name="uq_pattern_report"),
    )
    op.create_index("idx_pattern_reports_pattern", "pattern_reports", ["pattern_id"])
    op.create_index("idx_pattern_reports_report", "pattern_reports", ["report_id"])

    # Create pattern_insights table
    op.create_table(
        "pattern_insights",
        sa.Column("insight_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "pattern_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("detected_patterns.pattern_id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("insight_type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("summary", sa.String(500), nullable=False),
        sa.Column("model_used", sa.String(100), nullable=False),
        sa.Column("source_data_hash", sa.String(64), nullable=True),
        sa.Column("is_fallback", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_stale", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("generated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "idx_insights_pattern_type", "pattern_insights", ["pattern_id", "insight_type"]
    )
    op.create_index("idx_insights_valid", "pattern_insights", ["valid_until", "is_stale"])

    # Create pattern_analysis_runs table
    op.create_table(
        "pattern_analysis_runs",
        sa.Column("run_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("run_type", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("reports_analyzed", sa.Integer, nullable=False, server_default="0"),
        sa.Column("patterns_detected", sa.Integer, nullable=False, server_default="0"),
        sa.Column("patterns_updated", sa.Integer, nullable=False, server_default="0"),
        sa.Column("patterns_archived", sa.Integer, nullable=False, server_default="0"),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("error_stack", sa.Text, nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("metadata", postgresql.JSONB, nullable=False),
    )
    op.create_index("idx_analysis_runs_status", "pattern_analysis_runs", ["status"])
    op.create_index("idx_analysis_runs_started", "pattern_analysis_runs", ["started_at"])


def downgrade() -> None:
    op.drop_table("pattern_analysis_runs")
    op.drop_table("pattern_insights")
    op.drop_table("pattern_reports")
    op.drop_table("detected_patterns")
    op.drop_table("reports")
