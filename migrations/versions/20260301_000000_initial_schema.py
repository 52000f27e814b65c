"""Initial schema - suites, runs, cases, steps, attachments, metrics, report metadata.

Revision ID: 001
Revises:
Create Date: 2026-03-01 00:00:00.000000

"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _tenant_columns() -> list[sa.Column]:
    return [
        sa.Column("org_id", sa.String(length=64), nullable=False, server_default="1"),
        sa.Column("app_id", sa.String(length=64), nullable=False, server_default="1"),
    ]


def upgrade() -> None:
    op.create_table(
        "test_suites",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        *_tenant_columns(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_test_suites_name", "test_suites", ["name"])

    op.create_table(
        "test_runs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        *_tenant_columns(),
        sa.Column("suite_id", sa.Integer(), nullable=False),
        sa.Column("run_name", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="running"),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column("total_tests", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("passed_tests", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed_tests", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("skipped_tests", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("browser", sa.String(length=100), nullable=True),
        sa.Column("environment", sa.String(length=100), nullable=True),
        sa.Column("playwright_version", sa.String(length=50), nullable=True),
        sa.Column("runtime_version", sa.String(length=50), nullable=True),
        sa.Column("os_info", sa.String(length=255), nullable=True),
        sa.Column("html_report_path", sa.String(length=1000), nullable=True),
        sa.ForeignKeyConstraint(["suite_id"], ["test_suites.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_test_runs_start_time", "test_runs", ["start_time"])

    op.create_table(
        "test_cases",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        *_tenant_columns(),
        sa.Column("run_id", sa.Integer(), nullable=False),
        sa.Column("suite_id", sa.Integer(), nullable=True),
        sa.Column("test_name", sa.String(length=500), nullable=False),
        sa.Column("test_title", sa.String(length=1000), nullable=True),
        sa.Column("file_path", sa.String(length=1000), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="running"),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("browser", sa.String(length=100), nullable=True),
        sa.Column("project_name", sa.String(length=255), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("error_stack", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["run_id"], ["test_runs.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["suite_id"], ["test_suites.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_test_cases_run_id", "test_cases", ["run_id"])

    op.create_table(
        "test_steps",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        *_tenant_columns(),
        sa.Column("test_case_id", sa.Integer(), nullable=False),
        sa.Column("step_number", sa.Integer(), nullable=False),
        sa.Column("action_type", sa.String(length=50), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("selector", sa.Text(), nullable=True),
        sa.Column("target_url", sa.Text(), nullable=True),
        sa.Column("expected_value", sa.Text(), nullable=True),
        sa.Column("actual_value", sa.Text(), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="passed"),
        sa.Column("screenshot_path", sa.Text(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["test_case_id"], ["test_cases.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_test_steps_test_case_id", "test_steps", ["test_case_id"])

    op.create_table(
        "test_attachments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        *_tenant_columns(),
        sa.Column("test_case_id", sa.Integer(), nullable=False),
        sa.Column("attachment_type", sa.String(length=32), nullable=False),
        sa.Column("file_name", sa.String(length=500), nullable=True),
        sa.Column("file_path", sa.Text(), nullable=True),
        sa.Column("content_type", sa.String(length=255), nullable=True),
        sa.Column("file_size_bytes", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["test_case_id"], ["test_cases.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_test_attachments_test_case_id", "test_attachments", ["test_case_id"])

    op.create_table(
        "performance_metrics",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        *_tenant_columns(),
        sa.Column("run_id", sa.Integer(), nullable=False),
        sa.Column("test_case_id", sa.Integer(), nullable=True),
        sa.Column("metric_name", sa.String(length=100), nullable=False),
        sa.Column("metric_value", sa.Float(), nullable=False),
        sa.Column("metric_unit", sa.String(length=20), nullable=False, server_default="ms"),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["run_id"], ["test_runs.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["test_case_id"], ["test_cases.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_performance_metrics_run_id", "performance_metrics", ["run_id"])

    op.create_table(
        "report_metadata",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        *_tenant_columns(),
        sa.Column("run_id", sa.Integer(), nullable=False),
        sa.Column("report_file_path", sa.String(length=1000), nullable=False),
        sa.Column("parsed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "parsing_status",
            sa.Enum("success", "failed", name="parsingstatus"),
            nullable=False,
        ),
        sa.Column("parsing_errors", sa.Text(), nullable=True),
        sa.Column("additional_data", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.ForeignKeyConstraint(["run_id"], ["test_runs.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_report_metadata_run_id", "report_metadata", ["run_id"])


def downgrade() -> None:
    op.drop_index("ix_report_metadata_run_id", table_name="report_metadata")
    op.drop_table("report_metadata")
    op.execute("DROP TYPE IF EXISTS parsingstatus")

    op.drop_index("ix_performance_metrics_run_id", table_name="performance_metrics")
    op.drop_table("performance_metrics")

    op.drop_index("ix_test_attachments_test_case_id", table_name="test_attachments")
    op.drop_table("test_attachments")

    op.drop_index("ix_test_steps_test_case_id", table_name="test_steps")
    op.drop_table("test_steps")

    op.drop_index("ix_test_cases_run_id", table_name="test_cases")
    op.drop_table("test_cases")

    op.drop_index("ix_test_runs_start_time", table_name="test_runs")
    op.drop_table("test_runs")

    op.drop_index("ix_test_suites_name", table_name="test_suites")
    op.drop_table("test_suites")
