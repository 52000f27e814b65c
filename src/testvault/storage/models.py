"""Database models for persisted test results."""

from __future__ import annotations

import enum
from datetime import UTC, datetime

from sqlalchemy import (
    BigInteger,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    return datetime.now(UTC)


class ParsingStatus(enum.Enum):
    """Outcome of one report parse attempt."""

    SUCCESS = "success"
    FAILED = "failed"


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class TenantMixin:
    """Organization and application columns carried by every row."""

    org_id: Mapped[str] = mapped_column(String(64), default="1", nullable=False)
    app_id: Mapped[str] = mapped_column(String(64), default="1", nullable=False)


class TestSuite(TenantMixin, Base):
    """A named group of runs, usually one Playwright project."""

    __tablename__ = "test_suites"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    runs: Mapped[list[TestRun]] = relationship(
        "TestRun",
        back_populates="suite",
        cascade="all, delete-orphan",
    )


class TestRun(TenantMixin, Base):
    """One execution of a test suite."""

    __tablename__ = "test_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    suite_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("test_suites.id", ondelete="CASCADE"), nullable=False
    )
    run_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(32), default="running", nullable=False)
    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_tests: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    passed_tests: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failed_tests: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    skipped_tests: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    browser: Mapped[str | None] = mapped_column(String(100), nullable=True)
    environment: Mapped[str | None] = mapped_column(String(100), nullable=True)
    playwright_version: Mapped[str | None] = mapped_column(String(50), nullable=True)
    runtime_version: Mapped[str | None] = mapped_column(String(50), nullable=True)
    os_info: Mapped[str | None] = mapped_column(String(255), nullable=True)
    html_report_path: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    suite: Mapped[TestSuite] = relationship("TestSuite", back_populates="runs")
    cases: Mapped[list[TestCase]] = relationship(
        "TestCase",
        back_populates="run",
        cascade="all, delete-orphan",
    )
    metrics: Mapped[list[PerformanceMetric]] = relationship(
        "PerformanceMetric",
        back_populates="run",
        cascade="all, delete-orphan",
    )
    report_metadata: Mapped[list[ReportMetadata]] = relationship(
        "ReportMetadata",
        back_populates="run",
        cascade="all, delete-orphan",
    )


class TestCase(TenantMixin, Base):
    """One test's execution record within a run (not one per attempt)."""

    __tablename__ = "test_cases"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("test_runs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    suite_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("test_suites.id"), nullable=True
    )
    test_name: Mapped[str] = mapped_column(String(500), nullable=False)
    test_title: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    file_path: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(32), default="running", nullable=False)
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    browser: Mapped[str | None] = mapped_column(String(100), nullable=True)
    project_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_stack: Mapped[str | None] = mapped_column(Text, nullable=True)

    run: Mapped[TestRun] = relationship("TestRun", back_populates="cases")
    steps: Mapped[list[TestStep]] = relationship(
        "TestStep",
        back_populates="test_case",
        cascade="all, delete-orphan",
    )
    attachments: Mapped[list[TestAttachment]] = relationship(
        "TestAttachment",
        back_populates="test_case",
        cascade="all, delete-orphan",
    )


class TestStep(TenantMixin, Base):
    """One step (action, assertion, hook) inside a test case."""

    __tablename__ = "test_steps"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    test_case_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("test_cases.id", ondelete="CASCADE"), nullable=False, index=True
    )
    step_number: Mapped[int] = mapped_column(Integer, nullable=False)
    action_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    selector: Mapped[str | None] = mapped_column(Text, nullable=True)
    target_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    expected_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    actual_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(32), default="passed", nullable=False)
    screenshot_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    test_case: Mapped[TestCase] = relationship("TestCase", back_populates="steps")


class TestAttachment(TenantMixin, Base):
    """A screenshot, video, trace or log attached to a test case."""

    __tablename__ = "test_attachments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    test_case_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("test_cases.id", ondelete="CASCADE"), nullable=False, index=True
    )
    attachment_type: Mapped[str] = mapped_column(String(32), nullable=False)
    file_name: Mapped[str | None] = mapped_column(String(500), nullable=True)
    file_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    content_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    file_size_bytes: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    test_case: Mapped[TestCase] = relationship("TestCase", back_populates="attachments")


class PerformanceMetric(TenantMixin, Base):
    """A named timing captured for a run, optionally tied to one case."""

    __tablename__ = "performance_metrics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("test_runs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    test_case_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("test_cases.id", ondelete="CASCADE"), nullable=True
    )
    metric_name: Mapped[str] = mapped_column(String(100), nullable=False)
    metric_value: Mapped[float] = mapped_column(Float, nullable=False)
    metric_unit: Mapped[str] = mapped_column(String(20), default="ms", nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    run: Mapped[TestRun] = relationship("TestRun", back_populates="metrics")


class ReportMetadata(TenantMixin, Base):
    """Append-only audit row for every report parse attempt."""

    __tablename__ = "report_metadata"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("test_runs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    report_file_path: Mapped[str] = mapped_column(String(1000), nullable=False)
    parsed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    parsing_status: Mapped[ParsingStatus] = mapped_column(
        Enum(ParsingStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    parsing_errors: Mapped[str | None] = mapped_column(Text, nullable=True)
    additional_data: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    run: Mapped[TestRun] = relationship("TestRun", back_populates="report_metadata")
