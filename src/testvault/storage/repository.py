"""SQLAlchemy implementation of the persistence gateway."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import case, func, select
from sqlalchemy.exc import SQLAlchemyError

from testvault.core.exceptions import PersistenceUnavailable
from testvault.storage.gateway import (
    NewAttachment,
    PersistedCase,
    PersistedRun,
    RunSummary,
)
from testvault.storage.logging import get_logger
from testvault.storage.models import (
    Base,
    ParsingStatus,
    PerformanceMetric,
    ReportMetadata,
    TestAttachment,
    TestCase,
    TestRun,
    TestStep,
    TestSuite,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = get_logger(__name__)

# Stored case statuses counted as failures in run totals
FAILED_CASE_STATUSES = ("failed", "timedout")


def _to_case(row: TestCase) -> PersistedCase:
    return PersistedCase(
        id=row.id,
        run_id=row.run_id,
        test_name=row.test_name,
        test_title=row.test_title,
        file_path=row.file_path,
        duration_ms=row.duration_ms,
        status=row.status,
        error_message=row.error_message,
    )


def _to_run(row: TestRun) -> PersistedRun:
    return PersistedRun(
        id=row.id,
        suite_id=row.suite_id,
        run_name=row.run_name,
        status=row.status,
        start_time=row.start_time,
        html_report_path=row.html_report_path,
        total_tests=row.total_tests,
        passed_tests=row.passed_tests,
        failed_tests=row.failed_tests,
        skipped_tests=row.skipped_tests,
    )


def _apply_updates(row: Base, field_updates: dict[str, Any]) -> None:
    columns = {c.name for c in row.__table__.columns}
    unknown = set(field_updates) - columns
    if unknown:
        raise ValueError(f"Unknown {row.__tablename__} columns: {sorted(unknown)}")
    for key, value in field_updates.items():
        setattr(row, key, value)


class ResultRepository:
    """Reads and writes suites, runs, cases, steps and their children.

    Each call runs in its own session and commits on success. Storage
    failures are raised as PersistenceUnavailable.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        org_id: str = "1",
        app_id: str = "1",
    ) -> None:
        self.session_factory = session_factory
        self.org_id = org_id
        self.app_id = app_id

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with self.session_factory() as session:
                try:
                    yield session
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise
        except (SQLAlchemyError, OSError) as e:
            logger.error("persistence_failed", operation=operation, error=str(e))
            raise PersistenceUnavailable(operation, str(e)) from e

    def _tenant(self) -> dict[str, str]:
        return {"org_id": self.org_id, "app_id": self.app_id}

    # Suites

    async def get_or_create_suite(self, name: str, description: str | None = None) -> int:
        async with self._session("get_or_create_suite") as session:
            existing = await session.scalar(
                select(TestSuite).where(TestSuite.name == name).limit(1)
            )
            if existing is not None:
                return existing.id

            suite = TestSuite(name=name, description=description, **self._tenant())
            session.add(suite)
            await session.flush()
            logger.info("suite_created", suite_id=suite.id, name=name)
            return suite.id

    # Runs

    async def create_run(self, suite_id: int, run_name: str, **fields: Any) -> PersistedRun:
        async with self._session("create_run") as session:
            run = TestRun(suite_id=suite_id, run_name=run_name, **self._tenant())
            _apply_updates(run, fields)
            session.add(run)
            await session.flush()
            logger.info("run_created", run_id=run.id, run_name=run_name)
            return _to_run(run)

    async def get_run(self, run_id: int) -> PersistedRun | None:
        async with self._session("get_run") as session:
            run = await session.get(TestRun, run_id)
            return _to_run(run) if run is not None else None

    async def update_run(self, run_id: int, field_updates: dict[str, Any]) -> PersistedRun:
        async with self._session("update_run") as session:
            run = await session.get(TestRun, run_id)
            if run is None:
                raise PersistenceUnavailable("update_run", f"run {run_id} not found")
            _apply_updates(run, field_updates)
            return _to_run(run)

    async def get_run_summary(self, run_id: int) -> RunSummary:
        """Count stored cases of a run by status."""
        async with self._session("get_run_summary") as session:
            row = (
                await session.execute(
                    select(
                        func.count(TestCase.id),
                        func.count(case((TestCase.status == "passed", 1))),
                        func.count(case((TestCase.status.in_(FAILED_CASE_STATUSES), 1))),
                        func.count(case((TestCase.status == "skipped", 1))),
                        func.avg(TestCase.duration_ms),
                    ).where(TestCase.run_id == run_id)
                )
            ).one()
            total, passed, failed, skipped, avg_duration = row
            return RunSummary(
                run_id=run_id,
                total_tests=total,
                passed_tests=passed,
                failed_tests=failed,
                skipped_tests=skipped,
                avg_duration_ms=float(avg_duration) if avg_duration is not None else None,
            )

    # Cases

    async def create_case(self, run_id: int, test_name: str, **fields: Any) -> int:
        async with self._session("create_case") as session:
            test_case = TestCase(run_id=run_id, test_name=test_name, **self._tenant())
            _apply_updates(test_case, fields)
            session.add(test_case)
            await session.flush()
            return test_case.id

    async def get_cases_for_run(self, run_id: int) -> list[PersistedCase]:
        async with self._session("get_cases_for_run") as session:
            rows = await session.scalars(
                select(TestCase)
                .where(TestCase.run_id == run_id)
                .order_by(TestCase.start_time, TestCase.id)
            )
            return [_to_case(row) for row in rows]

    async def update_case(self, case_id: int, field_updates: dict[str, Any]) -> PersistedCase:
        async with self._session("update_case") as session:
            test_case = await session.get(TestCase, case_id)
            if test_case is None:
                raise PersistenceUnavailable("update_case", f"case {case_id} not found")
            _apply_updates(test_case, field_updates)
            return _to_case(test_case)

    # Steps

    async def create_step(self, test_case_id: int, step_number: int, **fields: Any) -> int:
        async with self._session("create_step") as session:
            step = TestStep(test_case_id=test_case_id, step_number=step_number, **self._tenant())
            _apply_updates(step, fields)
            session.add(step)
            await session.flush()
            return step.id

    async def update_step(self, step_id: int, field_updates: dict[str, Any]) -> None:
        async with self._session("update_step") as session:
            step = await session.get(TestStep, step_id)
            if step is None:
                raise PersistenceUnavailable("update_step", f"step {step_id} not found")
            _apply_updates(step, field_updates)

    # Attachments and metrics

    async def add_attachment(self, case_id: int, attachment: NewAttachment) -> int:
        async with self._session("add_attachment") as session:
            row = TestAttachment(
                test_case_id=case_id,
                attachment_type=attachment.attachment_type,
                file_name=attachment.file_name,
                file_path=attachment.file_path,
                content_type=attachment.content_type,
                file_size_bytes=attachment.file_size_bytes,
                **self._tenant(),
            )
            session.add(row)
            await session.flush()
            return row.id

    async def add_performance_metric(
        self,
        run_id: int,
        metric_name: str,
        metric_value: float,
        metric_unit: str = "ms",
        test_case_id: int | None = None,
        recorded_at: datetime | None = None,
    ) -> int:
        async with self._session("add_performance_metric") as session:
            metric = PerformanceMetric(
                run_id=run_id,
                test_case_id=test_case_id,
                metric_name=metric_name,
                metric_value=metric_value,
                metric_unit=metric_unit,
                **self._tenant(),
            )
            if recorded_at is not None:
                metric.recorded_at = recorded_at
            session.add(metric)
            await session.flush()
            return metric.id

    # Report metadata

    async def record_report_metadata(
        self,
        run_id: int,
        path: str,
        status: ParsingStatus,
        error_text: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> int:
        async with self._session("record_report_metadata") as session:
            row = ReportMetadata(
                run_id=run_id,
                report_file_path=path,
                parsing_status=status,
                parsing_errors=error_text,
                additional_data=payload,
                **self._tenant(),
            )
            session.add(row)
            await session.flush()
            logger.info(
                "report_metadata_recorded",
                run_id=run_id,
                status=status.value,
                metadata_id=row.id,
            )
            return row.id
