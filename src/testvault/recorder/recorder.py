"""Live recording of test execution events into the database."""

from __future__ import annotations

import os
import platform
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path

from testvault.reports.models import (
    TITLE_SEPARATOR,
    AttachmentRef,
    TestDetail,
    TestStatus,
    classify_attachment,
)
from testvault.storage import database
from testvault.storage.config import Settings
from testvault.storage.gateway import NewAttachment, RunSummary
from testvault.storage.logging import get_logger, run_context
from testvault.storage.repository import ResultRepository

from .registry import CaseRegistry
from .steps import describe_step, is_navigation

logger = get_logger(__name__)

DEFAULT_SUITE = "Default Suite"


@dataclass
class RunConfig:
    """What the runner knows about the run before any test starts."""

    project_names: list[str] = field(default_factory=list)
    browser_name: str | None = None
    playwright_version: str | None = None
    html_report_folder: str | None = None


@dataclass
class TestBeginEvent:
    test_id: str
    title: str
    title_path: list[str]
    file: str
    start_time: datetime
    retry: int = 0
    worker_index: int | None = None
    project_name: str | None = None


@dataclass
class StepEvent:
    title: str
    category: str | None
    start_time: datetime
    duration: float = 0
    error: str | None = None


@dataclass
class TestEndEvent:
    status: str
    start_time: datetime
    duration: float
    error_message: str | None = None
    error_stack: str | None = None
    attachments: list[AttachmentRef] = field(default_factory=list)
    steps: list[StepEvent] = field(default_factory=list)


def to_test_detail(test: TestBeginEvent, result: TestEndEvent) -> TestDetail:
    """Express a finished test in the same shape report parsing produces."""
    return TestDetail(
        title=test.title,
        full_title=TITLE_SEPARATOR.join(test.title_path),
        file=test.file,
        duration=result.duration,
        status=result.status,
        retries=test.retry,
        error=result.error_message,
        attachments=tuple(result.attachments),
    )


def map_status(status: str) -> str:
    """Map a runner status to the stored case status."""
    if status in (TestStatus.PASSED.value, TestStatus.FAILED.value, TestStatus.SKIPPED.value):
        return status
    if status == TestStatus.TIMED_OUT.value:
        return "timedout"
    return TestStatus.FAILED.value


def relative_file(file: str, cwd: Path | None = None) -> str:
    """Express a test file relative to the working directory when possible."""
    try:
        return os.path.relpath(file, cwd or Path.cwd())
    except ValueError:
        return file


class RunRecorder:
    """Consumes runner events and persists suites, runs, cases and steps.

    Handlers are no-ops until ``on_begin`` has created the run.
    """

    def __init__(self, repository: ResultRepository, environment: str = "unknown") -> None:
        self.repository = repository
        self.environment = environment
        self.registry = CaseRegistry()
        self.run_id: int | None = None
        self.suite_id: int | None = None
        self.started_at: datetime | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> RunRecorder:
        """Build a recorder backed by the configured database."""
        session_factory = database.init_db(settings)
        repository = ResultRepository(
            session_factory, org_id=settings.org_id, app_id=settings.app_id
        )
        return cls(repository, environment=settings.test_environment)

    async def close(self) -> None:
        """Release database connections once the run has ended."""
        await database.close_db()

    async def on_begin(self, config: RunConfig) -> int:
        suite_name = config.project_names[0] if config.project_names else DEFAULT_SUITE
        self.suite_id = await self.repository.get_or_create_suite(
            suite_name, f"Playwright test suite - {suite_name}"
        )

        self.started_at = datetime.now(UTC)
        run = await self.repository.create_run(
            self.suite_id,
            f"Run {self.started_at.isoformat()}",
            status="running",
            start_time=self.started_at,
            browser=config.browser_name or "unknown",
            environment=self.environment,
            playwright_version=config.playwright_version,
            runtime_version=f"python {platform.python_version()}",
            os_info=f"{platform.system()} {platform.release()} {platform.machine()}",
            html_report_path=config.html_report_folder,
        )
        self.run_id = run.id
        logger.info("run_started", run_id=run.id, suite=suite_name)
        return run.id

    async def on_test_begin(self, test: TestBeginEvent) -> int | None:
        if self.run_id is None:
            return None

        case_id = await self.repository.create_case(
            self.run_id,
            test.title,
            suite_id=self.suite_id,
            test_title=TITLE_SEPARATOR.join(test.title_path),
            file_path=relative_file(test.file),
            start_time=test.start_time,
            status="running",
            retry_count=test.retry,
            browser=f"worker-{test.worker_index}" if test.worker_index else None,
            project_name=test.project_name,
        )
        self.registry.register(test.test_id, case_id)
        logger.debug("test_started", case_id=case_id, title=test.title)
        return case_id

    async def on_step_begin(self, test_id: str, step: StepEvent) -> int | None:
        entry = self.registry.get(test_id)
        if entry is None:
            return None

        step_number = self.registry.next_step_number(test_id)
        details = describe_step(step.title, step.category)
        step_id = await self.repository.create_step(
            entry.case_id,
            step_number,
            action_type=step.category,
            description=step.title,
            selector=details.selector,
            target_url=details.target_url,
            expected_value=details.expected_value,
            start_time=step.start_time,
            status="passed",
        )
        self.registry.push_step(test_id, step_id)
        return step_id

    async def on_step_end(self, test_id: str, step: StepEvent) -> None:
        step_id = self.registry.pop_step(test_id)
        if step_id is None:
            return

        await self.repository.update_step(
            step_id,
            {
                "end_time": step.start_time + timedelta(milliseconds=step.duration),
                "duration_ms": int(step.duration),
                "status": "failed" if step.error else "passed",
                "error_message": step.error,
            },
        )
        if step.error:
            logger.info("step_failed", test_id=test_id, step=step.title, error=step.error)

    async def on_test_end(self, test_id: str, result: TestEndEvent) -> None:
        entry = self.registry.remove(test_id)
        if entry is None or self.run_id is None:
            return

        end_time = result.start_time + timedelta(milliseconds=result.duration)
        with run_context(self.run_id):
            await self.repository.update_case(
                entry.case_id,
                {
                    "end_time": end_time,
                    "duration_ms": int(result.duration),
                    "status": map_status(result.status),
                    "error_message": result.error_message,
                    "error_stack": result.error_stack,
                },
            )

            for attachment in result.attachments:
                await self._save_attachment(entry.case_id, attachment)

            await self._save_metrics(entry.case_id, result, end_time)
            logger.info(
                "test_finished",
                case_id=entry.case_id,
                status=result.status,
                duration_ms=result.duration,
            )

    async def _save_attachment(self, case_id: int, attachment: AttachmentRef) -> None:
        if not attachment.path:
            return
        try:
            size = Path(attachment.path).stat().st_size
        except OSError as e:
            logger.warning("attachment_unreadable", path=attachment.path, error=str(e))
            return

        await self.repository.add_attachment(
            case_id,
            NewAttachment(
                attachment_type=classify_attachment(attachment.name, attachment.content_type).value,
                file_name=Path(attachment.path).name,
                file_path=attachment.path,
                content_type=attachment.content_type,
                file_size_bytes=size,
            ),
        )

    async def _save_metrics(self, case_id: int, result: TestEndEvent, end_time: datetime) -> None:
        total_action_time = sum(step.duration for step in result.steps)
        navigation_time = sum(step.duration for step in result.steps if is_navigation(step.title))

        metrics = [
            ("total_action_time", total_action_time),
            ("navigation_time", navigation_time),
        ]
        for name, value in metrics:
            if value > 0:
                await self.repository.add_performance_metric(
                    self.run_id, name, value, test_case_id=case_id, recorded_at=end_time
                )

        await self.repository.add_performance_metric(
            self.run_id,
            "test_duration",
            result.duration,
            test_case_id=case_id,
            recorded_at=end_time,
        )

    async def on_end(self, status: str) -> RunSummary | None:
        """Close the run with counts taken from the stored case rows."""
        if self.run_id is None:
            return None

        end_time = datetime.now(UTC)
        duration_ms = int((end_time - self.started_at).total_seconds() * 1000)
        summary = await self.repository.get_run_summary(self.run_id)

        await self.repository.update_run(
            self.run_id,
            {
                "end_time": end_time,
                "duration_ms": duration_ms,
                "status": "passed" if status == "passed" else "failed",
                "total_tests": summary.total_tests,
                "passed_tests": summary.passed_tests,
                "failed_tests": summary.failed_tests,
                "skipped_tests": summary.skipped_tests,
            },
        )
        logger.info(
            "run_finished",
            run_id=self.run_id,
            total=summary.total_tests,
            passed=summary.passed_tests,
            failed=summary.failed_tests,
            skipped=summary.skipped_tests,
            duration_ms=duration_ms,
        )
        self.registry.clear()
        return summary
