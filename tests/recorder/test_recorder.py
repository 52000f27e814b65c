"""Tests for the live run recorder."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from testvault.recorder import (
    CaseRegistry,
    RunConfig,
    RunRecorder,
    StepEvent,
    describe_step,
    map_status,
    to_test_detail,
)
from testvault.reports.models import AttachmentRef
from testvault.storage.gateway import RunSummary
from tests.factories import make_run

STARTED = datetime(2024, 1, 15, 10, 30, tzinfo=UTC)


def begin_event(test_id: str = "t1", title: str = "login", retry: int = 0):
    from testvault.recorder import TestBeginEvent

    return TestBeginEvent(
        test_id=test_id,
        title=title,
        title_path=["", "chromium", "auth.spec.ts", "Auth", title],
        file="/work/tests/auth.spec.ts",
        start_time=STARTED,
        retry=retry,
        worker_index=1,
        project_name="chromium",
    )


def end_event(status: str = "passed", duration: float = 95, **kwargs):
    from testvault.recorder import TestEndEvent

    return TestEndEvent(status=status, start_time=STARTED, duration=duration, **kwargs)


@pytest.fixture
def repository() -> AsyncMock:
    repo = AsyncMock()
    repo.get_or_create_suite.return_value = 1
    repo.create_run.return_value = make_run(id=7)
    repo.create_case.return_value = 30
    repo.create_step.side_effect = [100, 101, 102]
    repo.get_run_summary.return_value = RunSummary(
        run_id=7, total_tests=3, passed_tests=1, failed_tests=1, skipped_tests=1
    )
    return repo


async def start(repository: AsyncMock) -> RunRecorder:
    recorder = RunRecorder(repository, environment="ci")
    await recorder.on_begin(RunConfig(project_names=["chromium"], browser_name="chromium"))
    return recorder


class TestCaseRegistry:
    """Test suite for the test-id to case-id registry."""

    def test_register_and_get(self):
        registry = CaseRegistry()

        registry.register("t1", 30)

        assert "t1" in registry
        assert registry.get("t1").case_id == 30
        assert registry.get("missing") is None

    def test_step_numbers_start_at_one(self):
        registry = CaseRegistry()
        registry.register("t1", 30)

        assert [registry.next_step_number("t1") for _ in range(3)] == [1, 2, 3]

    def test_step_number_for_unknown_test(self):
        with pytest.raises(KeyError):
            CaseRegistry().next_step_number("missing")

    def test_open_steps_nest(self):
        registry = CaseRegistry()
        registry.register("t1", 30)
        registry.push_step("t1", 100)
        registry.push_step("t1", 101)

        assert registry.pop_step("t1") == 101
        assert registry.pop_step("t1") == 100
        assert registry.pop_step("t1") is None

    def test_remove_and_clear(self):
        registry = CaseRegistry()
        registry.register("t1", 30)
        registry.register("t2", 31)

        assert registry.remove("t1").case_id == 30
        assert registry.remove("t1") is None
        registry.clear()
        assert len(registry) == 0


class TestHelpers:
    @pytest.mark.parametrize(
        "status,expected",
        [
            ("passed", "passed"),
            ("failed", "failed"),
            ("skipped", "skipped"),
            ("timedOut", "timedout"),
            ("interrupted", "failed"),
        ],
    )
    def test_map_status(self, status: str, expected: str):
        assert map_status(status) == expected

    def test_describe_goto_step(self):
        details = describe_step("page.goto https://example.com/login", "pw:api")

        assert details.target_url == "https://example.com/login"

    def test_describe_locator_step(self):
        details = describe_step("locator('#submit').click()", "pw:api")

        assert details.selector == "#submit"
        assert details.target_url is None

    def test_describe_expect_step(self):
        details = describe_step("expect(page).toHaveTitle(Dashboard)", "expect")

        assert details.selector == "page"
        assert details.expected_value == "Dashboard"

    def test_to_test_detail_matches_report_shape(self):
        detail = to_test_detail(begin_event(retry=1), end_event("failed", error_message="boom"))

        assert detail.full_title == " › chromium › auth.spec.ts › Auth › login"
        assert detail.retries == 1
        assert detail.error == "boom"


class TestRunRecorder:
    """Test suite for RunRecorder event handling."""

    @pytest.mark.asyncio
    async def test_events_before_begin_are_ignored(self, repository: AsyncMock):
        recorder = RunRecorder(repository)

        assert await recorder.on_test_begin(begin_event()) is None
        await recorder.on_test_end("t1", end_event())

        repository.create_case.assert_not_awaited()
        repository.update_case.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_on_begin_creates_suite_and_run(self, repository: AsyncMock):
        recorder = RunRecorder(repository, environment="ci")

        run_id = await recorder.on_begin(
            RunConfig(project_names=["chromium"], playwright_version="1.42.1")
        )

        assert run_id == 7
        repository.get_or_create_suite.assert_awaited_once()
        assert repository.get_or_create_suite.await_args.args[0] == "chromium"
        kwargs = repository.create_run.await_args.kwargs
        assert kwargs["status"] == "running"
        assert kwargs["environment"] == "ci"
        assert kwargs["browser"] == "unknown"
        assert kwargs["runtime_version"].startswith("python ")

    @pytest.mark.asyncio
    async def test_on_begin_without_projects_uses_default_suite(self, repository: AsyncMock):
        await RunRecorder(repository).on_begin(RunConfig())

        assert repository.get_or_create_suite.await_args.args[0] == "Default Suite"

    @pytest.mark.asyncio
    async def test_test_lifecycle(self, repository: AsyncMock):
        started = await start(repository)
        case_id = await started.on_test_begin(begin_event())

        assert case_id == 30
        kwargs = repository.create_case.await_args.kwargs
        assert kwargs["test_title"].endswith("Auth › login")
        assert kwargs["status"] == "running"

        await started.on_test_end("t1", end_event("timedOut", 30000, error_message="timeout"))

        repository.update_case.assert_awaited_once()
        case_id_arg, fields = repository.update_case.await_args.args
        assert case_id_arg == 30
        assert fields["status"] == "timedout"
        assert fields["duration_ms"] == 30000
        assert fields["error_message"] == "timeout"
        assert "t1" not in started.registry

    @pytest.mark.asyncio
    async def test_steps_are_numbered_and_closed(self, repository: AsyncMock):
        started = await start(repository)
        await started.on_test_begin(begin_event())
        outer = StepEvent("page.goto https://example.com", "pw:api", STARTED)
        inner = StepEvent("locator('#ok').click()", "pw:api", STARTED, 12, error="detached")

        await started.on_step_begin("t1", outer)
        await started.on_step_begin("t1", inner)
        await started.on_step_end("t1", inner)

        numbers = [c.args[1] for c in repository.create_step.await_args_list]
        assert numbers == [1, 2]
        assert repository.create_step.await_args_list[0].kwargs["target_url"] == (
            "https://example.com"
        )
        step_id, fields = repository.update_step.await_args.args
        assert step_id == 101
        assert fields["status"] == "failed"
        assert fields["error_message"] == "detached"
        repository.update_run.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_step_for_unknown_test_is_ignored(self, repository: AsyncMock):
        started = await start(repository)
        step = StepEvent(title="x", category=None, start_time=STARTED)

        assert await started.on_step_begin("nope", step) is None
        await started.on_step_end("nope", step)

        repository.create_step.assert_not_awaited()
        repository.update_step.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_metrics_are_saved(self, repository: AsyncMock):
        started = await start(repository)
        await started.on_test_begin(begin_event())
        steps = [
            StepEvent(title="page.goto /", category="pw:api", start_time=STARTED, duration=40),
            StepEvent(title="click", category="pw:api", start_time=STARTED, duration=10),
        ]

        await started.on_test_end("t1", end_event(duration=95, steps=steps))

        metrics = {
            c.args[1]: c.args[2] for c in repository.add_performance_metric.await_args_list
        }
        assert metrics == {"total_action_time": 50, "navigation_time": 40, "test_duration": 95}

    @pytest.mark.asyncio
    async def test_attachments_are_saved_with_size(self, repository: AsyncMock, tmp_path: Path):
        started = await start(repository)
        screenshot = tmp_path / "shot.png"
        screenshot.write_bytes(b"x" * 10)
        attachments = [
            AttachmentRef(name="screenshot", content_type="image/png", path=str(screenshot)),
            AttachmentRef(name="gone", content_type="text/plain", path=str(tmp_path / "gone")),
            AttachmentRef(name="inline", content_type="text/plain"),
        ]
        await started.on_test_begin(begin_event())

        await started.on_test_end("t1", end_event(attachments=attachments))

        repository.add_attachment.assert_awaited_once()
        case_id, attachment = repository.add_attachment.await_args.args
        assert case_id == 30
        assert attachment.attachment_type == "screenshot"
        assert attachment.file_name == "shot.png"
        assert attachment.file_size_bytes == 10

    @pytest.mark.asyncio
    async def test_on_end_uses_stored_counts(self, repository: AsyncMock):
        started = await start(repository)
        """Run totals should come from the persisted case rows."""
        await started.on_test_begin(begin_event())

        summary = await started.on_end("failed")

        assert summary.total_tests == 3
        repository.get_run_summary.assert_awaited_once_with(7)
        run_id, fields = repository.update_run.await_args.args
        assert run_id == 7
        assert fields["status"] == "failed"
        assert (fields["total_tests"], fields["passed_tests"]) == (3, 1)
        assert (fields["failed_tests"], fields["skipped_tests"]) == (1, 1)
        assert len(started.registry) == 0

    @pytest.mark.asyncio
    async def test_on_end_before_begin(self, repository: AsyncMock):
        assert await RunRecorder(repository).on_end("passed") is None
        repository.update_run.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_from_settings(self):
        from testvault.storage.config import Settings

        settings = Settings(database_url="postgresql://u:p@h/db", test_environment="staging")

        with (
            patch("testvault.recorder.recorder.database.init_db") as mock_init,
            patch("testvault.recorder.recorder.database.close_db", new=AsyncMock()) as close,
        ):
            mock_init.return_value = MagicMock()
            recorder = RunRecorder.from_settings(settings)
            await recorder.close()

        mock_init.assert_called_once_with(settings)
        close.assert_awaited_once()
        assert recorder.environment == "staging"
        assert recorder.repository.session_factory is mock_init.return_value
