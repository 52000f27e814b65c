"""Tests for ResultRepository against a mocked async session."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError

from testvault.core.exceptions import PersistenceUnavailable
from testvault.storage import models
from testvault.storage.gateway import NewAttachment
from testvault.storage.models import ParsingStatus
from testvault.storage.repository import ResultRepository


@pytest.fixture
def session() -> AsyncMock:
    session = AsyncMock()
    session.add = MagicMock()
    session.get.return_value = None
    return session


@pytest.fixture
def repo(session: AsyncMock) -> ResultRepository:
    session_factory = MagicMock()
    session_factory.return_value.__aenter__.return_value = session
    session_factory.return_value.__aexit__.return_value = False
    return ResultRepository(session_factory, org_id="acme", app_id="web")


def added(session: AsyncMock):
    return session.add.call_args.args[0]


class TestSessionHandling:
    """Test suite for commit, rollback and error translation."""

    @pytest.mark.asyncio
    async def test_commits_on_success(self, repo: ResultRepository, session: AsyncMock):
        await repo.create_case(7, "login")

        session.commit.assert_awaited_once()
        session.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_storage_errors_become_persistence_unavailable(
        self, repo: ResultRepository, session: AsyncMock
    ):
        session.get.side_effect = OperationalError("SELECT", {}, Exception("server closed"))

        with pytest.raises(PersistenceUnavailable) as exc_info:
            await repo.get_run(7)

        assert exc_info.value.operation == "get_run"
        session.rollback.assert_awaited_once()
        session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_connection_errors_become_persistence_unavailable(self, session: AsyncMock):
        session_factory = MagicMock()
        session_factory.return_value.__aenter__.side_effect = ConnectionRefusedError("refused")
        repo = ResultRepository(session_factory)

        with pytest.raises(PersistenceUnavailable, match="refused"):
            await repo.get_cases_for_run(7)

    @pytest.mark.asyncio
    async def test_unknown_column_is_rejected(self, repo: ResultRepository, session: AsyncMock):
        with pytest.raises(ValueError, match="no_such_column"):
            await repo.create_case(7, "login", no_such_column=1)

        session.add.assert_not_called()
        session.rollback.assert_awaited_once()


class TestRuns:
    @pytest.mark.asyncio
    async def test_create_run_writes_tenant_and_fields(
        self, repo: ResultRepository, session: AsyncMock
    ):
        run = await repo.create_run(1, "Run 1", status="running", browser="chromium")

        row = added(session)
        assert isinstance(row, models.TestRun)
        assert (row.org_id, row.app_id) == ("acme", "web")
        assert row.browser == "chromium"
        assert run.run_name == "Run 1"
        assert run.status == "running"
        session.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_get_missing_run(self, repo: ResultRepository):
        assert await repo.get_run(99) is None

    @pytest.mark.asyncio
    async def test_update_missing_run_raises(self, repo: ResultRepository):
        with pytest.raises(PersistenceUnavailable, match="run 99 not found"):
            await repo.update_run(99, {"status": "passed"})

    @pytest.mark.asyncio
    async def test_update_run_sets_fields(self, repo: ResultRepository, session: AsyncMock):
        row = models.TestRun(id=7, suite_id=1, run_name="Run 7", status="running")
        session.get.return_value = row

        run = await repo.update_run(7, {"status": "passed", "html_report_path": "r/index.html"})

        assert row.status == "passed"
        assert run.html_report_path == "r/index.html"


class TestCases:
    @pytest.mark.asyncio
    async def test_update_case_returns_view(self, repo: ResultRepository, session: AsyncMock):
        row = models.TestCase(id=3, run_id=7, test_name="login", status="passed")
        session.get.return_value = row

        case = await repo.update_case(3, {"duration_ms": 95})

        assert case.id == 3
        assert case.duration_ms == 95

    @pytest.mark.asyncio
    async def test_get_cases_for_run(self, repo: ResultRepository, session: AsyncMock):
        session.scalars.return_value = [
            models.TestCase(id=1, run_id=7, test_name="login", status="passed"),
            models.TestCase(id=2, run_id=7, test_name="logout", status="failed"),
        ]

        cases = await repo.get_cases_for_run(7)

        assert [c.test_name for c in cases] == ["login", "logout"]

    @pytest.mark.asyncio
    async def test_run_summary_counts_timeouts_as_failed(
        self, repo: ResultRepository, session: AsyncMock
    ):
        session.execute.return_value = MagicMock(
            one=MagicMock(return_value=(4, 1, 2, 1, 50.0))
        )

        summary = await repo.get_run_summary(7)

        statement = session.execute.await_args.args[0]
        sql = str(
            statement.compile(
                dialect=postgresql.dialect(), compile_kwargs={"literal_binds": True}
            )
        )
        assert "'timedout'" in sql
        assert (summary.total_tests, summary.passed_tests, summary.failed_tests) == (4, 1, 2)
        assert summary.skipped_tests == 1
        assert summary.avg_duration_ms == 50.0


class TestChildren:
    @pytest.mark.asyncio
    async def test_add_attachment(self, repo: ResultRepository, session: AsyncMock):
        attachment = NewAttachment("screenshot", "s.png", "/r/s.png", "image/png", 120)

        await repo.add_attachment(3, attachment)

        row = added(session)
        assert isinstance(row, models.TestAttachment)
        assert row.test_case_id == 3
        assert row.file_size_bytes == 120

    @pytest.mark.asyncio
    async def test_add_performance_metric(self, repo: ResultRepository, session: AsyncMock):
        await repo.add_performance_metric(7, "test_duration", 95.0, test_case_id=3)

        row = added(session)
        assert (row.run_id, row.test_case_id, row.metric_unit) == (7, 3, "ms")

    @pytest.mark.asyncio
    async def test_record_failed_report_metadata(
        self, repo: ResultRepository, session: AsyncMock
    ):
        await repo.record_report_metadata(
            7, "r/index.html", ParsingStatus.FAILED, error_text="unreadable"
        )

        row = added(session)
        assert isinstance(row, models.ReportMetadata)
        assert row.parsing_status is ParsingStatus.FAILED
        assert row.parsing_errors == "unreadable"
        assert row.additional_data is None
