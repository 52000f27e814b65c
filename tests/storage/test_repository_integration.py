"""Integration tests against a real PostgreSQL database.

Run with ``pytest --run-integration`` and ``DATABASE_URL`` set.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from testvault.ingest import ReportIngestService
from testvault.storage import database
from testvault.storage.config import Settings
from testvault.storage.repository import ResultRepository
from tests.factories import (
    make_payload,
    make_result,
    make_suite,
    make_test_node,
    summary_markup,
    write_html_report,
)

pytestmark = pytest.mark.integration


@pytest.mark.asyncio
async def test_report_fills_stored_case(database_url: str | None, tmp_path: Path):
    if not database_url:
        pytest.skip("DATABASE_URL not set")

    payload = make_payload(
        suites=[
            make_suite(
                "Auth",
                [make_test_node("login", results=[make_result("failed", 95, error="boom")])],
            )
        ]
    )
    report = write_html_report(tmp_path, payload=payload, markup=summary_markup(failed=1))

    session_factory = database.init_db(Settings(database_url=database_url))
    try:
        await database.create_schema()
        repo = ResultRepository(session_factory)
        suite_id = await repo.get_or_create_suite("Integration Suite")
        run = await repo.create_run(suite_id, "Integration run")
        await repo.create_case(run.id, "login", test_title="Auth › login", status="failed")
        await repo.create_case(run.id, "logout", duration_ms=40, status="passed")
        await repo.create_case(run.id, "checkout", duration_ms=30000, status="timedout")

        result = await ReportIngestService(repo).parse_and_store(report, run.id)
        cases = {c.test_name: c for c in await repo.get_cases_for_run(run.id)}
        summary = await repo.get_run_summary(run.id)
        stored_run = await repo.get_run(run.id)
    finally:
        await database.close_db()

    assert result.updated_cases == 1
    assert cases["login"].duration_ms == 95
    assert cases["login"].error_message == "boom"
    assert cases["logout"].duration_ms == 40
    assert (summary.total_tests, summary.passed_tests, summary.failed_tests) == (3, 1, 2)
    assert stored_run.html_report_path == str(report)
