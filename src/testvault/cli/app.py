"""Main Typer CLI application for testvault."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated, TypeVar

import typer
from pydantic import ValidationError

from testvault.core.exceptions import TestvaultError
from testvault.ingest import BackfillResult, IngestResult, ReportIngestService
from testvault.reports import ReportParser, ReportSnapshot
from testvault.storage import database
from testvault.storage.config import LoggingSettings, get_settings
from testvault.storage.logging import configure_logging
from testvault.storage.repository import ResultRepository

T = TypeVar("T")

app = typer.Typer(
    name="testvault",
    help="Store Playwright test results and reconcile HTML reports with them",
    no_args_is_help=True,
)

DEFAULT_REPORTS_DIR = Path("./playwright-report")
ERROR_PREVIEW_LENGTH = 100


def format_snapshot(snapshot: ReportSnapshot) -> str:
    """Render a parsed report for the terminal."""
    lines = [
        "Report Summary:",
        f"Total Tests: {snapshot.total_tests}",
        f"Passed: {snapshot.passed_tests}",
        f"Failed: {snapshot.failed_tests}",
        f"Skipped: {snapshot.skipped_tests}",
        f"Duration: {snapshot.duration_ms:g}ms",
        f"Browsers: {', '.join(snapshot.browsers)}",
    ]

    if snapshot.test_details:
        lines += ["", "Test Details:"]
        for index, test in enumerate(snapshot.test_details, start=1):
            lines.append(f"  {index}. {test.title}")
            lines.append(f"     Status: {test.status}")
            lines.append(f"     Duration: {test.duration:g}ms")
            lines.append(f"     File: {test.file}")
            if test.error:
                lines.append(f"     Error: {test.error[:ERROR_PREVIEW_LENGTH]}...")
            if test.attachments:
                lines.append(f"     Attachments: {len(test.attachments)}")
    return "\n".join(lines)


def _fail(message: str) -> typer.Exit:
    typer.echo(f"Error: {message}", err=True)
    return typer.Exit(code=1)


@app.callback()
def _configure_logging() -> None:
    settings = LoggingSettings()
    configure_logging(settings.log_level, json_format=settings.log_json_format)


async def _with_repository(action: Callable[[ResultRepository], Awaitable[T]]) -> T:
    settings = get_settings()
    session_factory = database.init_db(settings)
    try:
        repository = ResultRepository(
            session_factory, org_id=settings.org_id, app_id=settings.app_id
        )
        return await action(repository)
    finally:
        await database.close_db()


def _run(action: Callable[[ResultRepository], Awaitable[T]]) -> T:
    """Run a database-backed action, turning failures into exit code 1."""
    try:
        return asyncio.run(_with_repository(action))
    except ValidationError as e:
        raise _fail(f"invalid configuration: {e.errors()[0]['msg']}") from e
    except TestvaultError as e:
        raise _fail(str(e)) from e
    except Exception as e:
        raise _fail(f"{type(e).__name__}: {e}") from e


@app.command()
def parse(
    report_path: Annotated[
        Path,
        typer.Argument(help="Path to the report's index.html or its directory"),
    ],
    run_id: Annotated[
        int | None,
        typer.Argument(help="Stored run to enrich with the report's data"),
    ] = None,
) -> None:
    """Parse a Playwright HTML report, optionally storing it for a run."""
    if run_id is None:
        try:
            snapshot = ReportParser().parse(report_path)
        except TestvaultError as e:
            raise _fail(str(e)) from e
        except Exception as e:
            raise _fail(f"{type(e).__name__}: {e}") from e
        typer.echo(format_snapshot(snapshot))
        return

    result: IngestResult = _run(
        lambda repository: ReportIngestService(repository).parse_and_store(report_path, run_id)
    )
    typer.echo(
        f"Report parsed and data stored for run {run_id}: "
        f"{result.updated_cases} cases updated, {result.added_attachments} attachments added"
    )


@app.command()
def backfill(
    reports_dir: Annotated[
        Path,
        typer.Argument(help="Directory holding one or more HTML reports"),
    ] = DEFAULT_REPORTS_DIR,
) -> None:
    """Create historical runs from existing HTML reports."""
    if not reports_dir.is_dir():
        raise _fail(f"reports directory not found: {reports_dir}")

    result: BackfillResult = _run(
        lambda repository: ReportIngestService(repository).backfill(reports_dir)
    )
    typer.echo(f"Backfill completed: {len(result.succeeded)} stored, {len(result.failed)} failed")
    for path, error in result.failed:
        typer.echo(f"  {path}: {error}", err=True)


@app.command("setup-db")
def setup_db() -> None:
    """Create the database tables and the default suite."""

    async def _setup(repository: ResultRepository) -> int:
        if not await database.check_connection():
            raise TestvaultError("could not connect to the database")
        await database.create_schema()
        return await repository.get_or_create_suite(
            "Default Suite", "Default Playwright test suite"
        )

    suite_id = _run(_setup)
    typer.echo(f"Database schema ready (default suite {suite_id})")
