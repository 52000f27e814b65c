"""Pytest configuration and fixtures."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

import pytest
import structlog

if TYPE_CHECKING:
    from collections.abc import Generator


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests (requires DATABASE_URL)",
    )


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (require a PostgreSQL database)",
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless explicitly enabled."""
    if config.getoption("--run-integration"):
        return

    skip_integration = pytest.mark.skip(reason="need --run-integration option to run")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


@pytest.fixture(autouse=True)
def reset_structlog() -> Generator[None, None, None]:
    """Drop logging configuration that may point at a closed stream."""
    yield
    structlog.reset_defaults()


@pytest.fixture(scope="session")
def database_url() -> str | None:
    """Get database URL from environment."""
    return os.environ.get("DATABASE_URL")


@pytest.fixture(scope="session")
def setup_test_database(
    request: pytest.FixtureRequest, database_url: str | None
) -> Generator[None, None, None]:
    """
    Apply database migrations for integration tests.

    Only activates when DATABASE_URL is set and integration tests run.
    """
    run_integration = request.config.getoption("--run-integration", default=False)
    if not run_integration or not database_url:
        yield
        return

    from alembic import command
    from alembic.config import Config

    alembic_cfg = Config("alembic.ini")
    command.upgrade(alembic_cfg, "head")

    yield


@pytest.fixture
def repository() -> AsyncMock:
    """Repository double with ids handed out in call order."""
    from tests.factories import make_run

    repo = AsyncMock()
    run_ids = iter(range(100, 1000))
    metadata_ids = iter(range(1, 1000))

    async def create_run(suite_id, run_name, **fields):
        return make_run(id=next(run_ids), suite_id=suite_id, status=fields.get("status", "running"))

    async def record_report_metadata(run_id, path, status, error_text=None, payload=None):
        return next(metadata_ids)

    repo.get_or_create_suite.return_value = 1
    repo.create_run.side_effect = create_run
    repo.get_run.return_value = make_run(html_report_path="/already/set")
    repo.get_cases_for_run.return_value = []
    repo.record_report_metadata.side_effect = record_report_metadata
    return repo
