"""Persistence gateway contract used by reconciliation and ingestion."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from testvault.storage.models import ParsingStatus


@dataclass(frozen=True)
class PersistedCase:
    """Read-only view of a stored test case."""

    id: int
    run_id: int
    test_name: str
    test_title: str | None = None
    file_path: str | None = None
    duration_ms: int | None = None
    status: str = "running"
    error_message: str | None = None


@dataclass(frozen=True)
class PersistedRun:
    """Read-only view of a stored test run."""

    id: int
    suite_id: int
    run_name: str
    status: str
    start_time: datetime | None = None
    html_report_path: str | None = None
    total_tests: int = 0
    passed_tests: int = 0
    failed_tests: int = 0
    skipped_tests: int = 0


@dataclass(frozen=True)
class NewAttachment:
    """Attachment row to be inserted for a case."""

    attachment_type: str
    file_name: str | None
    file_path: str | None
    content_type: str | None = None
    file_size_bytes: int | None = None


@dataclass(frozen=True)
class RunSummary:
    """Case counts for a run, computed from stored case rows."""

    run_id: int
    total_tests: int
    passed_tests: int
    failed_tests: int
    skipped_tests: int
    avg_duration_ms: float | None = None


class PersistenceGateway(Protocol):
    """Storage operations the core depends on.

    Every method raises PersistenceUnavailable when the backing store
    fails.
    """

    async def get_cases_for_run(self, run_id: int) -> list[PersistedCase]: ...

    async def update_case(self, case_id: int, field_updates: dict[str, Any]) -> PersistedCase: ...

    async def add_attachment(self, case_id: int, attachment: NewAttachment) -> int: ...

    async def record_report_metadata(
        self,
        run_id: int,
        path: str,
        status: ParsingStatus,
        error_text: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> int: ...

    async def get_run(self, run_id: int) -> PersistedRun | None: ...

    async def update_run(self, run_id: int, field_updates: dict[str, Any]) -> PersistedRun: ...
