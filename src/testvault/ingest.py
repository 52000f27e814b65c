"""Parse-and-store orchestration and historical backfill."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path

from testvault.core.exceptions import PersistenceUnavailable
from testvault.reconcile import CaseDelta, Reconciler
from testvault.reports import ReportParser, ReportSnapshot
from testvault.reports.locator import INDEX_HTML
from testvault.storage.gateway import PersistedRun
from testvault.storage.logging import get_logger, run_context
from testvault.storage.models import ParsingStatus
from testvault.storage.repository import ResultRepository

logger = get_logger(__name__)

HISTORICAL_SUITE = "Historical Reports"
HISTORICAL_SUITE_DESCRIPTION = "Test suite for historical report backfill"


@dataclass
class IngestResult:
    """Outcome of one parse-and-store call."""

    snapshot: ReportSnapshot
    run_id: int | None = None
    deltas: list[CaseDelta] = field(default_factory=list)
    metadata_id: int | None = None

    @property
    def updated_cases(self) -> int:
        return sum(1 for d in self.deltas if d.field_updates)

    @property
    def added_attachments(self) -> int:
        return sum(len(d.new_attachments) for d in self.deltas)


@dataclass
class BackfillResult:
    """Per-report outcomes of a backfill; partial completion is normal."""

    succeeded: list[Path] = field(default_factory=list)
    failed: list[tuple[Path, str]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)


def find_report_documents(directory: Path) -> list[Path]:
    """List ``index.html`` documents in a directory and its immediate subdirectories."""
    documents = []
    root_index = directory / INDEX_HTML
    if root_index.is_file():
        documents.append(root_index)
    for child in sorted(p for p in directory.iterdir() if p.is_dir()):
        index = child / INDEX_HTML
        if index.is_file():
            documents.append(index)
    return documents


class ReportIngestService:
    """Parses reports and enriches stored runs with what they contain.

    A report for a run is parsed, reconciled and audited in that order.
    Any failure appends a failed ReportMetadata row for the run and is
    re-raised.
    """

    def __init__(
        self,
        repository: ResultRepository,
        parser: ReportParser | None = None,
        reconciler: Reconciler | None = None,
    ) -> None:
        self.repository = repository
        self.parser = parser or ReportParser()
        self.reconciler = reconciler or Reconciler(repository)

    async def parse_and_store(
        self, report_path: Path | str, run_id: int | None = None
    ) -> IngestResult:
        """
        Parse a report and, when a run is given, enrich that run with it.

        Args:
            report_path: Path to ``index.html`` or its directory.
            run_id: Run to enrich. Without it the report is only parsed.

        Returns:
            IngestResult with the snapshot and the applied deltas.

        Raises:
            ArtifactNotFound: If the report document cannot be read.
            PersistenceUnavailable: If storing fails.
        """
        try:
            snapshot = self.parser.parse(report_path)
        except Exception as e:
            if run_id is not None:
                await self._record_failure(run_id, Path(report_path), e)
            raise

        if run_id is None:
            return IngestResult(snapshot=snapshot)
        return await self.store_snapshot(snapshot, run_id)

    async def store_snapshot(self, snapshot: ReportSnapshot, run_id: int) -> IngestResult:
        """Reconcile a parsed snapshot into a run and record the audit row."""
        with run_context(run_id):
            try:
                run = await self.repository.get_run(run_id)
                if run is not None and not run.html_report_path:
                    await self.repository.update_run(run_id, self._run_fields(snapshot))

                deltas = await self.reconciler.reconcile_and_apply(run_id, snapshot.test_details)

                metadata_id = await self.repository.record_report_metadata(
                    run_id,
                    str(snapshot.report_path),
                    ParsingStatus.SUCCESS,
                    payload=snapshot.to_dict(),
                )
            except Exception as e:
                await self._record_failure(run_id, snapshot.report_path, e)
                raise

            result = IngestResult(
                snapshot=snapshot, run_id=run_id, deltas=deltas, metadata_id=metadata_id
            )
            logger.info(
                "report_stored",
                updated_cases=result.updated_cases,
                added_attachments=result.added_attachments,
            )
        return result

    def _run_fields(self, snapshot: ReportSnapshot) -> dict:
        return {
            "html_report_path": str(snapshot.report_path),
            "total_tests": snapshot.total_tests,
            "passed_tests": snapshot.passed_tests,
            "failed_tests": snapshot.failed_tests,
            "skipped_tests": snapshot.skipped_tests,
        }

    async def _record_failure(self, run_id: int, report_path: Path, error: Exception) -> None:
        logger.error(
            "report_ingest_failed",
            run_id=run_id,
            report_path=str(report_path),
            error=str(error),
        )
        try:
            await self.repository.record_report_metadata(
                run_id, str(report_path), ParsingStatus.FAILED, error_text=str(error)
            )
        except PersistenceUnavailable as audit_error:
            # The original error is re-raised by the caller
            logger.error("report_failure_not_recorded", run_id=run_id, error=str(audit_error))

    async def backfill(self, directory: Path | str) -> BackfillResult:
        """
        Create historical runs for every report found under a directory.

        Reports are processed one at a time. A failing report is logged
        and audited, and the batch carries on. When the historical suite
        cannot be stored, every report is returned as failed without an
        audit row.

        Args:
            directory: Directory holding a report or report subdirectories.

        Returns:
            BackfillResult listing succeeded and failed reports.
        """
        directory = Path(directory)
        documents = find_report_documents(directory)
        logger.info("backfill_started", directory=str(directory), reports=len(documents))

        result = BackfillResult()
        try:
            suite_id = await self.repository.get_or_create_suite(
                HISTORICAL_SUITE, HISTORICAL_SUITE_DESCRIPTION
            )
        except PersistenceUnavailable as e:
            logger.error("backfill_suite_unavailable", directory=str(directory), error=str(e))
            result.failed.extend((document, str(e)) for document in documents)
            return result

        for document in documents:
            run: PersistedRun | None = None
            try:
                snapshot = self.parser.parse(document)
                run = await self._create_historical_run(suite_id, document, snapshot)
                await self.store_snapshot(snapshot, run.id)
            except Exception as e:
                logger.error("backfill_report_failed", report_path=str(document), error=str(e))
                if run is None:
                    await self._record_unparsed(suite_id, document, e)
                result.failed.append((document, str(e)))
                continue

            logger.info("backfill_report_stored", report_path=str(document), run_id=run.id)
            result.succeeded.append(document)

        logger.info(
            "backfill_completed",
            directory=str(directory),
            succeeded=len(result.succeeded),
            failed=len(result.failed),
        )
        return result

    async def _create_historical_run(
        self, suite_id: int, document: Path, snapshot: ReportSnapshot
    ) -> PersistedRun:
        start_time = snapshot.start_time or datetime.now(UTC)
        duration_ms = int(snapshot.duration_ms)
        return await self.repository.create_run(
            suite_id,
            f"Historical run from {document.parent.name}",
            status=snapshot.status,
            start_time=start_time,
            end_time=start_time + timedelta(milliseconds=duration_ms),
            duration_ms=duration_ms,
            total_tests=snapshot.total_tests,
            passed_tests=snapshot.passed_tests,
            failed_tests=snapshot.failed_tests,
            skipped_tests=snapshot.skipped_tests,
            browser=", ".join(snapshot.browsers) or None,
            playwright_version=snapshot.summary.get("playwright_version"),
        )

    async def _record_unparsed(self, suite_id: int, document: Path, error: Exception) -> None:
        """Audit a report that failed before a run could be created for it."""
        try:
            run = await self.repository.create_run(
                suite_id,
                f"Historical run from {document.parent.name}",
                status="failed",
            )
        except PersistenceUnavailable as audit_error:
            logger.error(
                "report_failure_not_recorded", report_path=str(document), error=str(audit_error)
            )
            return
        await self._record_failure(run.id, document, error)
