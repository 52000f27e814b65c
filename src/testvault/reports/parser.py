"""Parser turning a Playwright HTML report into a ReportSnapshot."""

from __future__ import annotations

from pathlib import Path

from testvault.storage.logging import get_logger

from .base import StructuredDataExtractor, SummaryExtractor
from .locator import ArtifactLocator
from .models import ReportSnapshot, SummaryCounts, TestDetail
from .structured import PlaywrightStructuredExtractor
from .summary import HtmlSummaryExtractor

logger = get_logger(__name__)

FAILED_STATUSES = frozenset({"failed", "timedOut", "interrupted"})


def counts_from_details(details: list[TestDetail]) -> SummaryCounts:
    """Derive coarse counts from per-test statuses."""
    counts = SummaryCounts()
    for detail in details:
        if detail.status == "passed":
            counts.passed += 1
        elif detail.status in FAILED_STATUSES:
            counts.failed += 1
        elif detail.status == "skipped":
            counts.skipped += 1
    return counts


class ReportParser:
    """Locates, extracts and merges everything a report offers.

    Extractors are injectable so a different report generator can be
    supported without touching reconciliation.
    """

    def __init__(
        self,
        locator: ArtifactLocator | None = None,
        summary_extractor: SummaryExtractor | None = None,
        structured_extractor: StructuredDataExtractor | None = None,
    ) -> None:
        self.locator = locator or ArtifactLocator()
        self.summary_extractor = summary_extractor or HtmlSummaryExtractor()
        self.structured_extractor = structured_extractor or PlaywrightStructuredExtractor()

    def parse(self, report_path: Path | str) -> ReportSnapshot:
        """Parse a report into a snapshot.

        Args:
            report_path: Path to ``index.html`` or its directory.

        Returns:
            ReportSnapshot. Without structured data it carries only the
            text summary and an empty test list.

        Raises:
            ArtifactNotFound: If the primary document cannot be read.
        """
        logger.info("report_parse_started", report_path=str(report_path))
        artifact = self.locator.locate(report_path)

        counts = self.summary_extractor.extract(artifact.document)
        structured = self.structured_extractor.extract_first(artifact.structured_sources)

        snapshot = self._merge(artifact.report_path, counts, structured)
        logger.info(
            "report_parsed",
            report_path=str(snapshot.report_path),
            total_tests=snapshot.total_tests,
            test_details=len(snapshot.test_details),
            structured_source=snapshot.summary.get("structured_source"),
        )
        return snapshot

    def _merge(
        self,
        report_path: Path,
        counts: SummaryCounts,
        structured: tuple[list[TestDetail], dict] | None,
    ) -> ReportSnapshot:
        details: list[TestDetail] = []
        summary: dict = {"structured_source": None}
        if structured is not None:
            details, fragment = structured
            summary.update(fragment)

        # Rendered counts win; fall back to statuses when the markup had none
        if counts.total == 0 and details:
            derived = counts_from_details(details)
            counts.passed, counts.failed, counts.skipped = (
                derived.passed,
                derived.failed,
                derived.skipped,
            )

        return ReportSnapshot(
            report_path=report_path,
            total_tests=counts.total,
            passed_tests=counts.passed,
            failed_tests=counts.failed,
            skipped_tests=counts.skipped,
            duration_ms=counts.duration_ms,
            browsers=counts.browsers,
            test_details=details,
            summary=summary,
        )
