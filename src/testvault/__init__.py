"""testvault - Playwright result storage and HTML report reconciliation."""

__version__ = "0.4.0"

from testvault.ingest import BackfillResult, IngestResult, ReportIngestService
from testvault.reconcile import CaseDelta, Reconciler
from testvault.reports import ReportParser, ReportSnapshot, TestDetail

__all__ = [
    "BackfillResult",
    "CaseDelta",
    "IngestResult",
    "Reconciler",
    "ReportIngestService",
    "ReportParser",
    "ReportSnapshot",
    "TestDetail",
]
