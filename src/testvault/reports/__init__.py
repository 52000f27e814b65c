"""Playwright HTML report parsing.

This module turns a generated report directory into a ReportSnapshot.

Usage:
    from testvault.reports import ReportParser

    snapshot = ReportParser().parse("playwright-report/index.html")
    for detail in snapshot.test_details:
        print(detail.full_title, detail.status)
"""

from .base import StructuredDataExtractor, SummaryExtractor
from .locator import ArtifactLocator, LocatedArtifact, StructuredSource
from .models import (
    AttachmentRef,
    AttachmentType,
    ReportSnapshot,
    SummaryCounts,
    TestDetail,
    TestStatus,
    classify_attachment,
)
from .parser import ReportParser
from .structured import PlaywrightStructuredExtractor
from .summary import HtmlSummaryExtractor, parse_duration

__all__ = [
    "ArtifactLocator",
    "AttachmentRef",
    "AttachmentType",
    "HtmlSummaryExtractor",
    "LocatedArtifact",
    "PlaywrightStructuredExtractor",
    "ReportParser",
    "ReportSnapshot",
    "StructuredDataExtractor",
    "StructuredSource",
    "SummaryCounts",
    "SummaryExtractor",
    "TestDetail",
    "TestStatus",
    "classify_attachment",
    "parse_duration",
]
