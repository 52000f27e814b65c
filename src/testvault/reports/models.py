"""Data models for parsed Playwright HTML reports."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

# Separator Playwright uses between suite titles and the test title
TITLE_SEPARATOR = " › "

UNKNOWN_STATUS = "unknown"
UNKNOWN_CONTENT_TYPE = "unknown"


class TestStatus(Enum):
    """Outcome of a test's final attempt as reported by Playwright."""

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    TIMED_OUT = "timedOut"
    INTERRUPTED = "interrupted"
    UNKNOWN = "unknown"


class AttachmentType(Enum):
    """Classification of a test attachment."""

    SCREENSHOT = "screenshot"
    VIDEO = "video"
    TRACE = "trace"
    LOG = "log"
    OTHER = "other"


def classify_attachment(name: str | None, content_type: str | None) -> AttachmentType:
    """Classify an attachment from its name and content type.

    Precedence is screenshot > video > trace > log > other, so an image
    named ``trace.png`` is still a screenshot.
    """
    name = (name or "").lower()
    content_type = (content_type or "").lower()

    if "image" in content_type or "screenshot" in name:
        return AttachmentType.SCREENSHOT
    if "video" in content_type or "video" in name:
        return AttachmentType.VIDEO
    if "zip" in content_type or "trace" in content_type or "trace" in name or ".zip" in name:
        return AttachmentType.TRACE
    if content_type.startswith("text/") or "json" in content_type or "log" in name:
        return AttachmentType.LOG
    return AttachmentType.OTHER


@dataclass(frozen=True)
class AttachmentRef:
    """An attachment declared on a test result."""

    name: str | None = None
    content_type: str = UNKNOWN_CONTENT_TYPE
    path: str | None = None
    size: int | None = None

    @property
    def type(self) -> AttachmentType:
        return classify_attachment(self.name, self.content_type)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type.value,
            "content_type": self.content_type,
            "path": self.path,
            "size": self.size,
        }


@dataclass(frozen=True)
class TestDetail:
    """Normalized outcome of one test, taken from its final attempt."""

    title: str
    full_title: str
    file: str = ""
    duration: float = 0
    status: str = UNKNOWN_STATUS
    retries: int = 0
    error: str | None = None
    attachments: tuple[AttachmentRef, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "full_title": self.full_title,
            "file": self.file,
            "duration": self.duration,
            "status": self.status,
            "retries": self.retries,
            "error": self.error,
            "attachments": [a.to_dict() for a in self.attachments],
        }


@dataclass
class SummaryCounts:
    """Coarse counts scraped from the report's rendered summary."""

    passed: int = 0
    failed: int = 0
    skipped: int = 0
    duration_ms: float = 0
    browsers: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.passed + self.failed + self.skipped


@dataclass
class ReportSnapshot:
    """Everything one parse call learned about a report.

    Built fresh per parse and discarded after reconciliation.
    """

    report_path: Path
    total_tests: int = 0
    passed_tests: int = 0
    failed_tests: int = 0
    skipped_tests: int = 0
    duration_ms: float = 0
    browsers: list[str] = field(default_factory=list)
    test_details: list[TestDetail] = field(default_factory=list)
    summary: dict[str, Any] = field(default_factory=dict)

    @property
    def has_structured_data(self) -> bool:
        """False when only the text summary could be read."""
        return self.summary.get("structured_source") is not None

    @property
    def start_time(self) -> datetime | None:
        return self.summary.get("start_time")

    @property
    def status(self) -> str:
        """Overall run status implied by the counts."""
        return "failed" if self.failed_tests > 0 else "passed"

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-safe dictionary."""
        summary = dict(self.summary)
        if isinstance(summary.get("start_time"), datetime):
            summary["start_time"] = summary["start_time"].isoformat()
        return {
            "report_path": str(self.report_path),
            "total_tests": self.total_tests,
            "passed_tests": self.passed_tests,
            "failed_tests": self.failed_tests,
            "skipped_tests": self.skipped_tests,
            "duration_ms": self.duration_ms,
            "browsers": list(self.browsers),
            "test_details": [d.to_dict() for d in self.test_details],
            "summary": summary,
        }
