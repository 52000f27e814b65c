"""Structured-data extraction from Playwright report JSON."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any

from testvault.core.exceptions import MalformedStructuredPayload
from testvault.storage.logging import get_logger

from .base import StructuredDataExtractor
from .locator import StructuredSource
from .models import (
    TITLE_SEPARATOR,
    UNKNOWN_CONTENT_TYPE,
    UNKNOWN_STATUS,
    AttachmentRef,
    TestDetail,
)

logger = get_logger(__name__)


def join_title(prefix: str, title: str) -> str:
    """Append a title to a suite path."""
    return f"{prefix}{TITLE_SEPARATOR}{title}" if prefix else title


def parse_start_time(value: Any) -> datetime | None:
    """Parse an ISO 8601 timestamp, tolerating a trailing ``Z``."""
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _error_message(result: dict[str, Any]) -> str | None:
    error = result.get("error")
    if isinstance(error, dict):
        return error.get("message") or None
    if isinstance(error, str) and error:
        return error

    # JSON reporter output carries a list of errors instead
    errors = result.get("errors") or []
    if errors and isinstance(errors[0], dict):
        return errors[0].get("message") or None
    return None


def _attachment(data: dict[str, Any]) -> AttachmentRef:
    path = data.get("path")
    size = None
    body = data.get("body")
    if not path and body is not None:
        size = len(body.encode("utf-8")) if isinstance(body, str) else len(body)
    return AttachmentRef(
        name=data.get("name"),
        content_type=data.get("contentType") or UNKNOWN_CONTENT_TYPE,
        path=path,
        size=size,
    )


def parse_test(test: dict[str, Any], suite_title: str = "", title: str | None = None) -> TestDetail:
    """Normalize one test node.

    The last result is authoritative for outcome; earlier results only
    count as retries.
    """
    title = title if title is not None else test.get("title", "")
    location = test.get("location") or {}
    file = location.get("file") or test.get("file") or ""

    results = test.get("results") or []
    if not results:
        return TestDetail(title=title, full_title=join_title(suite_title, title), file=file)

    last = results[-1]
    return TestDetail(
        title=title,
        full_title=join_title(suite_title, title),
        file=file,
        duration=last.get("duration") or 0,
        status=last.get("status") or UNKNOWN_STATUS,
        retries=len(results) - 1,
        error=_error_message(last),
        attachments=tuple(_attachment(a) for a in last.get("attachments") or []),
    )


class PlaywrightStructuredExtractor(StructuredDataExtractor):
    """Walks Playwright suite trees into a flat list of TestDetail."""

    def parse(self, payload: dict[str, Any]) -> tuple[list[TestDetail], dict[str, Any]]:
        details: list[TestDetail] = []
        summary = {
            "start_time": parse_start_time(payload.get("startTime")),
            "playwright_version": payload.get("version"),
        }

        self._walk_suites(payload.get("suites") or [], details)

        for test in payload.get("tests") or []:
            details.append(parse_test(test))

        return details, summary

    def _walk_suites(
        self, suites: list[dict[str, Any]], details: list[TestDetail], parent: str = ""
    ) -> None:
        for suite in suites:
            suite_title = join_title(parent, suite.get("title", ""))

            for test in suite.get("tests") or []:
                details.append(parse_test(test, suite_title))

            # JSON reporter layout: suite -> specs -> tests (one per project)
            for spec in suite.get("specs") or []:
                for test in spec.get("tests") or []:
                    if not (test.get("location") or test.get("file")):
                        test = {**test, "file": spec.get("file")}
                    details.append(parse_test(test, suite_title, title=spec.get("title", "")))

            self._walk_suites(suite.get("suites") or [], details, suite_title)

    def extract_first(
        self, sources: Iterable[StructuredSource]
    ) -> tuple[list[TestDetail], dict[str, Any]] | None:
        for source in sources:
            try:
                payload = source.load()
                details, summary = self.parse(payload)
            except MalformedStructuredPayload as e:
                logger.warning("structured_payload_malformed", origin=e.origin, reason=e.reason)
                continue
            except (AttributeError, TypeError) as e:
                logger.warning("structured_payload_malformed", origin=source.origin, reason=str(e))
                continue

            summary["structured_source"] = source.origin
            logger.info("structured_payload_parsed", origin=source.origin, tests=len(details))
            return details, summary

        logger.info("structured_data_unavailable")
        return None
