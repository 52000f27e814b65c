"""Summary extraction from the rendered Playwright HTML report."""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

from .base import SummaryExtractor
from .models import SummaryCounts

SUMMARY_SELECTOR = ".summary-tab"
DURATION_SELECTOR = ".duration"
PROJECT_SELECTOR = ".project-name"

COUNT_PATTERNS = {
    "passed": re.compile(r"(\d+)\s+passed"),
    "failed": re.compile(r"(\d+)\s+failed"),
    "skipped": re.compile(r"(\d+)\s+skipped"),
}
DURATION_PATTERN = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m)")
UNIT_TO_MS = {"ms": 1, "s": 1000, "m": 60000}


def parse_duration(text: str) -> float | None:
    """Parse the first ``<number><unit>`` token into milliseconds.

    >>> parse_duration("90s")
    90000.0
    >>> parse_duration("500ms")
    500.0
    """
    match = DURATION_PATTERN.search(text)
    if not match:
        return None
    return float(match.group(1)) * UNIT_TO_MS[match.group(2)]


class HtmlSummaryExtractor(SummaryExtractor):
    """Scrapes counts from the summary tabs of a Playwright HTML report."""

    def extract(self, document: str) -> SummaryCounts:
        soup = BeautifulSoup(document, "html.parser")
        counts = SummaryCounts()

        found: dict[str, int] = {}
        for element in soup.select(SUMMARY_SELECTOR):
            text = element.get_text(" ")
            for kind, pattern in COUNT_PATTERNS.items():
                if kind in found:
                    continue
                match = pattern.search(text)
                if match:
                    found[kind] = int(match.group(1))

        counts.passed = found.get("passed", 0)
        counts.failed = found.get("failed", 0)
        counts.skipped = found.get("skipped", 0)

        duration_element = soup.select_one(DURATION_SELECTOR)
        if duration_element is not None:
            counts.duration_ms = parse_duration(duration_element.get_text()) or 0

        counts.browsers = [
            text
            for text in (el.get_text(strip=True) for el in soup.select(PROJECT_SELECTOR))
            if text
        ]
        return counts
