"""Abstract base classes for report extractors."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from .models import SummaryCounts, TestDetail

if TYPE_CHECKING:
    from .locator import StructuredSource


class SummaryExtractor(ABC):
    """Extracts coarse counts from the rendered report document.

    Implementations are tied to one report generator's markup, so a new
    generator version only needs a new extractor.
    """

    @abstractmethod
    def extract(self, document: str) -> SummaryCounts:
        """Extract counts, duration and browser names from the document.

        Args:
            document: Markup of the primary report document.

        Returns:
            SummaryCounts, zero-filled where nothing was recognized.
        """


class StructuredDataExtractor(ABC):
    """Extracts per-test details from a structured report payload."""

    @abstractmethod
    def parse(self, payload: dict[str, Any]) -> tuple[list[TestDetail], dict[str, Any]]:
        """Parse one decoded payload.

        Args:
            payload: Decoded JSON report data.

        Returns:
            Tuple of (test details, summary fragment).
        """

    @abstractmethod
    def extract_first(
        self, sources: Iterable[StructuredSource]
    ) -> tuple[list[TestDetail], dict[str, Any]] | None:
        """Parse the first candidate source that decodes cleanly.

        Args:
            sources: Candidate sources in priority order.

        Returns:
            Parsed details and summary fragment, or None if no candidate
            could be used.
        """
