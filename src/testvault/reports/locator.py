"""Locate a report's primary document and its structured-data sources."""

from __future__ import annotations

import base64
import binascii
import io
import json
import re
import zipfile
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from testvault.core.exceptions import ArtifactNotFound, MalformedStructuredPayload
from testvault.storage.logging import get_logger

logger = get_logger(__name__)

INDEX_HTML = "index.html"
DATA_DIR = "data"
JSON_EXT = ".json"

BASE64_REPORT_PATTERN = re.compile(
    r"<script[^>]*>\s*window\.playwrightReportBase64\s*=\s*['\"](.*?)['\"];?\s*</script>",
    re.DOTALL,
)
RAW_REPORT_PATTERN = re.compile(r"window\.playwrightReport\s*=\s*(?=\{)")
DATA_URL_PREFIX = re.compile(r"^data:[\w/.+-]+;base64,")

# Member names tried first when the embedded payload is a zip archive
PREFERRED_ZIP_MEMBERS = ("report.json",)


def is_report_payload(data: Any) -> bool:
    """Check if decoded JSON looks like a Playwright report."""
    return isinstance(data, dict) and ("suites" in data or "tests" in data)


@dataclass(frozen=True)
class StructuredSource:
    """One candidate structured payload.

    Decoding happens while the locator walks its candidates; a candidate
    that failed to decode keeps the reason and raises on ``load()``.
    """

    origin: str
    payload: dict[str, Any] | None = None
    error: str | None = None

    def load(self) -> dict[str, Any]:
        """Return the decoded payload.

        Raises:
            MalformedStructuredPayload: If the candidate could not be decoded.
        """
        if self.payload is None:
            raise MalformedStructuredPayload(self.origin, self.error or "empty payload")
        return self.payload


@dataclass
class LocatedArtifact:
    """The primary document plus a lazy sequence of structured sources."""

    report_path: Path
    document: str
    structured_sources: Iterator[StructuredSource]


class ArtifactLocator:
    """Finds the report document and the structured data that backs it.

    Candidate order, first usable one wins:

    1. ``data/*.json`` files next to the document with a ``suites`` or
       ``tests`` key
    2. ``window.playwrightReportBase64 = "..."`` embedded in a script
    3. ``window.playwrightReport = {...}`` embedded in a script
    """

    def locate(self, report_path: Path | str) -> LocatedArtifact:
        """Read the primary document and prepare its structured sources.

        Args:
            report_path: Path to ``index.html`` or to the report directory.

        Returns:
            LocatedArtifact whose sources are produced on iteration.

        Raises:
            ArtifactNotFound: If the primary document cannot be read.
        """
        document_path = self.resolve_document(report_path)
        document = self.read_document(document_path)
        return LocatedArtifact(
            report_path=document_path,
            document=document,
            structured_sources=self._iter_sources(document_path, document),
        )

    def resolve_document(self, report_path: Path | str) -> Path:
        """Return the document path, accepting a report directory."""
        path = Path(report_path)
        if path.is_dir():
            return path / INDEX_HTML
        return path

    def read_document(self, document_path: Path) -> str:
        try:
            return document_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ArtifactNotFound(document_path, str(e)) from e

    def _iter_sources(self, document_path: Path, document: str) -> Iterator[StructuredSource]:
        yield from self._iter_data_dir(document_path.parent / DATA_DIR)
        yield from self._iter_base64(document)
        yield from self._iter_raw_json(document)

    def _iter_data_dir(self, data_dir: Path) -> Iterator[StructuredSource]:
        if not data_dir.is_dir():
            return

        for json_file in sorted(data_dir.glob(f"*{JSON_EXT}")):
            origin = f"{DATA_DIR}/{json_file.name}"
            try:
                data = json.loads(json_file.read_text(encoding="utf-8"))
            except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
                yield StructuredSource(origin=origin, error=str(e))
                continue

            if is_report_payload(data):
                yield StructuredSource(origin=origin, payload=data)
            else:
                logger.debug("data_file_skipped", origin=origin)

    def _iter_base64(self, document: str) -> Iterator[StructuredSource]:
        match = BASE64_REPORT_PATTERN.search(document)
        if not match:
            return

        origin = "embedded:playwrightReportBase64"
        encoded = DATA_URL_PREFIX.sub("", match.group(1).strip())
        try:
            raw = base64.b64decode(encoded, validate=False)
            data = self._decode_embedded_bytes(raw)
        except (binascii.Error, ValueError, zipfile.BadZipFile) as e:
            yield StructuredSource(origin=origin, error=str(e))
            return

        yield StructuredSource(origin=origin, payload=data)

    def _decode_embedded_bytes(self, raw: bytes) -> dict[str, Any]:
        """Decode base64 payload bytes, which may be JSON or a zip of JSON."""
        if zipfile.is_zipfile(io.BytesIO(raw)):
            return self._read_zip_payload(raw)

        data = json.loads(raw.decode("utf-8"))
        if not isinstance(data, dict):
            raise ValueError("embedded payload is not a JSON object")
        return data

    def _read_zip_payload(self, raw: bytes) -> dict[str, Any]:
        with zipfile.ZipFile(io.BytesIO(raw)) as zf:
            names = zf.namelist()
            ordered = [n for n in PREFERRED_ZIP_MEMBERS if n in names]
            ordered += [n for n in names if n.endswith(JSON_EXT) and n not in ordered]
            for name in ordered:
                try:
                    data = json.loads(zf.read(name))
                except (json.JSONDecodeError, UnicodeDecodeError):
                    continue
                if is_report_payload(data):
                    return data
        raise ValueError("embedded archive holds no report JSON")

    def _iter_raw_json(self, document: str) -> Iterator[StructuredSource]:
        match = RAW_REPORT_PATTERN.search(document)
        if not match:
            return

        origin = "embedded:playwrightReport"
        try:
            data, _ = json.JSONDecoder().raw_decode(document, match.end())
        except json.JSONDecodeError as e:
            yield StructuredSource(origin=origin, error=str(e))
            return

        yield StructuredSource(origin=origin, payload=data)
