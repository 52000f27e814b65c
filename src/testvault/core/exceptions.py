"""Shared exceptions for the testvault package."""

from __future__ import annotations

from pathlib import Path


class TestvaultError(Exception):
    """Base class for all testvault errors."""


class ArtifactNotFound(TestvaultError):
    """Raised when the primary report document cannot be read."""

    def __init__(self, path: Path | str, reason: str | None = None) -> None:
        self.path = Path(path)
        self.reason = reason
        message = f"Report document not readable: {self.path}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class MalformedStructuredPayload(TestvaultError):
    """Raised when one structured-data candidate cannot be decoded.

    Extractors recover from this locally and move on to the next
    candidate, so it never escapes a parse call.
    """

    def __init__(self, origin: str, reason: str) -> None:
        self.origin = origin
        self.reason = reason
        super().__init__(f"Malformed structured payload in {origin}: {reason}")


class PersistenceUnavailable(TestvaultError):
    """Raised when a storage operation fails."""

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(f"Persistence operation '{operation}' failed: {reason}")
