"""Structured logging configuration for testvault."""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING, TextIO

import structlog

if TYPE_CHECKING:
    from structlog.typing import EventDict, WrappedLogger

# Run being reconciled or recorded, propagated across awaits
run_id_ctx: ContextVar[str] = ContextVar("run_id", default="")


def add_run_id(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add run_id to log event if set in context."""
    run_id = run_id_ctx.get()
    if run_id and "run_id" not in event_dict:
        event_dict["run_id"] = run_id
    return event_dict


@contextmanager
def run_context(run_id: int) -> Iterator[None]:
    """Tag every event logged inside the block with a run id."""
    token = run_id_ctx.set(str(run_id))
    try:
        yield
    finally:
        run_id_ctx.reset(token)


def configure_logging(
    log_level: str = "INFO",
    json_format: bool = True,
    stream: TextIO | None = None,
) -> None:
    """
    Configure structured logging with structlog.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_format: If True, output JSON format; otherwise, console format.
        stream: Output stream (defaults to sys.stderr so CLI output stays clean).
    """
    if stream is None:
        stream = sys.stderr

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
        add_run_id,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (typically module name).

    Returns:
        Configured structlog BoundLogger.
    """
    return structlog.get_logger(name).bind(logger=name)
