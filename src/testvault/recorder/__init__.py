"""Live recorder turning runner events into stored results."""

from .recorder import (
    RunConfig,
    RunRecorder,
    StepEvent,
    TestBeginEvent,
    TestEndEvent,
    map_status,
    to_test_detail,
)
from .registry import CaseEntry, CaseRegistry
from .steps import StepDetails, describe_step

__all__ = [
    "CaseEntry",
    "CaseRegistry",
    "RunConfig",
    "RunRecorder",
    "StepDetails",
    "StepEvent",
    "TestBeginEvent",
    "TestEndEvent",
    "describe_step",
    "map_status",
    "to_test_detail",
]
