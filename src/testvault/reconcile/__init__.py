"""Fill-only reconciliation of parsed report data with stored cases."""

from .reconciler import (
    CaseDelta,
    Reconciler,
    compute_delta,
    compute_field_updates,
    compute_new_attachments,
    match_case,
)

__all__ = [
    "CaseDelta",
    "Reconciler",
    "compute_delta",
    "compute_field_updates",
    "compute_new_attachments",
    "match_case",
]
