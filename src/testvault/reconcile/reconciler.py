"""Reconcile parsed report details against stored test cases.

Matching and delta computation are pure functions over immutable
snapshots; only ``Reconciler`` talks to the gateway.
"""

from __future__ import annotations

import posixpath
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from typing import Any

from testvault.reports.models import TestDetail
from testvault.storage.gateway import NewAttachment, PersistedCase, PersistenceGateway
from testvault.storage.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CaseDelta:
    """Fill-only changes for one stored case."""

    case_id: int
    field_updates: dict[str, Any] = field(default_factory=dict)
    new_attachments: tuple[NewAttachment, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.field_updates and not self.new_attachments


def _basename(path: str) -> str:
    # Reports may come from Windows runners
    return posixpath.basename(path.replace("\\", "/"))


def match_case(detail: TestDetail, cases: Sequence[PersistedCase]) -> PersistedCase | None:
    """Find the stored case a detail describes.

    Rules are tried in order, and the first rule with any hit wins:
    exact test name, exact full title, then file path ending with the
    detail's file basename.
    """
    for case in cases:
        if case.test_name == detail.title:
            return case

    for case in cases:
        if case.test_title is not None and case.test_title == detail.full_title:
            return case

    basename = _basename(detail.file) if detail.file else ""
    if basename:
        for case in cases:
            if case.file_path and case.file_path.endswith(basename):
                return case

    return None


def compute_field_updates(case: PersistedCase, detail: TestDetail) -> dict[str, Any]:
    """Propose values only for fields the stored case leaves empty."""
    updates: dict[str, Any] = {}

    if not case.duration_ms and detail.duration and detail.duration > 0:
        updates["duration_ms"] = int(round(detail.duration))

    if not case.error_message and detail.error:
        updates["error_message"] = detail.error

    return updates


def compute_new_attachments(detail: TestDetail) -> tuple[NewAttachment, ...]:
    """Every attachment with a file path becomes a new row."""
    return tuple(
        NewAttachment(
            attachment_type=attachment.type.value,
            file_name=_basename(attachment.path),
            file_path=attachment.path,
            content_type=attachment.content_type,
            file_size_bytes=attachment.size,
        )
        for attachment in detail.attachments
        if attachment.path
    )


def compute_delta(case: PersistedCase, detail: TestDetail) -> CaseDelta:
    return CaseDelta(
        case_id=case.id,
        field_updates=compute_field_updates(case, detail),
        new_attachments=compute_new_attachments(detail),
    )


class Reconciler:
    """Computes and applies fill-only deltas for a run.

    Never creates cases: details without a matching stored case are
    dropped. Callers must not reconcile the same run concurrently.
    """

    def __init__(self, gateway: PersistenceGateway) -> None:
        self.gateway = gateway

    async def reconcile(self, run_id: int, details: Sequence[TestDetail]) -> list[CaseDelta]:
        """
        Compute deltas for every detail that matches a stored case.

        Args:
            run_id: Run whose cases are enriched.
            details: Test details parsed from the report.

        Returns:
            Non-empty deltas, one per stored case, in the order cases were
            first matched. Field updates come from the first detail that
            matches a case; later matches only add their attachments.

        Raises:
            PersistenceUnavailable: If the cases cannot be read.
        """
        cases = await self.gateway.get_cases_for_run(run_id)

        by_case: dict[int, CaseDelta] = {}
        unmatched = 0
        for detail in details:
            case = match_case(detail, cases)
            if case is None:
                unmatched += 1
                logger.debug("detail_unmatched", run_id=run_id, title=detail.full_title)
                continue

            delta = compute_delta(case, detail)
            existing = by_case.get(case.id)
            if existing is None:
                by_case[case.id] = delta
            else:
                by_case[case.id] = replace(
                    existing, new_attachments=existing.new_attachments + delta.new_attachments
                )

        deltas = [delta for delta in by_case.values() if not delta.is_empty]

        logger.info(
            "reconciliation_computed",
            run_id=run_id,
            cases=len(cases),
            details=len(details),
            unmatched=unmatched,
            deltas=len(deltas),
        )
        return deltas

    async def apply(self, deltas: Sequence[CaseDelta]) -> int:
        """
        Write deltas through the gateway.

        Returns:
            Number of attachment rows added.

        Raises:
            PersistenceUnavailable: On the first failed write.
        """
        attachments_added = 0
        for delta in deltas:
            if delta.field_updates:
                await self.gateway.update_case(delta.case_id, delta.field_updates)
            for attachment in delta.new_attachments:
                await self.gateway.add_attachment(delta.case_id, attachment)
                attachments_added += 1
        return attachments_added

    async def reconcile_and_apply(
        self, run_id: int, details: Sequence[TestDetail]
    ) -> list[CaseDelta]:
        deltas = await self.reconcile(run_id, details)
        await self.apply(deltas)
        return deltas
