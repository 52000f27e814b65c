"""Correlation between runner test ids and stored case rows."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class CaseEntry:
    """Stored ids for one in-flight test."""

    case_id: int
    step_count: int = 0
    open_steps: list[int] = field(default_factory=list)


class CaseRegistry:
    """Maps the runner's test id, assigned at test begin, to its case row.

    Entries live from test begin until test end or run end, whichever
    comes first; the recorder clears the registry when the run ends.
    """

    def __init__(self) -> None:
        self._entries: dict[str, CaseEntry] = {}

    def __contains__(self, test_id: str) -> bool:
        return test_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def register(self, test_id: str, case_id: int) -> CaseEntry:
        """Start tracking a test. A retry of the same test replaces its entry."""
        entry = CaseEntry(case_id=case_id)
        self._entries[test_id] = entry
        return entry

    def get(self, test_id: str) -> CaseEntry | None:
        return self._entries.get(test_id)

    def next_step_number(self, test_id: str) -> int:
        """Return the 1-based number for the test's next step.

        Raises:
            KeyError: If the test is not registered.
        """
        entry = self._entries[test_id]
        entry.step_count += 1
        return entry.step_count

    def push_step(self, test_id: str, step_id: int) -> None:
        self._entries[test_id].open_steps.append(step_id)

    def pop_step(self, test_id: str) -> int | None:
        """Return the innermost open step, if any."""
        entry = self._entries.get(test_id)
        if entry is None or not entry.open_steps:
            return None
        return entry.open_steps.pop()

    def remove(self, test_id: str) -> CaseEntry | None:
        return self._entries.pop(test_id, None)

    def clear(self) -> None:
        self._entries.clear()
