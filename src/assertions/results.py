"""Results log for the assertView calls of one test execution."""

from __future__ import annotations

from typing import Any, Union

from src.assertions.errors import AssertViewError
from src.models.assert_view import AssertViewSuccess

AssertViewEntry = Union[AssertViewError, AssertViewSuccess]


class AssertViewResults:
    """Append-only, insertion-ordered log. Create one per test execution.

    State names are tracked for every completed call, so uniqueness holds even
    for checkpoints that leave no entry (passes when successes are not
    recorded, reference updates).
    """

    def __init__(self, record_successes: bool = False):
        self.record_successes = record_successes
        self._entries: list[AssertViewEntry] = []
        self._states: set[str] = set()

    def add(self, entry: AssertViewEntry) -> None:
        self._entries.append(entry)
        self._states.add(entry.state_name)

    def add_success(self, success: AssertViewSuccess) -> None:
        if self.record_successes:
            self.add(success)
        else:
            self.mark_state(success.state_name)

    def mark_state(self, state_name: str) -> None:
        self._states.add(state_name)

    def has_state(self, state_name: str) -> bool:
        return state_name in self._states

    def has_fails(self) -> bool:
        return any(isinstance(e, AssertViewError) for e in self._entries)

    def errors(self) -> list[AssertViewError]:
        return [e for e in self._entries if isinstance(e, AssertViewError)]

    def get(self) -> list[AssertViewEntry]:
        return list(self._entries)

    def to_raw_object(self) -> list[dict[str, Any]]:
        return [
            e.to_dict() if isinstance(e, AssertViewError) else e.model_dump()
            for e in self._entries
        ]

    def __len__(self) -> int:
        return len(self._entries)
