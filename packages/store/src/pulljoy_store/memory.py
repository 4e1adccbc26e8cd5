"""In-memory state store.

The reference implementation of BaseStateStore: used by the test suite and
by `store: memory` in .pulljoy.yml for throwaway runs. Nothing survives the
process.
"""

from __future__ import annotations

import threading
from dataclasses import replace

from pulljoy_store.base import BaseStateStore
from pulljoy_store.models import WorkflowState


class MemoryStore(BaseStateStore):
    def __init__(self) -> None:
        self._states: dict[tuple[str, int], WorkflowState] = {}
        self._lock = threading.Lock()

    def load(self, repo: str, pr_number: int) -> WorkflowState | None:
        with self._lock:
            state = self._states.get((repo, pr_number))
        return replace(state) if state is not None else None

    def save(self, repo: str, pr_number: int, state: WorkflowState) -> None:
        state.validate()
        with self._lock:
            self._states[(repo, pr_number)] = replace(state)

    def delete(self, repo: str, pr_number: int) -> None:
        with self._lock:
            self._states.pop((repo, pr_number), None)

    def list_states(self, repo: str) -> list[tuple[int, WorkflowState]]:
        with self._lock:
            items = [(pr, replace(s)) for (r, pr), s in self._states.items() if r == repo]
        return sorted(items, key=lambda item: item[0])
