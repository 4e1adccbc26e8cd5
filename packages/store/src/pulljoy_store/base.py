"""Abstract state store interface.

Every storage backend (memory, SQLite) implements this interface. The
workflow engine depends on BaseStateStore, not on a concrete backend, so
backends are swappable without touching engine code.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pulljoy_store.models import WorkflowState


class BaseStateStore(ABC):
    """Persists one WorkflowState per (repository, PR number).

    save() is a full replace: fields not set on the given state are cleared,
    never merged with whatever was stored before.
    """

    @abstractmethod
    def load(self, repo: str, pr_number: int) -> WorkflowState | None:
        """Return the state for this PR, or None if no workflow is active."""

    @abstractmethod
    def save(self, repo: str, pr_number: int, state: WorkflowState) -> None:
        """Validate and store the state, replacing any previous record."""

    @abstractmethod
    def delete(self, repo: str, pr_number: int) -> None:
        """Remove the record for this PR. Deleting a missing record is a no-op."""

    @abstractmethod
    def list_states(self, repo: str) -> list[tuple[int, WorkflowState]]:
        """Return (pr_number, state) pairs for a repo, ordered by PR number.

        Returns an empty list if nothing is tracked.
        """

    def close(self) -> None:
        """Release any resources held by the store (connections, file handles).

        Default is a no-op so callers can always call close() safely.
        """
