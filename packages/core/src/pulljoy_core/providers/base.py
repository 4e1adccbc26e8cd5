"""CI provider and notifier interfaces.

The workflow engine only talks to these abstract classes:

    BaseCIProvider  — workflow runs, check suites/runs, refs, PR lookup, permissions
    BaseNotifier    — posting comments on a PR/issue thread

Concrete providers implement the raw queries. Behaviour that is the same
for every provider (which run counts as "active" for a commit) lives here
so it is defined once.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pulljoy_core.checks import CheckRunResult, CheckSuiteSummary
    from pulljoy_core.events import RepositoryRef

logger = logging.getLogger(__name__)

# Searched in this order when looking for the run to cancel.
ACTIVE_RUN_STATUSES = ("queued", "in_progress")

WRITE_PERMISSIONS = frozenset({"admin", "write"})


@dataclass(frozen=True)
class WorkflowRunSummary:
    id: int
    head_sha: str


@dataclass(frozen=True)
class PullRequestRefs:
    number: int
    head: RepositoryRef
    base: RepositoryRef


class BaseNotifier(ABC):
    @abstractmethod
    def post_comment(self, repo: str, issue_number: int, body: str) -> None:
        """Post a comment on a PR or issue thread."""


class BaseCIProvider(ABC):
    # ------------------------------------------------------------------ #
    # Abstract: implement in each provider                                #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def list_workflow_runs(self, repo: str, status: str, head_sha: str | None = None) -> list[WorkflowRunSummary]:
        """Return the repository's workflow runs with the given status, optionally only those for head_sha."""

    @abstractmethod
    def cancel_run(self, repo: str, run_id: int) -> None:
        """Request cancellation of a workflow run."""

    @abstractmethod
    def check_suites_for_commit(self, repo: str, commit_sha: str) -> list[CheckSuiteSummary]:
        """Return every check suite recorded for the commit."""

    @abstractmethod
    def check_runs_for_commit(self, repo: str, commit_sha: str) -> list[CheckRunResult]:
        """Return every check run recorded for the commit."""

    @abstractmethod
    def delete_ref(self, repo: str, branch_name: str) -> None:
        """Delete refs/heads/<branch_name>. Must succeed if the ref is already gone."""

    @abstractmethod
    def get_pull_request(self, repo: str, pr_number: int) -> PullRequestRefs:
        """Return the current head and base of a pull request."""

    @abstractmethod
    def get_permission_level(self, repo: str, username: str) -> str:
        """Return the user's permission on the repo ("admin", "write", "read", "none")."""

    @abstractmethod
    def authenticated_username(self) -> str:
        """Return the login the provider acts as, i.e. the bot's own username."""

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def find_active_run_id(self, repo: str, commit_sha: str) -> int | None:
        """Return the first queued, then in-progress, run whose head is commit_sha."""
        for status in ACTIVE_RUN_STATUSES:
            for run in self.list_workflow_runs(repo, status, head_sha=commit_sha):
                if run.head_sha == commit_sha:
                    return run.id
        return None

    def user_can_write(self, repo: str, username: str) -> bool:
        return self.get_permission_level(repo, username) in WRITE_PERMISSIONS
