"""Inbound webhook event shapes.

Each supported GitHub webhook is decoded into one of three frozen
dataclasses. The router dispatches on the concrete class, so the set of
events pulljoy understands is exactly the members of `Event`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Union

from pulljoy_core.errors import UnsupportedEventType

MIRROR_BRANCH_PREFIX = "pulljoy/"
_MIRROR_BRANCH_RE = re.compile(r"^" + re.escape(MIRROR_BRANCH_PREFIX) + r"(\d+)$")


def mirror_branch_name(pr_number: int) -> str:
    return f"{MIRROR_BRANCH_PREFIX}{pr_number}"


def pr_number_from_mirror_branch(branch: str | None) -> int | None:
    """Return N for a `pulljoy/N` branch name, otherwise None."""
    match = _MIRROR_BRANCH_RE.match(branch or "")
    return int(match.group(1)) if match else None


@dataclass(frozen=True)
class RepositoryRef:
    sha: str
    repo_full_name: str


@dataclass(frozen=True)
class PullRequestEvent:
    ACTION_OPENED = "opened"
    ACTION_CLOSED = "closed"
    ACTION_SYNCHRONIZE = "synchronize"
    ACTION_REOPENED = "reopened"

    action: str
    repo_full_name: str
    user_login: str
    number: int
    head: RepositoryRef
    base: RepositoryRef

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> PullRequestEvent:
        pr = payload["pull_request"]
        # Fall back to the PR author when the delivery has no top-level actor.
        user = payload.get("sender") or payload.get("user") or pr["user"]
        return cls(
            action=payload["action"],
            repo_full_name=payload["repository"]["full_name"],
            user_login=user["login"],
            number=pr["number"],
            head=_ref_from_payload(pr["head"]),
            base=_ref_from_payload(pr["base"]),
        )


@dataclass(frozen=True)
class IssueCommentEvent:
    ACTION_CREATED = "created"
    ACTION_EDITED = "edited"
    ACTION_DELETED = "deleted"

    action: str
    repo_full_name: str
    issue_number: int
    comment_id: int
    comment_body: str
    comment_author: str

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> IssueCommentEvent:
        comment = payload["comment"]
        return cls(
            action=payload["action"],
            repo_full_name=payload["repository"]["full_name"],
            issue_number=payload["issue"]["number"],
            comment_id=comment["id"],
            comment_body=comment.get("body") or "",
            comment_author=comment["user"]["login"],
        )


@dataclass(frozen=True)
class CheckSuiteEvent:
    ACTION_COMPLETED = "completed"

    action: str
    repo_full_name: str
    head_sha: str
    status: str | None
    conclusion: str | None
    pull_request_numbers: tuple[int, ...] = field(default_factory=tuple)
    head_branch: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> CheckSuiteEvent:
        suite = payload["check_suite"]
        return cls(
            action=payload["action"],
            repo_full_name=payload["repository"]["full_name"],
            head_sha=suite["head_sha"],
            status=suite.get("status"),
            conclusion=suite.get("conclusion"),
            pull_request_numbers=tuple(pr["number"] for pr in suite.get("pull_requests") or []),
            head_branch=suite.get("head_branch"),
        )

    def target_pr_numbers(self) -> tuple[int, ...]:
        """PRs this suite belongs to.

        GitHub leaves pull_requests empty for pushes to branches that are not
        a PR head, which is the case for mirror branches, so the PR number
        encoded in a `pulljoy/N` head branch is used as a fallback.
        """
        if self.pull_request_numbers:
            return self.pull_request_numbers
        number = pr_number_from_mirror_branch(self.head_branch)
        return (number,) if number is not None else ()


Event = Union[PullRequestEvent, IssueCommentEvent, CheckSuiteEvent]

_EVENT_TYPES: dict[str, type] = {
    "pull_request": PullRequestEvent,
    "pull_request_target": PullRequestEvent,
    "issue_comment": IssueCommentEvent,
    "check_suite": CheckSuiteEvent,
}


def parse_event(event_name: str, payload: dict[str, Any]) -> Event:
    """Decode a webhook payload given its X-GitHub-Event name."""
    event_cls = _EVENT_TYPES.get(event_name)
    if event_cls is None:
        raise UnsupportedEventType(f"Unsupported event type {event_name!r}")
    return event_cls.from_payload(payload)


@dataclass(frozen=True)
class EventContext:
    """Per-event correlation data. Used for logging, authorization and replies; never persisted."""

    repo_full_name: str
    pr_number: int
    event_source_author: str | None = None
    event_source_comment_id: int | None = None

    @property
    def key(self) -> tuple[str, int]:
        return (self.repo_full_name, self.pr_number)


def _ref_from_payload(ref: dict[str, Any]) -> RepositoryRef:
    # repo is null when the fork behind a PR has been deleted.
    repo = ref.get("repo") or {}
    return RepositoryRef(sha=ref["sha"], repo_full_name=repo.get("full_name", ""))
