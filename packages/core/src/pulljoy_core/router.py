"""Event routing: classify an inbound event and hand it to the workflow engine.

For every (repository, PR) an event touches, the router builds an
EventContext, takes that key's lock for the whole load → act → save
sequence, and runs the matching engine handler. Events for different keys
never wait on each other.

The locks are per process. `pulljoy handle` runs one process per delivery,
so serializing deliveries for the same PR across processes is left to the
caller, e.g. a GitHub Actions `concurrency:` group per repository and PR.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, Callable, Iterator

from pulljoy_core.errors import UnsupportedEventType
from pulljoy_core.events import CheckSuiteEvent, EventContext, IssueCommentEvent, PullRequestEvent
from pulljoy_core.utils.log import EventLogger

if TYPE_CHECKING:
    from pulljoy_core.engine import WorkflowEngine
    from pulljoy_core.events import Event

logger = logging.getLogger(__name__)


class _KeyLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class KeyedLocks:
    """One mutex per key within this process, dropped again once no thread holds or waits for it."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[tuple[str, int], _KeyLock] = {}

    @contextmanager
    def hold(self, key: tuple[str, int]) -> Iterator[None]:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _KeyLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class EventRouter:
    def __init__(
        self,
        engine: WorkflowEngine,
        reraise_unexpected_errors: bool = True,
        locks: KeyedLocks | None = None,
    ):
        self.engine = engine
        self.reraise_unexpected_errors = reraise_unexpected_errors
        self.locks = locks if locks is not None else KeyedLocks()

    def process(self, event: Event) -> None:
        if isinstance(event, PullRequestEvent):
            self._process_pull_request_event(event)
        elif isinstance(event, IssueCommentEvent):
            self._process_issue_comment_event(event)
        elif isinstance(event, CheckSuiteEvent):
            self._process_check_suite_event(event)
        else:
            raise UnsupportedEventType(f"Unsupported event type {type(event).__name__}")

    def _process_pull_request_event(self, event: PullRequestEvent) -> None:
        ctx = EventContext(
            repo_full_name=event.repo_full_name,
            pr_number=event.number,
            event_source_author=event.user_login,
        )
        handlers = {
            PullRequestEvent.ACTION_OPENED: self.engine.pull_request_opened,
            PullRequestEvent.ACTION_REOPENED: self.engine.pull_request_reopened,
            PullRequestEvent.ACTION_SYNCHRONIZE: self.engine.pull_request_synchronized,
            PullRequestEvent.ACTION_CLOSED: self.engine.pull_request_closed,
        }
        self._dispatch(ctx, event, handlers.get(event.action))

    def _process_issue_comment_event(self, event: IssueCommentEvent) -> None:
        ctx = EventContext(
            repo_full_name=event.repo_full_name,
            pr_number=event.issue_number,
            event_source_author=event.comment_author,
            event_source_comment_id=event.comment_id,
        )
        handler = self.engine.issue_comment_created if event.action == IssueCommentEvent.ACTION_CREATED else None
        self._dispatch(ctx, event, handler)

    def _process_check_suite_event(self, event: CheckSuiteEvent) -> None:
        log = EventLogger(logger)
        log.info("Processing event", props={"event_type": type(event).__name__, "action": event.action})
        if event.action != CheckSuiteEvent.ACTION_COMPLETED:
            log.debug("Ignoring '%s' action", event.action)
            return

        pr_numbers = event.target_pr_numbers()
        if not pr_numbers:
            log.debug("No pull requests found in this event", props={"head_branch": event.head_branch})
            return

        for pr_number in pr_numbers:
            ctx = EventContext(repo_full_name=event.repo_full_name, pr_number=pr_number)
            self._run(ctx, event, self.engine.check_suite_completed)

    def _dispatch(self, ctx: EventContext, event: Event, handler: Callable | None) -> None:
        log = EventLogger(logger, ctx)
        log.info("Processing event", props={"event_type": type(event).__name__, "action": event.action})
        if handler is None:
            log.debug("Ignoring '%s' action", event.action)
            return
        self._run(ctx, event, handler)

    def _run(self, ctx: EventContext, event: Event, handler: Callable) -> None:
        with self.locks.hold(ctx.key):
            try:
                handler(ctx, event)
            except Exception as e:
                self._log_unexpected_error(ctx, e)
                if self.reraise_unexpected_errors:
                    raise

    def _log_unexpected_error(self, ctx: EventContext, error: Exception) -> None:
        log = EventLogger(logger, ctx)
        try:
            self.engine.report_unexpected_error(ctx, error)
        except Exception:
            log.exception("Could not report error to the pull request thread")
        log.error(
            "Encountered unexpected error",
            exc_info=error,
            props={"error_class": type(error).__name__, "actor": ctx.event_source_author},
        )
