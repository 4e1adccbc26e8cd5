"""Per-pull-request workflow state machine.

States (persisted via the state store):

    awaiting_manual_review  a review request with review_id is pending
    awaiting_ci             the approved commit_sha is mirrored and CI is running
    standing_by             CI for commit_sha finished and was reported

No record means no active workflow. Every handler follows the same order:
load the state, perform all side effects, then write the new state. If a
side effect raises, the stored state is untouched and the event can be
redelivered.

The engine assumes the caller serializes handlers per (repo, PR); see
pulljoy_core.router.
"""

from __future__ import annotations

import logging
import secrets
from typing import TYPE_CHECKING, Callable

from pulljoy_core.checks import all_check_suites_completed, build_ci_report
from pulljoy_core.commands import DEFAULT_COMMAND_PREFIX, ApproveCommand, CommandError, parse_command
from pulljoy_core.errors import BugError
from pulljoy_core.events import mirror_branch_name
from pulljoy_core.utils.log import EventLogger
from pulljoy_store.models import AWAITING_CI, AWAITING_MANUAL_REVIEW, STANDING_BY, WorkflowState

if TYPE_CHECKING:
    from pulljoy_core.events import CheckSuiteEvent, EventContext, IssueCommentEvent, PullRequestEvent
    from pulljoy_core.gh.mirror import GitMirror
    from pulljoy_core.providers.base import BaseCIProvider, BaseNotifier
    from pulljoy_store.base import BaseStateStore

logger = logging.getLogger(__name__)


def generate_review_id() -> str:
    return secrets.token_hex(5)


class WorkflowEngine:
    def __init__(
        self,
        config: dict,
        provider: BaseCIProvider,
        store: BaseStateStore,
        mirror: GitMirror,
        notifier: BaseNotifier | None = None,
        review_id_factory: Callable[[], str] = generate_review_id,
    ):
        self.config = config
        self.provider = provider
        self.store = store
        self.mirror = mirror
        self.notifier = notifier if notifier is not None else provider
        self.command_prefix = config.get("command_prefix") or DEFAULT_COMMAND_PREFIX
        self._bot_username = config.get("bot_username")
        self._review_id_factory = review_id_factory

    @property
    def bot_username(self) -> str:
        if self._bot_username is None:
            self._bot_username = self.provider.authenticated_username()
        return self._bot_username

    # ------------------------------------------------------------------ #
    # Pull request events                                                 #
    # ------------------------------------------------------------------ #

    def pull_request_opened(self, ctx: EventContext, event: PullRequestEvent) -> None:
        log = EventLogger(logger, ctx)
        log.debug("Processing 'opened' action")
        self._request_manual_review(ctx, self.store.load(*ctx.key))

    def pull_request_reopened(self, ctx: EventContext, event: PullRequestEvent) -> None:
        log = EventLogger(logger, ctx)
        log.debug("Processing 'reopened' action")
        self._request_manual_review(ctx, self.store.load(*ctx.key))

    def pull_request_synchronized(self, ctx: EventContext, event: PullRequestEvent) -> None:
        log = EventLogger(logger, ctx)
        log.debug("Processing 'synchronize' action")
        state = self._load_state(ctx, log)
        if state is None:
            return

        if state.state_name == AWAITING_MANUAL_REVIEW:
            self._request_manual_review(ctx, state)
        elif state.state_name == AWAITING_CI:
            self._cancel_ci_run(ctx, state, log)
            self._delete_mirror_branch(ctx, log)
            self._request_manual_review(ctx, state)
        elif state.state_name == STANDING_BY:
            self._request_manual_review(ctx, state)
        else:
            raise BugError(f"in unexpected state {state.state_name}")

    def pull_request_closed(self, ctx: EventContext, event: PullRequestEvent) -> None:
        log = EventLogger(logger, ctx)
        log.debug("Processing 'closed' action")
        state = self._load_state(ctx, log)
        if state is None:
            return

        if state.state_name == AWAITING_CI:
            self._cancel_ci_run(ctx, state, log)
            self._delete_mirror_branch(ctx, log)
        self.store.delete(*ctx.key)

    # ------------------------------------------------------------------ #
    # Issue comment events                                                #
    # ------------------------------------------------------------------ #

    def issue_comment_created(self, ctx: EventContext, event: IssueCommentEvent) -> None:
        log = EventLogger(logger, ctx)
        log.debug("Processing 'created' action")
        state = self._load_state(ctx, log)
        if state is None:
            return

        author = ctx.event_source_author
        if author == self.bot_username:
            log.debug("Ignoring comment by myself")
            return

        try:
            command = parse_command(event.comment_body, self.command_prefix)
        except CommandError as e:
            # Unauthorized users get no reply at all, not even a syntax error.
            if not self._user_authorized(ctx):
                log.debug("Ignoring malformed command from unauthorized user", props={"username": author})
                return
            self._post_comment(ctx, f"Sorry @{author}: {e}")
            return

        if command is None:
            log.debug("Ignoring comment: no command found in comment")
            return

        if not self._user_authorized(ctx):
            log.debug("Rejecting command: user not authorized to send commands", props={"username": author})
            self._post_comment(ctx, f"Sorry @{author}, you are not authorized to send commands to Pulljoy.")
            return

        log.debug("Command parsed", props={"command_type": type(command).__name__})
        if isinstance(command, ApproveCommand):
            self._process_approve_command(ctx, state, command, log)
        else:
            raise BugError(f"unsupported command type {type(command).__name__}")

    def _process_approve_command(
        self, ctx: EventContext, state: WorkflowState, command: ApproveCommand, log: EventLogger
    ) -> None:
        author = ctx.event_source_author
        if state.state_name != AWAITING_MANUAL_REVIEW:
            log.debug("Rejecting command: currently not in %s state", AWAITING_MANUAL_REVIEW)
            self._post_comment(ctx, f"Sorry @{author}, there is no review request awaiting approval.")
            return

        if command.review_id != state.review_id:
            self._post_comment(
                ctx,
                f"Sorry @{author}, that was the wrong review ID."
                " Please check whether you posted the right ID, or whether the pull request needs to"
                " be re-reviewed.",
            )
            return

        pr = self.provider.get_pull_request(ctx.repo_full_name, ctx.pr_number)
        self.mirror.mirror(
            source_repo=pr.head.repo_full_name,
            source_commit_sha=pr.head.sha,
            target_repo=pr.base.repo_full_name,
            target_branch_name=mirror_branch_name(ctx.pr_number),
        )
        log.info("Approved commit mirrored", props={"commit": pr.head.sha})
        self._save_state(ctx, WorkflowState.awaiting_ci(pr.head.sha))

    # ------------------------------------------------------------------ #
    # Check suite events                                                  #
    # ------------------------------------------------------------------ #

    def check_suite_completed(self, ctx: EventContext, event: CheckSuiteEvent) -> None:
        """Handle a completed check suite for one of the PRs it belongs to."""
        log = EventLogger(logger, ctx)
        log.debug("Processing 'completed' action")
        state = self._load_state(ctx, log)
        if state is None:
            return

        if state.state_name != AWAITING_CI:
            log.debug("Ignoring PR because state is not %s", AWAITING_CI, props={"state": state.state_name})
            return

        if state.commit_sha != event.head_sha:
            log.debug(
                "Ignoring PR because the commit for which the check suite was completed, is not the one we expect",
                props={"expected_commit": state.commit_sha, "actual_commit": event.head_sha},
            )
            return

        check_suites = self.provider.check_suites_for_commit(ctx.repo_full_name, event.head_sha)
        if not all_check_suites_completed(check_suites):
            log.debug("Ignoring PR because not all check suites for this commit are completed")
            return

        check_runs = self.provider.check_runs_for_commit(ctx.repo_full_name, event.head_sha)
        report = build_ci_report(event.head_sha, check_suites, check_runs)
        self._delete_mirror_branch(ctx, log)
        self._post_comment(ctx, report)
        self._save_state(ctx, WorkflowState.standing_by(event.head_sha))

    # ------------------------------------------------------------------ #
    # Error reporting                                                     #
    # ------------------------------------------------------------------ #

    def report_unexpected_error(self, ctx: EventContext, error: Exception) -> None:
        """Tell the PR thread that processing failed. Logging is left to the caller."""
        mention = f"@{ctx.event_source_author} " if ctx.event_source_author else ""
        if isinstance(error, BugError):
            body = (
                f"{mention}Oops, bug found in Pulljoy the CI bot:\n"
                f"~~~\n{error}\n~~~\n"
                "Please report this bug to the Pulljoy developers."
            )
        else:
            body = (
                f"{mention}Oops, Pulljoy the CI bot has encountered an unexpected error:\n"
                f"~~~\n{type(error).__name__}:\n{error}\n~~~\n"
            )
        self._post_comment(ctx, body)

    # ------------------------------------------------------------------ #
    # Helpers                                                             #
    # ------------------------------------------------------------------ #

    def _load_state(self, ctx: EventContext, log: EventLogger) -> WorkflowState | None:
        state = self.store.load(*ctx.key)
        if state is None:
            log.debug("No state found")
        else:
            log.debug("Loaded state", props={"state": state.state_name})
        return state

    def _save_state(self, ctx: EventContext, state: WorkflowState) -> None:
        self.store.save(ctx.repo_full_name, ctx.pr_number, state)

    def _new_review_id(self, previous: WorkflowState | None) -> str:
        review_id = self._review_id_factory()
        while previous is not None and review_id == previous.review_id:
            review_id = self._review_id_factory()
        return review_id

    def _request_manual_review(self, ctx: EventContext, previous: WorkflowState | None) -> None:
        review_id = self._new_review_id(previous)
        self._post_comment(
            ctx,
            "Hello maintainers, this is Pulljoy the CI bot."
            " Please review whether it's safe to start a CI run for this pull request."
            " If you deem it safe, post the following comment:"
            f" `{self.command_prefix} approve {review_id}`",
        )
        self._save_state(ctx, WorkflowState.awaiting_manual_review(review_id))

    def _cancel_ci_run(self, ctx: EventContext, state: WorkflowState, log: EventLogger) -> None:
        run_id = self.provider.find_active_run_id(ctx.repo_full_name, state.commit_sha)
        if run_id is None:
            log.debug("No Github Actions run ID detected", props={"commit": state.commit_sha})
            return
        log.debug("Cancelling Github Actions run", props={"run_id": run_id, "commit": state.commit_sha})
        self.provider.cancel_run(ctx.repo_full_name, run_id)

    def _delete_mirror_branch(self, ctx: EventContext, log: EventLogger) -> None:
        branch = mirror_branch_name(ctx.pr_number)
        log.debug("Deleting mirror branch", props={"branch": branch})
        self.provider.delete_ref(ctx.repo_full_name, branch)

    def _user_authorized(self, ctx: EventContext) -> bool:
        return self.provider.user_can_write(ctx.repo_full_name, ctx.event_source_author)

    def _post_comment(self, ctx: EventContext, body: str) -> None:
        self.notifier.post_comment(ctx.repo_full_name, ctx.pr_number, body)
