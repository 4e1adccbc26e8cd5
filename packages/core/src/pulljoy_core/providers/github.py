"""GitHub implementation of the CI provider and notifier interfaces (PyGithub)."""

from __future__ import annotations

import logging
import re

from github import Github, GithubException

from pulljoy_core.checks import CheckRunResult, CheckSuiteSummary
from pulljoy_core.events import RepositoryRef
from pulljoy_core.providers.base import BaseCIProvider, BaseNotifier, PullRequestRefs, WorkflowRunSummary

logger = logging.getLogger(__name__)

# GitHub answers a ref delete with 422 for several unrelated conditions, so
# the idempotent case is recognized by its message. This depends on GitHub's
# free-text wording and will break silently if that wording changes.
_REF_DOES_NOT_EXIST_RE = re.compile(r"Reference does not exist")


def error_is_ref_doesnt_exist(error: GithubException) -> bool:
    """Return True if a ref delete failed only because the ref is already gone."""
    data = error.data
    if not isinstance(data, dict) or not isinstance(data.get("message"), str):
        logger.warning("Could not read a message from GitHub ref delete error: %r", data)
        return False
    return bool(_REF_DOES_NOT_EXIST_RE.search(data["message"]))


class GitHubProvider(BaseCIProvider, BaseNotifier):
    """Talks to the GitHub REST API through a single PyGithub client."""

    def __init__(self, token: str | None = None, client: Github | None = None):
        self._gh = client if client is not None else Github(token, lazy=True)

    def _repo(self, repo: str):
        return self._gh.get_repo(repo)

    def authenticated_username(self) -> str:
        return self._gh.get_user().login

    def list_workflow_runs(self, repo: str, status: str, head_sha: str | None = None) -> list[WorkflowRunSummary]:
        kwargs = {"status": status}
        if head_sha is not None:
            kwargs["head_sha"] = head_sha
        return [
            WorkflowRunSummary(id=run.id, head_sha=run.head_sha)
            for run in self._repo(repo).get_workflow_runs(**kwargs)
        ]

    def cancel_run(self, repo: str, run_id: int) -> None:
        self._repo(repo).get_workflow_run(run_id).cancel()

    def check_suites_for_commit(self, repo: str, commit_sha: str) -> list[CheckSuiteSummary]:
        commit = self._repo(repo).get_commit(commit_sha)
        return [CheckSuiteSummary(status=s.status, conclusion=s.conclusion) for s in commit.get_check_suites()]

    def check_runs_for_commit(self, repo: str, commit_sha: str) -> list[CheckRunResult]:
        commit = self._repo(repo).get_commit(commit_sha)
        results = []
        for run in commit.get_check_runs():
            output = run.output
            results.append(
                CheckRunResult(
                    conclusion=run.conclusion,
                    title=(output.title if output is not None else None) or run.name,
                    app_name=run.app.name if run.app is not None else "",
                    html_url=run.html_url,
                )
            )
        return results

    def delete_ref(self, repo: str, branch_name: str) -> None:
        # DELETE is issued directly rather than via get_git_ref(): looking the
        # ref up first turns a missing ref into a 404 without the message we
        # match on.
        url = f"{self._repo(repo).url}/git/refs/heads/{branch_name}"
        try:
            self._gh.requester.requestJsonAndCheck("DELETE", url)
        except GithubException as e:
            logger.debug("GitHub ref delete API returned %s: %r", e.status, e.data)
            if not error_is_ref_doesnt_exist(e):
                raise
            logger.debug("Branch %s already absent in %s", branch_name, repo)

    def get_pull_request(self, repo: str, pr_number: int) -> PullRequestRefs:
        pr = self._repo(repo).get_pull(pr_number)
        return PullRequestRefs(
            number=pr.number,
            head=RepositoryRef(sha=pr.head.sha, repo_full_name=pr.head.repo.full_name),
            base=RepositoryRef(sha=pr.base.sha, repo_full_name=pr.base.repo.full_name),
        )

    def get_permission_level(self, repo: str, username: str) -> str:
        return self._repo(repo).get_collaborator_permission(username)

    def post_comment(self, repo: str, issue_number: int, body: str) -> None:
        self._repo(repo).get_issue(issue_number).create_comment(body)
