"""CI result aggregation and the result comment posted when a run completes."""

from __future__ import annotations

from dataclasses import dataclass

SUCCESS = "success"
FAILURE = "failure"
COMPLETED = "completed"

_CONCLUSION_ICONS = {
    "success": "✅",
    "failure": "❌",
    "cancelled": "❌",
    "timed_out": "❌",
    "stale": "❌",
    "action_required": "⚠️",
}
_UNKNOWN_ICON = "❔"


@dataclass(frozen=True)
class CheckSuiteSummary:
    status: str | None
    conclusion: str | None


@dataclass(frozen=True)
class CheckRunResult:
    conclusion: str | None
    title: str | None
    app_name: str
    html_url: str


def shorten_commit_sha(commit_sha: str) -> str:
    return commit_sha[:8]


def all_check_suites_completed(check_suites: list[CheckSuiteSummary]) -> bool:
    return all(suite.status == COMPLETED for suite in check_suites)


def overall_conclusion(check_suites: list[CheckSuiteSummary]) -> str:
    """Return "success" iff every suite succeeded; one non-success suite fails the batch.

    Individual check-run conclusions are not consulted.
    """
    if all(suite.conclusion == SUCCESS for suite in check_suites):
        return SUCCESS
    return FAILURE


def conclusion_icon(conclusion: str | None) -> str:
    return _CONCLUSION_ICONS.get(conclusion or "", _UNKNOWN_ICON)


def render_check_run_conclusions(check_runs: list[CheckRunResult]) -> str:
    """Render one markdown list item per check run, linking to the run."""
    lines = []
    for run in check_runs:
        icon = conclusion_icon(run.conclusion)
        lines.append(f" * [{icon} {run.app_name}: {run.title or ''}]({run.html_url})\n")
    return "".join(lines)


def build_ci_report(commit_sha: str, check_suites: list[CheckSuiteSummary], check_runs: list[CheckRunResult]) -> str:
    return (
        f"CI run for {shorten_commit_sha(commit_sha)} completed.\n\n"
        f" * Conclusion: {overall_conclusion(check_suites)}\n"
        + render_check_run_conclusions(check_runs)
    )
