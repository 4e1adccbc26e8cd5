"""state commands — inspect or clear tracked pull request workflows."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from pulljoy_store.models import AWAITING_CI, AWAITING_MANUAL_REVIEW, STANDING_BY

console = Console()

_STATE_STYLE = {
    AWAITING_MANUAL_REVIEW: "yellow",
    AWAITING_CI: "cyan",
    STANDING_BY: "green",
}


@click.group("state")
def state_cmd():
    """Inspect or clear tracked pull request workflows."""


@state_cmd.command("list")
@click.option("--repo", required=True, help="GitHub repository (owner/name).")
@click.pass_context
def list_cmd(ctx, repo: str):
    """Show every tracked pull request for a repository."""
    store = ctx.obj["store"]
    states = store.list_states(repo)
    if not states:
        console.print("[yellow]No active workflows found.[/yellow]")
        return

    table = Table(title=f"Pulljoy workflows — {repo}", show_header=True, header_style="bold cyan")
    table.add_column("PR", style="bold", width=6)
    table.add_column("State", width=24)
    table.add_column("Review ID", width=12)
    table.add_column("Commit", width=10)

    for pr_number, state in states:
        style = _STATE_STYLE.get(state.state_name, "red")
        table.add_row(
            f"#{pr_number}",
            f"[{style}]{state.state_name}[/{style}]",
            state.review_id or "",
            (state.commit_sha or "")[:8],
        )

    console.print(table)


@state_cmd.command("show")
@click.option("--repo", required=True, help="GitHub repository (owner/name).")
@click.option("--pr", "pr_number", type=int, required=True, help="Pull request number.")
@click.pass_context
def show_cmd(ctx, repo: str, pr_number: int):
    """Show the workflow state of one pull request."""
    state = ctx.obj["store"].load(repo, pr_number)
    if state is None:
        console.print(f"[yellow]No active workflow for {repo}#{pr_number}.[/yellow]")
        return

    console.print(f"[bold]{repo}#{pr_number}[/bold]")
    console.print(f"  State:     {state.state_name}")
    if state.review_id:
        console.print(f"  Review ID: {state.review_id}")
    if state.commit_sha:
        console.print(f"  Commit:    {state.commit_sha}")


@state_cmd.command("clear")
@click.option("--repo", required=True, help="GitHub repository (owner/name).")
@click.option("--pr", "pr_number", type=int, required=True, help="Pull request number.")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@click.pass_context
def clear_cmd(ctx, repo: str, pr_number: int, yes: bool):
    """Forget the workflow state of one pull request.

    The mirror branch and any running CI are left alone; the next
    opened/reopened event starts a fresh workflow.
    """
    if not yes:
        click.confirm(f"Clear the workflow state for {repo}#{pr_number}?", abort=True)
    ctx.obj["store"].delete(repo, pr_number)
    console.print(f"[green]Cleared state for {repo}#{pr_number}.[/green]")
