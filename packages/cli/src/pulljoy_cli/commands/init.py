"""init command — write .pulljoy.yml and a CI workflow for mirror branches.

Pulljoy only starts CI by pushing `pulljoy/<pr>` branches to the target
repository, so the repository's CI must run on pushes to those branches.
The generated workflow is a starting point for that trigger.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

import click
import yaml
from rich.console import Console

from pulljoy_core.commands import DEFAULT_COMMAND_PREFIX
from pulljoy_core.events import MIRROR_BRANCH_PREFIX

console = Console()

_WORKFLOW_TEMPLATE = """\
name: CI (Pulljoy approved)

on:
  push:
    branches: ["{branch_prefix}**"]

jobs:
  test:
    runs-on: ubuntu-latest
    permissions:
      contents: read

    steps:
      - uses: actions/checkout@v4

      # Replace with the repository's own build and test steps.
      - name: Run tests
        run: echo "Testing approved commit ${{{{ github.sha }}}}"
"""


@click.command("init")
@click.option("--repo", default=None, help="GitHub repository (owner/name). Auto-detected from git remote.")
def init_cmd(repo: str | None):
    """Set up pulljoy for a repository.

    Creates .pulljoy.yml and optionally a GitHub Actions workflow that runs
    on pushes to pulljoy mirror branches.
    """
    console.print("\n[bold cyan]pulljoy init[/bold cyan] — setup wizard\n")

    if repo is None:
        repo = _detect_repo_from_git()
        if repo:
            console.print(f"[dim]Detected repository: {repo}[/dim]")
        else:
            repo = click.prompt("GitHub repository (owner/name)")

    command_prefix = click.prompt("Command prefix", default=DEFAULT_COMMAND_PREFIX)
    bot_username = click.prompt("Bot GitHub username (empty = detect from token)", default="", show_default=False)

    console.print("\nWorkflow state store:")
    console.print("  [bold]sqlite[/bold]  — local SQLite file (default)")
    console.print("  [bold]memory[/bold]  — in-process only, lost on exit")
    store_type = click.prompt(
        "Store backend",
        type=click.Choice(["sqlite", "memory"]),
        default="sqlite",
    )

    config: dict = {"command_prefix": command_prefix}
    if bot_username:
        config["bot_username"] = bot_username
    config["store"] = store_type
    if store_type == "sqlite":
        db_path = click.prompt("SQLite database path", default=".pulljoy.db")
        if db_path != ".pulljoy.db":
            config["store_path"] = db_path

    _write_config(config)
    console.print("[green]Created .pulljoy.yml[/green]")

    setup_ci = click.confirm("\nGenerate .github/workflows/pulljoy-ci.yml for mirror branches?", default=True)
    if setup_ci:
        _write_workflow()
        console.print("[green]Created .github/workflows/pulljoy-ci.yml[/green]")
        console.print(
            "\n[yellow]Mirror pushes need a token that can trigger workflows: set "
            "[bold]PULLJOY_GIT_TOKEN[/bold] to a PAT with repo scope.[/yellow]"
        )

    console.print("\n[bold green]Setup complete![/bold green]")
    console.print(f"Maintainers approve CI runs on {repo} by commenting: [bold]{command_prefix} approve <review-id>[/bold]")


def _detect_repo_from_git() -> str | None:
    """Try to detect the GitHub repo slug from the git remote URL."""
    try:
        result = subprocess.run(
            ["git", "remote", "get-url", "origin"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        return None
    url = result.stdout.strip()
    # https://github.com/owner/repo.git  →  owner/repo
    # git@github.com:owner/repo.git      →  owner/repo
    if "github.com" not in url:
        return None
    slug = url.split("github.com")[-1].lstrip("/:").removesuffix(".git")
    return slug if "/" in slug else None


def _write_config(config: dict) -> None:
    """Write or update .pulljoy.yml, preserving any existing keys."""
    path = Path(".pulljoy.yml")
    existing: dict = {}
    if path.exists():
        existing = yaml.safe_load(path.read_text()) or {}
    existing.update(config)
    path.write_text(yaml.dump(existing, default_flow_style=False, sort_keys=False))


def _write_workflow() -> None:
    workflow_dir = Path(".github/workflows")
    workflow_dir.mkdir(parents=True, exist_ok=True)
    (workflow_dir / "pulljoy-ci.yml").write_text(_WORKFLOW_TEMPLATE.format(branch_prefix=MIRROR_BRANCH_PREFIX))
