"""CLI entry point for pulljoy.

Commands:
  handle  — route one webhook delivery through the approval workflow
  state   — inspect or clear tracked pull request states
  init    — write .pulljoy.yml and a CI workflow for mirror branches
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from pulljoy_cli.commands.handle import handle_cmd
from pulljoy_cli.commands.init import init_cmd
from pulljoy_cli.commands.state import state_cmd

console = Console()

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def _build_store(config: dict):
    """Instantiate the configured state store from .pulljoy.yml settings.

    Store selection:
      store: sqlite → SQLiteStore (store_path or .pulljoy.db), the default
      store: memory → MemoryStore (nothing survives the process)
    """
    store_type = config.get("store", "sqlite")

    if store_type == "memory":
        from pulljoy_store.memory import MemoryStore

        return MemoryStore()

    from pulljoy_store.sqlite import SQLiteStore

    return SQLiteStore(db_path=config.get("store_path", ".pulljoy.db"))


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@click.group()
@click.version_option(
    version=importlib.metadata.version("pulljoy"),
    prog_name="pulljoy",
)
@click.option(
    "--config",
    "config_path",
    default=".pulljoy.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PULLJOY_CONFIG",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    envvar="PULLJOY_LOG_LEVEL",
    help="Logging verbosity.",
)
@click.option(
    "--store",
    "store_type",
    type=click.Choice(["sqlite", "memory"]),
    default=None,
    help="State store backend. Overrides `store` in the config file.",
)
@click.option(
    "--store-path",
    default=None,
    help="SQLite database path. Overrides `store_path` in the config file.",
)
@click.pass_context
def main(ctx: click.Context, config_path: str, log_level: str, store_type: str | None, store_path: str | None):
    """Approve-before-CI gate for GitHub pull requests."""
    from pulljoy_core.config import load_config
    from pulljoy_cli.auth import resolve_github_token

    _configure_logging(log_level.upper())
    ctx.ensure_object(dict)

    try:
        config = load_config(config_path, cli_overrides={"store": store_type, "store_path": store_path})
    except ValueError as e:
        raise click.UsageError(str(e))

    # Resolve token early so all subcommands share the same resolution.
    token = resolve_github_token()
    if token:
        config["github_token"] = token
        config["git_auth_token"] = config.get("git_auth_token") or token

    store = _build_store(config)
    ctx.obj["store"] = store
    ctx.obj["config"] = config
    ctx.call_on_close(store.close)


main.add_command(handle_cmd)
main.add_command(state_cmd)
main.add_command(init_cmd)
