"""handle command — route one webhook delivery through the approval workflow."""

from __future__ import annotations

import json

import click
from rich.console import Console

from pulljoy_core.engine import WorkflowEngine
from pulljoy_core.errors import UnsupportedEventType
from pulljoy_core.events import parse_event
from pulljoy_core.gh.mirror import GitMirror
from pulljoy_core.providers.github import GitHubProvider
from pulljoy_core.router import EventRouter

console = Console()


def _build_router(config: dict, store) -> EventRouter:
    """Wire the GitHub provider, git mirror and store into an EventRouter.

    All collaborators are passed explicitly; nothing is process-global.
    """
    provider = GitHubProvider(token=config["github_token"])
    mirror = GitMirror(
        auth_strategy=config["git_auth_strategy"],
        token=config.get("git_auth_token"),
        timeout=config["mirror_timeout"],
    )
    engine = WorkflowEngine(config=config, provider=provider, store=store, mirror=mirror)
    return EventRouter(engine, reraise_unexpected_errors=config["reraise_unexpected_errors"])


@click.command("handle")
@click.option(
    "--event",
    "event_name",
    required=True,
    envvar="GITHUB_EVENT_NAME",
    help="Webhook event name (X-GitHub-Event), e.g. pull_request.",
)
@click.option(
    "--payload",
    "payload_path",
    required=True,
    envvar="GITHUB_EVENT_PATH",
    type=click.Path(exists=True, dir_okay=False),
    help="Path to the JSON webhook payload.",
)
@click.pass_context
def handle_cmd(ctx, event_name: str, payload_path: str):
    """Process a single GitHub webhook delivery.

    Reads the payload from --payload and routes it as --event. Inside a
    GitHub Actions job both default to the triggering event.

    \b
    Required environment variables:
      GITHUB_TOKEN         GitHub token (or use gh CLI)
      PULLJOY_GIT_TOKEN    Token used to push mirror branches (defaults to GITHUB_TOKEN)
    """
    config = ctx.obj["config"]
    if not config.get("github_token"):
        raise click.UsageError(
            "No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.\n"
            "Create a token at https://github.com/settings/tokens"
        )

    with open(payload_path, encoding="utf-8") as f:
        try:
            payload = json.load(f)
        except json.JSONDecodeError as e:
            raise click.UsageError(f"Payload is not valid JSON: {e}")

    try:
        event = parse_event(event_name, payload)
    except UnsupportedEventType as e:
        raise click.UsageError(str(e))
    except (KeyError, TypeError) as e:
        raise click.UsageError(f"Malformed {event_name} payload: missing {e}")

    router = _build_router(config, ctx.obj["store"])
    router.process(event)
    console.print(f"[green]Processed {event_name} '{event.action}' event.[/green]")
