"""Logger adapter that tags every record with the current event's context."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pulljoy_core.events import EventContext


def context_props(context: EventContext | None) -> dict[str, Any]:
    if context is None:
        return {}
    props: dict[str, Any] = {"repo": context.repo_full_name, "pr_num": context.pr_number}
    if context.event_source_comment_id is not None:
        props["comment_id"] = context.event_source_comment_id
    return props


class EventLogger(logging.LoggerAdapter):
    """Appends `[repo=... pr_num=...]` to messages and exposes the same fields via `extra`.

    Extra keyword props passed as `props={...}` are merged in, so call sites
    can attach details such as the expected and actual commit.
    """

    def __init__(self, logger: logging.Logger, context: EventContext | None = None):
        super().__init__(logger, context_props(context))

    def log(self, level, msg, *args, **kwargs):
        if not self.isEnabledFor(level):
            return
        props = {**self.extra, **kwargs.pop("props", {})}
        kwargs["extra"] = {**kwargs.get("extra", {}), **props}
        if props:
            # Passed as an argument so a '%' inside a value is never read as a format directive.
            msg = f"{msg} [%s]"
            args = (*args, " ".join(f"{key}={value}" for key, value in props.items()))
        self.logger.log(level, msg, *args, **kwargs)
