"""Comment command parsing.

Grammar: `<prefix> <keyword> [args...]` anywhere on a line of the comment.
Only the first line carrying the prefix and a keyword is considered. Parsing is
pure; the engine turns CommandError into a reply comment.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

DEFAULT_COMMAND_PREFIX = "/pulljoy"


class CommandError(ValueError):
    """Base class for user input errors in a comment command."""


class CommandSyntaxError(CommandError):
    """A known command keyword with the wrong argument shape."""


class UnsupportedCommandType(CommandError):
    """An unknown keyword following the command prefix."""

    def __init__(self, keyword: str):
        super().__init__(f"unsupported command type '{keyword}'")
        self.keyword = keyword


@dataclass(frozen=True)
class ApproveCommand:
    review_id: str


Command = ApproveCommand


def _line_pattern(prefix: str) -> re.Pattern:
    return re.compile(r"(?:^|\s)" + re.escape(prefix) + r"(?=\s|$)(.*)$")


def parse_command(text: str, prefix: str = DEFAULT_COMMAND_PREFIX) -> Command | None:
    """Parse the first command in a comment body.

    Returns None when no line carries the prefix followed by a keyword.
    Raises UnsupportedCommandType or CommandSyntaxError otherwise.
    """
    pattern = _line_pattern(prefix)
    for line in (text or "").splitlines():
        match = pattern.search(line)
        if match is None:
            continue
        words = match.group(1).split()
        if not words:
            continue
        keyword, args = words[0], words[1:]
        if keyword == "approve":
            return _parse_approve(args)
        raise UnsupportedCommandType(keyword)
    return None


def _parse_approve(args: list[str]) -> ApproveCommand:
    if len(args) != 1:
        raise CommandSyntaxError(f"the 'approve' command requires exactly 1 argument (the review ID), got {len(args)}")
    return ApproveCommand(review_id=args[0])
