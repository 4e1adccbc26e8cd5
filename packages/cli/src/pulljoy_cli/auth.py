"""GitHub token resolution with gh CLI fallback.

Resolution order (stops at first success):
  1. GITHUB_TOKEN environment variable (CI / explicit override)
  2. `gh auth token` (GitHub CLI session, works after `gh auth login`)

The mirror push may use a different credential: PULLJOY_GIT_TOKEN, read by
load_config(). Pushes made with the Actions-provided GITHUB_TOKEN do not
trigger workflows, so a PAT is needed there for mirrored CI to start.
"""

from __future__ import annotations

import logging
import os
import subprocess

logger = logging.getLogger(__name__)


def resolve_github_token() -> str | None:
    """Return a GitHub token or None if no valid source is available.

    Never raises; callers should check for None and emit a UsageError.
    """
    token = os.environ.get("GITHUB_TOKEN")
    if token:
        return token

    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        logger.debug("gh CLI unavailable; no GitHub token resolved.")
        return None

    if result.returncode == 0 and result.stdout.strip():
        logger.debug("Resolved GitHub token via gh CLI session.")
        return result.stdout.strip()
    return None
