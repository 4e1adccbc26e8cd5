import os
from pathlib import Path
from typing import Optional

import yaml

from pulljoy_core.commands import DEFAULT_COMMAND_PREFIX

DEFAULT_CONFIG: dict = {
    "command_prefix": DEFAULT_COMMAND_PREFIX,
    "bot_username": None,  # None = resolve from the authenticated GitHub user
    "git_auth_strategy": "token",  # "token" | "none"
    "mirror_timeout": 600,  # seconds, per git subprocess
    "store": "sqlite",  # "sqlite" | "memory"
    "store_path": ".pulljoy.db",
    "reraise_unexpected_errors": True,
}

GIT_AUTH_STRATEGIES = ("token", "none")
STORE_TYPES = ("sqlite", "memory")


def load_config(config_path: str = ".pulljoy.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .pulljoy.yml in the current directory
      3. CLI argument overrides
    """
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    if config["git_auth_strategy"] not in GIT_AUTH_STRATEGIES:
        raise ValueError(
            f"Unknown git_auth_strategy: {config['git_auth_strategy']!r}. Choose one of {', '.join(GIT_AUTH_STRATEGIES)}."
        )
    if config["store"] not in STORE_TYPES:
        raise ValueError(f"Unknown store: {config['store']!r}. Choose one of {', '.join(STORE_TYPES)}.")

    # Resolve credentials from environment variables
    config["github_token"] = os.environ.get("GITHUB_TOKEN")
    config["git_auth_token"] = os.environ.get("PULLJOY_GIT_TOKEN") or config["github_token"]

    return config
