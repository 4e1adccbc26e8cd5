"""Tests for configuration loading."""

import pytest

from pulljoy_core.config import load_config


@pytest.fixture(autouse=True)
def _no_token_env(monkeypatch):
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("PULLJOY_GIT_TOKEN", raising=False)


def test_defaults_applied_when_no_config_file(tmp_path):
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["command_prefix"] == "/pulljoy"
    assert config["bot_username"] is None
    assert config["git_auth_strategy"] == "token"
    assert config["mirror_timeout"] == 600
    assert config["store"] == "sqlite"
    assert config["store_path"] == ".pulljoy.db"
    assert config["reraise_unexpected_errors"] is True


def test_config_file_overrides_defaults(tmp_path):
    cfg = tmp_path / ".pulljoy.yml"
    cfg.write_text("command_prefix: /ci\nbot_username: ci-bot\nmirror_timeout: 120\n")
    config = load_config(config_path=str(cfg))
    assert config["command_prefix"] == "/ci"
    assert config["bot_username"] == "ci-bot"
    assert config["mirror_timeout"] == 120


def test_empty_config_file_uses_defaults(tmp_path):
    cfg = tmp_path / ".pulljoy.yml"
    cfg.write_text("")
    config = load_config(config_path=str(cfg))
    assert config["store"] == "sqlite"


def test_cli_overrides_config_file(tmp_path):
    cfg = tmp_path / ".pulljoy.yml"
    cfg.write_text("store: sqlite\n")
    config = load_config(config_path=str(cfg), cli_overrides={"store": "memory"})
    assert config["store"] == "memory"


def test_none_cli_overrides_ignored(tmp_path):
    cfg = tmp_path / ".pulljoy.yml"
    cfg.write_text("store: memory\n")
    config = load_config(config_path=str(cfg), cli_overrides={"store": None})
    assert config["store"] == "memory"


def test_unknown_git_auth_strategy_rejected(tmp_path):
    cfg = tmp_path / ".pulljoy.yml"
    cfg.write_text("git_auth_strategy: ssh\n")
    with pytest.raises(ValueError, match="git_auth_strategy"):
        load_config(config_path=str(cfg))


def test_unknown_store_rejected(tmp_path):
    cfg = tmp_path / ".pulljoy.yml"
    cfg.write_text("store: postgres\n")
    with pytest.raises(ValueError, match="Unknown store"):
        load_config(config_path=str(cfg))


def test_tokens_resolved_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_api")
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["github_token"] == "ghp_api"
    assert config["git_auth_token"] == "ghp_api"


def test_git_token_overrides_api_token_for_mirroring(tmp_path, monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_api")
    monkeypatch.setenv("PULLJOY_GIT_TOKEN", "ghp_push")
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["github_token"] == "ghp_api"
    assert config["git_auth_token"] == "ghp_push"


def test_no_tokens_in_environment(tmp_path):
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["github_token"] is None
    assert config["git_auth_token"] is None
