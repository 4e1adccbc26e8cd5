"""Tests for the git mirror subprocess sequence."""

import subprocess

import pytest

from pulljoy_core.gh.mirror import GitMirror, MirrorError, infer_git_url


def completed(returncode=0, stdout=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout)


@pytest.fixture
def run(mocker):
    return mocker.patch("pulljoy_core.gh.mirror.subprocess.run", return_value=completed())


def git_args(run_mock):
    return [c.args[0][1:] for c in run_mock.call_args_list]


def test_infer_git_url():
    assert infer_git_url("fork/test") == "https://github.com/fork/test.git"


class TestGitMirror:
    def test_token_strategy_requires_token(self):
        with pytest.raises(ValueError, match="requires a token"):
            GitMirror(auth_strategy="token", token=None)

    def test_push_url_never_contains_token(self):
        mirror = GitMirror(auth_strategy="token", token="ghp_secret")
        assert "ghp_secret" not in mirror.infer_push_url("test/test")
        assert GitMirror(auth_strategy="none").infer_push_url("test/test") == "https://github.com/test/test.git"

    def test_mirror_runs_clone_reset_force_push(self, run):
        GitMirror(auth_strategy="none").mirror("fork/test", "abc123", "test/test", "pulljoy/7")

        args = git_args(run)
        assert args[0][:3] == ["clone", "--no-checkout", "https://github.com/fork/test.git"]
        assert args[1] == ["remote", "add", "target", "https://github.com/test/test.git"]
        assert args[2] == ["reset", "--hard", "abc123"]
        assert args[3] == ["push", "--force", "target", "HEAD:refs/heads/pulljoy/7"]

    def test_every_command_has_timeout(self, run):
        GitMirror(auth_strategy="none", timeout=30).mirror("fork/test", "abc", "test/test", "pulljoy/7")
        assert all(c.kwargs["timeout"] == 30 for c in run.call_args_list)

    def test_token_passed_via_askpass_environment(self, run):
        GitMirror(auth_strategy="token", token="ghp_secret").mirror("fork/test", "abc", "test/test", "pulljoy/7")

        for c in run.call_args_list:
            env = c.kwargs["env"]
            assert env["GIT_TOKEN"] == "ghp_secret"
            assert env["GIT_ASKPASS"].endswith("git-askpass-helper.sh")
            assert env["GIT_TERMINAL_PROMPT"] == "0"
            assert all("ghp_secret" not in arg for arg in c.args[0])

    def test_no_askpass_without_token_strategy(self, run, monkeypatch):
        monkeypatch.delenv("GIT_ASKPASS", raising=False)
        monkeypatch.delenv("GIT_TOKEN", raising=False)
        GitMirror(auth_strategy="none").mirror("fork/test", "abc", "test/test", "pulljoy/7")
        env = run.call_args_list[0].kwargs["env"]
        assert "GIT_ASKPASS" not in env
        assert "GIT_TOKEN" not in env

    def test_nonzero_exit_raises_with_output(self, run):
        run.side_effect = [completed(), completed(), completed(), completed(1, "remote: Permission denied")]

        with pytest.raises(MirrorError, match="git push exited with status 1") as exc_info:
            GitMirror(auth_strategy="none").mirror("fork/test", "abc", "test/test", "pulljoy/7")

        assert exc_info.value.output == "remote: Permission denied"
        assert "remote: Permission denied" in str(exc_info.value)

    def test_failed_clone_stops_sequence(self, run):
        run.return_value = completed(128, "fatal: repository not found")

        with pytest.raises(MirrorError, match="git clone"):
            GitMirror(auth_strategy="none").mirror("fork/test", "abc", "test/test", "pulljoy/7")

        assert run.call_count == 1

    def test_timeout_raises_mirror_error(self, run):
        run.side_effect = subprocess.TimeoutExpired(cmd=["git", "clone"], timeout=5, output=b"Cloning into...")

        with pytest.raises(MirrorError, match="timed out") as exc_info:
            GitMirror(auth_strategy="none", timeout=5).mirror("fork/test", "abc", "test/test", "pulljoy/7")

        assert exc_info.value.output == "Cloning into..."

    def test_git_runs_inside_temporary_checkout(self, run):
        GitMirror(auth_strategy="none").mirror("fork/test", "abc", "test/test", "pulljoy/7")
        clone, *rest = run.call_args_list
        workdir = clone.args[0][-1]
        assert all(str(c.kwargs["cwd"]) == workdir for c in rest)


def test_mirror_error_without_output():
    err = MirrorError("git fetch failed")
    assert str(err) == "git fetch failed"
    assert err.output == ""
    assert isinstance(err, RuntimeError)
