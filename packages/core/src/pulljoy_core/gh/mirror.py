"""Git mirror: copy an approved commit onto a bot-owned branch of the target repo.

Pushing the mirror branch is what triggers the target repository's CI, so
the push is a force-push: repeated approvals for the same PR always
converge on the latest approved commit.

Each git command runs with an explicit timeout. A timeout or a non-zero
exit raises MirrorError carrying the combined stdout/stderr of the command.
"""

from __future__ import annotations

import logging
import os
import stat
import subprocess
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 600

_ASKPASS_SCRIPT = '#!/bin/sh\nexec echo "$GIT_TOKEN"\n'


class MirrorError(RuntimeError):
    def __init__(self, message: str, output: str = ""):
        super().__init__(f"{message}. Command output:\n{output}" if output else message)
        self.output = output


def infer_git_url(repo_full_name: str) -> str:
    return f"https://github.com/{repo_full_name}.git"


class GitMirror:
    """Runs the clone/reset/force-push sequence with `git` subprocesses.

    With auth_strategy "token", git obtains the token through a GIT_ASKPASS
    helper that reads it from the environment; the token never appears in
    command arguments or remote URLs.
    """

    def __init__(self, auth_strategy: str = "token", token: str | None = None, timeout: float = DEFAULT_TIMEOUT):
        if auth_strategy == "token" and not token:
            raise ValueError("git_auth_strategy 'token' requires a token")
        self.auth_strategy = auth_strategy
        self._token = token
        self.timeout = timeout

    def infer_push_url(self, repo_full_name: str) -> str:
        if self.auth_strategy == "token":
            return f"https://token@github.com/{repo_full_name}.git"
        return infer_git_url(repo_full_name)

    def mirror(self, source_repo: str, source_commit_sha: str, target_repo: str, target_branch_name: str) -> None:
        """Force-push source_commit_sha from source_repo to target_repo's target_branch_name."""
        logger.info(
            "Mirroring %s@%s to %s:%s", source_repo, source_commit_sha, target_repo, target_branch_name
        )
        with tempfile.TemporaryDirectory(prefix="pulljoy-") as tmpdir:
            env = self._git_env(Path(tmpdir))
            workdir = Path(tmpdir) / "repo"
            self._run_git(["clone", "--no-checkout", infer_git_url(source_repo), str(workdir)], env, cwd=tmpdir)
            self._run_git(["remote", "add", "target", self.infer_push_url(target_repo)], env, cwd=workdir)
            self._run_git(["reset", "--hard", source_commit_sha], env, cwd=workdir)
            self._run_git(
                ["push", "--force", "target", f"HEAD:refs/heads/{target_branch_name}"], env, cwd=workdir
            )

    def _git_env(self, tmpdir: Path) -> dict[str, str]:
        env = dict(os.environ)
        env["GIT_TERMINAL_PROMPT"] = "0"
        if self.auth_strategy == "token":
            helper = tmpdir / "git-askpass-helper.sh"
            helper.write_text(_ASKPASS_SCRIPT)
            helper.chmod(stat.S_IRWXU)
            env["GIT_ASKPASS"] = str(helper)
            env["GIT_TOKEN"] = self._token
        return env

    def _run_git(self, args: list[str], env: dict[str, str], cwd) -> str:
        command = ["git", *args]
        logger.debug("Running %s", " ".join(command))
        try:
            result = subprocess.run(
                command,
                cwd=cwd,
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            output = e.output.decode("utf-8", errors="replace") if isinstance(e.output, bytes) else e.output or ""
            raise MirrorError(f"git {args[0]} timed out after {self.timeout}s", output) from e

        if result.returncode != 0:
            raise MirrorError(f"git {args[0]} exited with status {result.returncode}", result.stdout)
        return result.stdout
