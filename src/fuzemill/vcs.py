"""Thin wrapper over the git commands fuzemill relies on."""

from __future__ import annotations

from pathlib import Path

from .errors import VcsError
from .runner import CommandResult, CommandRunner


class GitClient:
    """Run git subcommands against a repository, raising on non-zero exit."""

    def __init__(self, runner: CommandRunner, executable: str = "git") -> None:
        self._runner = runner
        self._executable = executable

    def worktree_add(self, repo_root: Path, path: Path, branch: str) -> None:
        self._git(repo_root, "worktree", "add", "-b", branch, str(path))

    def worktree_remove(self, repo_root: Path, path: Path, *, force: bool = False) -> None:
        flags = ("--force",) if force else ()
        self._git(repo_root, "worktree", "remove", *flags, str(path))

    def worktree_prune(self, repo_root: Path) -> None:
        self._git(repo_root, "worktree", "prune")

    def branch_exists(self, repo_root: Path, branch: str) -> bool:
        result = self._runner.run(
            [self._executable, "rev-parse", "--verify", "--quiet", f"refs/heads/{branch}"],
            cwd=repo_root,
        )
        return result.ok

    def delete_branch(self, repo_root: Path, branch: str, *, force: bool = True) -> None:
        self._git(repo_root, "branch", "-D" if force else "-d", branch)

    def pull(self, repo_root: Path, ref: str = "main") -> None:
        self._git(repo_root, "pull", "origin", ref)

    def _git(self, repo_root: Path, *args: str) -> CommandResult:
        result = self._runner.run([self._executable, *args], cwd=repo_root)
        if not result.ok:
            raise VcsError(result.command, result.returncode, result.stderr)
        return result


__all__ = ["GitClient"]
