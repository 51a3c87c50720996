"""Wrapper over the forge CLI (``gh``) for issues and pull requests."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from .errors import ForgeError, NotFoundError
from .runner import CommandResult, CommandRunner


class ForgeClient:
    """Issue and pull-request operations on the hosting forge."""

    def __init__(
        self,
        runner: CommandRunner,
        executable: str = "gh",
        *,
        cwd: Path | None = None,
    ) -> None:
        self._runner = runner
        self._executable = executable
        self.cwd = cwd

    def create_issue(self, title: str, body: str = "") -> str:
        """Open an issue and return its number as a string."""

        result = self._gh("issue", "create", "--title", title, "--body", body)
        url = result.stdout.strip().splitlines()[-1] if result.stdout.strip() else ""
        number = url.rstrip("/").rsplit("/", 1)[-1]
        if not number.isdigit():
            raise ForgeError(result.command, result.returncode, f"unexpected output: {result.stdout!r}")
        return number

    def view_issue(self, issue_id: str) -> dict[str, Any]:
        result = self._runner.run(
            [self._executable, "issue", "view", issue_id, "--json", "number,title,state,labels"],
            cwd=self.cwd,
        )
        if not result.ok:
            raise NotFoundError(issue_id, result.stderr)
        return json.loads(result.stdout)

    def set_label(self, issue_id: str, label: str, on: bool) -> None:
        flag = "--add-label" if on else "--remove-label"
        self._gh("issue", "edit", issue_id, flag, label)

    def close_issue(self, issue_id: str) -> None:
        self._gh("issue", "close", issue_id)

    def merge_pr(self, branch: str) -> None:
        """Merge the pull request opened from ``branch`` and delete the branch."""

        self._gh("pr", "merge", branch, "--merge", "--delete-branch")

    def _gh(self, *args: str) -> CommandResult:
        result = self._runner.run([self._executable, *args], cwd=self.cwd)
        if not result.ok:
            raise ForgeError(result.command, result.returncode, result.stderr)
        return result


__all__ = ["ForgeClient"]
