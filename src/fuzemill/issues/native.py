"""Backend for the native issue tracker (beads, ``bd``)."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from ..errors import BackendError, NotFoundError
from ..models import Issue, IssueStatus
from ..runner import CommandResult, CommandRunner
from .base import IssueBackend

logger = logging.getLogger(__name__)


def _first_record(payload: Any) -> dict[str, Any] | None:
    if isinstance(payload, list):
        payload = payload[0] if payload else None
    return payload if isinstance(payload, dict) else None


class NativeBackend(IssueBackend):
    """Maps the backend capabilities 1:1 onto ``bd`` subcommands."""

    name = "native"

    def __init__(self, runner: CommandRunner, executable: str = "bd", *, cwd: Path | None = None) -> None:
        self._runner = runner
        self._executable = executable
        self.cwd = cwd

    def create(self, title: str, priority: int | None = None) -> str:
        args = ["create", title, "--json"]
        if priority is not None:
            args.extend(["--priority", str(priority)])
        result = self._bd(*args)
        try:
            record = _first_record(json.loads(result.stdout))
        except json.JSONDecodeError:
            record = None
        if record is None or not record.get("id"):
            raise BackendError(result.command, result.returncode, f"unexpected output: {result.stdout!r}")
        issue_id = str(record["id"])
        logger.info("Created issue", extra={"issue_id": issue_id, "backend": self.name})
        return issue_id

    def describe(self, issue_id: str) -> Issue:
        result = self._runner.run([self._executable, "show", issue_id, "--json"], cwd=self.cwd)
        if not result.ok:
            raise NotFoundError(issue_id, result.stderr)
        try:
            record = _first_record(json.loads(result.stdout))
        except json.JSONDecodeError:
            record = None
        if record is None:
            raise NotFoundError(issue_id)
        priority = record.get("priority")
        return Issue(
            id=str(record.get("id", issue_id)),
            title=str(record.get("title", "")),
            priority=int(priority) if priority is not None else None,
            status=str(record.get("status", IssueStatus.OPEN.value)),
            backend=self.name,
        )

    def set_status(self, issue_id: str, status: IssueStatus) -> None:
        self._bd("update", issue_id, "--status", IssueStatus(status).value)

    def close(self, issue_id: str) -> None:
        self._bd("close", issue_id)

    def _bd(self, *args: str) -> CommandResult:
        result = self._runner.run([self._executable, *args], cwd=self.cwd)
        if not result.ok:
            raise BackendError(result.command, result.returncode, result.stderr)
        return result


__all__ = ["NativeBackend"]
