"""Exception hierarchy shared by the fuzemill components."""

from __future__ import annotations

from pathlib import Path


class FuzemillError(RuntimeError):
    """Base class for every failure reported to the operator."""


class NotInRepoError(FuzemillError):
    """Raised when no version-control metadata is found above a directory."""

    def __init__(self, start: Path) -> None:
        super().__init__(f"Not in a git repository: {start}")
        self.start = start


class CommandError(FuzemillError):
    """Raised when an external tool exits non-zero."""

    def __init__(self, command: str, code: int, stderr: str) -> None:
        detail = stderr.strip()
        message = f"`{command}` failed with exit code {code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.command = command
        self.code = code
        self.stderr = stderr


class BackendError(CommandError):
    """Raised when an issue-tracking tool exits non-zero."""


class VcsError(CommandError):
    """Raised when a version-control command exits non-zero."""


class ForgeError(CommandError):
    """Raised when the code-review tool exits non-zero."""


class SupervisorError(FuzemillError):
    """Raised when the terminal multiplexer cannot create or end a session."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class AlreadyExistsError(FuzemillError):
    """Raised when a working copy is already provisioned for an issue."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"Worktree already exists: {path}")
        self.path = path


class WrongLocationError(FuzemillError):
    """Raised when an operation must run from the primary working copy."""

    def __init__(self, cwd: Path, primary_root: Path) -> None:
        super().__init__(
            f"Run this from the primary repository at {primary_root} (currently in {cwd})"
        )
        self.cwd = cwd
        self.primary_root = primary_root


class NotFoundError(FuzemillError):
    """Raised when the issue backend does not know an issue id."""

    def __init__(self, issue_id: str, detail: str = "") -> None:
        message = f"Issue '{issue_id}' not found"
        if detail.strip():
            message = f"{message}: {detail.strip()}"
        super().__init__(message)
        self.issue_id = issue_id


class ProfileLoadError(FuzemillError):
    """Raised when one or more agent profiles cannot be loaded."""


class StepError(FuzemillError):
    """Wraps a collaborator failure with the name of the step that failed."""

    def __init__(self, step: str, cause: Exception) -> None:
        super().__init__(f"{step}: {cause}")
        self.step = step
        self.cause = cause


__all__ = [
    "AlreadyExistsError",
    "BackendError",
    "CommandError",
    "ForgeError",
    "FuzemillError",
    "NotFoundError",
    "NotInRepoError",
    "ProfileLoadError",
    "StepError",
    "SupervisorError",
    "VcsError",
    "WrongLocationError",
]
