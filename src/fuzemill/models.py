"""Data models shared across fuzemill components."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class IssueStatus(str, Enum):
    OPEN = "open"
    HOOKED = "hooked"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    CLOSED = "closed"


@dataclass(slots=True)
class Issue:
    id: str
    title: str
    priority: int | None
    status: str
    backend: str


@dataclass(slots=True)
class RepoInfo:
    """Where a directory sits inside a repository.

    ``root`` is the top-level directory of the working copy containing the
    scanned path. ``primary_root`` is the top-level directory of the primary
    working copy and equals ``root`` unless ``is_worktree`` is set.
    """

    root: Path
    name: str
    is_worktree: bool
    primary_root: Path

    @property
    def primary_name(self) -> str:
        return self.primary_root.name


@dataclass(slots=True)
class WorktreeRecord:
    issue_id: str
    path: Path
    branch: str


@dataclass(slots=True)
class SessionRecord:
    name: str
    issue_id: str
    working_dir: Path
    argv: tuple[str, ...]


__all__ = ["Issue", "IssueStatus", "RepoInfo", "SessionRecord", "WorktreeRecord"]
