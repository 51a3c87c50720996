"""Provisioning and teardown of per-issue working copies."""

from __future__ import annotations

import logging
from pathlib import Path

from .errors import AlreadyExistsError
from .models import WorktreeRecord
from .vcs import GitClient

logger = logging.getLogger(__name__)


def worktree_path(repo_root: Path, issue_id: str) -> Path:
    """Return ``<parent-of-root>/<repo-name>-<issue_id>``."""

    return repo_root.parent / f"{repo_root.name}-{issue_id}"


class WorktreeManager:
    """Creates and removes the working copy and branch belonging to an issue.

    The path and branch are pure functions of the repository root and the
    issue id. Existence is judged by the filesystem only; no lock is taken,
    so two processes provisioning the same id at once can still race.
    """

    def __init__(self, git: GitClient) -> None:
        self._git = git

    def record_for(self, repo_root: Path, issue_id: str) -> WorktreeRecord:
        return WorktreeRecord(issue_id=issue_id, path=worktree_path(repo_root, issue_id), branch=issue_id)

    def exists(self, repo_root: Path, issue_id: str) -> bool:
        return worktree_path(repo_root, issue_id).exists()

    def provision(self, repo_root: Path, issue_id: str) -> WorktreeRecord:
        record = self.record_for(repo_root, issue_id)
        if record.path.exists():
            raise AlreadyExistsError(record.path)

        logger.info("Creating worktree", extra={"issue_id": issue_id, "path": str(record.path)})
        self._git.worktree_add(repo_root, record.path, record.branch)
        return record

    def teardown(self, repo_root: Path, issue_id: str) -> bool:
        """Remove the working copy and its branch; return False when there was nothing to remove.

        Uncommitted and untracked files in the working copy are discarded.
        A branch left behind by an earlier, interrupted teardown is deleted
        even when the working copy itself is already gone.
        """

        record = self.record_for(repo_root, issue_id)
        removed = False
        if record.path.exists():
            logger.info("Removing worktree", extra={"issue_id": issue_id, "path": str(record.path)})
            self._git.worktree_remove(repo_root, record.path, force=True)
            removed = True
        else:
            logger.debug("No worktree to remove", extra={"issue_id": issue_id, "path": str(record.path)})

        # The branch may still hold unmerged commits, so deletion is forced.
        if self._git.branch_exists(repo_root, record.branch):
            if not removed:
                # Drop stale registrations that would keep the branch checked out.
                self._git.worktree_prune(repo_root)
            self._git.delete_branch(repo_root, record.branch, force=True)
            removed = True
        elif removed:
            logger.warning("Branch already gone", extra={"branch": record.branch})
        return removed


__all__ = ["WorktreeManager", "worktree_path"]
