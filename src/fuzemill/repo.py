"""Repository discovery: find the root and tell a primary checkout from a secondary one."""

from __future__ import annotations

import logging
from pathlib import Path

from .errors import NotInRepoError
from .models import RepoInfo

logger = logging.getLogger(__name__)

_GITDIR_PREFIX = "gitdir:"


def find_root(start: Path) -> Path | None:
    """Walk upward from ``start`` to the first directory holding ``.git``."""

    current = start
    while True:
        if (current / ".git").exists():
            return current
        if current.parent == current:
            return None
        current = current.parent


def metadata_dir(root: Path) -> Path | None:
    """Return the metadata directory a working copy uses.

    A primary checkout keeps its metadata in ``.git``. A secondary checkout
    has a ``.git`` file whose ``gitdir:`` line points into the primary's
    metadata directory.
    """

    marker = root / ".git"
    if marker.is_dir():
        return marker.resolve()
    if not marker.is_file():
        return None
    content = marker.read_text(encoding="utf-8").strip()
    if not content.startswith(_GITDIR_PREFIX):
        return None
    target = Path(content[len(_GITDIR_PREFIX):].strip())
    if not target.is_absolute():
        target = root / target
    return target.resolve()


def common_dir(git_dir: Path) -> Path:
    """Return the metadata directory shared by every working copy of the repository."""

    pointer = git_dir / "commondir"
    if not pointer.is_file():
        return git_dir
    target = Path(pointer.read_text(encoding="utf-8").strip())
    if not target.is_absolute():
        target = git_dir / target
    return target.resolve()


def locate(start: Path | None = None) -> RepoInfo:
    """Describe the repository containing ``start`` (default: the current directory)."""

    origin = Path(start or Path.cwd()).resolve()
    root = find_root(origin)
    if root is None:
        raise NotInRepoError(origin)
    git_dir = metadata_dir(root)
    if git_dir is None:
        raise NotInRepoError(origin)

    shared = common_dir(git_dir)
    is_worktree = shared != git_dir
    primary_root = shared.parent if is_worktree else root
    logger.debug(
        "Located repository",
        extra={"root": str(root), "is_worktree": is_worktree, "primary_root": str(primary_root)},
    )
    return RepoInfo(root=root, name=root.name, is_worktree=is_worktree, primary_root=primary_root)


__all__ = ["common_dir", "find_root", "locate", "metadata_dir"]
