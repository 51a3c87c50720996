from __future__ import annotations

import shutil
from pathlib import Path
from typing import Callable

import pytest

from fuzemill.config import FuzemillSettings
from fuzemill.coordinator import LifecycleCoordinator
from fuzemill.forge import ForgeClient
from fuzemill.issues import select_backend
from fuzemill.profiles import ProfileLoader
from fuzemill.runner import FakeCommandRunner
from fuzemill.session import SessionSupervisor
from fuzemill.vcs import GitClient
from fuzemill.worktree import WorktreeManager


def make_primary(base: Path, name: str = "repo") -> Path:
    """Lay out a primary checkout: a directory with a ``.git`` directory."""

    root = base / name
    (root / ".git").mkdir(parents=True)
    return root


def make_secondary(primary: Path, path: Path) -> Path:
    """Lay out a secondary checkout of ``primary`` the way ``git worktree add`` does."""

    admin = primary / ".git" / "worktrees" / path.name
    admin.mkdir(parents=True)
    (admin / "commondir").write_text("../..\n", encoding="utf-8")
    path.mkdir(parents=True)
    (path / ".git").write_text(f"gitdir: {admin}\n", encoding="utf-8")
    return path


def create_dir(cmd: tuple[str, ...]) -> None:
    Path(cmd[-1]).mkdir(parents=True)


def remove_dir(cmd: tuple[str, ...]) -> None:
    shutil.rmtree(cmd[-1])


@pytest.fixture()
def workspace(tmp_path: Path) -> Path:
    return tmp_path.resolve()


@pytest.fixture()
def primary(workspace: Path) -> Path:
    return make_primary(workspace)


@pytest.fixture()
def settings() -> FuzemillSettings:
    settings = FuzemillSettings()
    settings.git_path = "git"
    settings.tmux_path = "tmux"
    settings.native_tracker_path = "bd"
    settings.forge_path = "gh"
    settings.direnv_path = "direnv"
    settings.session_prefix = "fm"
    settings.default_agent = "native"
    settings.default_model = None
    settings.default_priority = 2
    settings.watch_log = None
    settings.profile_paths = ()
    return settings


@pytest.fixture()
def build_coordinator(settings: FuzemillSettings) -> Callable[..., LifecycleCoordinator]:
    def _build(
        runner: FakeCommandRunner,
        cwd: Path,
        *,
        environ: dict[str, str] | None = None,
        chdirs: list[Path] | None = None,
    ) -> LifecycleCoordinator:
        git = GitClient(runner, settings.git_path)
        recorded = chdirs if chdirs is not None else []
        return LifecycleCoordinator(
            settings=settings,
            runner=runner,
            backend=select_backend(runner, settings),
            worktrees=WorktreeManager(git),
            supervisor=SessionSupervisor(runner, settings, environ=environ or {}, sleep=lambda _: None),
            git=git,
            forge=ForgeClient(runner, settings.forge_path),
            profiles=ProfileLoader(),
            cwd=lambda: cwd,
            chdir=recorded.append,
        )

    return _build
