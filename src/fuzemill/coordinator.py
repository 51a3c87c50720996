"""Lifecycle coordination for per-issue worktrees and assistant sessions."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, TypeVar

from .config import FuzemillSettings
from .errors import (
    CommandError,
    FuzemillError,
    StepError,
    SupervisorError,
    WrongLocationError,
)
from .forge import ForgeClient
from .issues import IssueBackend, select_backend
from .models import Issue, IssueStatus, RepoInfo, SessionRecord, WorktreeRecord
from .profiles import ProfileLoader
from .repo import locate
from .runner import CommandRunner
from .session import SessionSupervisor
from .vcs import GitClient
from .worktree import WorktreeManager

logger = logging.getLogger(__name__)

_ISSUE_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")

T = TypeVar("T")


@dataclass(slots=True)
class StartResult:
    issue: Issue
    worktree: WorktreeRecord
    session: SessionRecord
    created_issue: bool
    watcher_pid: int


@dataclass(slots=True)
class UnstartResult:
    issue_id: str
    removed: bool
    relocated_to: Path | None


@dataclass(slots=True)
class MergeResult:
    issue_id: str
    removed_worktree: bool
    completed_steps: list[str]


def validate_issue_id(issue_id: str) -> str:
    """Reject ids that cannot name both a branch and a path segment."""

    normalized = issue_id.strip()
    if not _ISSUE_ID_PATTERN.match(normalized) or normalized.endswith(".lock"):
        raise FuzemillError(f"Invalid issue id '{issue_id}': use letters, digits, '.', '_' and '-'")
    return normalized


def _step(name: str, action: Callable[..., T], *args, **kwargs) -> T:
    try:
        return action(*args, **kwargs)
    except (CommandError, SupervisorError) as exc:
        logger.error("Step failed", extra={"step": name, "error": str(exc)})
        raise StepError(name, exc) from exc


class LifecycleCoordinator:
    """Sequences the issue backend, worktree manager and session supervisor.

    Every operation runs its steps strictly in order and stops at the first
    failure. Nothing is rolled back: completed steps stay completed and the
    operation is safe to re-run, because worktree teardown and session kill
    both treat "already gone" as success.
    """

    def __init__(
        self,
        *,
        settings: FuzemillSettings,
        runner: CommandRunner,
        backend: IssueBackend,
        worktrees: WorktreeManager,
        supervisor: SessionSupervisor,
        git: GitClient,
        forge: ForgeClient,
        profiles: ProfileLoader,
        locator: Callable[[Path | None], RepoInfo] = locate,
        cwd: Callable[[], Path] = Path.cwd,
        chdir: Callable[[Path], None] = os.chdir,
    ) -> None:
        self.settings = settings
        self.runner = runner
        self.backend = backend
        self.worktrees = worktrees
        self.supervisor = supervisor
        self.git = git
        self.forge = forge
        self.profiles = profiles
        self._locate = locator
        self._cwd = cwd
        self._chdir = chdir

    @classmethod
    def from_settings(
        cls,
        settings: FuzemillSettings,
        runner: CommandRunner | None = None,
    ) -> "LifecycleCoordinator":
        """Wire the collaborators; the issue backend is probed here, once."""

        runner = runner or CommandRunner()
        git = GitClient(runner, settings.git_path)
        return cls(
            settings=settings,
            runner=runner,
            backend=select_backend(runner, settings),
            worktrees=WorktreeManager(git),
            supervisor=SessionSupervisor(runner, settings),
            git=git,
            forge=ForgeClient(runner, settings.forge_path),
            profiles=ProfileLoader(settings.profile_paths),
        )

    def scan(self, start: Path | None = None) -> RepoInfo:
        return self._locate(start or self._cwd())

    def start(
        self,
        title: str | None = None,
        *,
        issue_id: str | None = None,
        priority: int | None = None,
        agent: str | None = None,
        model: str | None = None,
    ) -> StartResult:
        """Provision a worktree for an issue and launch an assistant session in it."""

        repo = self._locate(self._cwd())
        root = repo.primary_root
        profile = self.profiles.get(agent or self.settings.default_agent)

        created = issue_id is None
        if issue_id is None:
            if not title or not title.strip():
                raise FuzemillError("start needs a task title or --id")
            effective_priority = priority if priority is not None else self.settings.default_priority
            new_id = _step("create issue", self.backend.create, title.strip(), effective_priority)
            issue_id = validate_issue_id(new_id)
            issue = Issue(
                id=issue_id,
                title=title.strip(),
                priority=effective_priority,
                status=IssueStatus.OPEN.value,
                backend=self.backend.name,
            )
        else:
            issue_id = validate_issue_id(issue_id)
            issue = self.backend.describe(issue_id)
            if title and title.strip():
                issue.title = title.strip()

        worktree = _step("create worktree", self.worktrees.provision, root, issue_id)

        self._mark(issue_id, IssueStatus.HOOKED)
        self._mark(issue_id, IssueStatus.IN_PROGRESS)
        self._allow_environment(worktree.path)

        session_name = self.supervisor.session_name(issue_id)
        prompt = profile.render_prompt(issue_id=issue_id, title=issue.title)
        argv = profile.build_argv(model or self.settings.default_model)
        session = _step(
            "start session",
            self.supervisor.spawn,
            session_name,
            worktree.path,
            argv,
            prompt,
            issue_id=issue_id,
        )
        watcher_pid = _step(
            "register teardown", self.supervisor.register_teardown, session_name, issue_id, root
        )

        logger.info(
            "Started work on issue",
            extra={"issue_id": issue_id, "session": session_name, "agent": profile.id},
        )
        return StartResult(
            issue=issue,
            worktree=worktree,
            session=session,
            created_issue=created,
            watcher_pid=watcher_pid,
        )

    def unstart(self, issue_id: str) -> UnstartResult:
        """Remove an issue's worktree and branch, leaving any session running."""

        issue_id = validate_issue_id(issue_id)
        repo = self._locate(self._cwd())
        root = repo.primary_root
        target = self.worktrees.record_for(root, issue_id).path

        relocated: Path | None = None
        here = self._cwd().resolve()
        if here == target.resolve() or target.resolve() in here.parents:
            self._chdir(root)
            relocated = root
            logger.info("Moved to primary repository", extra={"path": str(root)})

        removed = _step("remove worktree", self.worktrees.teardown, root, issue_id)
        return UnstartResult(issue_id=issue_id, removed=removed, relocated_to=relocated)

    def merge(self, issue_id: str) -> MergeResult:
        """Remove the worktree, merge the pull request, pull, and close the issue."""

        issue_id = validate_issue_id(issue_id)
        repo = self._locate(self._cwd())
        if repo.is_worktree:
            raise WrongLocationError(repo.root, repo.primary_root)
        root = repo.root

        completed: list[str] = []
        removed = _step("remove worktree", self.worktrees.teardown, root, issue_id)
        completed.append("remove worktree")
        self.forge.cwd = root
        _step("merge PR", self.forge.merge_pr, issue_id)
        completed.append("merge PR")
        _step("pull", self.git.pull, root, self.settings.main_branch)
        completed.append("pull")
        _step("close issue", self.backend.close, issue_id)
        completed.append("close issue")

        logger.info("Merged issue", extra={"issue_id": issue_id})
        return MergeResult(issue_id=issue_id, removed_worktree=removed, completed_steps=completed)

    def done(self) -> str:
        """Kill the session this process runs in; its watcher then removes the worktree."""

        name = self.supervisor.current_session_name()
        if name is None or not self.supervisor.is_managed(name):
            raise SupervisorError("Not inside a fuzemill session")
        logger.info("Ending session", extra={"session": name})
        _step("kill session", self.supervisor.kill, name)
        return name

    def watch(self, issue_id: str, repo_root: Path) -> bool:
        """Wait for the issue's session to end, then tear its worktree down once."""

        issue_id = validate_issue_id(issue_id)
        session_name = self.supervisor.session_name(issue_id)
        self.supervisor.await_exit(session_name)
        removed = _step("remove worktree", self.worktrees.teardown, repo_root, issue_id)
        logger.info(
            "Session teardown finished",
            extra={"issue_id": issue_id, "removed": removed},
        )
        return removed

    def open_shell(self, path: Path) -> int:
        shell = os.environ.get("SHELL") or "sh"
        return self.runner.interactive([shell], cwd=path)

    def _mark(self, issue_id: str, status: IssueStatus) -> None:
        try:
            self.backend.set_status(issue_id, status)
        except FuzemillError as exc:
            logger.warning(
                "Could not update issue status",
                extra={"issue_id": issue_id, "status": status.value, "error": str(exc)},
            )

    def _allow_environment(self, path: Path) -> None:
        if not (path / ".envrc").exists():
            return
        logger.debug("Detected .envrc, running direnv allow", extra={"path": str(path)})
        result = self.runner.run([self.settings.direnv_path, "allow"], cwd=path)
        if not result.ok:
            logger.warning(
                "direnv allow failed",
                extra={"path": str(path), "error": result.stderr.strip()},
            )


__all__ = [
    "LifecycleCoordinator",
    "MergeResult",
    "StartResult",
    "UnstartResult",
    "validate_issue_id",
]
