"""Detached assistant sessions hosted by tmux, and the watcher that reclaims them."""

from __future__ import annotations

import logging
import os
import shlex
import sys
import time
from pathlib import Path
from typing import Callable, Mapping, Sequence

from .config import FuzemillSettings
from .errors import SupervisorError
from .models import SessionRecord
from .runner import CommandRunner

logger = logging.getLogger(__name__)

_TMUX_NAME_TABLE = str.maketrans({".": "_", ":": "_"})


class SessionSupervisor:
    """Spawn, observe and kill named tmux sessions.

    Sessions are created detached so they survive the short-lived CLI process.
    Teardown after a session ends is performed by a separate watcher process,
    started with :meth:`register_teardown`, which polls for the session.
    """

    def __init__(
        self,
        runner: CommandRunner,
        settings: FuzemillSettings,
        *,
        environ: Mapping[str, str] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._runner = runner
        self._tmux = settings.tmux_path
        self._prefix = settings.session_prefix
        self._interval = settings.watch_interval
        self._watch_log = settings.watch_log
        self._environ = environ if environ is not None else os.environ
        self._sleep = sleep

    def session_name(self, issue_id: str) -> str:
        """Return the session name for an issue, spelled the way tmux stores it.

        tmux replaces ``.`` and ``:`` in session names with ``_``, so the same
        substitution is applied here; otherwise later lookups by name miss.
        """

        return f"{self._prefix}-{issue_id}".translate(_TMUX_NAME_TABLE)

    def is_managed(self, session_name: str) -> bool:
        """Return True for session names fuzemill created."""

        marker = f"{self._prefix}-"
        return session_name.startswith(marker) and len(session_name) > len(marker)

    def exists(self, session_name: str) -> bool:
        result = self._runner.run([self._tmux, "has-session", "-t", f"={session_name}"])
        return result.ok

    def spawn(
        self,
        session_name: str,
        working_dir: Path,
        command: Sequence[str],
        prompt: str,
        *,
        issue_id: str,
    ) -> SessionRecord:
        if self.exists(session_name):
            raise SupervisorError(f"Session '{session_name}' already exists")

        argv = (*command, prompt)
        result = self._runner.run(
            [
                self._tmux,
                "new-session",
                "-d",
                "-s",
                session_name,
                "-c",
                str(working_dir),
                shlex.join(argv),
            ]
        )
        if not result.ok:
            raise SupervisorError(
                f"Could not start session '{session_name}': {result.stderr.strip() or result.returncode}"
            )
        logger.info("Started session", extra={"session": session_name, "cwd": str(working_dir)})
        return SessionRecord(name=session_name, issue_id=issue_id, working_dir=working_dir, argv=argv)

    def kill(self, session_name: str) -> bool:
        """End a session; return False when it was already gone."""

        if not self.exists(session_name):
            logger.debug("Session already gone", extra={"session": session_name})
            return False
        result = self._runner.run([self._tmux, "kill-session", "-t", f"={session_name}"])
        if not result.ok and self.exists(session_name):
            raise SupervisorError(
                f"Could not kill session '{session_name}': {result.stderr.strip() or result.returncode}"
            )
        return True

    def current_session_name(self) -> str | None:
        """Return the name of the tmux session this process runs in, if any."""

        if not self._environ.get("TMUX"):
            return None
        args = [self._tmux, "display-message", "-p", "#{session_name}"]
        pane = self._environ.get("TMUX_PANE")
        if pane:
            args[2:2] = ["-t", pane]
        result = self._runner.run(args)
        name = result.stdout.strip()
        return name if result.ok and name else None

    def await_exit(self, session_name: str) -> None:
        """Block until the session no longer exists."""

        while self.exists(session_name):
            self._sleep(self._interval)
        logger.info("Session ended", extra={"session": session_name})

    def register_teardown(self, session_name: str, issue_id: str, repo_root: Path) -> int:
        """Start the detached watcher that reclaims the worktree once the session ends."""

        args = [
            sys.executable,
            "-m",
            "fuzemill",
            "watch",
            issue_id,
            "--repo",
            str(repo_root),
        ]
        try:
            pid = self._runner.spawn_detached(args, cwd=repo_root, log_path=self._watch_log)
        except OSError as exc:
            raise SupervisorError(f"Could not start teardown watcher for '{session_name}': {exc}") from exc
        logger.debug("Registered teardown watcher", extra={"session": session_name, "pid": pid})
        return pid


__all__ = ["SessionSupervisor"]
