"""Blocking runner for the external tools fuzemill sequences."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Sequence

from .utils import sanitize_environment

logger = logging.getLogger(__name__)

NOT_FOUND_EXIT_CODE = 127


@dataclass(slots=True)
class CommandResult:
    """Holds the outcome of an external command invocation."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def command(self) -> str:
        return " ".join(self.args)


class CommandRunner:
    """Execute external commands one at a time, waiting for each to exit."""

    def which(self, name: str) -> str | None:
        return shutil.which(name)

    def run(self, args: Sequence[str], *, cwd: Path | None = None) -> CommandResult:
        cmd = [str(arg) for arg in args]
        logger.debug("Running command", extra={"argv": cmd, "cwd": str(cwd) if cwd else None})
        try:
            completed = subprocess.run(
                cmd,
                cwd=str(cwd) if cwd else None,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                errors="replace",
                env=sanitize_environment(),
            )
        except FileNotFoundError:
            return CommandResult(
                args=tuple(cmd),
                returncode=NOT_FOUND_EXIT_CODE,
                stdout="",
                stderr=f"{cmd[0]}: command not found",
            )
        return CommandResult(
            args=tuple(cmd),
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )

    def interactive(self, args: Sequence[str], *, cwd: Path | None = None) -> int:
        """Run a command attached to the caller's terminal and return its exit code."""

        cmd = [str(arg) for arg in args]
        completed = subprocess.run(cmd, cwd=str(cwd) if cwd else None)
        return completed.returncode

    def spawn_detached(
        self,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        log_path: Path | None = None,
    ) -> int:
        """Start a process in its own session so it outlives the caller; return its pid."""

        cmd = [str(arg) for arg in args]
        if log_path is not None:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(log_path, "ab") as sink:
                process = subprocess.Popen(
                    cmd,
                    cwd=str(cwd) if cwd else None,
                    stdin=subprocess.DEVNULL,
                    stdout=sink,
                    stderr=subprocess.STDOUT,
                    start_new_session=True,
                    env=dict(os.environ),
                )
        else:
            process = subprocess.Popen(
                cmd,
                cwd=str(cwd) if cwd else None,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
                env=dict(os.environ),
            )
        logger.debug("Spawned detached process", extra={"argv": cmd, "pid": process.pid})
        return process.pid


Effect = Callable[[tuple[str, ...]], None]


class FakeCommandRunner(CommandRunner):
    """Test double that answers commands from scripted responses.

    Responses are keyed by an argv prefix; the longest matching prefix wins.
    Queued responses are consumed in order and the last one is reused once the
    queue would otherwise run dry. Unmatched commands succeed with no output.
    """

    def __init__(self, available: Iterable[str] | None = None) -> None:
        self._available = set(available or [])
        self._responses: dict[tuple[str, ...], list[CommandResult]] = {}
        self._effects: dict[tuple[str, ...], Effect] = {}
        self._invocations: list[tuple[str, ...]] = []
        self._cwds: list[Path | None] = []
        self.detached: list[tuple[str, ...]] = []
        self.interactive_calls: list[tuple[str, ...]] = []

    def add_response(
        self,
        *prefix: str,
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
        effect: Effect | None = None,
    ) -> None:
        self._responses.setdefault(prefix, []).append(
            CommandResult(args=prefix, returncode=returncode, stdout=stdout, stderr=stderr)
        )
        if effect is not None:
            self._effects[prefix] = effect

    def which(self, name: str) -> str | None:
        return f"/usr/bin/{name}" if name in self._available else None

    def run(self, args: Sequence[str], *, cwd: Path | None = None) -> CommandResult:
        cmd = tuple(str(arg) for arg in args)
        self._invocations.append(cmd)
        self._cwds.append(cwd)
        prefix = self._match(cmd)
        if prefix is None:
            return CommandResult(args=cmd, returncode=0, stdout="", stderr="")
        queue = self._responses[prefix]
        scripted = queue.pop(0) if len(queue) > 1 else queue[0]
        effect = self._effects.get(prefix)
        if effect is not None and scripted.ok:
            effect(cmd)
        return CommandResult(
            args=cmd, returncode=scripted.returncode, stdout=scripted.stdout, stderr=scripted.stderr
        )

    def interactive(self, args: Sequence[str], *, cwd: Path | None = None) -> int:
        self.interactive_calls.append(tuple(str(arg) for arg in args))
        return 0

    def spawn_detached(
        self,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        log_path: Path | None = None,
    ) -> int:
        self.detached.append(tuple(str(arg) for arg in args))
        return 4242

    def _match(self, cmd: tuple[str, ...]) -> tuple[str, ...] | None:
        best: tuple[str, ...] | None = None
        for prefix in self._responses:
            if cmd[: len(prefix)] == prefix and (best is None or len(prefix) > len(best)):
                best = prefix
        return best

    @property
    def invocations(self) -> list[tuple[str, ...]]:
        return self._invocations

    @property
    def cwds(self) -> list[Path | None]:
        return self._cwds

    def calls_to(self, *prefix: str) -> list[tuple[str, ...]]:
        return [cmd for cmd in self._invocations if cmd[: len(prefix)] == prefix]
