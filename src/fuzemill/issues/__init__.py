"""Issue-tracking backends and backend selection."""

from __future__ import annotations

import logging
from pathlib import Path

from ..config import FuzemillSettings
from ..forge import ForgeClient
from ..runner import CommandRunner
from .base import IssueBackend
from .forge import ForgeBackend, status_label
from .native import NativeBackend

logger = logging.getLogger(__name__)


def select_backend(
    runner: CommandRunner,
    settings: FuzemillSettings,
    *,
    cwd: Path | None = None,
) -> IssueBackend:
    """Probe for the native tracker once and return the backend to use."""

    if runner.which(settings.native_tracker_path):
        backend: IssueBackend = NativeBackend(runner, settings.native_tracker_path, cwd=cwd)
    else:
        backend = ForgeBackend(ForgeClient(runner, settings.forge_path, cwd=cwd))
    logger.debug("Selected issue backend", extra={"backend": backend.name})
    return backend


__all__ = [
    "ForgeBackend",
    "IssueBackend",
    "NativeBackend",
    "select_backend",
    "status_label",
]
