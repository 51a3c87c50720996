"""Environment handling for external tool invocations."""

from __future__ import annotations

import os
from typing import Mapping

# Variables that would pin git to a repository other than the one given by cwd,
# e.g. when fuzemill runs from inside a git hook.
_GIT_LOCATION_VARS = {
    "GIT_DIR",
    "GIT_WORK_TREE",
    "GIT_INDEX_FILE",
    "GIT_COMMON_DIR",
}

_PYTHON_VARS = {
    "PYTHONHOME",
    "PYTHONPATH",
    "VIRTUAL_ENV",
}


def sanitize_environment(additional: Mapping[str, str] | None = None) -> dict[str, str]:
    """Return the environment external tools run with.

    Git location overrides and the caller's Python environment are removed;
    ``additional`` entries are applied last.
    """

    env = {
        key: value
        for key, value in os.environ.items()
        if key not in _GIT_LOCATION_VARS and key not in _PYTHON_VARS
    }
    if additional:
        env.update(additional)
    return env
