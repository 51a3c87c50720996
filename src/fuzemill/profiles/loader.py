"""Profile loading utilities."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

import yaml
from pydantic import ValidationError

from ..errors import ProfileLoadError
from .models import BUILTIN_PROFILES, AgentProfile


class ProfileLoader:
    """Loads agent profiles from YAML files on disk, on top of the built-in ones."""

    def __init__(self, search_paths: Iterable[Path] | None = None) -> None:
        paths = [Path(path) for path in (search_paths or [])]
        self._search_paths: list[Path] = [path for path in paths if path.exists()]

    @property
    def search_paths(self) -> list[Path]:
        """Return the normalized search paths."""

        return list(self._search_paths)

    def load_all(self) -> dict[str, AgentProfile]:
        """Load the built-in profiles, then profiles from all configured search paths.

        Later search paths override earlier ones when profile ids collide.
        """

        profiles: dict[str, AgentProfile] = {profile.id: profile for profile in BUILTIN_PROFILES}
        errors: list[str] = []

        for base in self._search_paths:
            for path in sorted(base.glob("*.yml")) + sorted(base.glob("*.yaml")):
                try:
                    document = yaml.safe_load(path.read_text(encoding="utf-8"))
                except yaml.YAMLError as exc:  # pragma: no cover - library type
                    errors.append(f"Failed to parse YAML in {path}: {exc}")
                    continue

                if document is None:
                    continue

                try:
                    profile = AgentProfile.model_validate(document)
                except ValidationError as exc:
                    errors.append(f"Profile validation error in {path}: {exc}")
                    continue

                profiles[profile.id] = profile

        if errors:
            raise ProfileLoadError("; ".join(errors))

        return profiles

    def get(self, name: str) -> AgentProfile:
        """Return a profile by id or alias."""

        profiles = self.load_all()
        if name in profiles:
            return profiles[name]
        for profile in reversed(list(profiles.values())):
            if name in profile.aliases:
                return profile
        raise ProfileLoadError(
            f"Unknown agent '{name}'; available: {', '.join(sorted(profiles))}"
        )


__all__ = ["AgentProfile", "ProfileLoadError", "ProfileLoader"]
