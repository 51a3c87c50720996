"""Configuration management for fuzemill."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated
import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class FuzemillSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    git_path: str = Field(default="git", validation_alias="FUZEMILL_GIT")
    tmux_path: str = Field(default="tmux", validation_alias="FUZEMILL_TMUX")
    native_tracker_path: str = Field(default="bd", validation_alias="FUZEMILL_BD")
    forge_path: str = Field(default="gh", validation_alias="FUZEMILL_GH")
    direnv_path: str = Field(default="direnv", validation_alias="FUZEMILL_DIRENV")
    main_branch: str = Field(default="main", validation_alias="FUZEMILL_MAIN_BRANCH")
    default_agent: str = Field(default="native", validation_alias="FUZEMILL_AGENT")
    default_model: str | None = Field(default=None, validation_alias="FUZEMILL_MODEL")
    default_priority: int = Field(default=2, validation_alias="FUZEMILL_PRIORITY")
    session_prefix: str = Field(default="fm", validation_alias="FUZEMILL_SESSION_PREFIX")
    watch_interval: float = Field(default=2.0, validation_alias="FUZEMILL_WATCH_INTERVAL")
    watch_log: Path | None = Field(default=None, validation_alias="FUZEMILL_WATCH_LOG")
    profile_paths: Annotated[tuple[Path, ...], NoDecode] = Field(
        default=(), validation_alias="FUZEMILL_PROFILE_PATHS"
    )
    log_level: str = Field(default="WARNING", validation_alias="FUZEMILL_LOG_LEVEL")
    spawn_shell: bool = Field(default=True, validation_alias="FUZEMILL_SPAWN_SHELL")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "FUZEMILL_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("profile_paths", mode="before")
    @classmethod
    def _parse_profile_paths(cls, value):
        if value is None or value == "":
            return ()
        if isinstance(value, (list, tuple)):
            return tuple(Path(str(item)) for item in value)
        if isinstance(value, str):
            parts = [part.strip() for part in value.split(os.pathsep) if part.strip()]
            return tuple(Path(part) for part in parts)
        raise TypeError("FUZEMILL_PROFILE_PATHS must be a list of paths or a path-separated string")

    @field_validator("session_prefix")
    @classmethod
    def _validate_session_prefix(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized or any(char in normalized for char in ".: "):
            raise ValueError("FUZEMILL_SESSION_PREFIX must be non-empty and free of '.', ':' and spaces")
        return normalized

    @field_validator("watch_interval")
    @classmethod
    def _validate_watch_interval(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("FUZEMILL_WATCH_INTERVAL must be > 0")
        return value


@lru_cache(maxsize=1)
def get_settings() -> FuzemillSettings:
    """Return cached settings instance."""

    settings = FuzemillSettings()
    settings.profile_paths = tuple(path.expanduser().resolve() for path in settings.profile_paths)
    if settings.watch_log is not None:
        settings.watch_log = settings.watch_log.expanduser().resolve()
    return settings


__all__ = ["FuzemillSettings", "get_settings"]
