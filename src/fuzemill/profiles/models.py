"""Agent profile models: how to launch an interactive assistant."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

DEFAULT_PROMPT_TEMPLATE = (
    "You are working on issue {issue_id}: {title}\n\n"
    "This directory is a dedicated worktree on branch {issue_id}. "
    "Commit your work there, push the branch and open a pull request for it. "
    "When you are finished, run `fuzemill done` to end this session."
)


class AgentProfile(BaseModel):
    """Configuration describing how fuzemill launches an assistant."""

    id: str = Field(..., description="Unique identifier for the profile.")
    title: str = Field(..., description="Display title for the assistant.")
    command: list[str] = Field(..., description="Executable and leading arguments.")
    model_flag: str | None = Field(
        default="--model",
        description="Flag used to pass a model name; None when the assistant takes none.",
    )
    prompt_template: str = Field(
        default=DEFAULT_PROMPT_TEMPLATE,
        description="Initial prompt; may reference {issue_id} and {title}.",
    )
    aliases: list[str] = Field(
        default_factory=list,
        description="Alternative names accepted by --agent.",
    )

    @field_validator("id")
    @classmethod
    def _normalize_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Agent profile id must not be empty")
        return normalized

    @field_validator("command", mode="before")
    @classmethod
    def _ensure_command(cls, value: Any):  # type: ignore[override]
        if isinstance(value, str):
            value = value.split()
        if not value:
            raise ValueError("Agent profile command must not be empty")
        return list(value)

    def build_argv(self, model: str | None = None) -> list[str]:
        argv = list(self.command)
        if model and self.model_flag:
            argv.extend([self.model_flag, model])
        return argv

    def render_prompt(self, *, issue_id: str, title: str) -> str:
        return self.prompt_template.format(issue_id=issue_id, title=title or issue_id)


BUILTIN_PROFILES: tuple[AgentProfile, ...] = (
    AgentProfile(id="native", title="Claude Code", command=["claude"], aliases=["claude"]),
    AgentProfile(id="alt", title="Codex", command=["codex"], aliases=["codex"]),
)


__all__ = ["AgentProfile", "BUILTIN_PROFILES", "DEFAULT_PROMPT_TEMPLATE"]
