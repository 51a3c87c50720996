"""External command execution utilities."""

from .runner import CommandResult, CommandRunner, FakeCommandRunner

__all__ = [
    "CommandResult",
    "CommandRunner",
    "FakeCommandRunner",
]
