"""Per-issue worktrees and supervised assistant sessions on top of git."""

__version__ = "0.1.0"

__all__ = ["__version__"]
