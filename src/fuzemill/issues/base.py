"""Capability interface shared by the issue-tracking backends."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..models import Issue, IssueStatus


class IssueBackend(ABC):
    """Create, describe, re-status and close issues on one tracker."""

    name: str = ""

    @abstractmethod
    def create(self, title: str, priority: int | None = None) -> str:
        """Create an issue and return its id."""

    @abstractmethod
    def describe(self, issue_id: str) -> Issue:
        """Return the issue, raising ``NotFoundError`` when the tracker does not know it."""

    @abstractmethod
    def set_status(self, issue_id: str, status: IssueStatus) -> None:
        ...

    @abstractmethod
    def close(self, issue_id: str) -> None:
        ...


__all__ = ["IssueBackend"]
