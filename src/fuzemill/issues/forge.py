"""Fallback backend that tracks issues on the forge, with status kept in labels."""

from __future__ import annotations

import logging

from ..errors import BackendError, ForgeError
from ..forge import ForgeClient
from ..models import Issue, IssueStatus
from .base import IssueBackend

logger = logging.getLogger(__name__)

STATUS_LABEL_PREFIX = "status:"


def status_label(status: IssueStatus) -> str:
    return f"{STATUS_LABEL_PREFIX}{IssueStatus(status).value}"


class ForgeBackend(IssueBackend):
    """Issue tracking through forge issues.

    Status is represented as a ``status:<value>`` label. The forge does not
    treat those labels as exclusive, so ``set_status`` removes every other
    status label before adding the new one. Concurrent label edits made
    outside fuzemill can still leave two status labels behind.
    """

    name = "forge-fallback"

    def __init__(self, forge: ForgeClient) -> None:
        self._forge = forge

    def create(self, title: str, priority: int | None = None) -> str:
        body = f"Priority: {priority}" if priority is not None else ""
        try:
            issue_id = self._forge.create_issue(title, body)
        except ForgeError as exc:
            raise BackendError(exc.command, exc.code, exc.stderr) from exc
        logger.info("Created issue", extra={"issue_id": issue_id, "backend": self.name})
        return issue_id

    def describe(self, issue_id: str) -> Issue:
        payload = self._forge.view_issue(issue_id)
        labels = [label.get("name", "") for label in payload.get("labels") or []]
        statuses = [name[len(STATUS_LABEL_PREFIX):] for name in labels if name.startswith(STATUS_LABEL_PREFIX)]
        state = str(payload.get("state", "open")).lower()
        return Issue(
            id=str(payload.get("number", issue_id)),
            title=str(payload.get("title", "")),
            priority=None,
            status=statuses[-1] if statuses and state == "open" else state,
            backend=self.name,
        )

    def set_status(self, issue_id: str, status: IssueStatus) -> None:
        wanted = status_label(status)
        payload = self._forge.view_issue(issue_id)
        current = [label.get("name", "") for label in payload.get("labels") or []]
        try:
            for name in current:
                if name.startswith(STATUS_LABEL_PREFIX) and name != wanted:
                    self._forge.set_label(issue_id, name, on=False)
            if wanted not in current:
                self._forge.set_label(issue_id, wanted, on=True)
        except ForgeError as exc:
            raise BackendError(exc.command, exc.code, exc.stderr) from exc

    def close(self, issue_id: str) -> None:
        try:
            self._forge.close_issue(issue_id)
        except ForgeError as exc:
            raise BackendError(exc.command, exc.code, exc.stderr) from exc


__all__ = ["ForgeBackend", "STATUS_LABEL_PREFIX", "status_label"]
