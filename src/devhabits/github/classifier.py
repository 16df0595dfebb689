"""Map raw GitHub webhook event names onto the event kinds habits can track."""

from __future__ import annotations

from devhabits.db.models import EventKind
from devhabits.github.schemas import WebhookPayload

_ISSUE_ACTIONS = frozenset({"opened", "closed"})


def classify_event(kind: str, action: str | None) -> EventKind | None:
    """Return the EventKind for a delivery, or None if it is ignored.

    ``kind`` is the ``X-GitHub-Event`` header value. Only opened pull
    requests and opened/closed issues count; every review counts.
    """
    kind = kind.strip().lower()
    if kind == "push":
        return EventKind.COMMIT
    if kind == "pull_request":
        return EventKind.PULL_REQUEST if action == "opened" else None
    if kind == "pull_request_review":
        return EventKind.CODE_REVIEW
    if kind == "issues":
        return EventKind.ISSUE if action in _ISSUE_ACTIONS else None
    return None


def describe_event(kind: EventKind, payload: WebhookPayload) -> str:
    """Completion note recorded on auto-completed habits."""
    if kind is EventKind.COMMIT:
        message = payload.head_commit.message if payload.head_commit else None
        return f"GitHub Commit: {message or 'Commit'}"
    if kind is EventKind.PULL_REQUEST:
        title = payload.pull_request.title if payload.pull_request else None
        return f"GitHub PR: {title or 'PR'}"
    if kind is EventKind.CODE_REVIEW:
        return "GitHub Code Review completed"
    title = payload.issue.title if payload.issue else None
    return f"GitHub Issue: {title or 'Issue'}"
