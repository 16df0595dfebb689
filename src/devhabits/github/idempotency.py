"""At-most-once claiming of webhook deliveries.

GitHub redelivers on timeouts and operators can replay deliveries by hand,
so every delivery is reduced to a stable key and recorded in
``github_events`` under a unique ``(event_key, event_type)`` constraint.
Whoever inserts the row first owns the event; everyone else sees a duplicate.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from devhabits.db.models import EventKind, GitHubEvent
from devhabits.github.schemas import WebhookPayload

logger = structlog.get_logger()


def derive_event_key(payload: WebhookPayload) -> str:
    """Stable identity of a delivery.

    Head commit SHA, then the pull request, then the issue. Payloads with
    none of these get a random key and are never deduplicated.
    """
    if payload.head_commit is not None and payload.head_commit.ref:
        return payload.head_commit.ref
    repo = payload.repository_full_name
    if payload.pull_request is not None and payload.pull_request.number is not None:
        return f"pr-{repo}-{payload.pull_request.number}"
    if payload.issue is not None and payload.issue.number is not None:
        return f"issue-{repo}-{payload.issue.number}"
    return str(uuid.uuid4())


async def claim_event(
    db: AsyncSession,
    event_key: str,
    kind: EventKind,
    payload: WebhookPayload,
) -> GitHubEvent | None:
    """Insert the event row, or return None if the key was already claimed.

    The unique constraint decides between concurrent deliveries. On a
    duplicate the session is rolled back; the caller commits on success.
    """
    event = GitHubEvent(event_key=event_key, event_type=kind)
    if payload.repository is not None:
        event.repository_name = payload.repository.name
        event.repository_full_name = payload.repository.full_name
    if payload.head_commit is not None:
        event.commit_sha = payload.head_commit.ref
        event.commit_message = payload.head_commit.message
    if payload.pull_request is not None:
        event.pull_request_number = payload.pull_request.number
        event.pull_request_title = payload.pull_request.title
    if payload.issue is not None:
        event.issue_number = payload.issue.number
        event.issue_title = payload.issue.title

    db.add(event)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        logger.info("webhook_duplicate", event_key=event_key, event_type=kind.value)
        return None
    return event
