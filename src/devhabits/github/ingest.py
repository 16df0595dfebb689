"""Webhook ingestion: classify, claim, match, auto-complete.

Each stage can end the pipeline early with a status; nothing here raises for
expected situations (ignored kinds, redeliveries, unknown senders, no habits),
so the webhook endpoint can always acknowledge GitHub with a 200.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from devhabits.db.models import CompletionOrigin, GitHubConnection, GitHubEvent, GitHubEventCompletion
from devhabits.github.classifier import classify_event, describe_event
from devhabits.github.idempotency import claim_event, derive_event_key
from devhabits.github.matcher import find_active_connection, find_auto_tracked_habits
from devhabits.github.schemas import WebhookPayload
from devhabits.habits.completion import record_completion

logger = structlog.get_logger()

IGNORED = "ignored"
DUPLICATE = "duplicate"
NO_CONNECTION = "no_connection"
NO_MATCHING_HABITS = "no_matching_habits"
PROCESSED = "processed"


@dataclass
class IngestOutcome:
    status: str
    event_id: uuid.UUID | None = None
    completed: list[uuid.UUID] = field(default_factory=list)
    failed: list[uuid.UUID] = field(default_factory=list)


class WebhookIngestor:
    """Runs one webhook delivery through the auto-completion pipeline.

    The event claim is committed before any habit is touched, and every
    matched habit is completed and committed on its own: a failing habit is
    rolled back and reported in ``failed`` without affecting the others.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def process(self, event_type: str, payload: WebhookPayload) -> IngestOutcome:
        log = logger.bind(github_event=event_type, action=payload.action)

        kind = classify_event(event_type, payload.action)
        if kind is None:
            log.debug("webhook_ignored")
            return IngestOutcome(status=IGNORED)

        event = await claim_event(self.db, derive_event_key(payload), kind, payload)
        if event is None:
            return IngestOutcome(status=DUPLICATE)
        await self.db.commit()
        event_id = event.id
        log = log.bind(event_id=str(event_id), event_key=event.event_key)

        if payload.sender is None:
            log.info("webhook_without_sender")
            return await self._finish_unmatched(event, NO_CONNECTION)
        connection = await find_active_connection(self.db, payload.sender.id)
        if connection is None:
            log.info("webhook_no_connection", github_user_id=payload.sender.id)
            return await self._finish_unmatched(event, NO_CONNECTION)

        user_id = connection.user_id
        connection_id = connection.id
        event.user_id = user_id
        await self.db.commit()

        habits = await find_auto_tracked_habits(self.db, user_id, kind)
        if not habits:
            log.info("webhook_no_matching_habits", user_id=str(user_id), kind=kind.value)
            return await self._finish_unmatched(event, NO_MATCHING_HABITS)

        outcome = IngestOutcome(status=PROCESSED, event_id=event_id)
        note = describe_event(kind, payload)
        # Rollbacks expire loaded rows, so only plain ids are carried across habits.
        for habit_id in [habit.id for habit in habits]:
            try:
                result = await record_completion(self.db, habit_id, CompletionOrigin.AUTO, note=note)
                if result.created:
                    self.db.add(
                        GitHubEventCompletion(event_id=event_id, habit_id=habit_id, habit_log_id=result.log.id)
                    )
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                log.exception("webhook_habit_failed", habit_id=str(habit_id))
                outcome.failed.append(habit_id)
                continue
            outcome.completed.append(habit_id)

        event = await self.db.get(GitHubEvent, event_id)
        connection = await self.db.get(GitHubConnection, connection_id)
        if event is not None:
            event.mark_processed()
        if connection is not None:
            connection.mark_synced()
        await self.db.commit()

        log.info(
            "webhook_processed",
            user_id=str(user_id),
            completed=len(outcome.completed),
            failed=len(outcome.failed),
        )
        return outcome

    async def _finish_unmatched(self, event: GitHubEvent, status: str) -> IngestOutcome:
        # processed_at marks the end of ingestion, whether or not a habit matched.
        event.mark_processed()
        await self.db.commit()
        return IngestOutcome(status=status, event_id=event.id)
