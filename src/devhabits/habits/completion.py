"""Completion recording: daily rules, streak refresh and rewards in one unit.

Day boundaries use the server's local date, not a per-user timezone.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from devhabits.db.models import CompletionLog, CompletionOrigin, Habit
from devhabits.errors import AlreadyCompletedToday, NotFoundError
from devhabits.gamification.levels import XP_PER_COMPLETION
from devhabits.gamification.rewards import RewardResult, apply_completion_reward
from devhabits.gamification.streaks import current_streak, longest_streak

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionResult:
    """Outcome of ``record_completion``.

    ``created`` is False when an auto-completion matched an existing
    completion for the same day; ``reward`` is only set for new rows.
    """

    log: CompletionLog
    created: bool
    reward: RewardResult | None = None


def local_now() -> datetime:
    """Current server-local time, timezone-aware."""
    return datetime.now().astimezone()


async def _lock_habit(db: AsyncSession, habit_id: uuid.UUID, user_id: uuid.UUID | None) -> Habit:
    stmt = select(Habit).where(Habit.id == habit_id).with_for_update()
    if user_id is not None:
        stmt = stmt.where(Habit.user_id == user_id)
    habit = (await db.execute(stmt)).scalar_one_or_none()
    if habit is None:
        raise NotFoundError("Habit", habit_id)
    return habit


async def find_completion_on(db: AsyncSession, habit_id: uuid.UUID, day: date) -> CompletionLog | None:
    """Earliest completion of the habit on the given calendar day."""
    result = await db.execute(
        select(CompletionLog)
        .where(CompletionLog.habit_id == habit_id, CompletionLog.completed_on == day)
        .order_by(CompletionLog.completed_at.asc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def completion_dates(db: AsyncSession, habit_id: uuid.UUID) -> list[date]:
    """Every completion date of the habit (duplicates included)."""
    result = await db.execute(
        select(CompletionLog.completed_on).where(CompletionLog.habit_id == habit_id)
    )
    return list(result.scalars().all())


async def record_completion(
    db: AsyncSession,
    habit_id: uuid.UUID,
    origin: CompletionOrigin,
    note: str | None = None,
    now: datetime | None = None,
    user_id: uuid.UUID | None = None,
) -> CompletionResult:
    """Record one completion of a habit.

    - manual + already completed today: AlreadyCompletedToday, nothing changes
    - auto + already completed today: the existing completion is returned
    - otherwise: insert the log, recompute the habit's streaks over its full
      history, grant XP and refresh the owner's streak maxima

    Everything happens in the caller's transaction and is only visible once
    the caller commits. On the manual uniqueness race the session is rolled
    back before AlreadyCompletedToday is raised.
    """
    if now is None:
        now = local_now()
    today = now.date()

    habit = await _lock_habit(db, habit_id, user_id)

    existing = await find_completion_on(db, habit.id, today)
    if existing is not None:
        if origin is CompletionOrigin.MANUAL:
            raise AlreadyCompletedToday(habit.id)
        logger.debug("Habit %s already completed on %s, skipping auto-completion", habit.id, today)
        return CompletionResult(log=existing, created=False)

    log = CompletionLog(
        habit_id=habit.id,
        user_id=habit.user_id,
        completed_at=now,
        completed_on=today,
        note=note,
        origin=origin,
        xp_earned=XP_PER_COMPLETION,
    )
    db.add(log)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        if origin is CompletionOrigin.MANUAL:
            # Race: a concurrent manual check-in for the same day won.
            raise AlreadyCompletedToday(habit_id) from None
        raise

    dates = await completion_dates(db, habit.id)
    habit.apply_completion(current_streak(dates, today), longest_streak(dates))
    await db.flush()

    reward = await apply_completion_reward(db, habit.user_id, XP_PER_COMPLETION)

    logger.info(
        "Recorded %s completion of habit %s (streak=%d, total=%d)",
        origin.value, habit.id, habit.current_streak, habit.total_completions,
    )
    return CompletionResult(log=log, created=True, reward=reward)
