"""Habit CRUD and manual check-in."""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from devhabits.db.models import CompletionLog, CompletionOrigin, EventKind, Habit
from devhabits.errors import NotFoundError, ValidationError
from devhabits.habits.completion import local_now, record_completion
from devhabits.habits.schemas import (
    HabitCreateRequest,
    HabitResponse,
    HabitUpdateRequest,
)

logger = logging.getLogger(__name__)

# Fields a client may change directly. Streaks, totals and archive state are
# only changed through Habit's own transitions.
_EDITABLE_FIELDS = (
    "name",
    "description",
    "category",
    "frequency",
    "target_count",
    "icon",
    "color",
    "reminder_enabled",
    "reminder_time",
)


def _check_auto_tracking(enabled: bool, event_type: EventKind | None) -> None:
    if enabled and event_type is None:
        msg = "github_event_type is required when github_auto_track is enabled"
        raise ValidationError(msg)


async def get_owned_habit(db: AsyncSession, user_id: uuid.UUID, habit_id: uuid.UUID) -> Habit:
    """Fetch a habit belonging to the user, archived or not."""
    result = await db.execute(
        select(Habit).where(Habit.id == habit_id, Habit.user_id == user_id)
    )
    habit = result.scalar_one_or_none()
    if habit is None:
        raise NotFoundError("Habit", habit_id)
    return habit


async def _last_completions(
    db: AsyncSession, habit_ids: list[uuid.UUID]
) -> dict[uuid.UUID, tuple[date, datetime]]:
    """habit_id -> (last completion date, last completion timestamp)."""
    if not habit_ids:
        return {}
    result = await db.execute(
        select(
            CompletionLog.habit_id,
            func.max(CompletionLog.completed_on),
            func.max(CompletionLog.completed_at),
        )
        .where(CompletionLog.habit_id.in_(habit_ids))
        .group_by(CompletionLog.habit_id)
    )
    return {row[0]: (row[1], row[2]) for row in result.all()}


async def to_responses(db: AsyncSession, habits: list[Habit]) -> list[HabitResponse]:
    today = local_now().date()
    last = await _last_completions(db, [h.id for h in habits])
    responses = []
    for habit in habits:
        last_on, last_at = last.get(habit.id, (None, None))
        responses.append(HabitResponse.from_habit(habit, last_on, last_at, today))
    return responses


async def to_response(db: AsyncSession, habit: Habit) -> HabitResponse:
    return (await to_responses(db, [habit]))[0]


async def create_habit(db: AsyncSession, user_id: uuid.UUID, request: HabitCreateRequest) -> Habit:
    """Create a habit. Derived counters start at zero."""
    _check_auto_tracking(request.github_auto_track, request.github_event_type)

    habit = Habit(
        user_id=user_id,
        name=request.name,
        description=request.description,
        category=request.category,
        frequency=request.frequency,
        target_count=request.target_count,
        icon=request.icon,
        color=request.color,
        reminder_enabled=request.reminder_enabled,
        reminder_time=request.reminder_time,
    )
    habit.configure_auto_tracking(request.github_auto_track, request.github_event_type)
    db.add(habit)
    await db.commit()
    logger.info("Habit %s created for user %s", habit.id, user_id)
    return habit


async def list_habits(db: AsyncSession, user_id: uuid.UUID, include_archived: bool = False) -> list[Habit]:
    stmt = select(Habit).where(Habit.user_id == user_id)
    if not include_archived:
        stmt = stmt.where(Habit.is_active.is_(True))
    result = await db.execute(stmt.order_by(Habit.created_at.asc()))
    return list(result.scalars().all())


async def update_habit(
    db: AsyncSession, user_id: uuid.UUID, habit_id: uuid.UUID, request: HabitUpdateRequest
) -> Habit:
    habit = await get_owned_habit(db, user_id, habit_id)
    changes = request.model_dump(exclude_unset=True)

    for field in _EDITABLE_FIELDS:
        if field in changes and changes[field] is not None:
            setattr(habit, field, changes[field])

    if "github_auto_track" in changes or "github_event_type" in changes:
        enabled = changes.get("github_auto_track")
        if enabled is None:
            enabled = habit.github_auto_track
        event_type = changes.get("github_event_type", habit.github_event_type)
        _check_auto_tracking(enabled, event_type)
        habit.configure_auto_tracking(enabled, event_type)

    await db.commit()
    logger.info("Habit %s updated", habit_id)
    return habit


async def archive_habit(db: AsyncSession, user_id: uuid.UUID, habit_id: uuid.UUID) -> None:
    """Soft-delete: the habit and its logs are kept but excluded everywhere."""
    habit = await get_owned_habit(db, user_id, habit_id)
    habit.archive()
    await db.commit()
    logger.info("Habit %s archived", habit_id)


async def restore_habit(db: AsyncSession, user_id: uuid.UUID, habit_id: uuid.UUID) -> Habit:
    habit = await get_owned_habit(db, user_id, habit_id)
    habit.restore()
    await db.commit()
    logger.info("Habit %s restored", habit_id)
    return habit


async def check_in(
    db: AsyncSession, user_id: uuid.UUID, habit_id: uuid.UUID, note: str | None = None
) -> Habit:
    """Manual check-in. Raises AlreadyCompletedToday on a second call the same day."""
    habit = await get_owned_habit(db, user_id, habit_id)
    if not habit.is_active:
        raise NotFoundError("Habit", habit_id)

    await record_completion(db, habit.id, CompletionOrigin.MANUAL, note=note, user_id=user_id)
    await db.commit()
    return habit
