"""Resolve a delivery's sender to a user and the habits it completes."""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from devhabits.db.models import EventKind, GitHubConnection, Habit


async def find_active_connection(db: AsyncSession, github_user_id: int) -> GitHubConnection | None:
    result = await db.execute(
        select(GitHubConnection).where(
            GitHubConnection.github_user_id == github_user_id,
            GitHubConnection.is_active.is_(True),
        )
    )
    return result.scalar_one_or_none()


async def find_auto_tracked_habits(db: AsyncSession, user_id: uuid.UUID, kind: EventKind) -> list[Habit]:
    """Active habits of the user that auto-track this event kind."""
    result = await db.execute(
        select(Habit)
        .where(
            Habit.user_id == user_id,
            Habit.is_active.is_(True),
            Habit.github_auto_track.is_(True),
            Habit.github_event_type == kind,
        )
        .order_by(Habit.created_at.asc())
    )
    return list(result.scalars().all())
