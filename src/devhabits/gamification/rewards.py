"""XP, level and user-level streak aggregation after a completion."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from devhabits.db.models import Habit, User
from devhabits.errors import NotFoundError
from devhabits.gamification.levels import XP_PER_COMPLETION

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RewardResult:
    total_xp: int
    level: int
    leveled_up: bool
    current_streak: int
    longest_streak: int


async def apply_completion_reward(
    db: AsyncSession,
    user_id: uuid.UUID,
    amount: int = XP_PER_COMPLETION,
) -> RewardResult:
    """Grant completion XP and refresh the user's streak maxima.

    1. Lock the user row
    2. total_xp += amount, level recomputed from total_xp
    3. current_streak = max over non-archived habits
    4. longest_streak = max(previous, max over non-archived habits)

    Runs inside the caller's transaction; nothing is committed here.
    """
    result = await db.execute(select(User).where(User.id == user_id).with_for_update())
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User", user_id)

    habits = await db.execute(
        select(Habit).where(Habit.user_id == user_id, Habit.is_active.is_(True))
    )

    leveled_up = user.grant_xp(amount)
    user.refresh_streaks(habits.scalars().all())
    await db.flush()

    if leveled_up:
        logger.info("User %s reached level %d (%d XP)", user_id, user.level, user.total_xp)

    return RewardResult(
        total_xp=user.total_xp,
        level=user.level,
        leveled_up=leveled_up,
        current_streak=user.current_streak,
        longest_streak=user.longest_streak,
    )
