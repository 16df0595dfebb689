"""User profile endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from devhabits.auth.dependencies import get_current_user
from devhabits.db.models import User
from devhabits.gamification.levels import level_progress
from devhabits.users.schemas import UserProfileResponse

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


@router.get("/me", response_model=UserProfileResponse)
async def get_me(user: User = Depends(get_current_user)):
    """Current user's profile with XP, level progress and streaks."""
    progress = level_progress(user.total_xp)
    return UserProfileResponse(
        id=user.id,
        email=user.email,
        username=user.username,
        first_name=user.first_name,
        last_name=user.last_name,
        avatar_url=user.avatar_url,
        total_xp=user.total_xp,
        level=user.level,
        xp_into_level=progress["xp_into_level"],
        xp_for_level=progress["xp_for_level"],
        current_streak=user.current_streak,
        longest_streak=user.longest_streak,
        created_at=user.created_at,
    )
