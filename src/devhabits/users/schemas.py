"""Pydantic response models for user endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel


class UserProfileResponse(BaseModel):
    id: uuid.UUID
    email: str
    username: str
    first_name: str | None = None
    last_name: str | None = None
    avatar_url: str | None = None
    total_xp: int
    level: int
    xp_into_level: int
    xp_for_level: int
    current_streak: int
    longest_streak: int
    created_at: datetime
