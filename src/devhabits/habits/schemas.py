"""Pydantic request/response models for habit endpoints."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time

from pydantic import BaseModel, Field

from devhabits.db.models import EventKind, Habit, HabitCategory, HabitFrequency
from devhabits.gamification.streaks import is_streak_at_risk


class HabitCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    category: HabitCategory
    frequency: HabitFrequency = HabitFrequency.DAILY
    target_count: int = Field(default=1, ge=1)
    icon: str | None = Field(default=None, max_length=50)
    color: str | None = Field(default=None, max_length=20)
    reminder_enabled: bool = False
    reminder_time: time | None = None
    github_auto_track: bool = False
    github_event_type: EventKind | None = None


class HabitUpdateRequest(BaseModel):
    """Partial update. Omitted fields are left unchanged."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    category: HabitCategory | None = None
    frequency: HabitFrequency | None = None
    target_count: int | None = Field(default=None, ge=1)
    icon: str | None = Field(default=None, max_length=50)
    color: str | None = Field(default=None, max_length=20)
    reminder_enabled: bool | None = None
    reminder_time: time | None = None
    github_auto_track: bool | None = None
    github_event_type: EventKind | None = None


class CheckInRequest(BaseModel):
    note: str | None = Field(default=None, max_length=1000)


class HabitResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: str | None
    category: HabitCategory
    frequency: HabitFrequency
    target_count: int
    icon: str | None
    color: str | None
    reminder_enabled: bool
    reminder_time: time | None
    github_auto_track: bool
    github_event_type: EventKind | None
    is_active: bool
    archived_at: datetime | None
    current_streak: int
    longest_streak: int
    total_completions: int
    completed_today: bool
    streak_at_risk: bool
    last_completed_at: datetime | None
    created_at: datetime

    @classmethod
    def from_habit(
        cls,
        habit: Habit,
        last_completed_on: date | None,
        last_completed_at: datetime | None,
        today: date,
    ) -> HabitResponse:
        completed_today = last_completed_on == today
        at_risk = last_completed_on is not None and is_streak_at_risk([last_completed_on], today)
        return cls(
            id=habit.id,
            name=habit.name,
            description=habit.description,
            category=habit.category,
            frequency=habit.frequency,
            target_count=habit.target_count,
            icon=habit.icon,
            color=habit.color,
            reminder_enabled=habit.reminder_enabled,
            reminder_time=habit.reminder_time,
            github_auto_track=habit.github_auto_track,
            github_event_type=habit.github_event_type,
            is_active=habit.is_active,
            archived_at=habit.archived_at,
            current_streak=habit.current_streak,
            longest_streak=habit.longest_streak,
            total_completions=habit.total_completions,
            completed_today=completed_today,
            streak_at_risk=at_risk,
            last_completed_at=last_completed_at,
            created_at=habit.created_at,
        )


class HabitListResponse(BaseModel):
    habits: list[HabitResponse]
    total: int
