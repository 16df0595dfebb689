"""Habit API endpoints."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from devhabits.auth.dependencies import get_current_user
from devhabits.database import get_session
from devhabits.db.models import User
from devhabits.habits import service
from devhabits.habits.schemas import (
    CheckInRequest,
    HabitCreateRequest,
    HabitListResponse,
    HabitResponse,
    HabitUpdateRequest,
)

router = APIRouter(prefix="/api/v1/habits", tags=["Habits"])


@router.post("", response_model=HabitResponse, status_code=201)
async def create_habit(
    body: HabitCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Create a new habit."""
    habit = await service.create_habit(db, user.id, body)
    return await service.to_response(db, habit)


@router.get("", response_model=HabitListResponse)
async def list_habits(
    include_archived: bool = Query(default=False),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """List the current user's habits."""
    habits = await service.list_habits(db, user.id, include_archived)
    items = await service.to_responses(db, habits)
    return HabitListResponse(habits=items, total=len(items))


@router.get("/{habit_id}", response_model=HabitResponse)
async def get_habit(
    habit_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    habit = await service.get_owned_habit(db, user.id, habit_id)
    return await service.to_response(db, habit)


@router.put("/{habit_id}", response_model=HabitResponse)
async def update_habit(
    habit_id: uuid.UUID,
    body: HabitUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    habit = await service.update_habit(db, user.id, habit_id, body)
    return await service.to_response(db, habit)


@router.delete("/{habit_id}", status_code=204)
async def archive_habit(
    habit_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Archive (soft-delete) a habit."""
    await service.archive_habit(db, user.id, habit_id)
    return Response(status_code=204)


@router.post("/{habit_id}/restore", response_model=HabitResponse)
async def restore_habit(
    habit_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    habit = await service.restore_habit(db, user.id, habit_id)
    return await service.to_response(db, habit)


@router.post("/{habit_id}/check-in", response_model=HabitResponse)
async def check_in(
    habit_id: uuid.UUID,
    body: CheckInRequest | None = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Mark a habit done for today. Returns 409 if it already is."""
    note = body.note if body else None
    habit = await service.check_in(db, user.id, habit_id, note)
    return await service.to_response(db, habit)
