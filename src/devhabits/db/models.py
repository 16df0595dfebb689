"""ORM models for users, habits, completions and the GitHub integration.

Derived fields (streaks, totals, XP, level) are only changed through the
state-transition methods defined on each model; services never assign them
directly.
"""

from __future__ import annotations

import enum
import uuid
from collections.abc import Iterable
from datetime import date, datetime, time, timezone

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from devhabits.db.base import Base
from devhabits.gamification.levels import XP_PER_COMPLETION, compute_level


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum(enum_cls: type[enum.Enum], length: int) -> Enum:
    """Store enum *values* as plain strings (no native DB enum type)."""
    return Enum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [m.value for m in members],
    )


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class EventKind(str, enum.Enum):
    """Canonical GitHub activity kinds a habit can auto-track."""

    COMMIT = "COMMIT"
    PULL_REQUEST = "PULL_REQUEST"
    CODE_REVIEW = "CODE_REVIEW"
    ISSUE = "ISSUE"


class CompletionOrigin(str, enum.Enum):
    MANUAL = "manual"
    AUTO = "auto"


class HabitCategory(str, enum.Enum):
    CODE = "CODE"
    LEARN = "LEARN"
    FITNESS = "FITNESS"
    MINDFULNESS = "MINDFULNESS"
    CREATIVE = "CREATIVE"
    SOCIAL = "SOCIAL"
    OTHER = "OTHER"


class HabitFrequency(str, enum.Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    CUSTOM = "CUSTOM"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Account owning habits. XP, level and streak maxima are derived."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    total_xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def grant_xp(self, amount: int) -> bool:
        """Add XP and recompute level. Returns True on level-up."""
        if amount < 0:
            msg = "XP amount must be non-negative"
            raise ValueError(msg)
        old_level = self.level or 1
        self.total_xp = (self.total_xp or 0) + amount
        self.level = compute_level(self.total_xp)
        self.updated_at = _utcnow()
        return self.level > old_level

    def refresh_streaks(self, habits: Iterable[Habit]) -> None:
        """Recompute streak maxima from the user's non-archived habits."""
        active = [h for h in habits if h.is_active]
        self.current_streak = max((h.current_streak for h in active), default=0)
        best = max((h.longest_streak for h in active), default=0)
        self.longest_streak = max(self.longest_streak or 0, best)


# ---------------------------------------------------------------------------
# Habits
# ---------------------------------------------------------------------------


class Habit(Base):
    """A recurring user-defined activity."""

    __tablename__ = "habits"
    __table_args__ = (
        Index("idx_habits_user_active", "user_id", "is_active"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[HabitCategory] = mapped_column(_enum(HabitCategory, 50), nullable=False)
    frequency: Mapped[HabitFrequency] = mapped_column(
        _enum(HabitFrequency, 20), nullable=False, default=HabitFrequency.DAILY
    )
    target_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    icon: Mapped[str | None] = mapped_column(String(50), nullable=True)
    color: Mapped[str | None] = mapped_column(String(20), nullable=True)
    github_auto_track: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    github_event_type: Mapped[EventKind | None] = mapped_column(_enum(EventKind, 50), nullable=True)
    reminder_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reminder_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_completions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def archive(self) -> None:
        self.is_active = False
        self.archived_at = _utcnow()

    def restore(self) -> None:
        self.is_active = True
        self.archived_at = None

    def apply_completion(self, current_streak: int, longest_streak: int) -> None:
        """Count one new completion and store freshly computed streaks."""
        self.total_completions = (self.total_completions or 0) + 1
        self.current_streak = current_streak
        self.longest_streak = max(self.longest_streak or 0, longest_streak)
        self.updated_at = _utcnow()

    def configure_auto_tracking(self, enabled: bool, event_type: EventKind | None) -> None:
        self.github_auto_track = enabled
        self.github_event_type = event_type


class CompletionLog(Base):
    """Append-only record of one habit completion."""

    __tablename__ = "habit_logs"
    __table_args__ = (
        Index("idx_habit_logs_habit_day", "habit_id", "completed_on"),
        # At most one manual check-in per habit per calendar day.
        Index(
            "uq_habit_logs_manual_day",
            "habit_id",
            "completed_on",
            unique=True,
            postgresql_where=text("origin = 'manual'"),
            sqlite_where=text("origin = 'manual'"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    habit_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("habits.id"), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_on: Mapped[date] = mapped_column(Date, nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    origin: Mapped[CompletionOrigin] = mapped_column(_enum(CompletionOrigin, 10), nullable=False)
    xp_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=XP_PER_COMPLETION)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


# ---------------------------------------------------------------------------
# GitHub integration
# ---------------------------------------------------------------------------


class GitHubConnection(Base):
    """Link between a local user and one GitHub account."""

    __tablename__ = "github_connections"
    __table_args__ = (
        # Only one active link per GitHub account.
        Index(
            "uq_github_connections_active_account",
            "github_user_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), unique=True, nullable=False)
    github_user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    github_username: Mapped[str] = mapped_column(String(255), nullable=False)
    github_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    github_avatar_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    access_token: Mapped[str] = mapped_column(String(500), nullable=False)
    token_type: Mapped[str] = mapped_column(String(50), nullable=False, default="Bearer")
    scope: Mapped[str | None] = mapped_column(Text, nullable=True)
    connected_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    last_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def disconnect(self) -> None:
        self.is_active = False

    def reconnect(self) -> None:
        self.is_active = True

    def mark_synced(self) -> None:
        self.last_synced_at = _utcnow()


class GitHubRepository(Base):
    """Local projection of a remote repository. ``is_tracked`` is owned locally."""

    __tablename__ = "github_repositories"
    __table_args__ = (
        UniqueConstraint("user_id", "github_repo_id", name="github_repositories_user_repo_key"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    github_repo_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    repository_name: Mapped[str] = mapped_column(String(255), nullable=False)
    repository_full_name: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_private: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_tracked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    language: Mapped[str | None] = mapped_column(String(100), nullable=True)
    stargazers_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def toggle_tracking(self) -> None:
        self.is_tracked = not self.is_tracked

    def apply_remote(self, remote: dict) -> None:
        """Overwrite remote-owned fields. Never touches ``is_tracked``."""
        self.repository_name = remote["name"]
        self.repository_full_name = remote["full_name"]
        self.description = remote.get("description")
        self.is_private = bool(remote.get("private", False))
        self.language = remote.get("language")
        self.stargazers_count = int(remote.get("stargazers_count") or 0)
        self.updated_at = _utcnow()


class GitHubEvent(Base):
    """Write-once idempotency record for one inbound webhook delivery."""

    __tablename__ = "github_events"
    __table_args__ = (
        UniqueConstraint("event_key", "event_type", name="github_events_key_type_key"),
        Index("idx_github_events_user_created", "user_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    event_key: Mapped[str] = mapped_column(String(255), nullable=False)
    event_type: Mapped[EventKind] = mapped_column(_enum(EventKind, 50), nullable=False)
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id"), nullable=True)
    repository_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    repository_full_name: Mapped[str | None] = mapped_column(String(500), nullable=True)
    commit_sha: Mapped[str | None] = mapped_column(String(64), nullable=True)
    commit_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    pull_request_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    pull_request_title: Mapped[str | None] = mapped_column(Text, nullable=True)
    issue_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    issue_title: Mapped[str | None] = mapped_column(Text, nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    def mark_processed(self) -> None:
        self.processed_at = _utcnow()


class GitHubEventCompletion(Base):
    """Which habit completion a GitHub event produced."""

    __tablename__ = "github_event_completions"
    __table_args__ = (
        UniqueConstraint("event_id", "habit_id", name="github_event_completions_event_habit_key"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("github_events.id"), nullable=False)
    habit_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("habits.id"), nullable=False)
    habit_log_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("habit_logs.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
