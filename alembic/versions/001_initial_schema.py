"""Initial schema: users, habits, completion logs and the GitHub integration.

Revision ID: 001_initial_schema
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id UUID PRIMARY KEY,
            email VARCHAR(255) UNIQUE NOT NULL,
            username VARCHAR(50) UNIQUE NOT NULL,
            first_name VARCHAR(100),
            last_name VARCHAR(100),
            avatar_url VARCHAR(500),
            total_xp INTEGER NOT NULL DEFAULT 0 CHECK (total_xp >= 0),
            level INTEGER NOT NULL DEFAULT 1,
            current_streak INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ
        )
    """)

    # --- Habits ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS habits (
            id UUID PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES users(id),
            name VARCHAR(200) NOT NULL,
            description TEXT,
            category VARCHAR(50) NOT NULL,
            frequency VARCHAR(20) NOT NULL DEFAULT 'DAILY',
            target_count INTEGER NOT NULL DEFAULT 1,
            icon VARCHAR(50),
            color VARCHAR(20),
            github_auto_track BOOLEAN NOT NULL DEFAULT false,
            github_event_type VARCHAR(50),
            reminder_enabled BOOLEAN NOT NULL DEFAULT false,
            reminder_time TIME,
            is_active BOOLEAN NOT NULL DEFAULT true,
            archived_at TIMESTAMPTZ,
            current_streak INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            total_completions INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_habits_user_active ON habits(user_id, is_active)")

    # --- Habit logs (append-only) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS habit_logs (
            id UUID PRIMARY KEY,
            habit_id UUID NOT NULL REFERENCES habits(id),
            user_id UUID NOT NULL REFERENCES users(id),
            completed_at TIMESTAMPTZ NOT NULL,
            completed_on DATE NOT NULL,
            note TEXT,
            origin VARCHAR(10) NOT NULL,
            xp_earned INTEGER NOT NULL DEFAULT 10,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_habit_logs_habit_day ON habit_logs(habit_id, completed_on)")
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_habit_logs_manual_day
        ON habit_logs(habit_id, completed_on)
        WHERE origin = 'manual'
    """)

    # --- GitHub connections ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS github_connections (
            id UUID PRIMARY KEY,
            user_id UUID UNIQUE NOT NULL REFERENCES users(id),
            github_user_id BIGINT NOT NULL,
            github_username VARCHAR(255) NOT NULL,
            github_email VARCHAR(255),
            github_avatar_url VARCHAR(500),
            access_token VARCHAR(500) NOT NULL,
            token_type VARCHAR(50) NOT NULL DEFAULT 'Bearer',
            scope TEXT,
            connected_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            last_synced_at TIMESTAMPTZ,
            is_active BOOLEAN NOT NULL DEFAULT true
        )
    """)
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_github_connections_active_account
        ON github_connections(github_user_id)
        WHERE is_active
    """)

    # --- GitHub repositories ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS github_repositories (
            id UUID PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES users(id),
            github_repo_id BIGINT NOT NULL,
            repository_name VARCHAR(255) NOT NULL,
            repository_full_name VARCHAR(500) NOT NULL,
            description TEXT,
            is_private BOOLEAN NOT NULL DEFAULT false,
            is_tracked BOOLEAN NOT NULL DEFAULT true,
            language VARCHAR(100),
            stargazers_count INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ,
            CONSTRAINT github_repositories_user_repo_key UNIQUE (user_id, github_repo_id)
        )
    """)

    # --- GitHub events (write-once idempotency records) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS github_events (
            id UUID PRIMARY KEY,
            event_key VARCHAR(255) NOT NULL,
            event_type VARCHAR(50) NOT NULL,
            user_id UUID REFERENCES users(id),
            repository_name VARCHAR(255),
            repository_full_name VARCHAR(500),
            commit_sha VARCHAR(64),
            commit_message TEXT,
            pull_request_number INTEGER,
            pull_request_title TEXT,
            issue_number INTEGER,
            issue_title TEXT,
            processed_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT github_events_key_type_key UNIQUE (event_key, event_type)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_github_events_user_created ON github_events(user_id, created_at)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS github_event_completions (
            id UUID PRIMARY KEY,
            event_id UUID NOT NULL REFERENCES github_events(id),
            habit_id UUID NOT NULL REFERENCES habits(id),
            habit_log_id UUID NOT NULL REFERENCES habit_logs(id),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT github_event_completions_event_habit_key UNIQUE (event_id, habit_id)
        )
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS github_event_completions")
    op.execute("DROP TABLE IF EXISTS github_events")
    op.execute("DROP TABLE IF EXISTS github_repositories")
    op.execute("DROP TABLE IF EXISTS github_connections")
    op.execute("DROP TABLE IF EXISTS habit_logs")
    op.execute("DROP TABLE IF EXISTS habits")
    op.execute("DROP TABLE IF EXISTS users")
