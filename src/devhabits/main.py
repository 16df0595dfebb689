"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from devhabits.config import get_settings
from devhabits.database import close_db, init_db
from devhabits.github.router import router as github_router
from devhabits.habits.router import router as habits_router
from devhabits.health.router import router as health_router
from devhabits.middleware import setup_middleware
from devhabits.redis_client import close_redis, init_redis
from devhabits.users.router import router as users_router


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)
    yield
    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="DevHabits API",
        description="Habit tracking with GitHub-driven auto-completion, streaks and XP",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router)
    app.include_router(users_router)
    app.include_router(habits_router)
    app.include_router(github_router)

    return app


app = create_app()
