"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from skillpath.config import get_settings
from skillpath.database import close_db, get_session_factory, init_db
from skillpath.gamification.internal import router as internal_router
from skillpath.gamification.router import router as gamification_router
from skillpath.gamification.seed import seed_badges
from skillpath.health.router import router as health_router
from skillpath.middleware import setup_middleware
from skillpath.redis_client import close_redis, init_redis
from skillpath.rewards.router import router as rewards_router
from skillpath.users.router import router as users_router


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    # Seed the default badge catalog (idempotent)
    try:
        async with get_session_factory()() as db:
            await seed_badges(db)
    except Exception:
        logging.getLogger(__name__).warning("Badge seeding failed (tables may not exist yet)", exc_info=True)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Skillpath Gamification API",
        description="Points, levels, streaks, badges, challenges and rewards for Skillpath learners",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(users_router)
    app.include_router(gamification_router)
    app.include_router(internal_router)
    app.include_router(rewards_router)

    return app


app = create_app()
