"""Main application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

# Rate limiting
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from .core import BaseError, Settings, get_settings
from .deps import SessionDep
from .infrastructure import engine as default_engine, AsyncSessionFactory
from .locks import TripLockManager
from .models import Base
from .api.v1.api import api_v1_router
from .api.v1.middleware import (
    ClientIDMiddleware, base_error_handler, unhandled_error_handler, validation_exception_handler
)
from .services import NotificationService, TripService

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(
    settings: Optional[Settings] = None,
    *,
    engine: Optional[AsyncEngine] = None,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    lock_manager: Optional[TripLockManager] = None,
    notifier: Optional[NotificationService] = None,
) -> FastAPI:
    """Build the application. Collaborators default to ones built from *settings*."""
    settings = settings or get_settings()
    engine = engine or default_engine
    session_factory = session_factory or AsyncSessionFactory

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events."""
        # Startup
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        if settings.SEED_DEFAULT_TRIPS:
            async with session_factory() as s:
                await TripService(s, app.state.trip_locks, timezone=settings.TIMEZONE).seed_default_schedule()

        yield

        # Shutdown
        await app.state.trip_locks.close()

    app = FastAPI(
        title="BusBook API",
        description="Bus ticket booking API",
        version="1.0.0",
        lifespan=lifespan
    )

    # Request-independent collaborators live on the app, not in module globals
    app.state.settings = settings
    app.state.trip_locks = lock_manager or TripLockManager.from_settings(settings)
    app.state.notifier = notifier or NotificationService.from_settings(settings)

    # Attach rate-limiter
    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[settings.RATE_LIMIT_DEFAULT],
        enabled=settings.RATE_LIMIT_ENABLED,
    )
    app.state.limiter = limiter

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"]
    )

    @app.exception_handler(RateLimitExceeded)
    async def ratelimit_handler(request: Request, exc: RateLimitExceeded):
        return PlainTextResponse("Too many requests", status_code=429)

    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(ClientIDMiddleware)

    # Exception handling
    app.add_exception_handler(BaseError, base_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(api_v1_router, prefix="/api/v1")

    @app.get("/healthz")
    async def healthz(sess: SessionDep, request: Request):
        """Health check endpoint."""
        status = {"db": "ok", "locks": "ok"}

        try:
            await sess.scalar(select(1))
        except Exception:
            logger.exception("Health check: database unreachable")
            status["db"] = "error"

        locks: TripLockManager = request.app.state.trip_locks
        if locks.redis is not None:
            try:
                await locks.redis.ping()
            except Exception:
                logger.exception("Health check: redis unreachable")
                status["locks"] = "error"

        return status

    @app.get("/")
    async def root():
        """API root."""
        return {
            "message": "Welcome to BusBook API v1.0",
            "docs": "/docs",
            "health": "/healthz"
        }

    return app


configure_logging(get_settings().LOG_LEVEL)
app = create_app()
