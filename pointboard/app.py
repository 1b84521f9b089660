"""FastAPI application for Pointboard."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import settings
from .errors import install_error_handlers

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    if settings.is_production and not settings.auth_secret.strip():
        raise RuntimeError("PB_AUTH_SECRET must be set in production")

    from .database import async_session_factory, engine

    # Auto-create tables for SQLite (local dev); PostgreSQL uses Alembic migrations
    if "sqlite" in settings.database_url:
        from .models import Base
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    if settings.bootstrap_admin_username and settings.bootstrap_admin_password:
        from .services import auth_svc
        async with async_session_factory() as db:
            if await auth_svc.bootstrap_admin(
                db, settings.bootstrap_admin_username, settings.bootstrap_admin_password
            ):
                logger.info("Bootstrapped admin account %r", settings.bootstrap_admin_username)

    settings.proof_files_dir.mkdir(parents=True, exist_ok=True)
    yield
    await engine.dispose()


app = FastAPI(title=settings.app_title, lifespan=lifespan)
install_error_handlers(app)

# Import and register routers
from .routers import admin, auth, health, notifications, stats, tasks, uploads  # noqa: E402

app.include_router(auth.router)
app.include_router(tasks.router)
app.include_router(admin.router)
app.include_router(stats.router)
app.include_router(uploads.router)
app.include_router(notifications.router)
app.include_router(health.router)
