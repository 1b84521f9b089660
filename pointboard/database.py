"""Async engine, session factory and the `get_db` request dependency."""

from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from .config import settings


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # Concurrent writers queue on SQLite's file lock for up to 30s.
        return {"connect_args": {"timeout": 30}}
    return {"pool_pre_ping": True}


engine = create_async_engine(
    settings.database_url,
    echo=settings.echo_sql,
    **_engine_options(settings.database_url),
)
async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


if engine.dialect.name == "sqlite":

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


async def get_db():
    """Yield a session per request; uncommitted work is rolled back on close."""
    async with async_session_factory() as session:
        yield session
