"""Async test fixtures for Pointboard tests using SQLite."""

from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from pointboard.auth import AttemptLimiter, hash_password, issue_session_token
from pointboard.config import settings
from pointboard.database import get_db
from pointboard.models.base import Base
from pointboard.models.user import Role, User
from pointboard.notifications import Notification
from pointboard.services import auth_svc

PASSWORD = "correct-horse"
# Low iteration count keeps fixture setup fast; verification reads it from the hash.
PASSWORD_HASH = hash_password(PASSWORD, iterations=1_000)


class RecordingRelay:
    """Stands in for the notification relay and keeps what was published."""

    def __init__(self) -> None:
        self.published: list[Notification] = []

    async def publish(self, notification: Notification) -> int:
        self.published.append(notification)
        return len(notification.recipients)

    def events(self) -> list[str]:
        return [n.event for n in self.published]


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(settings, "auth_secret", "test-secret")
    monkeypatch.setattr(settings, "environment", "test")
    monkeypatch.setattr(settings, "upload_dir", str(tmp_path / "uploads"))
    monkeypatch.setattr("pointboard.routers.auth.login_limiter", AttemptLimiter())


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def db(engine):
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


async def make_user(
    db: AsyncSession,
    username: str,
    *,
    role: Role = Role.USER,
    total_points: int = 0,
) -> User:
    user = User(
        username=username,
        password_hash=PASSWORD_HASH,
        role=role.value,
        total_points=total_points,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def user(db: AsyncSession) -> User:
    return await make_user(db, "alice")


@pytest_asyncio.fixture
async def other_user(db: AsyncSession) -> User:
    return await make_user(db, "bob")


@pytest_asyncio.fixture
async def admin(db: AsyncSession) -> User:
    return await make_user(db, "root", role=Role.ADMIN)


@pytest.fixture
def relay() -> RecordingRelay:
    return RecordingRelay()


def auth_headers(user: User) -> dict[str, str]:
    token = issue_session_token(auth_svc.to_auth_user(user))
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def client(engine):
    """HTTPX async test client against the Pointboard app."""
    from pointboard.app import app

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
