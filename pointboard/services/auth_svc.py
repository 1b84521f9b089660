"""Account service: registration, credential checks and user lookups."""

from __future__ import annotations

import hmac
import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import AuthUser, hash_password_async, normalize_role, verify_password_async
from ..config import settings
from ..errors import ValidationError
from ..models.user import Role, User

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
MIN_USERNAME_LENGTH = 3
MAX_USERNAME_LENGTH = 64


def _normalize_username(username: str) -> str:
    return (username or "").strip()


def to_auth_user(user: User) -> AuthUser:
    return AuthUser(id=user.id, username=user.username, role=normalize_role(user.role))


async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User | None:
    return await db.get(User, user_id)


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    name = _normalize_username(username)
    if not name:
        return None
    stmt = select(User).where(func.lower(User.username) == name.lower())
    return (await db.execute(stmt)).scalar_one_or_none()


def _role_for_admin_code(admin_code: str | None) -> Role:
    code = (admin_code or "").strip()
    if not code:
        return Role.USER
    expected = settings.admin_registration_code.strip()
    if not expected or not hmac.compare_digest(code, expected):
        raise ValidationError("Invalid admin code")
    return Role.ADMIN


async def register_user(
    db: AsyncSession,
    username: str,
    password: str,
    *,
    admin_code: str | None = None,
    role: Role | None = None,
) -> User:
    """Create an account. `role` is only for trusted callers (bootstrap)."""
    name = _normalize_username(username)
    if not (MIN_USERNAME_LENGTH <= len(name) <= MAX_USERNAME_LENGTH):
        raise ValidationError(
            f"Username must be {MIN_USERNAME_LENGTH}-{MAX_USERNAME_LENGTH} characters"
        )
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    resolved_role = role or _role_for_admin_code(admin_code)
    if await get_user_by_username(db, name):
        raise ValidationError("Username already exists")

    user = User(
        username=name,
        password_hash=await hash_password_async(password),
        role=resolved_role.value,
        total_points=0,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise ValidationError("Username already exists") from exc
    await db.refresh(user)
    logger.info("Registered %s account %s", user.role, user.id)
    return user


async def authenticate_user(db: AsyncSession, username: str, password: str) -> User | None:
    """Validate credentials; returns the account or None."""
    if not _normalize_username(username) or not password:
        return None
    user = await get_user_by_username(db, username)
    if not user:
        return None
    if not await verify_password_async(password, user.password_hash):
        return None
    return user


async def list_users(db: AsyncSession) -> list[User]:
    """Regular (role=user) accounts, e.g. for the assignment picker."""
    stmt = select(User).where(User.role == Role.USER.value).order_by(User.username.asc())
    return list((await db.execute(stmt)).scalars().all())


async def list_admin_ids(db: AsyncSession) -> list[uuid.UUID]:
    stmt = select(User.id).where(User.role == Role.ADMIN.value)
    return list((await db.execute(stmt)).scalars().all())


async def bootstrap_admin(db: AsyncSession, username: str, password: str) -> bool:
    """Create the configured admin account if it does not exist yet."""
    if not _normalize_username(username) or not password:
        return False
    if await get_user_by_username(db, username):
        return False
    await register_user(db, username, password, role=Role.ADMIN)
    return True
