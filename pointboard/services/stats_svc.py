"""Read-side point ledger projections: user stats, leaderboard, admin stats.

Nothing here is cached; every figure is computed from the user and task tables
at query time. Ranks use competition ranking over role=user accounts: a
user's rank is one more than the number of users with strictly more points,
so exact ties share a rank. Leaderboard order among tied users is by username.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import require_role
from ..config import settings
from ..errors import AuthenticationError, NotFoundError
from ..models.task import Task, TaskStatus
from ..models.user import Role, User


@dataclass(frozen=True)
class UserStats:
    total_points: int
    completed_tasks: int
    pending_tasks: int
    rank: int

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class AdminStats:
    pending_tasks: int
    approved_today: int
    points_distributed: int
    active_users: int

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class LeaderboardEntry:
    rank: int
    user_id: uuid.UUID
    username: str
    total_points: int


async def _count(db: AsyncSession, stmt) -> int:
    return int((await db.execute(stmt)).scalar_one() or 0)


async def rank_for_points(db: AsyncSession, total_points: int) -> int:
    ahead = await _count(
        db,
        select(func.count(User.id)).where(
            User.role == Role.USER.value,
            User.total_points > total_points,
        ),
    )
    return ahead + 1


async def get_user_stats(db: AsyncSession, user_id: uuid.UUID) -> UserStats:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")

    completed = await _count(
        db,
        select(func.count(Task.id)).where(
            or_(Task.submitted_by == user.id, Task.assigned_to == user.id),
            Task.status == TaskStatus.APPROVED.value,
        ),
    )
    pending = await _count(
        db,
        select(func.count(Task.id)).where(
            Task.submitted_by == user.id,
            Task.status == TaskStatus.PENDING.value,
        ),
    )
    rank = await rank_for_points(db, user.total_points) if user.role == Role.USER.value else 0
    return UserStats(
        total_points=user.total_points,
        completed_tasks=completed,
        pending_tasks=pending,
        rank=rank,
    )


async def get_leaderboard(db: AsyncSession, limit: int | None = None) -> list[LeaderboardEntry]:
    limit = settings.leaderboard_limit if limit is None else max(1, min(int(limit), 100))
    stmt = (
        select(User)
        .where(User.role == Role.USER.value)
        .order_by(User.total_points.desc(), User.username.asc())
        .limit(limit)
    )
    users = list((await db.execute(stmt)).scalars().all())

    entries: list[LeaderboardEntry] = []
    previous_points: int | None = None
    rank = 0
    for position, user in enumerate(users, start=1):
        if user.total_points != previous_points:
            rank = position
            previous_points = user.total_points
        entries.append(
            LeaderboardEntry(
                rank=rank,
                user_id=user.id,
                username=user.username,
                total_points=user.total_points,
            )
        )
    return entries


def _local_day_bounds(day: date | None = None) -> tuple[datetime, datetime]:
    """UTC bounds of a calendar day on the server's local clock."""
    day = day or date.today()
    # Naive local midnights; astimezone() picks the offset in force at each one.
    start = datetime.combine(day, time.min).astimezone(timezone.utc)
    end = datetime.combine(day + timedelta(days=1), time.min).astimezone(timezone.utc)
    return start, end


async def get_admin_stats(
    db: AsyncSession,
    actor_id: uuid.UUID,
    *,
    today: date | None = None,
) -> AdminStats:
    actor = await db.get(User, actor_id)
    if actor is None:
        raise AuthenticationError()
    require_role(actor, Role.ADMIN)

    day_start, day_end = _local_day_bounds(today)
    pending = await _count(
        db, select(func.count(Task.id)).where(Task.status == TaskStatus.PENDING.value)
    )
    approved_today = await _count(
        db,
        select(func.count(Task.id)).where(
            Task.status == TaskStatus.APPROVED.value,
            Task.reviewed_at >= day_start,
            Task.reviewed_at < day_end,
        ),
    )
    points = await _count(
        db,
        select(func.coalesce(func.sum(User.total_points), 0)).where(User.role == Role.USER.value),
    )
    users = await _count(db, select(func.count(User.id)).where(User.role == Role.USER.value))
    return AdminStats(
        pending_tasks=pending,
        approved_today=approved_today,
        points_distributed=points,
        active_users=users,
    )
