"""Admin-only routes: task assignment, user listing, aggregate stats."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import AuthUser, current_admin
from ..database import get_db
from ..schemas.auth import UserResponse
from ..schemas.stats import AdminStatsResponse
from ..schemas.task import TaskAssign, TaskResponse
from ..services import auth_svc, stats_svc, task_svc

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/assign-task", status_code=201, response_model=TaskResponse)
async def assign_task(
    data: TaskAssign,
    user: AuthUser = Depends(current_admin),
    db: AsyncSession = Depends(get_db),
):
    return await task_svc.assign_task(
        db,
        user.id,
        data.assigned_to,
        data.title,
        data.description,
        data.type,
        data.deadline,
        points=data.points,
    )


@router.get("/users", response_model=list[UserResponse])
async def list_users(
    user: AuthUser = Depends(current_admin),
    db: AsyncSession = Depends(get_db),
):
    return await auth_svc.list_users(db)


@router.get("/stats", response_model=AdminStatsResponse)
async def admin_stats(user: AuthUser = Depends(current_admin), db: AsyncSession = Depends(get_db)):
    stats = await stats_svc.get_admin_stats(db, user.id)
    return stats.as_dict()
