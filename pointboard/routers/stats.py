"""Leaderboard and per-user stats routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import AuthUser, current_user
from ..database import get_db
from ..schemas.stats import LeaderboardEntryResponse, UserStatsResponse
from ..services import stats_svc

router = APIRouter(prefix="/api", tags=["stats"])


@router.get("/leaderboard", response_model=list[LeaderboardEntryResponse])
async def leaderboard(user: AuthUser = Depends(current_user), db: AsyncSession = Depends(get_db)):
    return await stats_svc.get_leaderboard(db)


@router.get("/user/stats", response_model=UserStatsResponse)
async def user_stats(user: AuthUser = Depends(current_user), db: AsyncSession = Depends(get_db)):
    stats = await stats_svc.get_user_stats(db, user.id)
    return stats.as_dict()
