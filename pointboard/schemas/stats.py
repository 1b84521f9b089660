"""Stats and leaderboard schemas."""

from __future__ import annotations

import uuid

from pydantic import BaseModel


class UserStatsResponse(BaseModel):
    total_points: int
    completed_tasks: int
    pending_tasks: int
    rank: int


class AdminStatsResponse(BaseModel):
    pending_tasks: int
    approved_today: int
    points_distributed: int
    active_users: int


class LeaderboardEntryResponse(BaseModel):
    rank: int
    user_id: uuid.UUID
    username: str
    total_points: int

    model_config = {"from_attributes": True}
