"""Task schemas."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field, StrictInt


class TaskSubmit(BaseModel):
    title: str = ""
    description: str = ""
    type: str = ""


class TaskAssign(TaskSubmit):
    assigned_to: uuid.UUID
    deadline: str | None = None
    points: StrictInt | None = None


class TaskReview(BaseModel):
    status: str
    points: StrictInt | None = None
    rejection_reason: str | None = Field(default=None, alias="rejectionReason")

    model_config = {"populate_by_name": True}


class TaskResponse(BaseModel):
    id: uuid.UUID
    title: str
    description: str
    type: str
    status: str
    points: int
    nominal_points: int
    awarded_points: int | None = None
    submitted_by: uuid.UUID | None = None
    assigned_to: uuid.UUID | None = None
    assigned_by: uuid.UUID | None = None
    reviewed_by: uuid.UUID | None = None
    rejection_reason: str | None = None
    proof_file: str | None = None
    deadline: datetime | None = None
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    reviewed_at: datetime | None = None

    model_config = {"from_attributes": True}


class ReviewQueueItem(TaskResponse):
    submitter_username: str | None = None
    assignee_username: str | None = None

    @classmethod
    def from_task(cls, task) -> "ReviewQueueItem":
        item = cls.model_validate(task)
        item.submitter_username = task.submitter.username if task.submitter else None
        item.assignee_username = task.assignee.username if task.assignee else None
        return item
