"""Task submission, review and completion routes."""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import AuthUser, current_admin, current_user
from ..database import get_db
from ..proofs import proof_store
from ..schemas.task import ReviewQueueItem, TaskResponse, TaskReview, TaskSubmit
from ..services import task_svc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


@router.post("", status_code=201, response_model=TaskResponse)
async def submit_task(
    data: TaskSubmit,
    user: AuthUser = Depends(current_user),
    db: AsyncSession = Depends(get_db),
):
    return await task_svc.submit_task(db, user.id, data.title, data.description, data.type)


@router.get("/my", response_model=list[TaskResponse])
async def my_tasks(user: AuthUser = Depends(current_user), db: AsyncSession = Depends(get_db)):
    return await task_svc.list_my_tasks(db, user.id)


@router.get("/assigned", response_model=list[TaskResponse])
async def assigned_tasks(user: AuthUser = Depends(current_user), db: AsyncSession = Depends(get_db)):
    return await task_svc.list_assigned_tasks(db, user.id)


@router.get("/pending", response_model=list[TaskResponse])
async def pending_tasks(user: AuthUser = Depends(current_admin), db: AsyncSession = Depends(get_db)):
    return await task_svc.list_pending_tasks(db, user.id)


@router.get("/review-queue", response_model=list[ReviewQueueItem])
async def review_queue(user: AuthUser = Depends(current_admin), db: AsyncSession = Depends(get_db)):
    tasks = await task_svc.list_review_queue(db, user.id)
    return [ReviewQueueItem.from_task(task) for task in tasks]


@router.patch("/{task_id}/review", response_model=TaskResponse)
async def review_task(
    task_id: uuid.UUID,
    data: TaskReview,
    user: AuthUser = Depends(current_admin),
    db: AsyncSession = Depends(get_db),
):
    return await task_svc.review_task(
        db,
        user.id,
        task_id,
        data.status,
        awarded_points=data.points,
        rejection_reason=data.rejection_reason,
    )


@router.post("/{task_id}/start", response_model=TaskResponse)
async def start_task(
    task_id: uuid.UUID,
    user: AuthUser = Depends(current_user),
    db: AsyncSession = Depends(get_db),
):
    return await task_svc.start_assigned_task(db, user.id, task_id)


@router.post("/{task_id}/complete", response_model=TaskResponse)
async def complete_task(
    task_id: uuid.UUID,
    proof_file: UploadFile | None = File(default=None),
    user: AuthUser = Depends(current_user),
    db: AsyncSession = Depends(get_db),
):
    stored = None
    if proof_file is not None and proof_file.filename:
        stored = await proof_store.save_upload(proof_file)
    try:
        return await task_svc.complete_assigned_task(
            db, user.id, task_id, proof_file=stored.reference if stored else None
        )
    except Exception:
        if stored:
            proof_store.discard(stored)
            logger.info("Discarded proof file %s after failed completion", stored.name)
        raise
