"""Task lifecycle service.

The only sanctioned write path for task status, point awards and user point
totals. Every mutation runs as one transaction; status changes are applied as a
compare-and-set on the current status so a concurrent duplicate transition
updates zero rows and is rejected instead of applied twice.

Transitions:

    pending     -> approved | rejected     review_task
    assigned    -> in_progress             start_assigned_task
    assigned    -> completed               complete_assigned_task
    in_progress -> completed               complete_assigned_task
    completed   -> approved | rejected     review_task
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..auth import require_role
from ..errors import AuthenticationError, InvalidStateError, NotFoundError, ValidationError
from ..models.task import TASK_POINTS, Task, TaskStatus, TaskType
from ..models.user import Role, User
from ..notifications import NotificationRelay, relay
from .. import notifications
from . import auth_svc

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200
REVIEWABLE_STATUSES = (TaskStatus.PENDING.value, TaskStatus.COMPLETED.value)
COMPLETABLE_STATUSES = (TaskStatus.ASSIGNED.value, TaskStatus.IN_PROGRESS.value)
REVIEW_DECISIONS = (TaskStatus.APPROVED.value, TaskStatus.REJECTED.value)


def points_for_type(task_type: str) -> int:
    """Nominal points for a task type; unknown types are worth 0."""
    return TASK_POINTS.get(task_type, 0)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _coerce_datetime(value: object) -> datetime | None:
    """Coerce common deadline representations into an aware UTC `datetime`."""
    if value is None:
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        # Also covers the HTML date input format, YYYY-MM-DD.
        try:
            return _coerce_datetime(datetime.fromisoformat(raw.replace("Z", "+00:00")))
        except ValueError:
            return None

    return None


def _require_text(value: object, field: str, max_length: int | None = None) -> str:
    text = value.strip() if isinstance(value, str) else ""
    if not text:
        raise ValidationError(f"{field} is required")
    if max_length and len(text) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return text


def _require_task_type(value: object) -> str:
    raw = value.value if isinstance(value, TaskType) else value
    try:
        return TaskType(raw).value
    except ValueError as exc:
        raise ValidationError("Unknown task type") from exc


def _require_points(value: object, field: str = "Points") -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be a whole number")
    if value < 0:
        raise ValidationError(f"{field} cannot be negative")
    return value


async def _load_actor(db: AsyncSession, actor_id: uuid.UUID) -> User:
    actor = await auth_svc.get_user(db, actor_id)
    if actor is None:
        raise AuthenticationError()
    return actor


async def get_task(db: AsyncSession, task_id: uuid.UUID) -> Task | None:
    return await db.get(Task, task_id)


async def _require_owned_assignment(db: AsyncSession, user_id: uuid.UUID, task_id: uuid.UUID) -> Task:
    task = await get_task(db, task_id)
    if task is None or task.assigned_to != user_id:
        raise NotFoundError("Task not found or not assigned to you")
    return task


async def _compare_and_set(
    db: AsyncSession,
    task_id: uuid.UUID,
    expected: tuple[str, ...],
    **values,
) -> None:
    """Apply `values` only if the task is still in one of `expected`."""
    stmt = (
        update(Task)
        .where(Task.id == task_id, Task.status.in_(expected))
        .values(**values)
        .returning(Task.id)
    )
    if (await db.execute(stmt)).scalar_one_or_none() is None:
        raise InvalidStateError()


async def submit_task(
    db: AsyncSession,
    submitter_id: uuid.UUID,
    title: str,
    description: str,
    task_type: str,
    *,
    notifier: NotificationRelay | None = None,
) -> Task:
    submitter = await _load_actor(db, submitter_id)
    title = _require_text(title, "Title", MAX_TITLE_LENGTH)
    description = _require_text(description, "Description")
    task_type = _require_task_type(task_type)
    points = points_for_type(task_type)

    task = Task(
        title=title,
        description=description,
        type=task_type,
        status=TaskStatus.PENDING.value,
        nominal_points=points,
        points=points,
        submitted_by=submitter.id,
    )
    db.add(task)
    await db.commit()
    await db.refresh(task)
    logger.info("Task %s submitted by %s (%s, %d points)", task.id, submitter.id, task_type, points)

    admin_ids = await auth_svc.list_admin_ids(db)
    await (notifier or relay).publish(notifications.task_submitted(task, submitter.username, admin_ids))
    return task


async def assign_task(
    db: AsyncSession,
    assigner_id: uuid.UUID,
    assignee_id: uuid.UUID,
    title: str,
    description: str,
    task_type: str,
    deadline: object,
    points: int | None = None,
    *,
    notifier: NotificationRelay | None = None,
) -> Task:
    assigner = await _load_actor(db, assigner_id)
    require_role(assigner, Role.ADMIN)

    title = _require_text(title, "Title", MAX_TITLE_LENGTH)
    description = _require_text(description, "Description")
    task_type = _require_task_type(task_type)
    due = _coerce_datetime(deadline)
    if due is None:
        raise ValidationError("A valid deadline is required")
    nominal = points_for_type(task_type) if points is None else _require_points(points)

    assignee = await auth_svc.get_user(db, assignee_id) if assignee_id else None
    if assignee is None or assignee.role != Role.USER.value:
        raise ValidationError("Assignee does not exist")

    task = Task(
        title=title,
        description=description,
        type=task_type,
        status=TaskStatus.ASSIGNED.value,
        nominal_points=nominal,
        points=nominal,
        assigned_to=assignee.id,
        assigned_by=assigner.id,
        deadline=due,
    )
    db.add(task)
    await db.commit()
    await db.refresh(task)
    logger.info("Task %s assigned to %s by %s (%d points)", task.id, assignee.id, assigner.id, nominal)

    await (notifier or relay).publish(notifications.task_assigned(task))
    return task


async def start_assigned_task(db: AsyncSession, user_id: uuid.UUID, task_id: uuid.UUID) -> Task:
    """Mark an assigned task as in progress. Idempotent once started."""
    await _load_actor(db, user_id)
    task = await _require_owned_assignment(db, user_id, task_id)
    if task.status == TaskStatus.IN_PROGRESS.value:
        return task
    if task.status != TaskStatus.ASSIGNED.value:
        raise InvalidStateError()

    try:
        await _compare_and_set(
            db, task.id, (TaskStatus.ASSIGNED.value,),
            status=TaskStatus.IN_PROGRESS.value,
            started_at=_utcnow(),
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(task)
    logger.info("Task %s started by %s", task.id, user_id)
    return task


async def complete_assigned_task(
    db: AsyncSession,
    user_id: uuid.UUID,
    task_id: uuid.UUID,
    proof_file: str | None = None,
    *,
    notifier: NotificationRelay | None = None,
) -> Task:
    assignee = await _load_actor(db, user_id)
    task = await _require_owned_assignment(db, user_id, task_id)
    if task.status not in COMPLETABLE_STATUSES:
        logger.warning("Refused completion of task %s in status %s", task.id, task.status)
        raise InvalidStateError("Task cannot be completed")

    values: dict = {"status": TaskStatus.COMPLETED.value, "completed_at": _utcnow()}
    if proof_file:
        values["proof_file"] = proof_file
    try:
        await _compare_and_set(db, task.id, COMPLETABLE_STATUSES, **values)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(task)
    logger.info("Task %s completed by %s", task.id, user_id)

    await (notifier or relay).publish(notifications.task_completed(task, assignee.username))
    return task


async def review_task(
    db: AsyncSession,
    reviewer_id: uuid.UUID,
    task_id: uuid.UUID,
    decision: str,
    awarded_points: int | None = None,
    rejection_reason: str | None = None,
    *,
    notifier: NotificationRelay | None = None,
) -> Task:
    """Approve or reject a task, crediting points on approval.

    The status change and the point credit commit together or not at all.
    A task already approved or rejected is never reviewed again, so points
    are awarded at most once per task.
    """
    reviewer = await _load_actor(db, reviewer_id)
    require_role(reviewer, Role.ADMIN)

    decision = getattr(decision, "value", decision)
    if decision not in REVIEW_DECISIONS:
        raise ValidationError("Decision must be approved or rejected")

    task = await get_task(db, task_id)
    if task is None:
        raise NotFoundError("Task not found")
    if task.is_terminal:
        logger.warning("Refused second review of task %s (%s)", task.id, task.status)
        raise InvalidStateError("Task has already been reviewed")
    if task.status not in REVIEWABLE_STATUSES:
        raise InvalidStateError("Task is not awaiting review")

    approved = decision == TaskStatus.APPROVED.value
    values: dict = {
        "status": decision,
        "reviewed_by": reviewer.id,
        "reviewed_at": _utcnow(),
    }
    if approved:
        award = task.points if awarded_points is None else _require_points(awarded_points, "Awarded points")
        values.update(points=award, awarded_points=award, rejection_reason=None)
    else:
        reason = rejection_reason.strip() if isinstance(rejection_reason, str) else ""
        if not reason:
            raise ValidationError("A rejection reason is required")
        award = 0
        values.update(awarded_points=0, rejection_reason=reason)

    recipient_id = task.recipient_id
    try:
        await _compare_and_set(db, task.id, REVIEWABLE_STATUSES, **values)
        if approved and award and recipient_id:
            await db.execute(
                update(User)
                .where(User.id == recipient_id)
                .values(total_points=User.total_points + award)
                .execution_options(synchronize_session="fetch")
            )
        await db.commit()
    except InvalidStateError:
        await db.rollback()
        logger.warning("Lost review race on task %s", task_id)
        raise
    except Exception:
        await db.rollback()
        raise

    await db.refresh(task)
    logger.info(
        "Task %s %s by %s (%d points to %s)",
        task.id, decision, reviewer.id, award, recipient_id,
    )

    await (notifier or relay).publish(notifications.task_reviewed(task))
    return task


async def list_my_tasks(db: AsyncSession, user_id: uuid.UUID) -> list[Task]:
    stmt = select(Task).where(Task.submitted_by == user_id).order_by(Task.created_at.desc())
    return list((await db.execute(stmt)).scalars().all())


async def list_assigned_tasks(db: AsyncSession, user_id: uuid.UUID) -> list[Task]:
    stmt = select(Task).where(Task.assigned_to == user_id).order_by(Task.created_at.desc())
    return list((await db.execute(stmt)).scalars().all())


async def list_pending_tasks(db: AsyncSession, actor_id: uuid.UUID) -> list[Task]:
    require_role(await _load_actor(db, actor_id), Role.ADMIN)
    stmt = (
        select(Task)
        .where(Task.status == TaskStatus.PENDING.value)
        .options(selectinload(Task.submitter))
        .order_by(Task.created_at.desc())
    )
    return list((await db.execute(stmt)).scalars().all())


async def list_review_queue(db: AsyncSession, actor_id: uuid.UUID) -> list[Task]:
    """Everything an admin can act on: pending submissions and completed assignments."""
    require_role(await _load_actor(db, actor_id), Role.ADMIN)
    stmt = (
        select(Task)
        .where(Task.status.in_(REVIEWABLE_STATUSES))
        .options(selectinload(Task.submitter), selectinload(Task.assignee))
        .order_by(Task.created_at.asc())
    )
    return list((await db.execute(stmt)).scalars().all())


async def find_task_by_proof(db: AsyncSession, proof_file: str) -> Task | None:
    stmt = select(Task).where(Task.proof_file == proof_file)
    return (await db.execute(stmt)).scalar_one_or_none()
