"""Task model, task types and lifecycle statuses."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, UUIDMixin


class TaskType(str, enum.Enum):
    CONTENT_CREATION = "content_creation"
    BUG_REPORT = "bug_report"
    FEATURE_REQUEST = "feature_request"
    COMMUNITY_HELP = "community_help"
    DOCUMENTATION = "documentation"


class TaskStatus(str, enum.Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    APPROVED = "approved"
    REJECTED = "rejected"


TASK_POINTS: dict[str, int] = {
    TaskType.CONTENT_CREATION.value: 50,
    TaskType.BUG_REPORT.value: 25,
    TaskType.FEATURE_REQUEST.value: 30,
    TaskType.COMMUNITY_HELP.value: 20,
    TaskType.DOCUMENTATION.value: 40,
}

TERMINAL_STATUSES = frozenset({TaskStatus.APPROVED.value, TaskStatus.REJECTED.value})


class Task(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "task"

    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str] = mapped_column(Text)
    type: Mapped[str] = mapped_column(String(50), index=True)
    status: Mapped[str] = mapped_column(String(20), default=TaskStatus.PENDING.value, index=True)

    # nominal_points never changes; points follows the awarded amount once approved.
    nominal_points: Mapped[int] = mapped_column(Integer, default=0)
    points: Mapped[int] = mapped_column(Integer, default=0)
    awarded_points: Mapped[int | None] = mapped_column(Integer, default=None)

    submitted_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("user_account.id"), default=None, index=True
    )
    assigned_to: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("user_account.id"), default=None, index=True
    )
    assigned_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("user_account.id"), default=None
    )
    reviewed_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("user_account.id"), default=None
    )

    rejection_reason: Mapped[str | None] = mapped_column(Text, default=None)
    proof_file: Mapped[str | None] = mapped_column(String(255), default=None, index=True)
    deadline: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    submitter: Mapped["User | None"] = relationship(foreign_keys=[submitted_by])  # noqa: F821
    assignee: Mapped["User | None"] = relationship(foreign_keys=[assigned_to])  # noqa: F821

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def recipient_id(self) -> uuid.UUID | None:
        """User credited when this task is approved."""
        return self.submitted_by or self.assigned_to

    def __repr__(self) -> str:
        return f"<Task {self.title!r} ({self.status})>"
