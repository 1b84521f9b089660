"""Pointboard models - re-exports all models and Base.metadata."""

from .base import Base, UUIDMixin, TimestampMixin
from .user import Role, User
from .task import TASK_POINTS, TERMINAL_STATUSES, Task, TaskStatus, TaskType

__all__ = [
    "Base",
    "UUIDMixin",
    "TimestampMixin",
    "Role",
    "User",
    "TASK_POINTS",
    "TERMINAL_STATUSES",
    "Task",
    "TaskStatus",
    "TaskType",
]
