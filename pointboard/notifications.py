"""Best-effort real-time notification relay.

Lifecycle events are pushed to whichever channel (normally a WebSocket) a
recipient currently has registered. There is no queue and no replay: if the
recipient is not connected when the event is published, the event is dropped.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Protocol

logger = logging.getLogger(__name__)


class Channel(Protocol):
    async def send_json(self, data: Any) -> None: ...


class ConnectionRegistry:
    """Process-wide index from user id to their live channel.

    The most recent registration for a user wins.
    """

    def __init__(self) -> None:
        self._channels: dict[uuid.UUID, Channel] = {}
        self._lock = asyncio.Lock()

    async def register(self, user_id: uuid.UUID, channel: Channel) -> None:
        async with self._lock:
            self._channels[user_id] = channel

    async def unregister(self, channel: Channel) -> uuid.UUID | None:
        async with self._lock:
            for user_id, registered in list(self._channels.items()):
                if registered is channel:
                    del self._channels[user_id]
                    return user_id
        return None

    def is_connected(self, user_id: uuid.UUID) -> bool:
        return user_id in self._channels

    def connected_count(self) -> int:
        return len(self._channels)

    async def send(self, user_id: uuid.UUID, message: dict) -> bool:
        """Deliver to `user_id` if connected. Returns whether it was sent."""
        async with self._lock:
            channel = self._channels.get(user_id)
        if channel is None:
            logger.debug("Dropping %s for %s: not connected", message.get("event"), user_id)
            return False
        try:
            await channel.send_json(message)
        except Exception:
            logger.debug("Send to %s failed; unregistering channel", user_id, exc_info=True)
            await self.unregister(channel)
            return False
        return True


@dataclass(frozen=True)
class Notification:
    event: str
    recipients: tuple[uuid.UUID, ...]
    payload: dict[str, Any]
    headline: str
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_message(self) -> dict[str, Any]:
        return {
            "event": self.event,
            "headline": self.headline,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            **self.payload,
        }


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def task_submitted(task, submitter_name: str, admin_ids: Iterable[uuid.UUID]) -> Notification:
    return Notification(
        event="task_submitted",
        recipients=tuple(admin_ids),
        payload={
            "task_id": str(task.id),
            "submitter_id": str(task.submitted_by),
            "task_type": task.type,
            "title": task.title,
        },
        headline="New Task Submitted",
        message=f'User {submitter_name} submitted a new {task.type} task: "{task.title}"',
    )


def task_assigned(task) -> Notification:
    deadline = task.deadline.date().isoformat() if task.deadline else "none"
    return Notification(
        event="task_assigned",
        recipients=(task.assigned_to,),
        payload={
            "task_id": str(task.id),
            "assignee_id": str(task.assigned_to),
            "task_type": task.type,
            "title": task.title,
            "deadline": _iso(task.deadline),
        },
        headline="New Task Assigned",
        message=(
            f'You have been assigned a new {task.type} task: "{task.title}". '
            f"Deadline: {deadline}"
        ),
    )


def task_completed(task, assignee_name: str) -> Notification:
    return Notification(
        event="task_completed",
        recipients=(task.assigned_by,) if task.assigned_by else (),
        payload={
            "task_id": str(task.id),
            "assigner_id": str(task.assigned_by) if task.assigned_by else None,
            "title": task.title,
        },
        headline="Task Completed",
        message=f'{assignee_name} has completed the assigned task: "{task.title}" and submitted it for review.',
    )


def task_reviewed(task) -> Notification:
    approved = task.status == "approved"
    points = task.awarded_points if approved else 0
    if approved:
        message = f'Your task "{task.title}" was approved and you earned {points} points!'
    else:
        message = f'Your task "{task.title}" was rejected. {task.rejection_reason}'
    recipient = task.recipient_id
    return Notification(
        event="task_reviewed",
        recipients=(recipient,) if recipient else (),
        payload={
            "task_id": str(task.id),
            "recipient_id": str(recipient) if recipient else None,
            "status": task.status,
            "points": points,
            "title": task.title,
            "rejection_reason": None if approved else task.rejection_reason,
        },
        headline="Task Approved!" if approved else "Task Rejected",
        message=message,
    )


class NotificationRelay:
    """Fans lifecycle notifications out to connected recipients."""

    def __init__(self, registry: ConnectionRegistry) -> None:
        self.registry = registry

    async def publish(self, notification: Notification) -> int:
        """Send to every connected recipient; returns the delivered count.

        Never raises: delivery is best-effort and must not fail the caller.
        """
        message = notification.to_message()
        delivered = 0
        for recipient in notification.recipients:
            try:
                if await self.registry.send(recipient, message):
                    delivered += 1
            except Exception:
                logger.warning("Notification %s to %s failed", notification.event, recipient, exc_info=True)
        logger.debug(
            "Published %s to %d/%d recipients",
            notification.event, delivered, len(notification.recipients),
        )
        return delivered


registry = ConnectionRegistry()
relay = NotificationRelay(registry)
