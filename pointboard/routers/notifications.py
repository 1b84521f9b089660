"""WebSocket endpoint feeding the notification relay."""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from ..auth import user_from_connection
from ..notifications import registry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["notifications"])


@router.websocket("/ws")
async def notifications_socket(websocket: WebSocket):
    user = user_from_connection(websocket, allow_query_token=True)
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    await registry.register(user.id, websocket)
    logger.info("User %s connected for notifications", user.id)
    await websocket.send_json({"event": "connected", "user_id": str(user.id)})
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                data = json.loads(raw)
            except ValueError:
                continue
            if isinstance(data, dict) and data.get("type") == "ping":
                await websocket.send_json({"event": "pong"})
    except WebSocketDisconnect:
        pass
    finally:
        await registry.unregister(websocket)
        logger.info("User %s disconnected from notifications", user.id)
