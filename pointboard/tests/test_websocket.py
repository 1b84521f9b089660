"""WebSocket notification endpoint tests."""

from __future__ import annotations

import uuid

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from pointboard.auth import AuthUser, issue_session_token
from pointboard.config import settings
from pointboard.models.user import Role
from pointboard.notifications import registry


def _token(user_id: uuid.UUID) -> str:
    return issue_session_token(AuthUser(id=user_id, username="alice", role=Role.USER))


@pytest.fixture
def ws_client():
    from pointboard.app import app

    return TestClient(app)


def test_rejects_unauthenticated_socket(ws_client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with ws_client.websocket_connect("/ws"):
            pass
    assert exc.value.code == 1008


def test_rejects_forged_token(ws_client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with ws_client.websocket_connect("/ws?token=abc.def"):
            pass
    assert exc.value.code == 1008


def test_bearer_session_registers_and_answers_ping(ws_client):
    user_id = uuid.uuid4()
    headers = {"Authorization": f"Bearer {_token(user_id)}"}
    with ws_client.websocket_connect("/ws", headers=headers) as ws:
        assert ws.receive_json() == {"event": "connected", "user_id": str(user_id)}
        assert registry.is_connected(user_id)

        ws.send_text("not json")
        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"event": "pong"}


def test_query_token_and_cookie_are_accepted(ws_client):
    first, second = uuid.uuid4(), uuid.uuid4()
    with ws_client.websocket_connect(f"/ws?token={_token(first)}") as ws:
        assert ws.receive_json()["user_id"] == str(first)

    ws_client.cookies.set(settings.auth_cookie_name, _token(second))
    with ws_client.websocket_connect("/ws") as ws:
        assert ws.receive_json()["user_id"] == str(second)
