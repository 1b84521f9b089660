"""Registration, login and session tests."""

from __future__ import annotations

import time
import uuid

import pytest
from httpx import AsyncClient

from pointboard.auth import (
    AttemptLimiter,
    AuthUser,
    decode_session_token,
    hash_password,
    issue_session_token,
    verify_password,
)
from pointboard.config import settings
from pointboard.models.user import Role


async def _register(client: AsyncClient, username: str = "alice", password: str = "password123", **extra):
    return await client.post("/api/register", json={"username": username, "password": password, **extra})


def _bearer(resp) -> dict[str, str]:
    return {"Authorization": f"Bearer {resp.cookies.get(settings.auth_cookie_name)}"}


def test_password_hash_roundtrip():
    stored = hash_password("s3cret-pass", iterations=1_000)
    assert stored.startswith("pbkdf2_sha256$1000$")
    assert verify_password("s3cret-pass", stored)
    assert not verify_password("wrong", stored)
    assert not verify_password("s3cret-pass", "garbage")


def test_session_token_rejects_tampering():
    user = AuthUser(id=uuid.uuid4(), username="alice", role=Role.USER)
    token = issue_session_token(user)
    assert decode_session_token(token) == user

    body, sig = token.split(".", 1)
    assert decode_session_token(f"{body}.{'0' * len(sig)}") is None
    assert decode_session_token("not-a-token") is None
    assert decode_session_token("") is None


def test_session_token_expires(monkeypatch):
    user = AuthUser(id=uuid.uuid4(), username="alice", role=Role.ADMIN)
    token = issue_session_token(user)
    later = time.time() + settings.auth_session_ttl_seconds + 5
    monkeypatch.setattr("pointboard.auth.time.time", lambda: later)
    assert decode_session_token(token) is None


def test_production_requires_secret(monkeypatch):
    monkeypatch.setattr(settings, "auth_secret", "")
    monkeypatch.setattr(settings, "environment", "production")
    with pytest.raises(RuntimeError):
        issue_session_token(AuthUser(id=uuid.uuid4(), username="a", role=Role.USER))


def test_attempt_limiter_blocks_after_max_attempts():
    limiter = AttemptLimiter()
    kwargs = dict(key="k", window_seconds=60, max_attempts=3, block_seconds=30)
    assert limiter.add_failure(now=100.0, **kwargs) is False
    assert limiter.add_failure(now=101.0, **kwargs) is False
    assert limiter.add_failure(now=102.0, **kwargs) is True
    assert limiter.blocked_for("k", 110.0) == 22
    assert limiter.blocked_for("k", 200.0) == 0


def test_attempt_limiter_window_slides():
    limiter = AttemptLimiter()
    kwargs = dict(key="k", window_seconds=10, max_attempts=2, block_seconds=30)
    assert limiter.add_failure(now=0.0, **kwargs) is False
    assert limiter.add_failure(now=20.0, **kwargs) is False
    assert limiter.blocked_for("k", 21.0) == 0


@pytest.mark.asyncio
async def test_register_login_and_me(client: AsyncClient):
    resp = await _register(client)
    assert resp.status_code == 201
    body = resp.json()
    assert body["username"] == "alice"
    assert body["role"] == "user"
    assert body["total_points"] == 0
    assert "password_hash" not in body
    assert resp.cookies.get(settings.auth_cookie_name)

    login = await client.post("/api/login", json={"username": "ALICE", "password": "password123"})
    assert login.status_code == 200
    assert login.json()["id"] == body["id"]

    me = await client.get("/api/user", headers=_bearer(login))
    assert me.status_code == 200
    assert me.json()["username"] == "alice"


@pytest.mark.asyncio
async def test_register_rejects_duplicates_and_weak_input(client: AsyncClient):
    assert (await _register(client)).status_code == 201

    dup = await _register(client, "Alice")
    assert dup.status_code == 400
    assert dup.json()["detail"] == "Username already exists"

    assert (await _register(client, "bo")).status_code == 400
    assert (await _register(client, "carol", "short")).status_code == 400


@pytest.mark.asyncio
async def test_register_with_admin_code(client: AsyncClient, monkeypatch):
    monkeypatch.setattr(settings, "admin_registration_code", "letmein")

    wrong = await _register(client, "mallory", admin_code="guess")
    assert wrong.status_code == 400
    assert wrong.json()["detail"] == "Invalid admin code"

    resp = await _register(client, "root", admin_code="letmein")
    assert resp.status_code == 201
    assert resp.json()["role"] == "admin"


@pytest.mark.asyncio
async def test_admin_code_disabled_when_unset(client: AsyncClient):
    resp = await _register(client, "root", admin_code="anything")
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_invalid_body_is_400(client: AsyncClient):
    resp = await client.post("/api/register", json={"username": "alice"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid request data"


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient):
    await _register(client)
    resp = await client.post("/api/login", json={"username": "alice", "password": "nope-nope"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid credentials"

    unknown = await client.post("/api/login", json={"username": "nobody", "password": "password123"})
    assert unknown.status_code == 401


@pytest.mark.asyncio
async def test_login_rate_limited(client: AsyncClient, monkeypatch):
    monkeypatch.setattr(settings, "auth_rate_limit_max_attempts", 3)
    monkeypatch.setattr(settings, "auth_rate_limit_block_seconds", 120)
    await _register(client)

    bad = {"username": "alice", "password": "wrong-password"}
    assert (await client.post("/api/login", json=bad)).status_code == 401
    assert (await client.post("/api/login", json=bad)).status_code == 401
    blocked = await client.post("/api/login", json=bad)
    assert blocked.status_code == 429
    assert blocked.headers["retry-after"] == "120"

    # Still blocked even with the right password.
    good = await client.post("/api/login", json={"username": "alice", "password": "password123"})
    assert good.status_code == 429


@pytest.mark.asyncio
async def test_logout_clears_cookie(client: AsyncClient):
    resp = await client.post("/api/logout")
    assert resp.status_code == 204
    set_cookie = resp.headers.get("set-cookie", "")
    assert set_cookie.startswith(f"{settings.auth_cookie_name}=")
    assert "Max-Age=0" in set_cookie or "expires=" in set_cookie.lower()


@pytest.mark.asyncio
async def test_me_requires_session(client: AsyncClient):
    resp = await client.get("/api/user")
    assert resp.status_code == 401

    forged = await client.get("/api/user", headers={"Authorization": "Bearer abc.def"})
    assert forged.status_code == 401


@pytest.mark.asyncio
async def test_me_for_deleted_account(client: AsyncClient):
    ghost = AuthUser(id=uuid.uuid4(), username="ghost", role=Role.USER)
    resp = await client.get("/api/user", headers={"Authorization": f"Bearer {issue_session_token(ghost)}"})
    assert resp.status_code == 404
