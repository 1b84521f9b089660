"""Account service tests."""

from __future__ import annotations

import pytest

from conftest import PASSWORD, make_user
from pointboard.errors import ValidationError
from pointboard.models.user import Role
from pointboard.services import auth_svc


@pytest.mark.asyncio
async def test_authenticate_user(db, user):
    assert (await auth_svc.authenticate_user(db, "alice", PASSWORD)).id == user.id
    assert (await auth_svc.authenticate_user(db, "  Alice ", PASSWORD)).id == user.id
    assert await auth_svc.authenticate_user(db, "alice", "wrong") is None
    assert await auth_svc.authenticate_user(db, "", PASSWORD) is None
    assert await auth_svc.authenticate_user(db, "nobody", PASSWORD) is None


@pytest.mark.asyncio
async def test_register_trims_username(db):
    created = await auth_svc.register_user(db, "  dave  ", "password123")
    assert created.username == "dave"
    assert created.role == Role.USER.value
    assert created.password_hash.startswith("pbkdf2_sha256$")

    with pytest.raises(ValidationError):
        await auth_svc.register_user(db, "DAVE", "password123")


@pytest.mark.asyncio
async def test_bootstrap_admin_is_idempotent(db):
    assert await auth_svc.bootstrap_admin(db, "root", "rootpassword") is True
    assert await auth_svc.bootstrap_admin(db, "root", "rootpassword") is False
    assert await auth_svc.bootstrap_admin(db, "", "") is False

    root = await auth_svc.get_user_by_username(db, "root")
    assert root.is_admin
    assert await auth_svc.list_admin_ids(db) == [root.id]


@pytest.mark.asyncio
async def test_list_users_excludes_admins(db, admin):
    await make_user(db, "zed")
    await make_user(db, "amy")
    assert [u.username for u in await auth_svc.list_users(db)] == ["amy", "zed"]


@pytest.mark.asyncio
async def test_to_auth_user(user):
    auth_user = auth_svc.to_auth_user(user)
    assert auth_user.id == user.id
    assert auth_user.role is Role.USER
    assert not auth_user.is_admin
