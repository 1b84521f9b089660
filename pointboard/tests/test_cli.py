"""Tests for the pointboard CLI."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from conftest import PASSWORD_HASH
from pointboard import cli
from pointboard.config import settings
from pointboard.models.user import User


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture
def migrated_db(tmp_path: Path, monkeypatch, cli_runner):
    monkeypatch.setattr(settings, "database_url", f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}")
    result = cli_runner.invoke(cli.app, ["db", "upgrade"])
    assert result.exit_code == 0, result.output
    assert "Database upgraded to head" in result.output
    return tmp_path / "cli.db"


def _add_users(*users: tuple[str, int]) -> None:
    async def _add():
        async with cli._session() as db:
            for username, points in users:
                db.add(User(username=username, password_hash=PASSWORD_HASH, role="user", total_points=points))
            await db.commit()

    asyncio.run(_add())


def test_create_admin(cli_runner, migrated_db):
    result = cli_runner.invoke(cli.app, ["create-admin", "root", "--password", "rootpassword"])
    assert result.exit_code == 0, result.output
    assert "Created admin root" in result.output

    again = cli_runner.invoke(cli.app, ["create-admin", "root", "--password", "rootpassword"])
    assert again.exit_code == 1
    assert "Username already exists" in again.output


def test_create_admin_rejects_short_password(cli_runner, migrated_db):
    result = cli_runner.invoke(cli.app, ["create-admin", "root", "--password", "short"])
    assert result.exit_code == 1
    assert "at least 8 characters" in result.output


def test_leaderboard_empty(cli_runner, migrated_db):
    result = cli_runner.invoke(cli.app, ["leaderboard"])
    assert result.exit_code == 0
    assert "No users yet." in result.output


def test_leaderboard_table_and_json(cli_runner, migrated_db):
    _add_users(("alice", 40), ("bob", 90), ("carl", 40))

    table = cli_runner.invoke(cli.app, ["leaderboard"])
    assert table.exit_code == 0
    assert "Leaderboard" in table.output
    assert "bob" in table.output

    result = cli_runner.invoke(cli.app, ["leaderboard", "--json", "--limit", "2"])
    assert result.exit_code == 0
    assert json.loads(result.output) == [
        {"rank": 1, "username": "bob", "total_points": 90},
        {"rank": 2, "username": "alice", "total_points": 40},
    ]


def test_db_downgrade(cli_runner, migrated_db):
    result = cli_runner.invoke(cli.app, ["db", "downgrade", "base"])
    assert result.exit_code == 0
    assert "Database downgraded to base" in result.output
