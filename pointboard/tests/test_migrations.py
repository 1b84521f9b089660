"""Smoke tests for Pointboard Alembic migrations."""

from __future__ import annotations

from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from pointboard.config import settings


def _config() -> Config:
    repo_root = Path(__file__).resolve().parents[2]
    cfg = Config(str(repo_root / "pointboard" / "alembic.ini"))
    cfg.attributes["configure_logger"] = False
    return cfg


def _inspect(db_path: Path):
    engine = create_engine(f"sqlite:///{db_path}")
    try:
        insp = inspect(engine)
        tables = set(insp.get_table_names())
        task_columns = {c["name"] for c in insp.get_columns("task")} if "task" in tables else set()
        user_indexes = {i["name"]: i for i in insp.get_indexes("user_account")} if "user_account" in tables else {}
    finally:
        engine.dispose()
    return tables, task_columns, user_indexes


def test_alembic_upgrade_creates_tables(tmp_path: Path, monkeypatch):
    db_path = tmp_path / "pointboard_migrations.db"
    monkeypatch.setattr(settings, "database_url", f"sqlite+aiosqlite:///{db_path}")

    command.upgrade(_config(), "head")

    tables, task_columns, user_indexes = _inspect(db_path)
    assert {"user_account", "task", "alembic_version"} <= tables
    assert {"nominal_points", "points", "awarded_points", "proof_file", "deadline"} <= task_columns
    assert user_indexes["ix_user_account_username"]["unique"]


def test_alembic_downgrade_drops_tables(tmp_path: Path, monkeypatch):
    db_path = tmp_path / "pointboard_migrations.db"
    monkeypatch.setattr(settings, "database_url", f"sqlite+aiosqlite:///{db_path}")

    cfg = _config()
    command.upgrade(cfg, "head")
    command.downgrade(cfg, "base")

    tables, _, _ = _inspect(db_path)
    assert "task" not in tables
    assert "user_account" not in tables
