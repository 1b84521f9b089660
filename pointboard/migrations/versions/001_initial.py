"""Create user_account and task tables.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _has_table(bind, name: str) -> bool:
    return sa.inspect(bind).has_table(name)


def _has_index(bind, table_name: str, index_name: str) -> bool:
    indexes = sa.inspect(bind).get_indexes(table_name)
    return any(idx.get("name") == index_name for idx in indexes)


def _common_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    bind = op.get_bind()

    if not _has_table(bind, "user_account"):
        op.create_table(
            "user_account",
            sa.Column("username", sa.String(length=64), nullable=False),
            sa.Column("password_hash", sa.String(length=255), nullable=False),
            sa.Column("role", sa.String(length=20), nullable=False),
            sa.Column("total_points", sa.Integer(), server_default="0", nullable=False),
            *_common_columns(),
            sa.PrimaryKeyConstraint("id", name="pk_user_account"),
        )
    if not _has_index(bind, "user_account", "ix_user_account_username"):
        op.create_index("ix_user_account_username", "user_account", ["username"], unique=True)
    if not _has_index(bind, "user_account", "ix_user_account_role"):
        op.create_index("ix_user_account_role", "user_account", ["role"], unique=False)

    if not _has_table(bind, "task"):
        op.create_table(
            "task",
            sa.Column("title", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("type", sa.String(length=50), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False),
            sa.Column("nominal_points", sa.Integer(), nullable=False),
            sa.Column("points", sa.Integer(), nullable=False),
            sa.Column("awarded_points", sa.Integer(), nullable=True),
            sa.Column("submitted_by", sa.Uuid(), nullable=True),
            sa.Column("assigned_to", sa.Uuid(), nullable=True),
            sa.Column("assigned_by", sa.Uuid(), nullable=True),
            sa.Column("reviewed_by", sa.Uuid(), nullable=True),
            sa.Column("rejection_reason", sa.Text(), nullable=True),
            sa.Column("proof_file", sa.String(length=255), nullable=True),
            sa.Column("deadline", sa.DateTime(timezone=True), nullable=True),
            sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
            *_common_columns(),
            sa.ForeignKeyConstraint(["submitted_by"], ["user_account.id"], name="fk_task_submitted_by_user_account"),
            sa.ForeignKeyConstraint(["assigned_to"], ["user_account.id"], name="fk_task_assigned_to_user_account"),
            sa.ForeignKeyConstraint(["assigned_by"], ["user_account.id"], name="fk_task_assigned_by_user_account"),
            sa.ForeignKeyConstraint(["reviewed_by"], ["user_account.id"], name="fk_task_reviewed_by_user_account"),
            sa.PrimaryKeyConstraint("id", name="pk_task"),
        )
    for column in ("type", "status", "submitted_by", "assigned_to", "proof_file"):
        index_name = f"ix_task_{column}"
        if not _has_index(bind, "task", index_name):
            op.create_index(index_name, "task", [column], unique=False)


def downgrade() -> None:
    for column in ("proof_file", "assigned_to", "submitted_by", "status", "type"):
        op.drop_index(f"ix_task_{column}", table_name="task")
    op.drop_table("task")
    op.drop_index("ix_user_account_role", table_name="user_account")
    op.drop_index("ix_user_account_username", table_name="user_account")
    op.drop_table("user_account")
