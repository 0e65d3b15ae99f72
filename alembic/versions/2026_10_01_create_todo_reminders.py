"""Create users, notification preferences and todos.

Revision ID: todo_reminders_20261001
Revises:
Create Date: 2026-10-01 00:00:00.000000
"""
from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from alembic import op
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision = "todo_reminders_20261001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


def upgrade() -> None:
    """Create the reminder subsystem tables."""
    bind = op.get_bind()
    inspector = inspect(bind)
    tables = inspector.get_table_names()

    if "users" not in tables:
        op.create_table(
            "users",
            sa.Column("id", sa.UUID(), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("password_hash", sa.String(length=255), nullable=False),
            sa.Column("first_name", sa.String(length=100), nullable=False),
            sa.Column("last_name", sa.String(length=100), nullable=True),
            sa.Column("phone", sa.String(length=255), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(op.f("ix_users_id"), "users", ["id"], unique=False)
        op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    if "notification_preferences" not in tables:
        op.create_table(
            "notification_preferences",
            sa.Column("id", sa.UUID(), nullable=False),
            sa.Column("user_id", sa.UUID(), nullable=False),
            sa.Column("whatsapp_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("whatsapp_phone_number", sa.String(length=512), nullable=True),
            sa.Column("whatsapp_api_key", sa.String(length=512), nullable=True),
            sa.Column("whatsapp_activated_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("whatsapp_last_tested_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("whatsapp_messages_sent", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("whatsapp_messages_failed", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("whatsapp_last_sent_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("whatsapp_last_error", sa.Text(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(op.f("ix_notification_preferences_id"), "notification_preferences", ["id"], unique=False)
        op.create_index(
            op.f("ix_notification_preferences_user_id"),
            "notification_preferences",
            ["user_id"],
            unique=True,
        )

    if "todos" not in tables:
        op.create_table(
            "todos",
            sa.Column("id", sa.UUID(), nullable=False),
            sa.Column("user_id", sa.UUID(), nullable=False),
            sa.Column("title", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("category", sa.String(length=32), nullable=False, server_default="general"),
            sa.Column(
                "tags",
                postgresql.JSONB(astext_type=sa.Text()),
                nullable=False,
                server_default=sa.text("'[]'::jsonb"),
            ),
            sa.Column("priority", sa.String(length=16), nullable=False, server_default="medium"),
            sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
            sa.Column("reminder_date", sa.DateTime(timezone=True), nullable=True),
            sa.Column("estimated_time", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
            sa.Column("reminder_sent", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("last_reminder_sent", sa.DateTime(timezone=True), nullable=True),
            sa.Column("whatsapp_reminder_sent", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("whatsapp_reminder_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("reminder_claimed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("recurrence_pattern", sa.String(length=16), nullable=True),
            sa.Column("next_recurrence", sa.DateTime(timezone=True), nullable=True),
            sa.Column("recurrence_parent_id", sa.UUID(), nullable=True),
            sa.Column("related_sale_id", sa.UUID(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["recurrence_parent_id"], ["todos.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("recurrence_parent_id", name="uq_todos_recurrence_parent_id"),
        )
        op.create_index(op.f("ix_todos_id"), "todos", ["id"], unique=False)
        op.create_index(op.f("ix_todos_user_id"), "todos", ["user_id"], unique=False)
        op.create_index("ix_todos_user_due_date", "todos", ["user_id", "due_date"], unique=False)
        op.create_index("ix_todos_user_status", "todos", ["user_id", "status"], unique=False)
        op.create_index("ix_todos_user_priority", "todos", ["user_id", "priority"], unique=False)
        op.create_index("ix_todos_reminder_date_sent", "todos", ["reminder_date", "reminder_sent"], unique=False)
        op.create_index("ix_todos_due_date_status", "todos", ["due_date", "status"], unique=False)
        op.create_index(
            "ix_todos_reminder_date_whatsapp_sent",
            "todos",
            ["reminder_date", "whatsapp_reminder_sent"],
            unique=False,
        )


def downgrade() -> None:
    """Drop the reminder subsystem tables."""
    op.drop_index("ix_todos_reminder_date_whatsapp_sent", table_name="todos")
    op.drop_index("ix_todos_due_date_status", table_name="todos")
    op.drop_index("ix_todos_reminder_date_sent", table_name="todos")
    op.drop_index("ix_todos_user_priority", table_name="todos")
    op.drop_index("ix_todos_user_status", table_name="todos")
    op.drop_index("ix_todos_user_due_date", table_name="todos")
    op.drop_index(op.f("ix_todos_user_id"), table_name="todos")
    op.drop_index(op.f("ix_todos_id"), table_name="todos")
    op.drop_table("todos")

    op.drop_index(op.f("ix_notification_preferences_user_id"), table_name="notification_preferences")
    op.drop_index(op.f("ix_notification_preferences_id"), table_name="notification_preferences")
    op.drop_table("notification_preferences")

    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_index(op.f("ix_users_id"), table_name="users")
    op.drop_table("users")
