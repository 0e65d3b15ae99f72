"""Tests for todo model invariants."""
from datetime import datetime, timedelta

import pytest

from app.models.todo import Todo, TodoValidationError, estimated_hours, next_occurrence
from app.utils.dates import utcnow


def make_todo(**kwargs) -> Todo:
    fields = {
        "user_id": "00000000-0000-0000-0000-000000000001",
        "title": "Restock shelves",
        "category": "inventory",
        "priority": "medium",
        "status": "pending",
        "reminder_sent": False,
        "whatsapp_reminder_sent": False,
    }
    fields.update(kwargs)
    return Todo(**fields)


def test_is_overdue_requires_past_due_date():
    assert make_todo(due_date=None).is_overdue is False
    assert make_todo(due_date=utcnow() + timedelta(hours=1)).is_overdue is False
    assert make_todo(due_date=utcnow() - timedelta(hours=1)).is_overdue is True


@pytest.mark.parametrize("status", ["completed", "cancelled"])
def test_closed_todos_are_never_overdue(status):
    assert make_todo(status=status, due_date=utcnow() - timedelta(days=3)).is_overdue is False


def test_completion_stamp_follows_status():
    now = datetime(2024, 1, 10, 12, 0)
    todo = make_todo(status="completed")
    todo.enforce_invariants(now=now)
    assert todo.completed_at == now

    todo.status = "pending"
    todo.enforce_invariants(now=now)
    assert todo.completed_at is None


def test_stale_reminder_forces_whatsapp_flag_off():
    now = utcnow()
    todo = make_todo(reminder_date=now - timedelta(hours=2), whatsapp_reminder_sent=True)
    todo.enforce_invariants(now=now)
    assert todo.reminder_sent is False
    assert todo.whatsapp_reminder_sent is False


@pytest.mark.asyncio
async def test_rearmed_reminder_clears_whatsapp_flag_on_save(db_session, test_user):
    now = utcnow()
    todo = make_todo(
        user_id=test_user.id,
        reminder_date=now - timedelta(hours=2),
        reminder_sent=False,
        whatsapp_reminder_sent=True,
        last_reminder_sent=now - timedelta(hours=1),
    )
    db_session.add(todo)
    await db_session.commit()
    await db_session.refresh(todo)

    assert todo.reminder_sent is False
    assert todo.whatsapp_reminder_sent is False


def test_sent_reminder_is_not_reset():
    now = utcnow()
    reminder_date = now - timedelta(hours=2)
    todo = make_todo(
        reminder_date=reminder_date,
        reminder_sent=True,
        whatsapp_reminder_sent=True,
        last_reminder_sent=reminder_date + timedelta(minutes=1),
    )
    todo.enforce_invariants(now=now)
    assert todo.reminder_sent is True
    assert todo.whatsapp_reminder_sent is True


def test_validation_collects_field_errors():
    todo = make_todo(title="   ", priority="critical", description="x" * 1001)
    with pytest.raises(TodoValidationError) as exc_info:
        todo.enforce_invariants()

    errors = exc_info.value.errors
    assert any(error.startswith("title:") for error in errors)
    assert any(error.startswith("priority:") for error in errors)
    assert any(error.startswith("description:") for error in errors)


def test_recurring_todo_needs_pattern():
    todo = make_todo(is_recurring=True, recurrence_pattern=None)
    assert "recurrence_pattern: Recurring todos need a recurrence pattern" in todo.validation_errors()


def test_next_occurrence_offsets():
    start = datetime(2024, 1, 31, 9, 0)
    assert next_occurrence(start, "daily") == datetime(2024, 2, 1, 9, 0)
    assert next_occurrence(start, "weekly") == datetime(2024, 2, 7, 9, 0)
    assert next_occurrence(start, "monthly") == datetime(2024, 2, 29, 9, 0)
    assert next_occurrence(start, "yearly") == datetime(2025, 1, 31, 9, 0)
    assert next_occurrence(None, "daily") is None


def test_estimated_hours_conversion():
    assert estimated_hours({"value": 90, "unit": "minutes"}) == 1.5
    assert estimated_hours({"value": 2, "unit": "days"}) == 48
    assert estimated_hours(None) == 0.0


def test_successor_fields_reset_state():
    todo = make_todo(
        status="completed",
        due_date=datetime(2024, 1, 10, 9, 0),
        reminder_date=datetime(2024, 1, 10, 8, 0),
        is_recurring=True,
        recurrence_pattern="daily",
        tags=["store"],
    )
    fields = todo.successor_fields()
    assert fields["status"] == "pending"
    assert fields["due_date"] == datetime(2024, 1, 11, 9, 0)
    assert fields["reminder_date"] == datetime(2024, 1, 11, 8, 0)
    assert "reminder_sent" not in fields
    assert "completed_at" not in fields
