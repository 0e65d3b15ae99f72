"""Tests for the todo store: scan queries, conditional marks and recurrence."""
from datetime import datetime, timedelta

import pytest

from app.crud.todo import todo as todo_crud
from app.models.todo import Todo, TodoValidationError
from app.schemas.todo import TodoCreate
from app.utils.dates import utcnow


async def add_todo(db_session, user, **kwargs) -> Todo:
    fields = {"user_id": user.id, "title": "Call supplier", "priority": "high"}
    fields.update(kwargs)
    todo = Todo(**fields)
    db_session.add(todo)
    await db_session.commit()
    await db_session.refresh(todo)
    return todo


@pytest.mark.asyncio
async def test_defaults_applied_on_create(db_session, test_user):
    todo = await add_todo(db_session, test_user)

    assert todo.status == "pending"
    assert todo.category == "general"
    assert todo.tags == []
    assert todo.reminder_sent is False
    assert todo.whatsapp_reminder_count == 0
    assert todo.completed_at is None


@pytest.mark.asyncio
async def test_estimated_time_round_trip(db_session, test_user):
    created = await todo_crud.create_for_user(
        db_session,
        obj_in=TodoCreate(title="Count stock", estimated_time={"value": 3, "unit": "hours"}),
        user_id=test_user.id,
    )
    db_session.expire_all()

    fetched = await todo_crud.get_for_user(db_session, id=created.id, user_id=test_user.id)
    assert fetched.estimated_time == {"value": 3, "unit": "hours"}


@pytest.mark.asyncio
async def test_invalid_write_is_rejected(db_session, test_user):
    db_session.add(Todo(user_id=test_user.id, title="Ship order", status="archived"))
    with pytest.raises(TodoValidationError) as exc_info:
        await db_session.commit()
    await db_session.rollback()

    assert exc_info.value.errors == ["status: 'archived' is not a valid status"]


@pytest.mark.asyncio
async def test_find_due_includes_past_and_window(db_session, test_user):
    now = utcnow()
    past = await add_todo(db_session, test_user, title="Past", reminder_date=now - timedelta(minutes=2))
    soon = await add_todo(db_session, test_user, title="Soon", reminder_date=now + timedelta(minutes=3))
    await add_todo(db_session, test_user, title="Later", reminder_date=now + timedelta(hours=2))
    await add_todo(
        db_session, test_user, title="Done", status="completed", reminder_date=now - timedelta(minutes=1)
    )

    due = await todo_crud.find_due(db_session, window_minutes=5, now=now)

    assert [item.id for item in due] == [past.id, soon.id]
    assert due[0].user.notification_preference.whatsapp_api_key == "key123"


@pytest.mark.asyncio
async def test_find_overdue(db_session, test_user):
    now = utcnow()
    overdue = await add_todo(db_session, test_user, title="Late", due_date=now - timedelta(days=1))
    await add_todo(db_session, test_user, title="Future", due_date=now + timedelta(days=1))
    await add_todo(db_session, test_user, title="Closed", status="cancelled", due_date=now - timedelta(days=1))

    result = await todo_crud.find_overdue(db_session, now=now)

    assert [item.id for item in result] == [overdue.id]


@pytest.mark.asyncio
async def test_mark_reminder_sent_is_idempotent(db_session, test_user):
    now = utcnow()
    todo = await add_todo(db_session, test_user, reminder_date=now - timedelta(minutes=1))

    assert await todo_crud.mark_reminder_sent(db_session, id=todo.id, now=now) is True
    assert await todo_crud.mark_reminder_sent(db_session, id=todo.id, now=now + timedelta(minutes=1)) is False

    await db_session.refresh(todo)
    assert todo.reminder_sent is True
    assert todo.last_reminder_sent.replace(tzinfo=None) == now


@pytest.mark.asyncio
async def test_mark_whatsapp_reminder_sent_increments_count(db_session, test_user):
    todo = await add_todo(db_session, test_user)

    await todo_crud.mark_whatsapp_reminder_sent(db_session, id=todo.id)
    await todo_crud.mark_whatsapp_reminder_sent(db_session, id=todo.id)

    await db_session.refresh(todo)
    assert todo.whatsapp_reminder_sent is True
    assert todo.whatsapp_reminder_count == 2
    assert todo.last_reminder_sent is not None


@pytest.mark.asyncio
async def test_claim_reminder(db_session, test_user):
    now = utcnow()
    ttl = timedelta(minutes=5)
    todo = await add_todo(db_session, test_user, reminder_date=now)

    assert await todo_crud.claim_reminder(db_session, id=todo.id, ttl=ttl, now=now) is True
    assert await todo_crud.claim_reminder(db_session, id=todo.id, ttl=ttl, now=now + timedelta(minutes=1)) is False
    # A stale claim can be taken over
    assert await todo_crud.claim_reminder(db_session, id=todo.id, ttl=ttl, now=now + timedelta(minutes=10)) is True

    await todo_crud.release_claim(db_session, id=todo.id)
    await db_session.refresh(todo)
    assert todo.reminder_claimed_at is None


@pytest.mark.asyncio
async def test_daily_recurrence_spawns_single_successor(db_session, test_user):
    parent = await add_todo(
        db_session,
        test_user,
        title="Daily cash count",
        status="completed",
        due_date=datetime(2024, 1, 10, 18, 0),
        reminder_date=datetime(2024, 1, 10, 17, 0),
        reminder_sent=True,
        is_recurring=True,
        recurrence_pattern="daily",
    )

    candidates = await todo_crud.find_recurrence_candidates(db_session)
    assert [item.id for item in candidates] == [parent.id]

    successor = await todo_crud.spawn_next_occurrence(db_session, todo=parent)
    assert successor is not None
    assert successor.due_date.replace(tzinfo=None) == datetime(2024, 1, 11, 18, 0)
    assert successor.status == "pending"
    assert successor.completed_at is None
    assert successor.reminder_sent is False
    assert successor.recurrence_parent_id == parent.id

    await db_session.refresh(parent)
    assert parent.status == "completed"
    assert parent.next_recurrence.replace(tzinfo=None) == datetime(2024, 1, 11, 18, 0)

    assert await todo_crud.spawn_next_occurrence(db_session, todo=parent) is None
    assert await todo_crud.find_recurrence_candidates(db_session, now=datetime(2024, 1, 11, 0, 0)) == []


@pytest.mark.asyncio
async def test_list_for_user_filters_and_search(db_session, test_user, other_user):
    await add_todo(db_session, test_user, title="Order packaging", tags=["supplies"], category="inventory")
    await add_todo(db_session, test_user, title="Invoice customer", category="financial")
    await add_todo(db_session, other_user, title="Order coffee")

    todos, total = await todo_crud.list_for_user(db_session, user_id=test_user.id, search="order")
    assert total == 1
    assert todos[0].title == "Order packaging"

    todos, total = await todo_crud.list_for_user(db_session, user_id=test_user.id, search="supplies")
    assert total == 1

    todos, total = await todo_crud.list_for_user(db_session, user_id=test_user.id, category="financial")
    assert [item.title for item in todos] == ["Invoice customer"]
