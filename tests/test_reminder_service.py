"""Tests for the reminder scan passes."""
from contextlib import asynccontextmanager
from datetime import datetime, timedelta

import pytest

from app.crud.todo import todo as todo_crud
from app.models.todo import Todo
from app.services.notification_service import NotificationDispatcher
from app.services.reminder_service import ReminderService
from app.tasks import reminders as reminder_tasks
from app.tasks.reminders import run_pass
from app.utils.dates import utcnow


async def add_todo(db_session, user, **kwargs) -> Todo:
    fields = {"user_id": user.id, "title": "Follow up on quote", "priority": "high"}
    fields.update(kwargs)
    todo = Todo(**fields)
    db_session.add(todo)
    await db_session.commit()
    await db_session.refresh(todo)
    return todo


@pytest.mark.asyncio
async def test_reminder_pass_sends_and_marks(db_session, test_user, fake_transport, reminder_service):
    now = utcnow()
    todo = await add_todo(db_session, test_user, reminder_date=now - timedelta(minutes=2))

    report = await reminder_service.run_reminder_pass(db_session, now=now)

    assert report.as_dict() == {"sentCount": 1, "failedCount": 0, "skippedCount": 0, "total": 1}
    assert len(fake_transport.sent) == 1
    assert fake_transport.sent[0]["message"].startswith("🔔 TASK REMINDER")

    await db_session.refresh(todo)
    assert todo.reminder_sent is True
    assert todo.whatsapp_reminder_sent is True
    assert todo.whatsapp_reminder_count == 1
    assert abs(todo.last_reminder_sent.replace(tzinfo=None) - now) < timedelta(seconds=1)

    await db_session.refresh(test_user.notification_preference)
    assert test_user.notification_preference.whatsapp_messages_sent == 1

    # A second pass finds nothing to send
    report = await reminder_service.run_reminder_pass(db_session, now=now)
    assert report.total == 0
    assert len(fake_transport.sent) == 1


@pytest.mark.asyncio
async def test_reminder_pass_without_whatsapp(db_session, other_user, fake_transport, reminder_service):
    now = utcnow()
    todo = await add_todo(db_session, other_user, reminder_date=now - timedelta(minutes=2))

    report = await reminder_service.run_reminder_pass(db_session, now=now)

    assert report.failed == 1
    assert report.outcomes[0].service_used == "none"
    assert fake_transport.sent == []

    await db_session.refresh(todo)
    assert todo.reminder_sent is False


@pytest.mark.asyncio
async def test_failed_send_keeps_reminder_pending(db_session, test_user, fake_transport, reminder_service):
    fake_transport.succeed = False
    now = utcnow()
    todo = await add_todo(db_session, test_user, reminder_date=now)

    report = await reminder_service.run_reminder_pass(db_session, now=now)

    assert report.failed == 1
    assert report.outcomes[0].service_used == "whatsapp"
    await db_session.refresh(todo)
    assert todo.reminder_sent is False
    await db_session.refresh(test_user.notification_preference)
    assert test_user.notification_preference.whatsapp_messages_failed == 1
    assert test_user.notification_preference.whatsapp_last_error == "HTTP 500: Internal Server Error"


@pytest.mark.asyncio
async def test_claimed_reminder_is_skipped(db_session, test_user, fake_transport):
    service = ReminderService(NotificationDispatcher(fake_transport), claim_before_send=True, registry=None)
    now = utcnow()
    todo = await add_todo(db_session, test_user, reminder_date=now)
    assert await todo_crud.claim_reminder(db_session, id=todo.id, ttl=service.claim_ttl, now=now)

    report = await service.run_reminder_pass(db_session, now=now)

    assert report.skipped == 1
    assert fake_transport.sent == []


@pytest.mark.asyncio
@pytest.mark.parametrize("hours_ago, expected_alerts", [(23, 0), (25, 1)])
async def test_overdue_realert_interval(db_session, test_user, fake_transport, reminder_service, hours_ago, expected_alerts):
    now = utcnow()
    todo = await add_todo(
        db_session,
        test_user,
        due_date=now - timedelta(days=2),
        last_reminder_sent=now - timedelta(hours=hours_ago),
    )

    report = await reminder_service.run_overdue_pass(db_session, now=now)

    assert report.succeeded == expected_alerts
    assert len(fake_transport.sent) == expected_alerts
    await db_session.refresh(todo)
    assert todo.reminder_sent is False
    if expected_alerts:
        assert fake_transport.sent[0]["message"].startswith("🚨 OVERDUE TASK ALERT")
        assert abs(todo.last_reminder_sent.replace(tzinfo=None) - now) < timedelta(seconds=1)


@pytest.mark.asyncio
async def test_recurrence_pass(db_session, test_user, reminder_service):
    parent = await add_todo(
        db_session,
        test_user,
        due_date=datetime(2024, 1, 10, 9, 0),
        is_recurring=True,
        recurrence_pattern="weekly",
    )

    report = await reminder_service.run_recurrence_pass(db_session)
    assert report.as_dict()["spawnedCount"] == 1

    successor = await todo_crud.get_successor(db_session, id=parent.id)
    assert successor.due_date.replace(tzinfo=None) == datetime(2024, 1, 17, 9, 0)

    await db_session.refresh(parent)
    assert parent.status == "pending"


@pytest.mark.asyncio
async def test_run_pass_uses_given_session_factory(db_session, test_user, reminder_service):
    @asynccontextmanager
    async def session_factory():
        yield db_session

    now = utcnow()
    await add_todo(db_session, test_user, reminder_date=now - timedelta(minutes=1))

    result = await run_pass("reminder", service=reminder_service, session_factory=session_factory)
    assert result["sentCount"] == 1


@pytest.mark.asyncio
async def test_one_failed_send_does_not_abort_pass(db_session, test_user, fake_transport, reminder_service):
    fake_transport.fail_calls = {2}
    now = utcnow()
    todos = [
        await add_todo(db_session, test_user, title=f"Call supplier {n}", reminder_date=now - timedelta(minutes=n))
        for n in (1, 2, 3)
    ]

    report = await reminder_service.run_reminder_pass(db_session, now=now)

    assert report.as_dict() == {"sentCount": 2, "failedCount": 1, "skippedCount": 0, "total": 3}
    assert len(fake_transport.sent) == 3

    sent_flags = []
    for todo in todos:
        await db_session.refresh(todo)
        sent_flags.append(todo.reminder_sent)
    assert sorted(sent_flags) == [False, True, True]


class BrokenStore:
    async def find_due(self, db, window_minutes, now=None):
        raise RuntimeError("database unavailable")

    async def find_overdue(self, db, now=None):
        raise RuntimeError("database unavailable")


@pytest.mark.asyncio
async def test_store_failure_propagates_from_passes(db_session, fake_transport):
    service = ReminderService(NotificationDispatcher(fake_transport), store=BrokenStore(), registry=None)

    with pytest.raises(RuntimeError, match="database unavailable"):
        await service.run_reminder_pass(db_session)
    with pytest.raises(RuntimeError, match="database unavailable"):
        await service.run_overdue_pass(db_session)
    assert fake_transport.sent == []


def test_celery_task_reraises_pass_failure(monkeypatch):
    async def failing_pass(kind, service=None, session_factory=None):
        raise RuntimeError(f"{kind} lookup failed")

    monkeypatch.setattr(reminder_tasks, "run_pass", failing_pass)

    with pytest.raises(RuntimeError, match="reminder lookup failed"):
        reminder_tasks.send_due_reminders()
