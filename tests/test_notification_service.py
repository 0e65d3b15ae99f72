"""Tests for reminder formatting and dispatch."""
from datetime import datetime

import pytest

from app.models.notification import NotificationPreference
from app.models.todo import Todo
from app.services.notification_service import (
    NotificationDispatcher,
    ReminderMessageFormatter,
    ReminderView,
)


def make_todo(**kwargs) -> Todo:
    fields = {
        "title": "Pay rent",
        "priority": "urgent",
        "status": "pending",
        "due_date": datetime(2024, 3, 1, 9, 0),
    }
    fields.update(kwargs)
    return Todo(**fields)


def enabled_preference(**kwargs) -> NotificationPreference:
    fields = {"whatsapp_enabled": True, "whatsapp_phone_number": "15551234567", "whatsapp_api_key": "key123"}
    fields.update(kwargs)
    return NotificationPreference(**fields)


def test_reminder_message():
    todo = make_todo(
        description="Transfer to landlord",
        estimated_time={"value": 30, "unit": "minutes"},
        tags=["home", "bills"],
    )
    message = ReminderMessageFormatter().format_message(ReminderView(todo=todo))

    assert message.startswith("🔔 TASK REMINDER")
    assert '"Pay rent"' in message
    assert "📝 Transfer to landlord" in message
    assert "📅 Due: 2024-03-01" in message
    assert "🔴 Priority: URGENT" in message
    assert "⏱️ Estimated: 30 minutes" in message
    assert "🏷️ Tags: home, bills" in message


def test_overdue_message():
    message = ReminderMessageFormatter().format_message(ReminderView(todo=make_todo(priority="low"), is_overdue=True))

    assert message.startswith("🚨 OVERDUE TASK ALERT")
    assert "📅 Was due: 2024-03-01" in message
    assert "🟢 Priority: LOW" in message


def test_message_without_due_date_and_unknown_priority():
    message = ReminderMessageFormatter().format_message(ReminderView(todo=make_todo(due_date=None, priority="whenever")))

    assert "📅 Due: No due date" in message
    assert "⚪ Priority: WHENEVER" in message


@pytest.mark.asyncio
async def test_dispatch_via_whatsapp(fake_transport):
    transport = fake_transport
    result = await NotificationDispatcher(transport).dispatch(ReminderView(todo=make_todo()), enabled_preference())

    assert result.success is True
    assert result.service_used == "whatsapp"
    assert len(transport.sent) == 1
    assert transport.sent[0]["phone_number"] == "15551234567"
    assert transport.sent[0]["api_key"] == "key123"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "preference",
    [
        None,
        NotificationPreference(whatsapp_enabled=False, whatsapp_phone_number="15551234567", whatsapp_api_key="k"),
        NotificationPreference(whatsapp_enabled=True, whatsapp_phone_number="15551234567", whatsapp_api_key=None),
    ],
)
async def test_dispatch_without_whatsapp_makes_no_call(preference, fake_transport):
    transport = fake_transport
    result = await NotificationDispatcher(transport).dispatch(ReminderView(todo=make_todo()), preference)

    assert result.success is False
    assert result.service_used == "none"
    assert transport.sent == []
    assert result.as_dict()["serviceUsed"] == "none"


@pytest.mark.asyncio
async def test_dispatch_transport_failure(fake_transport):
    transport = fake_transport
    transport.succeed = False
    result = await NotificationDispatcher(transport).dispatch(ReminderView(todo=make_todo()), enabled_preference())

    assert result.success is False
    assert result.service_used == "whatsapp"
    assert result.error == "HTTP 500: Internal Server Error"
    assert result.response == "gateway down"
    assert len(transport.sent) == 1


@pytest.mark.asyncio
async def test_dispatch_transport_exception_is_captured():
    class ExplodingTransport:
        async def send_whatsapp(self, phone_number, message, api_key):
            raise RuntimeError("socket closed")

    result = await NotificationDispatcher(ExplodingTransport()).dispatch(
        ReminderView(todo=make_todo()), enabled_preference()
    )

    assert result.success is False
    assert result.error == "socket closed"
    assert result.service_used == "whatsapp"
