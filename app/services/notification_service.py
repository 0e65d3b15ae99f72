"""Reminder message formatting and channel dispatch."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from app.integrations.callmebot import CallMeBotClient
from app.models.notification import NotificationChannel, NotificationPreference
from app.models.todo import Todo
from app.utils.dates import to_naive_utc

logger = logging.getLogger(__name__)

PRIORITY_EMOJI = {
    "low": "🟢",
    "medium": "🟡",
    "high": "🟠",
    "urgent": "🔴",
}
UNKNOWN_PRIORITY_EMOJI = "⚪"


@dataclass
class ReminderView:
    """A todo together with the flavour of message it should produce."""

    todo: Todo
    is_overdue: bool = False


@dataclass
class DispatchResult:
    """Outcome of one dispatch attempt."""

    success: bool
    service_used: str
    error: Optional[str] = None
    response: Any = None

    def as_dict(self) -> dict:
        payload = {"success": self.success, "serviceUsed": self.service_used}
        if self.error:
            payload["error"] = self.error
        if self.response is not None:
            payload["response"] = self.response
        return payload


class ReminderMessageFormatter:
    """Compose the WhatsApp text for a reminder or an overdue alert."""

    date_format = "%Y-%m-%d"

    def _due(self, todo: Todo) -> str:
        due_date = to_naive_utc(todo.due_date)
        return due_date.strftime(self.date_format) if due_date else "No due date"

    @staticmethod
    def priority_emoji(priority: Optional[str]) -> str:
        return PRIORITY_EMOJI.get(priority, UNKNOWN_PRIORITY_EMOJI)

    def format_message(self, view: ReminderView) -> str:
        todo = view.todo
        priority = todo.priority or ""
        emoji = self.priority_emoji(todo.priority)

        if view.is_overdue:
            lines = [
                "🚨 OVERDUE TASK ALERT",
                "",
                f'"{todo.title}"',
                f"📅 Was due: {self._due(todo)}",
                f"{emoji} Priority: {priority.upper()}",
                f"📊 Status: {todo.status}",
                "",
                "⚠️ This task is overdue! Please complete it as soon as possible.",
            ]
            return "\n".join(lines)

        lines = ["🔔 TASK REMINDER", "", f'"{todo.title}"']
        if todo.description:
            lines.append(f"📝 {todo.description}")
        lines.append(f"📅 Due: {self._due(todo)}")
        lines.append(f"{emoji} Priority: {priority.upper()}")
        lines.append(f"📊 Status: {todo.status}")
        estimated = todo.estimated_time
        if estimated and estimated.get("value") is not None:
            lines.append(f"⏱️ Estimated: {estimated['value']:g} {estimated.get('unit') or 'hours'}")
        if todo.tags:
            lines.append(f"🏷️ Tags: {', '.join(todo.tags)}")
        lines.append("")
        lines.append("💡 Don't forget to update your progress!")
        return "\n".join(lines)


class NotificationDispatcher:
    """Pick a channel for a reminder and hand the message to the transport."""

    channels = (NotificationChannel.WHATSAPP,)

    def __init__(self, transport: CallMeBotClient, formatter: Optional[ReminderMessageFormatter] = None):
        self.transport = transport
        self.formatter = formatter or ReminderMessageFormatter()

    async def dispatch(self, view: ReminderView, preference: Optional[NotificationPreference]) -> DispatchResult:
        """Try each configured channel in order; never raises on delivery failure."""
        attempted = None
        for channel in self.channels:
            if channel == NotificationChannel.WHATSAPP:
                if preference is None or not preference.has_whatsapp_enabled():
                    logger.info("WhatsApp not configured for todo %s, skipping", view.todo.id)
                    continue
                result = await self._send_whatsapp(view, preference)
                if result.success:
                    return result
                attempted = result

        if attempted is not None:
            return attempted
        return DispatchResult(
            success=False,
            service_used=NotificationChannel.NONE.value,
            error="WhatsApp reminder failed. WhatsApp is not enabled or phone number/API key is missing.",
        )

    async def _send_whatsapp(self, view: ReminderView, preference: NotificationPreference) -> DispatchResult:
        try:
            message = self.formatter.format_message(view)
            result = await self.transport.send_whatsapp(
                preference.whatsapp_phone_number,
                message,
                preference.whatsapp_api_key,
            )
        except Exception as exc:
            logger.exception("WhatsApp dispatch for todo %s raised", view.todo.id)
            return DispatchResult(success=False, service_used=NotificationChannel.WHATSAPP.value, error=str(exc))

        if result.get("success"):
            return DispatchResult(
                success=True,
                service_used=NotificationChannel.WHATSAPP.value,
                response=result.get("response"),
            )
        logger.warning("WhatsApp dispatch for todo %s failed: %s", view.todo.id, result.get("error"))
        return DispatchResult(
            success=False,
            service_used=NotificationChannel.WHATSAPP.value,
            error=result.get("error"),
            response=result.get("details"),
        )
