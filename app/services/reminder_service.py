"""Reminder scan passes: upcoming reminders, overdue alerts and recurrence."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

import redis.asyncio as aioredis
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import NotFoundError
from app.crud.todo import CRUDTodo, todo as todo_store
from app.integrations.callmebot import CallMeBotClient
from app.middleware.metrics import todo_reminders_total, todo_scan_passes_total
from app.models.todo import Todo, TodoCategory, TodoPriority, TodoStatus
from app.models.user import User
from app.services.notification_service import (
    DispatchResult,
    NotificationDispatcher,
    ReminderMessageFormatter,
    ReminderView,
)
from app.utils.dates import to_naive_utc, utcnow

logger = logging.getLogger(__name__)

PASS_REMINDER = "reminder"
PASS_OVERDUE = "overdue"
PASS_RECURRENCE = "recurrence"


@dataclass
class ItemOutcome:
    """Result of processing one todo within a pass."""

    todo_id: UUID
    success: bool
    skipped: bool = False
    service_used: Optional[str] = None
    error: Optional[str] = None


@dataclass
class ScanReport:
    """Aggregate of one scan pass."""

    kind: str
    started_at: datetime
    outcomes: List[ItemOutcome] = field(default_factory=list)
    finished_at: Optional[datetime] = None

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def skipped(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.skipped)

    @property
    def processed(self) -> int:
        return self.total - self.skipped

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.success and not outcome.skipped)

    def as_dict(self) -> Dict[str, Any]:
        count_key = {PASS_OVERDUE: "alertedCount", PASS_RECURRENCE: "spawnedCount"}.get(self.kind, "sentCount")
        return {
            count_key: self.succeeded,
            "failedCount": self.failed,
            "skippedCount": self.skipped,
            "total": self.total,
        }


class ScanPassRegistry:
    """Last completion time of each pass kind, shared through Redis."""

    key_prefix = "tradehub:reminders:last_pass:"

    def __init__(self, redis_url: str):
        self.redis_url = redis_url

    async def record(self, kind: str, at: datetime) -> None:
        try:
            async with aioredis.from_url(self.redis_url) as client:
                await client.set(self.key_prefix + kind, at.isoformat())
        except RedisError as exc:
            logger.warning("Could not record %s pass time: %s", kind, exc)

    async def last(self, kind: str) -> Optional[datetime]:
        try:
            async with aioredis.from_url(self.redis_url, decode_responses=True) as client:
                value = await client.get(self.key_prefix + kind)
        except RedisError as exc:
            logger.warning("Could not read %s pass time: %s", kind, exc)
            return None
        return datetime.fromisoformat(value) if value else None


class ReminderService:
    """Stateless scan passes over the todo store.

    Each pass lists its candidates once (a listing failure propagates), then
    handles todos one at a time; a failed dispatch is recorded on the report
    and the pass moves on.
    """

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        *,
        store: CRUDTodo = todo_store,
        window_minutes: int = None,
        overdue_realert_hours: int = None,
        claim_before_send: bool = None,
        claim_ttl_minutes: int = None,
        registry: Optional[ScanPassRegistry] = None,
    ):
        self.dispatcher = dispatcher
        self.store = store
        self.window_minutes = window_minutes if window_minutes is not None else settings.REMINDER_WINDOW_MINUTES
        self.overdue_realert = timedelta(
            hours=overdue_realert_hours if overdue_realert_hours is not None else settings.OVERDUE_REALERT_HOURS
        )
        self.claim_before_send = (
            claim_before_send if claim_before_send is not None else settings.REMINDER_CLAIM_BEFORE_SEND
        )
        self.claim_ttl = timedelta(
            minutes=claim_ttl_minutes if claim_ttl_minutes is not None else settings.REMINDER_CLAIM_TTL_MINUTES
        )
        self.registry = registry

    async def _finish(self, report: ScanReport) -> ScanReport:
        report.finished_at = utcnow()
        todo_scan_passes_total.labels(report.kind).inc()
        if self.registry is not None:
            await self.registry.record(report.kind, report.finished_at)
        logger.info(
            "%s pass finished: %d succeeded, %d failed, %d skipped of %d",
            report.kind,
            report.succeeded,
            report.failed,
            report.skipped,
            report.total,
        )
        return report

    @staticmethod
    async def _record_channel_stats(db: AsyncSession, owner: Optional[User], result: DispatchResult) -> None:
        preference = owner.notification_preference if owner is not None else None
        if preference is None or not preference.has_whatsapp_enabled():
            return
        preference.record_whatsapp_result(result.success, result.error)
        await db.commit()

    async def run_reminder_pass(self, db: AsyncSession, now: Optional[datetime] = None) -> ScanReport:
        """Send reminders that are due within the window and mark them sent."""
        now = now or utcnow()
        report = ScanReport(kind=PASS_REMINDER, started_at=now)
        due = await self.store.find_due(db, window_minutes=self.window_minutes, now=now)
        logger.info("Found %d pending reminders", len(due))

        for item in due:
            report.outcomes.append(await self._send_reminder(db, item, now))
        return await self._finish(report)

    async def _send_reminder(self, db: AsyncSession, item: Todo, now: datetime) -> ItemOutcome:
        if self.claim_before_send and not await self.store.claim_reminder(db, id=item.id, ttl=self.claim_ttl, now=now):
            todo_reminders_total.labels(PASS_REMINDER, "skipped").inc()
            return ItemOutcome(todo_id=item.id, success=False, skipped=True, error="claimed by another pass")

        owner = item.user
        preference = owner.notification_preference if owner is not None else None
        result = await self.dispatcher.dispatch(ReminderView(todo=item), preference)
        await self._record_channel_stats(db, owner, result)

        if not result.success:
            if self.claim_before_send:
                await self.store.release_claim(db, id=item.id)
            todo_reminders_total.labels(PASS_REMINDER, "failed").inc()
            logger.warning("Reminder for todo %s not delivered: %s", item.id, result.error)
            return ItemOutcome(todo_id=item.id, success=False, service_used=result.service_used, error=result.error)

        await self.store.mark_whatsapp_reminder_sent(db, id=item.id, now=now)
        await self.store.mark_reminder_sent(db, id=item.id, now=now)
        todo_reminders_total.labels(PASS_REMINDER, "sent").inc()
        logger.info("Reminder sent for todo %s via %s", item.id, result.service_used)
        return ItemOutcome(todo_id=item.id, success=True, service_used=result.service_used)

    async def run_overdue_pass(self, db: AsyncSession, now: Optional[datetime] = None) -> ScanReport:
        """Alert owners of overdue todos, at most once per re-alert interval."""
        now = now or utcnow()
        report = ScanReport(kind=PASS_OVERDUE, started_at=now)
        overdue = await self.store.find_overdue(db, now=now)
        logger.info("Found %d overdue todos", len(overdue))

        for item in overdue:
            report.outcomes.append(await self._send_overdue_alert(db, item, now))
        return await self._finish(report)

    def needs_overdue_alert(self, item: Todo, now: datetime) -> bool:
        last_sent = to_naive_utc(item.last_reminder_sent)
        return last_sent is None or now - last_sent > self.overdue_realert

    async def _send_overdue_alert(self, db: AsyncSession, item: Todo, now: datetime) -> ItemOutcome:
        if not self.needs_overdue_alert(item, now):
            todo_reminders_total.labels(PASS_OVERDUE, "skipped").inc()
            return ItemOutcome(todo_id=item.id, success=False, skipped=True)

        owner = item.user
        preference = owner.notification_preference if owner is not None else None
        result = await self.dispatcher.dispatch(ReminderView(todo=item, is_overdue=True), preference)
        await self._record_channel_stats(db, owner, result)

        if not result.success:
            todo_reminders_total.labels(PASS_OVERDUE, "failed").inc()
            logger.warning("Overdue alert for todo %s not delivered: %s", item.id, result.error)
            return ItemOutcome(todo_id=item.id, success=False, service_used=result.service_used, error=result.error)

        await self.store.touch_last_reminder(db, id=item.id, now=now)
        todo_reminders_total.labels(PASS_OVERDUE, "sent").inc()
        return ItemOutcome(todo_id=item.id, success=True, service_used=result.service_used)

    async def run_recurrence_pass(self, db: AsyncSession, now: Optional[datetime] = None) -> ScanReport:
        """Create the next occurrence of recurring todos whose due date has passed."""
        now = now or utcnow()
        report = ScanReport(kind=PASS_RECURRENCE, started_at=now)
        candidates = await self.store.find_recurrence_candidates(db, now=now)

        for item in candidates:
            successor = await self.store.spawn_next_occurrence(db, todo=item)
            report.outcomes.append(ItemOutcome(todo_id=item.id, success=successor is not None, skipped=successor is None))
        return await self._finish(report)

    async def send_test_reminder(self, db: AsyncSession, user: User, todo_id: Optional[UUID] = None) -> DispatchResult:
        """Send a reminder for one of the user's todos, or for a throwaway todo.

        The throwaway todo is deleted after a successful send.
        """
        preference = user.notification_preference
        if todo_id is not None:
            item = await self.store.get_for_user(db, id=todo_id, user_id=user.id)
            if item is None:
                raise NotFoundError("Todo not found")
            return await self.dispatcher.dispatch(ReminderView(todo=item, is_overdue=item.is_overdue), preference)

        now = utcnow()
        item = Todo(
            user_id=user.id,
            title=f"TEST REMINDER - {now:%H:%M:%S}",
            description="This is a test reminder to verify WhatsApp integration",
            category=TodoCategory.GENERAL.value,
            priority=TodoPriority.HIGH.value,
            status=TodoStatus.PENDING.value,
            due_date=now + timedelta(minutes=5),
            reminder_date=now,
            reminder_sent=True,
        )
        db.add(item)
        await db.commit()

        result = await self.dispatcher.dispatch(ReminderView(todo=item), preference)
        await self._record_channel_stats(db, user, result)
        if result.success:
            await db.delete(item)
            await db.commit()
        return result

    async def get_status(self, db: AsyncSession) -> Dict[str, Any]:
        now = utcnow()
        last_check = await self.registry.last(PASS_REMINDER) if self.registry is not None else None
        next_check = (last_check or now) + timedelta(seconds=settings.REMINDER_SCAN_INTERVAL_SECONDS)
        return {
            "pending_reminders": await self.store.count_pending_reminders(db),
            "last_check": last_check,
            "next_check": next_check,
            "window_minutes": self.window_minutes,
            "claim_before_send": self.claim_before_send,
        }


def build_reminder_service(transport: Optional[CallMeBotClient] = None, registry: Optional[ScanPassRegistry] = None) -> ReminderService:
    """Wire a service from settings; callers may substitute the transport."""
    dispatcher = NotificationDispatcher(transport or CallMeBotClient(), ReminderMessageFormatter())
    return ReminderService(dispatcher, registry=registry or ScanPassRegistry(settings.REDIS_URL))
