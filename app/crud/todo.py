"""Todo CRUD operations and reminder queries."""
import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import String, cast, exists, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased, selectinload

from app.config import settings
from app.crud.base import CRUDBase
from app.models.todo import ACTIVE_STATUSES, Todo, TodoStatus, estimated_hours
from app.models.user import User
from app.schemas.todo import TodoCreate, TodoUpdate
from app.utils.dates import to_naive_utc, utcnow

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = ("title", "priority", "status", "category", "due_date", "created_at", "updated_at")
SUGGESTION_LIMIT = 10


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class CRUDTodo(CRUDBase[Todo, TodoCreate, TodoUpdate]):
    """CRUD operations for Todo."""

    # Scan-loop queries

    async def find_due(self, db: AsyncSession, *, window_minutes: int, now: Optional[datetime] = None) -> List[Todo]:
        """Unsent reminders of active todos whose reminder time falls before ``now + window``.

        Reminders that came due in the past are included so a backdated
        reminder is sent late rather than never.
        """
        now = now or utcnow()
        result = await db.execute(
            select(Todo)
            .where(
                Todo.reminder_date.is_not(None),
                Todo.reminder_date <= now + timedelta(minutes=window_minutes),
                Todo.reminder_sent.is_(False),
                Todo.status.in_(ACTIVE_STATUSES),
            )
            .options(selectinload(Todo.user).selectinload(User.notification_preference))
            .order_by(Todo.reminder_date)
        )
        return list(result.scalars().all())

    async def find_overdue(self, db: AsyncSession, *, now: Optional[datetime] = None) -> List[Todo]:
        now = now or utcnow()
        result = await db.execute(
            select(Todo)
            .where(
                Todo.due_date.is_not(None),
                Todo.due_date < now,
                Todo.status.in_(ACTIVE_STATUSES),
                Todo.reminder_sent.is_(False),
            )
            .options(selectinload(Todo.user).selectinload(User.notification_preference))
            .order_by(Todo.due_date)
        )
        return list(result.scalars().all())

    async def count_pending_reminders(self, db: AsyncSession) -> int:
        result = await db.execute(
            select(func.count(Todo.id)).where(
                Todo.reminder_date.is_not(None),
                Todo.reminder_sent.is_(False),
                Todo.status.in_(ACTIVE_STATUSES),
            )
        )
        return result.scalar_one()

    async def _conditional_update(self, db: AsyncSession, where: List[Any], values: Dict[str, Any]) -> bool:
        result = await db.execute(
            update(Todo).where(*where).values(**values).execution_options(synchronize_session="fetch")
        )
        await db.commit()
        return result.rowcount > 0

    async def mark_reminder_sent(self, db: AsyncSession, *, id: UUID, now: Optional[datetime] = None) -> bool:
        """Flip ``reminder_sent``; returns False when it was already set."""
        return await self._conditional_update(
            db,
            [Todo.id == id, Todo.reminder_sent.is_(False)],
            {"reminder_sent": True, "last_reminder_sent": now or utcnow(), "reminder_claimed_at": None},
        )

    async def mark_whatsapp_reminder_sent(self, db: AsyncSession, *, id: UUID, now: Optional[datetime] = None) -> bool:
        return await self._conditional_update(
            db,
            [Todo.id == id],
            {
                "whatsapp_reminder_sent": True,
                "whatsapp_reminder_count": Todo.whatsapp_reminder_count + 1,
                "last_reminder_sent": now or utcnow(),
            },
        )

    async def touch_last_reminder(self, db: AsyncSession, *, id: UUID, now: Optional[datetime] = None) -> bool:
        """Stamp an overdue alert without touching the reminder flags."""
        return await self._conditional_update(db, [Todo.id == id], {"last_reminder_sent": now or utcnow()})

    async def claim_reminder(
        self,
        db: AsyncSession,
        *,
        id: UUID,
        ttl: timedelta,
        now: Optional[datetime] = None,
    ) -> bool:
        """Atomically claim an unsent reminder; a stale claim older than ``ttl`` can be taken over."""
        now = now or utcnow()
        return await self._conditional_update(
            db,
            [
                Todo.id == id,
                Todo.reminder_sent.is_(False),
                or_(Todo.reminder_claimed_at.is_(None), Todo.reminder_claimed_at < now - ttl),
            ],
            {"reminder_claimed_at": now},
        )

    async def release_claim(self, db: AsyncSession, *, id: UUID) -> bool:
        return await self._conditional_update(db, [Todo.id == id], {"reminder_claimed_at": None})

    # Recurrence

    async def find_recurrence_candidates(self, db: AsyncSession, *, now: Optional[datetime] = None) -> List[Todo]:
        """Recurring todos past their due date that have not spawned a successor yet."""
        now = now or utcnow()
        successor = aliased(Todo)
        result = await db.execute(
            select(Todo)
            .where(
                Todo.is_recurring.is_(True),
                Todo.recurrence_pattern.is_not(None),
                Todo.due_date.is_not(None),
                Todo.due_date < now,
                Todo.status != TodoStatus.CANCELLED.value,
                ~exists().where(successor.recurrence_parent_id == Todo.id),
            )
            .order_by(Todo.due_date)
        )
        return list(result.scalars().all())

    async def get_successor(self, db: AsyncSession, *, id: UUID) -> Optional[Todo]:
        result = await db.execute(select(Todo).where(Todo.recurrence_parent_id == id))
        return result.scalar_one_or_none()

    async def spawn_next_occurrence(self, db: AsyncSession, *, todo: Todo) -> Optional[Todo]:
        """Insert the next occurrence and stamp ``next_recurrence`` in one commit.

        Pending changes already made to ``todo`` (e.g. completion) are committed
        together with the successor. Returns None when the todo is not
        recurring, has no due date, or already has a successor.
        """
        if not todo.is_recurring or not todo.recurrence_pattern or todo.due_date is None:
            await db.commit()
            return None
        if await self.get_successor(db, id=todo.id) is not None:
            await db.commit()
            return None

        successor = Todo(**todo.successor_fields())
        todo.next_recurrence = successor.due_date
        db.add(successor)
        try:
            await db.commit()
        except IntegrityError:
            # Another pass inserted the successor first
            await db.rollback()
            await db.refresh(todo)
            logger.info("Successor for recurring todo %s already exists", todo.id)
            return None
        await db.refresh(successor)
        logger.info("Spawned occurrence %s of recurring todo %s due %s", successor.id, todo.id, successor.due_date)
        return successor

    # User-facing reads

    async def get_for_user(self, db: AsyncSession, *, id: UUID, user_id: UUID) -> Optional[Todo]:
        result = await db.execute(select(Todo).where(Todo.id == id, Todo.user_id == user_id))
        return result.scalar_one_or_none()

    async def create_for_user(self, db: AsyncSession, *, obj_in: TodoCreate, user_id: UUID) -> Todo:
        db_obj = Todo(**obj_in.to_columns(), user_id=user_id)
        db.add(db_obj)
        await db.commit()
        await db.refresh(db_obj)
        return db_obj

    async def _paginate(self, db: AsyncSession, stmt, page: int, limit: int) -> Tuple[List[Todo], int]:
        total = (await db.execute(select(func.count()).select_from(stmt.order_by(None).subquery()))).scalar_one()
        result = await db.execute(stmt.offset((page - 1) * limit).limit(limit))
        return list(result.scalars().all()), total

    async def list_for_user(
        self,
        db: AsyncSession,
        *,
        user_id: UUID,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
        due_date_from: Optional[datetime] = None,
        due_date_to: Optional[datetime] = None,
        show_overdue: bool = False,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = None,
    ) -> Tuple[List[Todo], int]:
        limit = min(limit or settings.TODO_DEFAULT_PAGE_SIZE, settings.TODO_MAX_PAGE_SIZE)
        stmt = select(Todo).where(Todo.user_id == user_id)

        if status and status != "all":
            stmt = stmt.where(Todo.status == status)
        if priority and priority != "all":
            stmt = stmt.where(Todo.priority == priority)
        if category and category != "all":
            stmt = stmt.where(Todo.category == category)
        if search and search.strip():
            pattern = _like_pattern(search.strip())
            stmt = stmt.where(
                or_(
                    Todo.title.ilike(pattern, escape="\\"),
                    Todo.description.ilike(pattern, escape="\\"),
                    Todo.category.ilike(pattern, escape="\\"),
                    cast(Todo.tags, String).ilike(pattern, escape="\\"),
                )
            )
        if due_date_from:
            stmt = stmt.where(Todo.due_date >= to_naive_utc(due_date_from))
        if due_date_to:
            stmt = stmt.where(Todo.due_date <= to_naive_utc(due_date_to))
        if show_overdue:
            stmt = stmt.where(Todo.due_date < utcnow(), Todo.status.in_(ACTIVE_STATUSES))

        sort_column = getattr(Todo, sort_by if sort_by in SORTABLE_FIELDS else "created_at")
        stmt = stmt.order_by(sort_column.asc() if sort_order == "asc" else sort_column.desc())
        return await self._paginate(db, stmt, page, limit)

    async def list_overdue_for_user(
        self, db: AsyncSession, *, user_id: UUID, page: int = 1, limit: int = 20
    ) -> Tuple[List[Todo], int]:
        stmt = (
            select(Todo)
            .where(
                Todo.user_id == user_id,
                Todo.due_date < utcnow(),
                Todo.status.in_(ACTIVE_STATUSES),
            )
            .order_by(Todo.due_date.asc())
        )
        return await self._paginate(db, stmt, page, min(limit, settings.TODO_MAX_PAGE_SIZE))

    async def list_upcoming_for_user(
        self, db: AsyncSession, *, user_id: UUID, days: int = 7, page: int = 1, limit: int = 20
    ) -> Tuple[List[Todo], int, Tuple[datetime, datetime]]:
        """Active todos due between the start of today and the end of day ``today + days``."""
        today = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        until = today + timedelta(days=days + 1) - timedelta(microseconds=1)
        stmt = (
            select(Todo)
            .where(
                Todo.user_id == user_id,
                Todo.status.in_(ACTIVE_STATUSES),
                Todo.due_date >= today,
                Todo.due_date <= until,
            )
            .order_by(Todo.due_date.asc())
        )
        todos, total = await self._paginate(db, stmt, page, min(limit, settings.TODO_MAX_PAGE_SIZE))
        return todos, total, (today, until)

    async def list_upcoming_reminders_for_user(
        self, db: AsyncSession, *, user_id: UUID, hours: int = 24
    ) -> Tuple[List[Todo], Tuple[datetime, datetime]]:
        now = utcnow()
        until = now + timedelta(hours=hours)
        result = await db.execute(
            select(Todo)
            .where(
                Todo.user_id == user_id,
                Todo.reminder_date >= now,
                Todo.reminder_date <= until,
                Todo.reminder_sent.is_(False),
                Todo.status.in_(ACTIVE_STATUSES),
            )
            .order_by(Todo.reminder_date.asc())
        )
        return list(result.scalars().all()), (now, until)

    async def search_suggestions(self, db: AsyncSession, *, user_id: UUID, query: str) -> List[Todo]:
        """Best matches for ``query``: title hits rank above description, then category."""
        term = query.strip().lower()
        pattern = _like_pattern(term)
        result = await db.execute(
            select(Todo).where(
                Todo.user_id == user_id,
                or_(
                    Todo.title.ilike(pattern, escape="\\"),
                    Todo.description.ilike(pattern, escape="\\"),
                    Todo.category.ilike(pattern, escape="\\"),
                    cast(Todo.tags, String).ilike(pattern, escape="\\"),
                ),
            )
        )

        def score(todo: Todo) -> int:
            if term in todo.title.lower():
                return 3
            if todo.description and term in todo.description.lower():
                return 2
            if term in todo.category.lower():
                return 1
            return 0

        matches = sorted(result.scalars().all(), key=lambda todo: (-score(todo), todo.title))
        return matches[:SUGGESTION_LIMIT]

    async def stats_for_user(self, db: AsyncSession, *, user_id: UUID, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or utcnow()
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        tomorrow = today + timedelta(days=1)
        # Weeks start on Sunday
        week_start = today - timedelta(days=(today.weekday() + 1) % 7)
        month_start = today.replace(day=1)
        year_start = today.replace(month=1, day=1)

        breakdown = {}
        for name, column in (("by_status", Todo.status), ("by_priority", Todo.priority), ("by_category", Todo.category)):
            rows = await db.execute(
                select(column, func.count(Todo.id)).where(Todo.user_id == user_id).group_by(column)
            )
            breakdown[name] = {key: count for key, count in rows.all()}

        rows = await db.execute(
            select(Todo.status, Todo.due_date, Todo.completed_at, Todo.created_at, Todo.estimated_time).where(
                Todo.user_id == user_id
            )
        )
        rows = rows.all()

        total = len(rows)
        status_counts = Counter(breakdown["by_status"])
        overdue = due_today = 0
        completed_since = Counter()
        estimated_total = 0.0
        estimated_count = 0
        completion_hours = []

        for status, due_date, completed_at, created_at, estimated_time in rows:
            due_date = to_naive_utc(due_date)
            completed_at = to_naive_utc(completed_at)
            created_at = to_naive_utc(created_at)
            if status in ACTIVE_STATUSES and due_date is not None:
                if due_date < now:
                    overdue += 1
                if today <= due_date < tomorrow:
                    due_today += 1
            if status == TodoStatus.COMPLETED.value and completed_at is not None:
                for label, start in (("today", today), ("this_week", week_start), ("this_month", month_start), ("this_year", year_start)):
                    if completed_at >= start:
                        completed_since[label] += 1
                if created_at is not None:
                    completion_hours.append((completed_at - created_at).total_seconds() / 3600)
            if estimated_time and (estimated_time.get("value") or 0) > 0:
                estimated_count += 1
                estimated_total += estimated_hours(estimated_time)

        completed = status_counts.get(TodoStatus.COMPLETED.value, 0)
        completed_week = completed_since["this_week"]
        return {
            "summary": {
                "total": total,
                "completed": completed,
                "pending": status_counts.get(TodoStatus.PENDING.value, 0),
                "in_progress": status_counts.get(TodoStatus.IN_PROGRESS.value, 0),
                "completion_rate": round(completed / total * 100) if total else 0,
            },
            "overdue": {"count": overdue, "percentage": round(overdue / total * 100) if total else 0},
            "due_today": {"count": due_today},
            "completion_trends": {
                "today": completed_since["today"],
                "this_week": completed_week,
                "this_month": completed_since["this_month"],
                "this_year": completed_since["this_year"],
            },
            "breakdown": breakdown,
            "time_metrics": {
                "total_estimated_hours": round(estimated_total),
                "tasks_with_time_estimate": estimated_count,
                "average_completion_time": {
                    "hours": round(sum(completion_hours) / len(completion_hours), 2),
                    "min": round(min(completion_hours), 2),
                    "max": round(max(completion_hours), 2),
                    "sample_size": len(completion_hours),
                }
                if completion_hours
                else None,
            },
            "productivity": {
                "completed_per_week": completed_week,
                "completion_rate_this_week": round(completed_week / (completed_week + overdue) * 100)
                if completed_week
                else 0,
            },
            "timeframe": {
                "generated_at": now,
                "today": today,
                "week_start": week_start,
                "month_start": month_start,
            },
        }


todo = CRUDTodo(Todo)
