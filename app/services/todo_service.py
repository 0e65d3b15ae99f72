"""Todo status transitions and edits that carry reminder/recurrence side effects."""
import logging
from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BadRequestError
from app.crud.todo import todo as todo_crud
from app.models.todo import TITLE_MAX_LENGTH, Todo, TodoStatus, next_occurrence
from app.schemas.todo import TodoUpdate
from app.utils.dates import to_naive_utc, utcnow

logger = logging.getLogger(__name__)

COPY_SUFFIX = " (Copy)"


class TodoService:
    """Apply user edits to todos."""

    @staticmethod
    def _apply_completion(db_obj: Todo) -> None:
        db_obj.status = TodoStatus.COMPLETED.value
        db_obj.completed_at = utcnow()
        # Completed todos need no further reminders
        db_obj.reminder_sent = True

    @staticmethod
    def _apply_reopen(db_obj: Todo, status: str = TodoStatus.PENDING.value) -> None:
        db_obj.status = status
        db_obj.completed_at = None
        db_obj.reminder_sent = False

    async def update(self, db: AsyncSession, *, db_obj: Todo, obj_in: TodoUpdate) -> Todo:
        """Apply a partial update.

        Completing a todo stamps ``completed_at`` and spawns the next occurrence
        of a recurring todo in the same commit; reopening clears the stamp; a
        new reminder date re-arms the reminder.
        """
        updates: Dict[str, Any] = obj_in.to_columns()
        previous_status = db_obj.status
        new_status = updates.pop("status", previous_status)

        if "reminder_date" in updates and updates["reminder_date"] != to_naive_utc(db_obj.reminder_date):
            updates["reminder_sent"] = False
            updates["last_reminder_sent"] = None
            updates["whatsapp_reminder_sent"] = False

        if "is_recurring" in updates and not updates["is_recurring"]:
            updates["recurrence_pattern"] = None
            updates["next_recurrence"] = None
        elif updates.get("is_recurring"):
            pattern = updates.get("recurrence_pattern") or db_obj.recurrence_pattern
            if not pattern:
                raise BadRequestError("recurrence_pattern is required for recurring todos")
            due_date = updates["due_date"] if "due_date" in updates else db_obj.due_date
            updates["next_recurrence"] = next_occurrence(to_naive_utc(due_date), pattern)

        for field, value in updates.items():
            setattr(db_obj, field, value)

        if new_status == TodoStatus.COMPLETED.value and previous_status != TodoStatus.COMPLETED.value:
            self._apply_completion(db_obj)
            await todo_crud.spawn_next_occurrence(db, todo=db_obj)
        else:
            if new_status != TodoStatus.COMPLETED.value and previous_status == TodoStatus.COMPLETED.value:
                self._apply_reopen(db_obj, new_status)
            else:
                db_obj.status = new_status
            db.add(db_obj)
            await db.commit()

        await db.refresh(db_obj)
        return db_obj

    async def complete(self, db: AsyncSession, *, db_obj: Todo) -> Todo:
        if db_obj.status == TodoStatus.COMPLETED.value:
            raise BadRequestError("Todo is already completed")
        self._apply_completion(db_obj)
        successor = await todo_crud.spawn_next_occurrence(db, todo=db_obj)
        if successor is not None:
            logger.info("Completed recurring todo %s, next occurrence %s", db_obj.id, successor.id)
        await db.refresh(db_obj)
        return db_obj

    async def reopen(self, db: AsyncSession, *, db_obj: Todo) -> Todo:
        if db_obj.status != TodoStatus.COMPLETED.value:
            raise BadRequestError("Todo is not completed")
        self._apply_reopen(db_obj)
        db.add(db_obj)
        await db.commit()
        await db.refresh(db_obj)
        return db_obj

    async def duplicate(self, db: AsyncSession, *, db_obj: Todo) -> Todo:
        """Copy a todo as a fresh pending item titled "<title> (Copy)"."""
        base_title = db_obj.title.replace(COPY_SUFFIX, "")
        copy = Todo(
            user_id=db_obj.user_id,
            title=f"{base_title}{COPY_SUFFIX}"[:TITLE_MAX_LENGTH],
            description=db_obj.description,
            category=db_obj.category,
            priority=db_obj.priority,
            status=TodoStatus.PENDING.value,
            tags=list(db_obj.tags or []),
            due_date=db_obj.due_date,
            reminder_date=db_obj.reminder_date,
            estimated_time=dict(db_obj.estimated_time) if db_obj.estimated_time else None,
            is_recurring=db_obj.is_recurring,
            recurrence_pattern=db_obj.recurrence_pattern,
            related_sale_id=db_obj.related_sale_id,
        )
        db.add(copy)
        await db.commit()
        await db.refresh(copy)
        return copy


todo_service = TodoService()
