"""Todo model with reminder bookkeeping and recurrence."""
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional
import uuid

from dateutil.relativedelta import relativedelta
from sqlalchemy import Column, String, Text, Boolean, Integer, DateTime, ForeignKey, Index, event
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base
from app.db.types import GUID, JSONBType, TagList
from app.utils.dates import to_naive_utc, utcnow

TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 1000


class TodoStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TodoPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TodoCategory(str, Enum):
    GENERAL = "general"
    SALES = "sales"
    INVENTORY = "inventory"
    CUSTOMER = "customer"
    FINANCIAL = "financial"
    MARKETING = "marketing"
    MAINTENANCE = "maintenance"
    PERSONAL = "personal"
    WORK = "work"
    SHOPPING = "shopping"
    HEALTH = "health"


class RecurrencePattern(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class EstimatedTimeUnit(str, Enum):
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"


ACTIVE_STATUSES = (TodoStatus.PENDING.value, TodoStatus.IN_PROGRESS.value)
CLOSED_STATUSES = (TodoStatus.COMPLETED.value, TodoStatus.CANCELLED.value)

RECURRENCE_OFFSETS = {
    RecurrencePattern.DAILY.value: relativedelta(days=1),
    RecurrencePattern.WEEKLY.value: relativedelta(weeks=1),
    # relativedelta clamps to the last day of shorter months (Jan 31 -> Feb 29)
    RecurrencePattern.MONTHLY.value: relativedelta(months=1),
    RecurrencePattern.YEARLY.value: relativedelta(years=1),
}

_UNIT_HOURS = {
    EstimatedTimeUnit.MINUTES.value: 1 / 60,
    EstimatedTimeUnit.HOURS.value: 1,
    EstimatedTimeUnit.DAYS.value: 24,
}


class TodoValidationError(ValueError):
    """Raised when a todo write violates field constraints."""

    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


def _value(item) -> Optional[str]:
    return item.value if isinstance(item, Enum) else item


def next_occurrence(moment: Optional[datetime], pattern: Optional[str]) -> Optional[datetime]:
    """Shift ``moment`` by one recurrence period."""
    if moment is None:
        return None
    offset = RECURRENCE_OFFSETS.get(_value(pattern))
    if offset is None:
        raise ValueError(f"Unknown recurrence pattern: {pattern!r}")
    return moment + offset


def estimated_hours(estimated_time: Optional[dict]) -> float:
    if not estimated_time or estimated_time.get("value") is None:
        return 0.0
    unit = estimated_time.get("unit") or EstimatedTimeUnit.HOURS.value
    return float(estimated_time["value"]) * _UNIT_HOURS.get(unit, 1)


class Todo(Base):
    """Reminder-bearing work item owned by a user."""

    __tablename__ = "todos"
    __table_args__ = (
        Index("ix_todos_user_due_date", "user_id", "due_date"),
        Index("ix_todos_user_status", "user_id", "status"),
        Index("ix_todos_user_priority", "user_id", "priority"),
        Index("ix_todos_reminder_date_sent", "reminder_date", "reminder_sent"),
        Index("ix_todos_due_date_status", "due_date", "status"),
        Index("ix_todos_reminder_date_whatsapp_sent", "reminder_date", "whatsapp_reminder_sent"),
    )

    id = Column(GUID(), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(GUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(TITLE_MAX_LENGTH), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(32), default=TodoCategory.GENERAL.value, nullable=False)
    tags = Column(TagList(), default=list, nullable=False)
    priority = Column(String(16), default=TodoPriority.MEDIUM.value, nullable=False)
    status = Column(String(16), default=TodoStatus.PENDING.value, nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Scheduling
    due_date = Column(DateTime(timezone=True), nullable=True)
    reminder_date = Column(DateTime(timezone=True), nullable=True)
    estimated_time = Column(JSONBType(), nullable=True)  # {"value": 3, "unit": "hours"}

    # Reminder bookkeeping
    reminder_sent = Column(Boolean, default=False, nullable=False)
    last_reminder_sent = Column(DateTime(timezone=True), nullable=True)
    whatsapp_reminder_sent = Column(Boolean, default=False, nullable=False)
    whatsapp_reminder_count = Column(Integer, default=0, nullable=False)
    reminder_claimed_at = Column(DateTime(timezone=True), nullable=True)

    # Recurrence
    is_recurring = Column(Boolean, default=False, nullable=False)
    recurrence_pattern = Column(String(16), nullable=True)
    next_recurrence = Column(DateTime(timezone=True), nullable=True)
    recurrence_parent_id = Column(
        GUID(), ForeignKey("todos.id", ondelete="SET NULL"), nullable=True, unique=True
    )

    related_sale_id = Column(GUID(), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    user = relationship("User", back_populates="todos")

    @property
    def is_overdue(self) -> bool:
        due_date = to_naive_utc(self.due_date)
        if due_date is None or self.status in CLOSED_STATUSES:
            return False
        return due_date < utcnow()

    @property
    def estimated_hours(self) -> float:
        return estimated_hours(self.estimated_time)

    def validation_errors(self) -> List[str]:
        """Return one message per field that violates its constraints."""
        errors = []
        title = (self.title or "").strip()
        if not title:
            errors.append("title: Todo title is required")
        elif len(title) > TITLE_MAX_LENGTH:
            errors.append(f"title: Title cannot exceed {TITLE_MAX_LENGTH} characters")
        if self.description and len(self.description) > DESCRIPTION_MAX_LENGTH:
            errors.append(f"description: Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters")
        if self.user_id is None and self.__dict__.get("user") is None:
            errors.append("user_id: Todo owner is required")

        for field, enum_cls in (
            ("category", TodoCategory),
            ("priority", TodoPriority),
            ("status", TodoStatus),
        ):
            value = _value(getattr(self, field))
            if value is not None and value not in {member.value for member in enum_cls}:
                errors.append(f"{field}: '{value}' is not a valid {field}")

        pattern = _value(self.recurrence_pattern)
        if pattern is not None and pattern not in RECURRENCE_OFFSETS:
            errors.append(f"recurrence_pattern: '{pattern}' is not a valid recurrence pattern")
        if self.is_recurring and pattern is None:
            errors.append("recurrence_pattern: Recurring todos need a recurrence pattern")

        if self.estimated_time is not None:
            value = self.estimated_time.get("value")
            unit = self.estimated_time.get("unit", EstimatedTimeUnit.HOURS.value)
            if value is None or not isinstance(value, (int, float)) or value < 0:
                errors.append("estimated_time.value: Estimated time must be a non-negative number")
            if unit not in _UNIT_HOURS:
                errors.append(f"estimated_time.unit: '{unit}' is not a valid unit")
        return errors

    def enforce_invariants(self, now: Optional[datetime] = None) -> None:
        """Validate fields and re-derive completion and stale-reminder state."""
        errors = self.validation_errors()
        if errors:
            raise TodoValidationError(errors)

        now = now or utcnow()
        self.title = self.title.strip()
        for field in ("category", "priority", "status", "recurrence_pattern"):
            setattr(self, field, _value(getattr(self, field)))

        if self.status == TodoStatus.COMPLETED.value:
            if self.completed_at is None:
                self.completed_at = now
        else:
            self.completed_at = None

        reminder_date = to_naive_utc(self.reminder_date)
        if reminder_date is not None and reminder_date < now and not self.reminder_sent:
            self.reminder_sent = False
            self.whatsapp_reminder_sent = False

    def successor_fields(self) -> dict:
        """Column values for the next occurrence of a recurring todo."""
        return {
            "user_id": self.user_id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "tags": list(self.tags or []),
            "priority": self.priority,
            "status": TodoStatus.PENDING.value,
            "due_date": next_occurrence(to_naive_utc(self.due_date), self.recurrence_pattern),
            "reminder_date": next_occurrence(to_naive_utc(self.reminder_date), self.recurrence_pattern),
            "estimated_time": dict(self.estimated_time) if self.estimated_time else None,
            "is_recurring": True,
            "recurrence_pattern": self.recurrence_pattern,
            "related_sale_id": self.related_sale_id,
            "recurrence_parent_id": self.id,
        }

    def claim_expired(self, ttl: timedelta, now: Optional[datetime] = None) -> bool:
        claimed_at = to_naive_utc(self.reminder_claimed_at)
        return claimed_at is None or claimed_at < (now or utcnow()) - ttl


@event.listens_for(Todo, "before_insert")
@event.listens_for(Todo, "before_update")
def _enforce_todo_invariants(mapper, connection, target: Todo) -> None:
    target.enforce_invariants()
