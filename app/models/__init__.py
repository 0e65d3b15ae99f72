"""Model modules."""
from app.models.user import User
from app.models.notification import NotificationChannel, NotificationPreference
from app.models.todo import (
    EstimatedTimeUnit,
    RecurrencePattern,
    Todo,
    TodoCategory,
    TodoPriority,
    TodoStatus,
    TodoValidationError,
)

__all__ = [
    "User",
    "NotificationChannel",
    "NotificationPreference",
    "EstimatedTimeUnit",
    "RecurrencePattern",
    "Todo",
    "TodoCategory",
    "TodoPriority",
    "TodoStatus",
    "TodoValidationError",
]
