"""Todo schemas."""
from datetime import datetime
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from app.models.todo import (
    DESCRIPTION_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    EstimatedTimeUnit,
    RecurrencePattern,
    TodoCategory,
    TodoPriority,
    TodoStatus,
)
from app.schemas.common import Pagination
from app.utils.dates import to_naive_utc


class EstimatedTime(BaseModel):
    """Effort estimate."""

    value: float = Field(..., ge=0)
    unit: EstimatedTimeUnit = EstimatedTimeUnit.HOURS

    def as_column(self) -> Dict[str, Any]:
        value = int(self.value) if float(self.value).is_integer() else self.value
        return {"value": value, "unit": self.unit.value}


def _split_tags(value: Union[str, List[str], None]) -> Optional[List[str]]:
    if value is None:
        return None
    if isinstance(value, str):
        value = value.split(",")
    return [str(tag).strip() for tag in value if str(tag).strip()]


class _TodoFields(BaseModel):
    @field_validator("title", mode="before", check_fields=False)
    @classmethod
    def _strip_title(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("description", mode="before", check_fields=False)
    @classmethod
    def _strip_description(cls, value):
        if isinstance(value, str):
            return value.strip() or None
        return value

    @field_validator("tags", mode="before", check_fields=False)
    @classmethod
    def _normalize_tags(cls, value):
        return _split_tags(value)

    @field_validator("due_date", "reminder_date", check_fields=False)
    @classmethod
    def _naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value)


class TodoCreate(_TodoFields):
    """Todo creation schema."""

    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)
    category: TodoCategory = TodoCategory.GENERAL
    priority: TodoPriority = TodoPriority.MEDIUM
    status: TodoStatus = TodoStatus.PENDING
    due_date: Optional[datetime] = None
    reminder_date: Optional[datetime] = None
    tags: List[str] = Field(default_factory=list)
    estimated_time: Optional[EstimatedTime] = None
    is_recurring: bool = False
    recurrence_pattern: Optional[RecurrencePattern] = None
    related_sale_id: Optional[UUID] = None

    @model_validator(mode="after")
    def _check_recurrence(self):
        if self.is_recurring and self.recurrence_pattern is None:
            raise ValueError("recurrence_pattern is required for recurring todos")
        if not self.is_recurring:
            self.recurrence_pattern = None
        return self

    def to_columns(self) -> Dict[str, Any]:
        data = self.model_dump(exclude={"estimated_time"}, mode="json")
        data["due_date"] = self.due_date
        data["reminder_date"] = self.reminder_date
        data["related_sale_id"] = self.related_sale_id
        data["estimated_time"] = self.estimated_time.as_column() if self.estimated_time else None
        return data


class TodoUpdate(_TodoFields):
    """Todo update schema; only fields present in the payload are applied."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)
    category: Optional[TodoCategory] = None
    priority: Optional[TodoPriority] = None
    status: Optional[TodoStatus] = None
    due_date: Optional[datetime] = None
    reminder_date: Optional[datetime] = None
    tags: Optional[List[str]] = None
    estimated_time: Optional[EstimatedTime] = None
    is_recurring: Optional[bool] = None
    recurrence_pattern: Optional[RecurrencePattern] = None
    reminder_sent: Optional[bool] = None
    related_sale_id: Optional[UUID] = None

    @model_validator(mode="after")
    def _check_required(self):
        for field in ("title", "category", "priority", "status"):
            if field in self.model_fields_set and getattr(self, field) is None:
                raise ValueError(f"{field} cannot be null")
        return self

    def to_columns(self) -> Dict[str, Any]:
        data = self.model_dump(exclude_unset=True, exclude={"estimated_time"}, mode="json")
        for field in ("due_date", "reminder_date", "related_sale_id"):
            if field in data:
                data[field] = getattr(self, field)
        if "estimated_time" in self.model_fields_set:
            data["estimated_time"] = self.estimated_time.as_column() if self.estimated_time else None
        return data


class TodoResponse(BaseModel):
    """Todo response schema."""

    id: UUID
    user_id: UUID
    title: str
    description: Optional[str] = None
    category: str
    priority: str
    status: str
    tags: List[str] = []
    due_date: Optional[datetime] = None
    reminder_date: Optional[datetime] = None
    estimated_time: Optional[Dict[str, Any]] = None
    completed_at: Optional[datetime] = None
    reminder_sent: bool
    last_reminder_sent: Optional[datetime] = None
    whatsapp_reminder_sent: bool
    whatsapp_reminder_count: int
    is_recurring: bool
    recurrence_pattern: Optional[str] = None
    next_recurrence: Optional[datetime] = None
    recurrence_parent_id: Optional[UUID] = None
    related_sale_id: Optional[UUID] = None
    is_overdue: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TodoEnvelope(BaseModel):
    success: bool = True
    message: Optional[str] = None
    todo: TodoResponse


class TodoListEnvelope(BaseModel):
    success: bool = True
    todos: List[TodoResponse]
    count: int
    pagination: Optional[Pagination] = None
    filters: Optional[Dict[str, Any]] = None


class DeletedTodo(BaseModel):
    id: UUID
    title: str
    category: str


class TodoDeleteEnvelope(BaseModel):
    success: bool = True
    message: str
    deleted_todo: DeletedTodo


class TodoSuggestion(BaseModel):
    id: UUID
    title: str
    category: str
    priority: str
    status: str


class SuggestionEnvelope(BaseModel):
    success: bool = True
    suggestions: List[TodoSuggestion]
    query: str


class TodoStatsEnvelope(BaseModel):
    success: bool = True
    stats: Dict[str, Any]
    timeframe: Dict[str, Any]
