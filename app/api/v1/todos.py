"""Todo API endpoints."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import BadRequestError, NotFoundError
from app.crud.todo import SORTABLE_FIELDS, todo as todo_crud
from app.database import get_db
from app.dependencies import get_current_active_user
from app.models.todo import Todo
from app.models.user import User
from app.schemas.common import Pagination
from app.schemas.todo import (
    DeletedTodo,
    SuggestionEnvelope,
    TodoCreate,
    TodoDeleteEnvelope,
    TodoEnvelope,
    TodoListEnvelope,
    TodoResponse,
    TodoStatsEnvelope,
    TodoSuggestion,
    TodoUpdate,
)
from app.services.todo_service import todo_service

router = APIRouter()


async def _get_owned(db: AsyncSession, todo_id: UUID, user: User) -> Todo:
    db_obj = await todo_crud.get_for_user(db, id=todo_id, user_id=user.id)
    if not db_obj:
        raise NotFoundError("Todo not found or you do not have permission to access it")
    return db_obj


def _to_list(todos) -> list:
    return [TodoResponse.model_validate(item) for item in todos]


def _envelope(db_obj: Todo, message: Optional[str] = None) -> TodoEnvelope:
    return TodoEnvelope(message=message, todo=TodoResponse.model_validate(db_obj))


@router.get("", response_model=TodoListEnvelope)
async def list_todos(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.TODO_DEFAULT_PAGE_SIZE, ge=1),
    status_filter: Optional[str] = Query(None, alias="status"),
    priority: Optional[str] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    show_overdue: bool = False,
    due_date_from: Optional[datetime] = None,
    due_date_to: Optional[datetime] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """List the caller's todos with filters, search, sorting and pagination."""
    limit = min(limit, settings.TODO_MAX_PAGE_SIZE)
    todos, total = await todo_crud.list_for_user(
        db,
        user_id=current_user.id,
        status=status_filter,
        priority=priority,
        category=category,
        search=search,
        due_date_from=due_date_from,
        due_date_to=due_date_to,
        show_overdue=show_overdue,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return TodoListEnvelope(
        todos=_to_list(todos),
        count=len(todos),
        pagination=Pagination.build(total, page, limit),
        filters={
            "status": status_filter,
            "priority": priority,
            "category": category,
            "search": search,
            "sort_by": sort_by if sort_by in SORTABLE_FIELDS else "created_at",
            "sort_order": sort_order,
        },
    )


@router.get("/overdue", response_model=TodoListEnvelope)
async def list_overdue(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    limit = min(limit, settings.TODO_MAX_PAGE_SIZE)
    todos, total = await todo_crud.list_overdue_for_user(db, user_id=current_user.id, page=page, limit=limit)
    return TodoListEnvelope(todos=_to_list(todos), count=len(todos), pagination=Pagination.build(total, page, limit))


@router.get("/upcoming", response_model=TodoListEnvelope)
async def list_upcoming(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """Active todos due within the next seven days."""
    limit = min(limit, settings.TODO_MAX_PAGE_SIZE)
    todos, total, (date_from, date_to) = await todo_crud.list_upcoming_for_user(
        db, user_id=current_user.id, page=page, limit=limit
    )
    return TodoListEnvelope(
        todos=_to_list(todos),
        count=len(todos),
        pagination=Pagination.build(total, page, limit),
        filters={"date_from": date_from, "date_to": date_to},
    )


@router.get("/reminders/upcoming", response_model=TodoListEnvelope)
async def list_upcoming_reminders(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """Unsent reminders firing within the next 24 hours."""
    todos, (time_from, time_to) = await todo_crud.list_upcoming_reminders_for_user(db, user_id=current_user.id)
    return TodoListEnvelope(
        todos=_to_list(todos),
        count=len(todos),
        filters={"time_from": time_from, "time_to": time_to},
    )


@router.get("/stats/summary", response_model=TodoStatsEnvelope)
async def stats_summary(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    stats = await todo_crud.stats_for_user(db, user_id=current_user.id)
    timeframe = stats.pop("timeframe")
    return TodoStatsEnvelope(stats=stats, timeframe=timeframe)


@router.get("/search/suggestions", response_model=SuggestionEnvelope)
async def search_suggestions(
    q: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    if not q or not q.strip():
        raise BadRequestError("Search query is required")
    matches = await todo_crud.search_suggestions(db, user_id=current_user.id, query=q)
    return SuggestionEnvelope(
        suggestions=[
            TodoSuggestion(id=item.id, title=item.title, category=item.category, priority=item.priority, status=item.status)
            for item in matches
        ],
        query=q.strip(),
    )


@router.get("/{todo_id}", response_model=TodoEnvelope)
async def get_todo(
    todo_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return _envelope(await _get_owned(db, todo_id, current_user))


@router.post("", response_model=TodoEnvelope, status_code=status.HTTP_201_CREATED)
async def create_todo(
    todo_in: TodoCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    db_obj = await todo_crud.create_for_user(db, obj_in=todo_in, user_id=current_user.id)
    return _envelope(db_obj, "Todo created successfully")


@router.put("/{todo_id}", response_model=TodoEnvelope)
async def update_todo(
    todo_id: UUID,
    todo_in: TodoUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    db_obj = await _get_owned(db, todo_id, current_user)
    db_obj = await todo_service.update(db, db_obj=db_obj, obj_in=todo_in)
    return _envelope(db_obj, "Todo updated successfully")


@router.delete("/{todo_id}", response_model=TodoDeleteEnvelope)
async def delete_todo(
    todo_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    db_obj = await _get_owned(db, todo_id, current_user)
    deleted = DeletedTodo(id=db_obj.id, title=db_obj.title, category=db_obj.category)
    await todo_crud.remove(db, db_obj=db_obj)
    return TodoDeleteEnvelope(message="Todo deleted successfully", deleted_todo=deleted)


@router.post("/{todo_id}/complete", response_model=TodoEnvelope)
async def complete_todo(
    todo_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    db_obj = await todo_service.complete(db, db_obj=await _get_owned(db, todo_id, current_user))
    return _envelope(db_obj, "Todo marked as completed")


@router.post("/{todo_id}/reopen", response_model=TodoEnvelope)
async def reopen_todo(
    todo_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    db_obj = await todo_service.reopen(db, db_obj=await _get_owned(db, todo_id, current_user))
    return _envelope(db_obj, "Todo reopened successfully")


@router.post("/{todo_id}/duplicate", response_model=TodoEnvelope, status_code=status.HTTP_201_CREATED)
async def duplicate_todo(
    todo_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    copy = await todo_service.duplicate(db, db_obj=await _get_owned(db, todo_id, current_user))
    return _envelope(copy, "Todo duplicated successfully")
