"""Reminder pipeline API endpoints."""
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_active_user, get_reminder_service
from app.models.user import User
from app.services.reminder_service import ReminderService

router = APIRouter()


class ReminderTestRequest(BaseModel):
    todo_id: Optional[UUID] = None


@router.get("/status")
async def reminder_status(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    service: ReminderService = Depends(get_reminder_service),
) -> Dict[str, Any]:
    return {"success": True, "status": await service.get_status(db)}


@router.post("/test")
async def send_test_reminder(
    request: ReminderTestRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    service: ReminderService = Depends(get_reminder_service),
) -> Dict[str, Any]:
    """Send a reminder right away, for one of the caller's todos or a throwaway test todo."""
    result = await service.send_test_reminder(db, current_user, todo_id=request.todo_id)
    return {
        "success": result.success,
        "message": "Test reminder sent" if result.success else "Test reminder failed",
        "result": result.as_dict(),
    }
