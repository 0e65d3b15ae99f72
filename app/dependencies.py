"""FastAPI dependencies for authentication and service wiring."""
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession
from app.config import settings
from app.crud.user import user as user_crud
from app.database import get_db
from app.models.user import User
from app.utils.security import decode_token
from app.core.exceptions import UnauthorizedError
from app.integrations.callmebot import CallMeBotClient, get_callmebot_client
from app.services.reminder_service import ReminderService, build_reminder_service

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_PREFIX}/auth/login")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Get current authenticated user from JWT token."""
    credentials_exception = UnauthorizedError("Could not validate credentials")

    try:
        payload = decode_token(token)
        user_id: Optional[str] = payload.get("sub")
        token_type: Optional[str] = payload.get("type")

        if user_id is None or token_type != "access":
            raise credentials_exception
    except ValueError:
        raise credentials_exception

    user = await user_crud.get(db, id=user_id)

    if user is None:
        raise credentials_exception

    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """Get current active user."""
    if not current_user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is inactive")
    return current_user


def get_transport() -> CallMeBotClient:
    """Notification transport; overridden in tests with a fake."""
    return get_callmebot_client()


def get_reminder_service(transport: CallMeBotClient = Depends(get_transport)) -> ReminderService:
    return build_reminder_service(transport)
