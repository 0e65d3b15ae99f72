"""User CRUD operations."""
from typing import Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from app.crud.base import CRUDBase
from app.models.notification import NotificationPreference
from app.models.user import User
from app.schemas.user import UserCreate
from app.utils.security import get_password_hash


class CRUDUser(CRUDBase[User, UserCreate, dict]):
    """CRUD operations for User."""

    async def get_by_email(self, db: AsyncSession, *, email: str) -> Optional[User]:
        """Get user by email."""
        result = await db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def create(self, db: AsyncSession, *, obj_in: UserCreate) -> User:
        """Create a new user with an empty notification preference row."""
        user_data = obj_in.dict(exclude={"password"})
        user_data["email"] = user_data["email"].lower()
        user_data["password_hash"] = get_password_hash(obj_in.password)
        db_obj = User(**user_data)
        db_obj.notification_preference = NotificationPreference()

        db.add(db_obj)
        await db.commit()
        await db.refresh(db_obj)
        return db_obj

    async def get_preference(self, db: AsyncSession, *, user_id: UUID) -> NotificationPreference:
        """Return the user's notification preference, creating it on first access."""
        result = await db.execute(
            select(NotificationPreference).where(NotificationPreference.user_id == user_id)
        )
        preference = result.scalar_one_or_none()
        if preference is None:
            preference = NotificationPreference(user_id=user_id)
            db.add(preference)
            await db.commit()
            await db.refresh(preference)
        return preference


user = CRUDUser(User)
