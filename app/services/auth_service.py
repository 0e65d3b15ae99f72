"""Authentication service."""
from datetime import timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import UnauthorizedError
from app.crud.user import user as user_crud
from app.models.user import User
from app.utils.security import create_access_token, create_refresh_token, decode_token, verify_password

ACCESS_TOKEN_TTL = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)


def _access_payload(user: User) -> dict:
    token = create_access_token(
        data={"sub": str(user.id), "email": user.email},
        expires_delta=ACCESS_TOKEN_TTL,
    )
    return {
        "access_token": token,
        "token_type": "bearer",
        "expires_in": int(ACCESS_TOKEN_TTL.total_seconds()),
    }


class AuthService:
    """Password login and token refresh for todo owners."""

    @staticmethod
    async def authenticate_user(db: AsyncSession, email: str, password: str) -> Optional[User]:
        """Return the active user matching the credentials, or None."""
        user = await user_crud.get_by_email(db, email=email)
        if user is None or not user.is_active:
            return None
        return user if verify_password(password, user.password_hash) else None

    @staticmethod
    async def create_tokens(user: User) -> dict:
        tokens = _access_payload(user)
        tokens["refresh_token"] = create_refresh_token(data={"sub": str(user.id)})
        return tokens

    @staticmethod
    async def refresh_access_token(db: AsyncSession, refresh_token: str) -> dict:
        """Exchange a refresh token for a new access token."""
        try:
            claims = decode_token(refresh_token)
        except ValueError:
            raise UnauthorizedError("Invalid refresh token")

        if claims.get("type") != "refresh" or not claims.get("sub"):
            raise UnauthorizedError("Invalid token type")

        user = await user_crud.get(db, id=claims["sub"])
        if user is None or not user.is_active:
            raise UnauthorizedError("User not found or inactive")
        return _access_payload(user)
