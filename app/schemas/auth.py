"""Bearer token payloads for todo owners."""
from pydantic import BaseModel, Field


class RefreshTokenResponse(BaseModel):
    """A short-lived access token for the todo API."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Access token lifetime in seconds")


class TokenResponse(RefreshTokenResponse):
    """Login result: access token plus the refresh token that renews it."""

    refresh_token: str


class RefreshTokenRequest(BaseModel):
    refresh_token: str = Field(min_length=1)
