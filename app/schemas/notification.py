"""Notification preference schemas."""
from datetime import datetime
from typing import Any, List, Optional
from pydantic import BaseModel, Field

from app.models.notification import NotificationPreference
from app.security.encryption import mask_phone_number


class WhatsAppStats(BaseModel):
    messages_sent: int = 0
    messages_failed: int = 0
    last_sent_at: Optional[datetime] = None
    last_error: Optional[str] = None


class NotificationSettings(BaseModel):
    """What the owner sees of their settings; the API key itself is never returned."""

    whatsapp_enabled: bool
    whatsapp_phone_number: Optional[str] = None
    has_api_key: bool
    whatsapp_activated_at: Optional[datetime] = None
    whatsapp_last_tested_at: Optional[datetime] = None
    stats: WhatsAppStats

    @classmethod
    def from_preference(cls, preference: NotificationPreference) -> "NotificationSettings":
        return cls(
            whatsapp_enabled=bool(preference.whatsapp_enabled),
            whatsapp_phone_number=mask_phone_number(preference.whatsapp_phone_number)
            if preference.whatsapp_phone_number
            else None,
            has_api_key=bool(preference.whatsapp_api_key),
            whatsapp_activated_at=preference.whatsapp_activated_at,
            whatsapp_last_tested_at=preference.whatsapp_last_tested_at,
            stats=WhatsAppStats(
                messages_sent=preference.whatsapp_messages_sent or 0,
                messages_failed=preference.whatsapp_messages_failed or 0,
                last_sent_at=preference.whatsapp_last_sent_at,
                last_error=preference.whatsapp_last_error,
            ),
        )


class NotificationSettingsUpdate(BaseModel):
    whatsapp_enabled: Optional[bool] = None
    whatsapp_phone_number: Optional[str] = Field(default=None, max_length=32)
    whatsapp_api_key: Optional[str] = Field(default=None, max_length=128)


class WhatsAppValidationRequest(BaseModel):
    phone_number: str = Field(..., min_length=1, max_length=32)
    api_key: str = Field(..., min_length=1, max_length=128)


class NotificationSettingsEnvelope(BaseModel):
    success: bool = True
    message: Optional[str] = None
    settings: NotificationSettings


class WhatsAppValidationEnvelope(BaseModel):
    success: bool
    message: str
    settings: Optional[NotificationSettings] = None
    error: Optional[str] = None
    details: Optional[Any] = None


class SetupInstructions(BaseModel):
    success: bool = True
    service: str
    steps: List[str]
    notes: List[str]
