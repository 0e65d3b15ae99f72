"""Notification settings API endpoints (WhatsApp via CallMeBot)."""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ValidationError
from app.crud.user import user as user_crud
from app.database import get_db
from app.dependencies import get_current_active_user, get_transport
from app.integrations.callmebot import CallMeBotClient
from app.models.user import User
from app.schemas.notification import (
    NotificationSettings,
    NotificationSettingsEnvelope,
    NotificationSettingsUpdate,
    SetupInstructions,
    WhatsAppValidationEnvelope,
    WhatsAppValidationRequest,
)
from app.security.encryption import mask_phone_number
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)

router = APIRouter()

TEST_MESSAGE = "✅ TradeHub WhatsApp reminders are set up. You will receive todo reminders here."


@router.get("", response_model=NotificationSettingsEnvelope)
async def get_settings(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    preference = await user_crud.get_preference(db, user_id=current_user.id)
    return NotificationSettingsEnvelope(settings=NotificationSettings.from_preference(preference))


@router.put("", response_model=NotificationSettingsEnvelope)
async def update_settings(
    settings_in: NotificationSettingsUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """Update WhatsApp settings; enabling requires a phone number and an API key."""
    preference = await user_crud.get_preference(db, user_id=current_user.id)
    updates = settings_in.dict(exclude_unset=True)

    if updates.get("whatsapp_phone_number"):
        check = CallMeBotClient.validate_phone_number(updates["whatsapp_phone_number"])
        if not check["valid"]:
            raise ValidationError(errors=[f"whatsapp_phone_number: {check['error']}"])
        updates["whatsapp_phone_number"] = check["cleaned"]

    merged = {
        field: updates.get(field, getattr(preference, field))
        for field in ("whatsapp_enabled", "whatsapp_phone_number", "whatsapp_api_key")
    }
    if merged["whatsapp_enabled"] and not (merged["whatsapp_phone_number"] and merged["whatsapp_api_key"]):
        raise ValidationError(errors=["whatsapp_enabled: WhatsApp needs both a phone number and an API key"])

    for field, value in updates.items():
        setattr(preference, field, value)
    if preference.whatsapp_enabled and preference.whatsapp_activated_at is None:
        preference.whatsapp_activated_at = utcnow()

    db.add(preference)
    await db.commit()
    await db.refresh(preference)
    return NotificationSettingsEnvelope(
        message="Notification settings updated",
        settings=NotificationSettings.from_preference(preference),
    )


@router.post("/validate-whatsapp", response_model=WhatsAppValidationEnvelope)
async def validate_whatsapp(
    request: WhatsAppValidationRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    transport: CallMeBotClient = Depends(get_transport),
):
    """Send a test message and, when it arrives, save and enable the credentials."""
    check = transport.validate_phone_number(request.phone_number)
    if not check["valid"]:
        raise ValidationError(errors=[f"phone_number: {check['error']}"])

    result = await transport.send_whatsapp(check["cleaned"], TEST_MESSAGE, request.api_key)
    preference = await user_crud.get_preference(db, user_id=current_user.id)
    preference.whatsapp_last_tested_at = utcnow()

    if not result["success"]:
        await db.commit()
        logger.info("WhatsApp validation failed for %s", mask_phone_number(check["cleaned"]))
        return WhatsAppValidationEnvelope(
            success=False,
            message="WhatsApp validation failed. Check the phone number and API key.",
            error=result.get("error"),
            details=result.get("details"),
        )

    preference.whatsapp_phone_number = check["cleaned"]
    preference.whatsapp_api_key = request.api_key
    preference.whatsapp_enabled = True
    preference.whatsapp_activated_at = preference.whatsapp_activated_at or utcnow()
    await db.commit()
    await db.refresh(preference)
    return WhatsAppValidationEnvelope(
        success=True,
        message="WhatsApp validated and enabled",
        settings=NotificationSettings.from_preference(preference),
    )


@router.get("/setup-instructions", response_model=SetupInstructions)
async def setup_instructions(
    current_user: User = Depends(get_current_active_user),
):
    return SetupInstructions(
        service="CallMeBot",
        steps=[
            "Add +34 644 71 81 99 to your phone contacts (name it e.g. CallMeBot).",
            'Send the message "I allow callmebot to send me messages" to that contact on WhatsApp.',
            "Wait for the reply containing your personal API key.",
            "Enter your phone number with country code and the API key, then validate.",
        ],
        notes=[
            "The API key is stored encrypted and is never shown again.",
            "Reminders are sent once; overdue alerts repeat at most once a day.",
        ],
    )
