"""Notification preference model."""
from sqlalchemy import Column, DateTime, ForeignKey, Text, Boolean, Integer
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
from enum import Enum
from app.database import Base
from app.db.types import EncryptedString, GUID
from app.utils.dates import utcnow


class NotificationChannel(str, Enum):
    """Reminder delivery channels, in the order the dispatcher tries them."""

    WHATSAPP = "whatsapp"
    NONE = "none"


class NotificationPreference(Base):
    """Per-user reminder delivery settings and WhatsApp delivery statistics."""

    __tablename__ = "notification_preferences"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(GUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)
    whatsapp_enabled = Column(Boolean, default=False, nullable=False)
    whatsapp_phone_number = Column(EncryptedString(512), nullable=True)
    whatsapp_api_key = Column(EncryptedString(512), nullable=True)
    whatsapp_activated_at = Column(DateTime(timezone=True), nullable=True)
    whatsapp_last_tested_at = Column(DateTime(timezone=True), nullable=True)
    # Delivery stats
    whatsapp_messages_sent = Column(Integer, default=0, nullable=False)
    whatsapp_messages_failed = Column(Integer, default=0, nullable=False)
    whatsapp_last_sent_at = Column(DateTime(timezone=True), nullable=True)
    whatsapp_last_error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    user = relationship("User", back_populates="notification_preference")

    def has_whatsapp_enabled(self) -> bool:
        return bool(self.whatsapp_enabled and self.whatsapp_phone_number and self.whatsapp_api_key)

    def record_whatsapp_result(self, success: bool, error: str = None) -> None:
        """Update delivery counters after a send attempt."""
        now = utcnow()
        if success:
            self.whatsapp_messages_sent = (self.whatsapp_messages_sent or 0) + 1
            self.whatsapp_last_sent_at = now
            self.whatsapp_last_error = None
        else:
            self.whatsapp_messages_failed = (self.whatsapp_messages_failed or 0) + 1
            self.whatsapp_last_error = error
