"""Encryption at rest for contact details and messaging gateway credentials."""
from __future__ import annotations

import base64
import hashlib
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from app.config import settings


class CredentialCipher:
    """Fernet wrapper used by encrypted columns (phone numbers, gateway API keys)."""

    def __init__(self, secret_key: str):
        try:
            self._fernet = Fernet(secret_key.encode("utf-8"))
        except (ValueError, TypeError) as exc:
            raise ValueError("Invalid encryption key configured") from exc

    def encrypt(self, text: Optional[str]) -> Optional[str]:
        if text is None:
            return None
        return self._fernet.encrypt(text.encode("utf-8")).decode("utf-8")

    def decrypt(self, token: Optional[str]) -> Optional[str]:
        """Decrypt a stored token; raises ``InvalidToken`` for foreign ciphertext."""
        if not token:
            return token
        return self._fernet.decrypt(token.encode("utf-8")).decode("utf-8")

    def try_decrypt(self, token: Optional[str]) -> Optional[str]:
        """Decrypt, returning the raw value for rows written before encryption was enabled."""
        try:
            return self.decrypt(token)
        except InvalidToken:
            return token


def mask_phone_number(phone_number: Optional[str]) -> str:
    """Render a phone number for logs, keeping only the last four digits."""
    if not phone_number:
        return "<none>"
    digits = "".join(ch for ch in phone_number if ch.isdigit())
    if len(digits) <= 4:
        return "*" * len(digits)
    return "*" * (len(digits) - 4) + digits[-4:]


def _derive_encryption_key() -> str:
    key = settings.ENCRYPTION_SECRET
    if key:
        return key
    # Fall back to a key derived from SECRET_KEY so dev setups work without extra config
    digest = hashlib.sha256(settings.SECRET_KEY.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).decode("utf-8")


credential_cipher = CredentialCipher(_derive_encryption_key())
