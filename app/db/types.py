"""Custom SQLAlchemy column types shared by the todo and user tables."""
from __future__ import annotations

import uuid

from sqlalchemy.dialects.postgresql import JSONB as PGJSONB
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.dialects.sqlite import JSON as SQLiteJSON
from sqlalchemy.types import JSON, String, TypeDecorator

from app.security.encryption import credential_cipher


class EncryptedString(TypeDecorator):
    """Encrypt string values transparently at the column level."""

    impl = String
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        return credential_cipher.encrypt(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        return credential_cipher.try_decrypt(value)


def JSONBType(**kwargs):
    """Return a JSONB column type compatible with SQLite for tests."""
    return PGJSONB(**kwargs).with_variant(SQLiteJSON(), "sqlite")


class TagList(TypeDecorator):
    """Ordered list of tag strings stored as JSON; blanks are dropped, order is kept."""

    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PGJSONB())
        return dialect.type_descriptor(SQLiteJSON())

    def process_bind_param(self, value, dialect):
        if value is None:
            return []
        return [str(tag).strip() for tag in value if str(tag).strip()]

    def process_result_value(self, value, dialect):
        return list(value or [])


class GUID(TypeDecorator):
    """Platform-independent GUID/UUID type."""

    impl = PGUUID
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(36))
        return dialect.type_descriptor(PGUUID(as_uuid=True))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if not isinstance(value, uuid.UUID):
            value = uuid.UUID(str(value))
        if dialect.name == "sqlite":
            return str(value)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        return uuid.UUID(str(value))
