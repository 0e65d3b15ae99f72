"""Pytest configuration and fixtures."""
import os
import uuid
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

TEST_DB_PATH = Path("test_app.db")
if TEST_DB_PATH.exists():
    TEST_DB_PATH.unlink()

TEST_DATABASE_URL = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
os.environ.setdefault("DATABASE_URL", TEST_DATABASE_URL)
os.environ.setdefault("ENCRYPTION_SECRET", "YWFhYWFhYWFhYWFhYWFhYWFhYWFhYWFhYWFhYWFhYWE=")
os.environ.setdefault("NOTIFICATION_BATCH_DELAY_SECONDS", "0")

from app.main import app  # noqa: E402
from app.database import Base, get_db  # noqa: E402
from app.dependencies import get_reminder_service, get_transport  # noqa: E402
from app.models.notification import NotificationPreference  # noqa: E402
from app.models.user import User  # noqa: E402
from app.services.notification_service import NotificationDispatcher  # noqa: E402
from app.services.reminder_service import ReminderService  # noqa: E402
from app.utils.security import create_access_token, get_password_hash  # noqa: E402


class FakeTransport:
    """Records WhatsApp sends instead of calling the gateway."""

    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.fail_calls = set()
        self.sent = []

    async def send_whatsapp(self, phone_number, message, api_key):
        self.sent.append({"phone_number": phone_number, "message": message, "api_key": api_key})
        if self.succeed and len(self.sent) not in self.fail_calls:
            return {"success": True, "message": "WhatsApp message sent successfully", "response": "Message queued"}
        return {"success": False, "error": "HTTP 500: Internal Server Error", "details": "gateway down"}

    @staticmethod
    def validate_phone_number(phone_number):
        from app.integrations.callmebot import CallMeBotClient

        return CallMeBotClient.validate_phone_number(phone_number)


# Create test engine
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@pytest_asyncio.fixture(scope="function")
async def db_session():
    """Create a test database session."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def reminder_service(fake_transport):
    """Reminder service wired to the fake transport, without Redis."""
    return ReminderService(NotificationDispatcher(fake_transport), registry=None)


@pytest.fixture(scope="function")
def client(db_session: AsyncSession, fake_transport, reminder_service):
    """Create a test client overriding database and transport dependencies."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_transport] = lambda: fake_transport
    app.dependency_overrides[get_reminder_service] = lambda: reminder_service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession):
    """Create a test user with WhatsApp reminders configured."""
    user = User(
        id=uuid.uuid4(),
        email="test@example.com",
        password_hash=get_password_hash("testpassword"),
        first_name="Test",
        last_name="User",
        is_active=True,
    )
    user.notification_preference = NotificationPreference(
        whatsapp_enabled=True,
        whatsapp_phone_number="+1 555 123 4567",
        whatsapp_api_key="key123",
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession):
    """A second account without WhatsApp configured."""
    user = User(
        id=uuid.uuid4(),
        email="other@example.com",
        password_hash=get_password_hash("otherpassword"),
        first_name="Other",
        is_active=True,
    )
    user.notification_preference = NotificationPreference()
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
def auth_headers(client, test_user):
    """Get authentication headers."""
    token = create_access_token(
        {"sub": str(test_user.id), "email": test_user.email}
    )
    return {"Authorization": f"Bearer {token}"}
