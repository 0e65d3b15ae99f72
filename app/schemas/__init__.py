"""Schema modules."""
from app.schemas.auth import TokenResponse, RefreshTokenRequest, RefreshTokenResponse
from app.schemas.user import UserCreate, UserResponse
from app.schemas.todo import TodoCreate, TodoUpdate, TodoResponse, EstimatedTime
from app.schemas.notification import NotificationSettings, NotificationSettingsUpdate, WhatsAppValidationRequest
from app.schemas.common import Pagination
