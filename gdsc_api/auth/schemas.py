"""
GDSC API - Authentication Request/Response Schemas

Pydantic models for API request validation and response serialization.
Separates API contracts from database models.
"""

from datetime import date, datetime
from typing import Optional
from uuid import UUID
import re

from pydantic import BaseModel, Field, validator

from gdsc_api.auth.models import Branch, Position, Role
from gdsc_api.auth.password import MAX_PASSWORD_BYTES


EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+$")


def _normalize_email(value: str) -> str:
    if not EMAIL_PATTERN.match(value):
        raise ValueError("Invalid email format")
    return value.lower()


class OAuthProfile(BaseModel):
    """
    Provider-independent identity returned by the federation resolver.

    Only provider_user_id is mandatory; the rest degrade to None when the
    provider does not share them.
    """
    provider_user_id: str
    provider: str
    name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register."""
    email: str = Field(..., description="User email address")
    password: str = Field(..., description="User password")

    @validator("email")
    def email_format(cls, v):
        return _normalize_email(v)

    @validator("password")
    def password_strength(cls, v):
        """Enforce password strength requirements."""
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters")
        if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        if not re.search(r"[A-Z]", v):
            raise ValueError("Password must contain at least one uppercase letter")
        if not re.search(r"[a-z]", v):
            raise ValueError("Password must contain at least one lowercase letter")
        if not re.search(r"\d", v):
            raise ValueError("Password must contain at least one digit")
        return v


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""
    email: str = Field(..., description="User email address")
    password: str = Field(..., min_length=1, description="User password")

    @validator("email")
    def email_format(cls, v):
        return _normalize_email(v)


class UserResponse(BaseModel):
    """Public view of a user. Never carries the password hash."""
    id: UUID
    email: Optional[str] = None
    full_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    image: Optional[str] = None
    role: Role
    position: Optional[Position] = None
    branch: Optional[Branch] = None
    github: Optional[str] = None
    linkedin: Optional[str] = None
    instagram: Optional[str] = None
    discord: Optional[str] = None
    bio: Optional[str] = None
    tags: Optional[list[str]] = None
    website: Optional[str] = None
    graduation_date: Optional[date] = None
    provider: Optional[str] = None
    is_onboarded: bool
    email_verified: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class LoginResponse(BaseModel):
    """Response body for a successful login; the refresh token travels in a cookie."""
    access_token: str = Field(..., alias="accessToken")
    user: UserResponse

    class Config:
        populate_by_name = True


class RefreshResponse(BaseModel):
    """Response body for PATCH /auth/refresh."""
    access_token: str = Field(..., alias="accessToken")

    class Config:
        populate_by_name = True


class RegistrationUserData(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None
    avatar_url: Optional[str] = None
    provider: str


class RegistrationRequiredResponse(BaseModel):
    """OAuth callback response when no local account exists yet."""
    status: str = "registration_required"
    temp_token: str
    user_data: RegistrationUserData
    message: str = "Additional information required to complete registration"


class CompleteRegistrationRequest(BaseModel):
    """Request body for POST /auth/complete-registration."""
    temp_token: str = Field(..., min_length=1)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    position: Position
    branch: Branch
    graduation_date: date


class UpdateUserRequest(BaseModel):
    """Request body for PATCH /users/{user_id}. Only provided fields change."""
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    image: Optional[str] = None
    position: Optional[Position] = None
    branch: Optional[Branch] = None
    github: Optional[str] = None
    linkedin: Optional[str] = None
    instagram: Optional[str] = None
    discord: Optional[str] = None
    bio: Optional[str] = None
    tags: Optional[list[str]] = None
    website: Optional[str] = None
    graduation_date: Optional[date] = None


class MessageResponse(BaseModel):
    message: str


class LogoutAllResponse(BaseModel):
    """Response body for POST /auth/logoutAll."""
    message: str = "All sessions have been logged out successfully"
    sessions_invalidated: int = 0


class SessionInfo(BaseModel):
    """Session information for user display."""
    id: UUID
    issued_at: datetime
    expires_at: datetime
    ip_address: Optional[str]
    user_agent: Optional[str]
    is_current: bool = False

    class Config:
        from_attributes = True


class ActiveSessionsResponse(BaseModel):
    """Response body for GET /auth/sessions."""
    sessions: list[SessionInfo]
    total: int


class UserListResponse(BaseModel):
    """Response body for GET /users (admin only)."""
    users: list[UserResponse]
    total: int
    page: int
    limit: int


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
