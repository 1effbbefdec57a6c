"""
GDSC API - Authentication Database Models

SQLModel-based models for user accounts and persisted refresh tokens.
Uses PostgreSQL for production, SQLite for local development.

Security:
- Passwords stored as bcrypt hashes only
- Refresh tokens are server-persisted for revocation
- All timestamps in UTC
"""

from datetime import date, datetime
from enum import Enum, IntEnum
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import SQLModel, Field
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Enum as SQLEnum,
    Integer,
    String,
    Text,
    UniqueConstraint,
)


class Role(str, Enum):
    """Account roles carried in access-token claims."""
    USER = "USER"
    ADMIN = "ADMIN"


class Position(IntEnum):
    """Member position within the organization."""
    STUDENT = 0
    ALUMNI = 1
    MENTOR = 2
    LEADER = 3
    ADVISOR = 4
    SPONSOR = 5


class Branch(IntEnum):
    """Organization branch. Starts at 1 so an unset value is never a branch."""
    PROJECTS = 1
    INTERVIEW = 2
    MARKETING = 3


class User(SQLModel, table=True):
    """
    User account.

    A row is reachable through credentials (email + password_hash),
    through federation (provider + provider_user_id), or both.

    Attributes:
        id: Unique identifier (UUIDv4), immutable
        email: Login identifier, unique when present
        password_hash: bcrypt hash, credential accounts only
        provider: Federation provider name ("github" / "google")
        provider_user_id: Identity at the provider
        role: Role claim for access tokens
        is_onboarded: Profile completion finished
        email_verified: Verification link used
    """
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("provider", "provider_user_id", name="uq_users_provider_identity"),
    )

    id: UUID = Field(
        default_factory=uuid4,
        primary_key=True,
        description="Unique user identifier"
    )
    email: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), unique=True, index=True, nullable=True),
        description="User email address"
    )
    password_hash: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True),
        description="bcrypt password hash"
    )
    provider: Optional[str] = Field(
        default=None,
        sa_column=Column(String(32), nullable=True),
        description="OAuth provider name"
    )
    provider_user_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), index=True, nullable=True),
        description="User identifier at the OAuth provider"
    )
    role: Role = Field(
        default=Role.USER,
        sa_column=Column(SQLEnum(Role), nullable=False, default=Role.USER),
        description="Account role"
    )
    is_onboarded: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, default=False),
    )
    email_verified: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, default=False),
    )

    # Profile
    full_name: Optional[str] = Field(default=None, sa_column=Column(String(255), nullable=True))
    first_name: Optional[str] = Field(default=None, sa_column=Column(String(100), nullable=True))
    last_name: Optional[str] = Field(default=None, sa_column=Column(String(100), nullable=True))
    image: Optional[str] = Field(default=None, sa_column=Column(String(1024), nullable=True))
    position: Optional[Position] = Field(default=None, sa_column=Column(Integer, nullable=True))
    branch: Optional[Branch] = Field(default=None, sa_column=Column(Integer, nullable=True))
    github: Optional[str] = Field(default=None, sa_column=Column(String(255), nullable=True))
    linkedin: Optional[str] = Field(default=None, sa_column=Column(String(255), nullable=True))
    instagram: Optional[str] = Field(default=None, sa_column=Column(String(255), nullable=True))
    discord: Optional[str] = Field(default=None, sa_column=Column(String(255), nullable=True))
    bio: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    tags: Optional[list[str]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    website: Optional[str] = Field(default=None, sa_column=Column(String(255), nullable=True))
    graduation_date: Optional[date] = Field(default=None, sa_column=Column(Date, nullable=True))

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        sa_column=Column(DateTime, nullable=False, default=datetime.utcnow),
        description="Account creation timestamp"
    )
    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        sa_column=Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow),
        description="Last update timestamp"
    )

    def has_credentials(self) -> bool:
        return bool(self.email and self.password_hash)

    def has_federation(self) -> bool:
        return bool(self.provider and self.provider_user_id)


class Session(SQLModel, table=True):
    """
    Persisted refresh token.

    A refresh token is accepted only while a row with the same token string
    exists. Rows are never mutated: logout deletes one, logout-all deletes
    every row of a user. Expired rows are left in place and rejected when
    presented.

    Attributes:
        id: Row identifier
        token: Signed refresh token (unique lookup key)
        user_id: Owning user
        issued_at: Token issue timestamp
        expires_at: Token expiration timestamp
        ip_address: Client IP at login (advisory)
        user_agent: Client user-agent at login (advisory)
    """
    __tablename__ = "refresh_tokens"

    id: UUID = Field(
        default_factory=uuid4,
        primary_key=True,
    )
    token: str = Field(
        sa_column=Column(String(1024), unique=True, index=True, nullable=False),
        description="Signed refresh token"
    )
    user_id: UUID = Field(
        foreign_key="users.id",
        nullable=False,
        index=True,
        description="Reference to user"
    )
    issued_at: datetime = Field(
        sa_column=Column(DateTime, nullable=False),
        description="Token issue timestamp"
    )
    expires_at: datetime = Field(
        sa_column=Column(DateTime, nullable=False),
        description="Token expiration timestamp"
    )
    ip_address: Optional[str] = Field(
        default=None,
        sa_column=Column(String(45), nullable=True),
        description="Client IP address"
    )
    user_agent: Optional[str] = Field(
        default=None,
        sa_column=Column(String(512), nullable=True),
        description="Client user-agent string"
    )
