"""
GDSC API - Credential Store

Persistence of user accounts. Every validity check re-queries the
database; nothing is cached in process.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session as DBSession, select

from gdsc_api.auth.errors import DuplicateRecordError, StorageError
from gdsc_api.auth.models import User


async def get_user_by_id(db: DBSession, user_id: UUID) -> Optional[User]:
    try:
        return db.get(User, user_id)
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError("failed to load user") from e


async def get_user_by_email(db: DBSession, email: str) -> Optional[User]:
    statement = select(User).where(User.email == email.lower())
    try:
        return db.exec(statement).first()
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError("failed to look up user by email") from e


async def get_user_by_provider_identity(
    db: DBSession,
    provider: str,
    provider_user_id: str,
) -> Optional[User]:
    """Find the account linked to a federated identity."""
    statement = select(User).where(
        User.provider == provider,
        User.provider_user_id == provider_user_id,
    )
    try:
        return db.exec(statement).first()
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError("failed to look up federated identity") from e


async def email_exists(db: DBSession, email: str) -> bool:
    return await get_user_by_email(db, email) is not None


async def provider_identity_exists(db: DBSession, provider: str, provider_user_id: str) -> bool:
    return await get_user_by_provider_identity(db, provider, provider_user_id) is not None


async def create_user(db: DBSession, user: User) -> User:
    """
    Insert a new user.

    Raises:
        ValueError: If the user has neither credentials nor a federated identity
        DuplicateRecordError: If the email or provider identity is taken
        StorageError: On any other persistence failure
    """
    if not user.has_credentials() and not user.has_federation():
        raise ValueError("user needs credentials or a federated identity")

    if user.email:
        user.email = user.email.lower()

    try:
        db.add(user)
        db.commit()
        db.refresh(user)
    except IntegrityError as e:
        db.rollback()
        raise DuplicateRecordError("user already exists") from e
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError("failed to create user") from e

    return user


async def update_user(db: DBSession, user: User, changes: dict[str, Any]) -> User:
    """
    Apply a partial update.

    A change to first_name or last_name recomputes full_name.
    """
    for field, value in changes.items():
        setattr(user, field, value)

    if "first_name" in changes or "last_name" in changes:
        parts = [user.first_name, user.last_name]
        user.full_name = " ".join(part for part in parts if part) or user.full_name

    user.updated_at = datetime.utcnow()

    try:
        db.add(user)
        db.commit()
        db.refresh(user)
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError("failed to update user") from e

    return user


async def delete_user(db: DBSession, user: User) -> None:
    try:
        db.delete(user)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError("failed to delete user") from e


async def list_users(db: DBSession, page: int, limit: int) -> tuple[list[User], int]:
    """
    Page through users, oldest first.

    Returns:
        (users on the page, total user count)
    """
    offset = (page - 1) * limit
    statement = select(User).order_by(User.created_at).offset(offset).limit(limit)
    try:
        users = list(db.exec(statement).all())
        total = db.exec(select(func.count()).select_from(User)).one()
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError("failed to list users") from e
    return users, total
