"""
GDSC API - Session Store

Server-side persistence of refresh tokens.
A refresh token is only honoured while its row exists, which is what
makes logout effective even though access tokens cannot be revoked.

Security:
- Rows are created on login and deleted on logout; never updated
- Expiry is enforced when a token is presented, not by a sweeper
- Token strings are never logged
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session as DBSession, select

from gdsc_api.auth.errors import DuplicateRecordError, StorageError
from gdsc_api.auth.models import Session


async def create_session(
    db: DBSession,
    user_id: UUID,
    token: str,
    issued_at: datetime,
    expires_at: datetime,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Session:
    """
    Persist a freshly issued refresh token.

    Args:
        db: Database session
        user_id: Owning user
        token: Signed refresh token
        issued_at: Token issue time (UTC)
        expires_at: Token expiry (UTC)
        ip_address: Client IP for audit
        user_agent: Client user-agent for audit

    Returns:
        Created Session row

    Raises:
        StorageError: If the insert fails for any reason
    """
    session = Session(
        user_id=user_id,
        token=token,
        issued_at=issued_at,
        expires_at=expires_at,
        ip_address=ip_address,
        user_agent=user_agent,
    )

    try:
        db.add(session)
        db.commit()
        db.refresh(session)
    except IntegrityError as e:
        db.rollback()
        raise DuplicateRecordError("refresh token already stored") from e
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError("failed to store refresh token") from e

    return session


async def get_session_by_token(db: DBSession, token: str) -> Optional[Session]:
    """
    Look up a persisted refresh token.

    Returns:
        Session row, or None if the token was never stored or was deleted
    """
    statement = select(Session).where(Session.token == token)
    try:
        return db.exec(statement).first()
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError("failed to look up refresh token") from e


async def _delete_matching(db: DBSession, condition) -> int:
    count = 0

    try:
        sessions = db.exec(select(Session).where(condition)).all()
        for session in sessions:
            db.delete(session)
            count += 1
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError("failed to delete refresh tokens") from e

    return count


async def delete_session_by_token(db: DBSession, token: str) -> bool:
    """
    Delete one refresh token (logout).

    Idempotent: deleting an unknown token is not an error here.

    Returns:
        True if a row was deleted
    """
    return await _delete_matching(db, Session.token == token) > 0


async def delete_all_user_sessions(db: DBSession, user_id: UUID) -> int:
    """
    Delete every refresh token of a user (logout everywhere).

    Use cases:
        - Explicit logout-all
        - Account deletion

    Returns:
        Number of sessions deleted
    """
    return await _delete_matching(db, Session.user_id == user_id)


async def get_active_sessions(db: DBSession, user_id: UUID) -> list[Session]:
    """
    Get the unexpired sessions of a user, newest first.

    Use cases:
        - Show a user where they are signed in
    """
    now = datetime.utcnow()

    statement = (
        select(Session)
        .where(Session.user_id == user_id, Session.expires_at > now)
        .order_by(Session.issued_at.desc())
    )

    try:
        return list(db.exec(statement).all())
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError("failed to list sessions") from e
