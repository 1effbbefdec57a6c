"""
GDSC API - Authentication Service

Composes the credential store, session store, password hasher, token
service and federation resolver into the login, registration, refresh
and logout flows.

An attempt moves Start -> (credentials | federation) -> Authenticated ->
SessionEstablished. Federation forks: a known identity is authenticated
directly; an unknown one gets a temporary registration token and stops
until complete_registration is called with it.

Session establishment is three independent steps (access token, refresh
token, session row) with no transaction around them. If the row is never
written the refresh token is useless, because refresh() requires the row.
"""

import hmac
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional, Union
from uuid import UUID

from sqlmodel import Session as DBSession

from gdsc_api.config import Settings
from gdsc_api.auth import sessions, users
from gdsc_api.auth.errors import (
    AuthError,
    AuthErrorKind,
    DuplicateRecordError,
    StorageError,
    TokenIssueError,
)
from gdsc_api.auth.models import Branch, Position, Role, Session, User
from gdsc_api.auth.notifier import EmailNotifier, NotificationError, build_notifier
from gdsc_api.auth.oauth import FederationResolver, OAuthClients
from gdsc_api.auth.password import hash_password, needs_rehash, verify_password
from gdsc_api.auth.schemas import OAuthProfile
from gdsc_api.auth.tokens import TokenService

LOGGER = logging.getLogger(__name__)


@dataclass
class ClientContext:
    """Advisory request metadata stored with a session."""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass
class LoginResult:
    user: User
    access_token: str
    access_expires_at: datetime
    refresh_token: str
    refresh_expires_at: datetime


@dataclass
class RegistrationRequired:
    """OAuth succeeded but no local account exists yet."""
    temp_token: str
    profile: OAuthProfile


@dataclass
class RefreshResult:
    access_token: str
    expires_at: datetime
    user_id: UUID
    role: str


def _log_auth_event(event_type: str, user_id: Optional[UUID] = None, **details: Any) -> None:
    """Log an authentication event. Never pass passwords or token strings."""
    extra = " ".join(f"{key}={value}" for key, value in details.items())
    LOGGER.info("%s user_id=%s %s", event_type, user_id or "anonymous", extra)


class AuthService:
    """
    Central authority for authentication flows.

    Args:
        settings: Application settings
        tokens: Token service (built from settings when omitted)
        resolver: Federation resolver (built from settings when omitted)
        notifier: Verification email notifier (built from settings when omitted)
    """

    def __init__(
        self,
        settings: Settings,
        tokens: Optional[TokenService] = None,
        resolver: Optional[FederationResolver] = None,
        notifier: Optional[EmailNotifier] = None,
    ):
        self.settings = settings
        self.tokens = tokens or TokenService(settings)
        self.resolver = resolver or FederationResolver(
            OAuthClients.from_settings(settings),
            timeout=settings.OAUTH_HTTP_TIMEOUT_SECONDS,
        )
        self.notifier = notifier or build_notifier(settings)

    # ------------------------------------------------------------------
    # Session establishment
    # ------------------------------------------------------------------

    async def _establish_session(
        self,
        db: DBSession,
        user: User,
        client: ClientContext,
        method: str,
    ) -> LoginResult:
        role = Role(user.role).value

        try:
            access = self.tokens.issue_access(user.id, role)
        except TokenIssueError:
            LOGGER.error("Access token signing failed for user_id=%s", user.id)
            raise AuthError(AuthErrorKind.ACCESS_TOKEN_ISSUE_FAILED)

        try:
            refresh = self.tokens.issue_refresh(user.id, role)
        except TokenIssueError:
            LOGGER.error("Refresh token signing failed for user_id=%s", user.id)
            raise AuthError(AuthErrorKind.REFRESH_TOKEN_ISSUE_FAILED)

        try:
            await sessions.create_session(
                db,
                user_id=user.id,
                token=refresh.token,
                issued_at=refresh.issued_at,
                expires_at=refresh.expires_at,
                ip_address=client.ip_address,
                user_agent=client.user_agent,
            )
        except StorageError:
            LOGGER.exception("Session persistence failed for user_id=%s", user.id)
            raise AuthError(AuthErrorKind.SESSION_CREATE_FAILED)

        _log_auth_event("auth.login.success", user.id, method=method)

        return LoginResult(
            user=user,
            access_token=access.token,
            access_expires_at=access.expires_at,
            refresh_token=refresh.token,
            refresh_expires_at=refresh.expires_at,
        )

    # ------------------------------------------------------------------
    # Credential path
    # ------------------------------------------------------------------

    async def register(self, db: DBSession, email: str, password: str) -> User:
        """
        Create a credential account.

        The account starts un-onboarded and unverified; a verification
        email is sent, and a delivery failure does not undo the account.

        Raises:
            AuthError: USER_EXISTS or REGISTRATION_FAILED
        """
        if await users.email_exists(db, email):
            _log_auth_event("auth.register.failure", reason="email_exists")
            raise AuthError(AuthErrorKind.USER_EXISTS)

        user = User(
            email=email,
            password_hash=hash_password(password),
            role=Role.USER,
            is_onboarded=False,
            email_verified=False,
        )

        try:
            user = await users.create_user(db, user)
        except DuplicateRecordError:
            raise AuthError(AuthErrorKind.USER_EXISTS)
        except StorageError:
            LOGGER.exception("User registration failed")
            raise AuthError(AuthErrorKind.REGISTRATION_FAILED)

        _log_auth_event("auth.register.success", user.id)
        await self._send_verification(user)
        return user

    async def _send_verification(self, user: User) -> None:
        try:
            issued = self.tokens.issue_verification(user.id, user.email)
            await self.notifier.send_verification(user.email, issued.token)
        except (TokenIssueError, NotificationError) as e:
            LOGGER.warning("Verification email not sent for user_id=%s: %s", user.id, e)

    async def login(
        self,
        db: DBSession,
        email: str,
        password: str,
        client: ClientContext,
    ) -> LoginResult:
        """
        Authenticate with email and password and open a session.

        Unknown email and wrong password raise the same error so the
        endpoint cannot be used to enumerate accounts.
        """
        user = await users.get_user_by_email(db, email)

        if user is None:
            _log_auth_event("auth.login.failure", reason="user_not_found")
            raise AuthError(AuthErrorKind.INVALID_CREDENTIALS)

        if not verify_password(password, user.password_hash):
            _log_auth_event("auth.login.failure", user.id, reason="invalid_password")
            raise AuthError(AuthErrorKind.INVALID_CREDENTIALS)

        # Work factor upgrade
        if needs_rehash(user.password_hash):
            try:
                await users.update_user(db, user, {"password_hash": hash_password(password)})
            except StorageError:
                LOGGER.warning("Password rehash not stored for user_id=%s", user.id)

        return await self._establish_session(db, user, client, method="password")

    # ------------------------------------------------------------------
    # Federation path
    # ------------------------------------------------------------------

    def build_authorization_url(self, provider: str, state: str) -> str:
        return self.resolver.build_authorization_url(provider, state)

    async def oauth_callback(
        self,
        db: DBSession,
        provider: str,
        code: str,
        state: Optional[str],
        expected_state: Optional[str],
        client: ClientContext,
    ) -> Union[LoginResult, RegistrationRequired]:
        """
        Finish an OAuth login.

        Args:
            provider: "github" or "google"
            code: Authorization code from the provider redirect
            state: State echoed by the provider
            expected_state: State stored when the login was initiated
            client: Request metadata for the session row

        Returns:
            LoginResult for a known identity, RegistrationRequired otherwise.
            No user or session row is created for an unknown identity.
        """
        if not state:
            raise AuthError(AuthErrorKind.MISSING_STATE)

        if self.settings.OAUTH_VERIFY_STATE:
            if not expected_state or not hmac.compare_digest(
                state.encode("utf-8"), expected_state.encode("utf-8")
            ):
                _log_auth_event("auth.oauth.failure", provider=provider, reason="state_mismatch")
                raise AuthError(AuthErrorKind.STATE_MISMATCH)

        try:
            profile = await self.resolver.exchange_and_fetch_profile(provider, code)
        except AuthError as e:
            _log_auth_event("auth.oauth.failure", provider=provider, reason=e.kind.value)
            raise

        user = await users.get_user_by_provider_identity(db, profile.provider, profile.provider_user_id)
        if user is not None:
            return await self._establish_session(db, user, client, method=profile.provider)

        try:
            temp = self.tokens.issue_temporary(profile)
        except TokenIssueError:
            raise AuthError(AuthErrorKind.TEMP_TOKEN_ISSUE_FAILED)

        _log_auth_event("auth.oauth.registration_required", provider=profile.provider)
        return RegistrationRequired(temp_token=temp.token, profile=profile)

    async def complete_registration(
        self,
        db: DBSession,
        temp_token: str,
        first_name: str,
        last_name: str,
        position: Position,
        branch: Branch,
        graduation_date: date,
        client: ClientContext,
    ) -> LoginResult:
        """
        Create the account for a federated identity and open a session.

        The profile comes from the signed temporary token, never from
        the request body.

        Raises:
            AuthError: INVALID_TOKEN, USER_EXISTS or REGISTRATION_FAILED
        """
        profile = self.tokens.validate_temporary(temp_token).oauth_data

        if await users.provider_identity_exists(db, profile.provider, profile.provider_user_id):
            raise AuthError(AuthErrorKind.USER_EXISTS)
        if profile.email and await users.email_exists(db, profile.email):
            raise AuthError(AuthErrorKind.USER_EXISTS)

        user = User(
            email=profile.email,
            full_name=profile.name or f"{first_name} {last_name}",
            first_name=first_name,
            last_name=last_name,
            image=profile.avatar_url,
            role=Role.USER,
            position=position,
            branch=branch,
            graduation_date=graduation_date,
            provider=profile.provider,
            provider_user_id=profile.provider_user_id,
            is_onboarded=True,
        )

        try:
            user = await users.create_user(db, user)
        except DuplicateRecordError:
            raise AuthError(AuthErrorKind.USER_EXISTS)
        except StorageError:
            LOGGER.exception("OAuth registration failed")
            raise AuthError(AuthErrorKind.REGISTRATION_FAILED)

        _log_auth_event("auth.register.success", user.id, provider=profile.provider)
        return await self._establish_session(db, user, client, method=profile.provider)

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def refresh(self, db: DBSession, refresh_token: Optional[str]) -> RefreshResult:
        """
        Mint a new access token from a refresh token.

        Both checks are required: the signature must verify with the
        refresh secret AND the same token string must still be stored.
        The refresh token itself is not rotated.
        """
        if not refresh_token:
            raise AuthError(AuthErrorKind.MISSING_REFRESH_TOKEN)

        claims = self.tokens.validate_refresh(refresh_token)

        stored = await sessions.get_session_by_token(db, refresh_token)
        if stored is None:
            _log_auth_event("auth.refresh.failure", reason="session_not_found")
            raise AuthError(AuthErrorKind.SESSION_NOT_FOUND)

        if claims.user_id != str(stored.user_id):
            _log_auth_event("auth.refresh.failure", stored.user_id, reason="claims_mismatch")
            raise AuthError(AuthErrorKind.TOKEN_CLAIMS_MISMATCH)

        if datetime.utcnow() > stored.expires_at:
            _log_auth_event("auth.refresh.failure", stored.user_id, reason="expired")
            raise AuthError(AuthErrorKind.SESSION_EXPIRED)

        role = claims.role
        if self.settings.REFRESH_ROLE_FROM_DB:
            user = await users.get_user_by_id(db, stored.user_id)
            if user is None:
                raise AuthError(AuthErrorKind.INVALID_TOKEN)
            role = Role(user.role).value

        try:
            access = self.tokens.issue_access(stored.user_id, role)
        except TokenIssueError:
            raise AuthError(AuthErrorKind.ACCESS_TOKEN_ISSUE_FAILED)

        return RefreshResult(
            access_token=access.token,
            expires_at=access.expires_at,
            user_id=stored.user_id,
            role=role,
        )

    async def logout(self, db: DBSession, refresh_token: Optional[str]) -> None:
        """Delete the session matching the presented refresh token."""
        if not refresh_token:
            raise AuthError(AuthErrorKind.MISSING_REFRESH_TOKEN)

        stored = await sessions.get_session_by_token(db, refresh_token)
        if stored is None:
            raise AuthError(AuthErrorKind.SESSION_NOT_FOUND)

        try:
            await sessions.delete_session_by_token(db, refresh_token)
        except StorageError:
            LOGGER.exception("Logout failed for user_id=%s", stored.user_id)
            raise AuthError(AuthErrorKind.STORAGE_FAILED)

        _log_auth_event("auth.logout", stored.user_id)

    async def logout_all(self, db: DBSession, user_id: UUID) -> int:
        """Delete every session of the authenticated user."""
        try:
            count = await sessions.delete_all_user_sessions(db, user_id)
        except StorageError:
            LOGGER.exception("Logout-all failed for user_id=%s", user_id)
            raise AuthError(AuthErrorKind.STORAGE_FAILED)

        _log_auth_event("auth.logout.all", user_id, sessions_invalidated=count)
        return count

    async def list_sessions(self, db: DBSession, user_id: UUID) -> list[Session]:
        return await sessions.get_active_sessions(db, user_id)

    # ------------------------------------------------------------------
    # Account management
    # ------------------------------------------------------------------

    async def get_user(self, db: DBSession, user_id: UUID) -> User:
        user = await users.get_user_by_id(db, user_id)
        if user is None:
            raise AuthError(AuthErrorKind.USER_NOT_FOUND)
        return user

    async def update_user(
        self,
        db: DBSession,
        principal_id: UUID,
        target_id: UUID,
        changes: dict[str, Any],
    ) -> User:
        """Update a profile. Only the account owner may do this."""
        if principal_id != target_id:
            _log_auth_event("auth.user.update.denied", principal_id, target=target_id)
            raise AuthError(AuthErrorKind.FORBIDDEN)

        user = await self.get_user(db, target_id)
        try:
            return await users.update_user(db, user, changes)
        except StorageError:
            LOGGER.exception("Profile update failed for user_id=%s", target_id)
            raise AuthError(AuthErrorKind.STORAGE_FAILED)

    async def delete_user(self, db: DBSession, principal_id: UUID, target_id: UUID) -> None:
        """
        Delete an account and all of its sessions.

        Only the account owner may do this; admins get no bypass.
        """
        if principal_id != target_id:
            _log_auth_event("auth.user.delete.denied", principal_id, target=target_id)
            raise AuthError(AuthErrorKind.FORBIDDEN)

        user = await self.get_user(db, target_id)
        try:
            await sessions.delete_all_user_sessions(db, user.id)
            await users.delete_user(db, user)
        except StorageError:
            LOGGER.exception("Account deletion failed for user_id=%s", target_id)
            raise AuthError(AuthErrorKind.STORAGE_FAILED)

        _log_auth_event("auth.user.deleted", target_id)

    async def verify_email(self, db: DBSession, token: str) -> User:
        """Mark an email address verified using a verification token."""
        claims = self.tokens.validate_verification(token)
        try:
            user_id = UUID(claims.user_id)
        except ValueError:
            raise AuthError(AuthErrorKind.INVALID_TOKEN)

        user = await users.get_user_by_id(db, user_id)
        # The address may have changed since the mail was sent
        if user is None or user.email != claims.email:
            raise AuthError(AuthErrorKind.INVALID_TOKEN)

        if not user.email_verified:
            try:
                user = await users.update_user(db, user, {"email_verified": True})
            except StorageError:
                raise AuthError(AuthErrorKind.STORAGE_FAILED)
            _log_auth_event("auth.email.verified", user.id)
        return user

    async def list_users(self, db: DBSession, page: int, limit: int) -> tuple[list[User], int]:
        return await users.list_users(db, page, limit)
