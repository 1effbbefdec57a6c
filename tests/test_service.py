"""
GDSC API - Auth Service Tests

Orchestrator behaviour that is awkward to reach over HTTP: failure
mapping during session establishment, the role used on refresh, email
notification, and what ends up in the logs.

Run with: pytest tests/test_service.py -v
"""

import json
import logging

import httpx
import pytest

from gdsc_api.auth import sessions as session_service
from gdsc_api.auth.errors import AuthError, AuthErrorKind, StorageError, TokenIssueError
from gdsc_api.auth.models import Role
from gdsc_api.auth.notifier import (
    LoggingNotifier,
    NotificationError,
    RESEND_API_URL,
    ResendNotifier,
    build_notifier,
)
from gdsc_api.auth.service import AuthService, ClientContext
from tests.conftest import USER_PASSWORD


CLIENT = ClientContext(ip_address="127.0.0.1", user_agent="pytest")


class FailingNotifier:
    async def send_verification(self, recipient, token):
        raise NotificationError("mail provider down")


# =============================================================================
# SESSION ESTABLISHMENT
# =============================================================================

class TestSessionEstablishment:

    @pytest.mark.asyncio
    async def test_login_result(self, auth_service, db_session, test_user):
        result = await auth_service.login(db_session, "member@test.edu", USER_PASSWORD, CLIENT)

        assert result.user.id == test_user.id
        stored = await session_service.get_session_by_token(db_session, result.refresh_token)
        assert stored.expires_at == result.refresh_expires_at
        assert stored.user_agent == "pytest"

    @pytest.mark.asyncio
    async def test_session_store_failure(self, auth_service, db_session, test_user, monkeypatch):
        async def broken(*args, **kwargs):
            raise StorageError("disk full")

        monkeypatch.setattr(session_service, "create_session", broken)

        with pytest.raises(AuthError) as exc:
            await auth_service.login(db_session, "member@test.edu", USER_PASSWORD, CLIENT)
        assert exc.value.kind == AuthErrorKind.SESSION_CREATE_FAILED
        assert exc.value.status_code == 500

    @pytest.mark.asyncio
    async def test_access_token_failure(self, auth_service, db_session, test_user, monkeypatch):
        def broken(*args, **kwargs):
            raise TokenIssueError("bad key")

        monkeypatch.setattr(auth_service.tokens, "issue_access", broken)

        with pytest.raises(AuthError) as exc:
            await auth_service.login(db_session, "member@test.edu", USER_PASSWORD, CLIENT)
        assert exc.value.kind == AuthErrorKind.ACCESS_TOKEN_ISSUE_FAILED

    @pytest.mark.asyncio
    async def test_refresh_token_failure_stores_nothing(self, auth_service, db_session, test_user, monkeypatch):
        def broken(*args, **kwargs):
            raise TokenIssueError("bad key")

        monkeypatch.setattr(auth_service.tokens, "issue_refresh", broken)

        with pytest.raises(AuthError) as exc:
            await auth_service.login(db_session, "member@test.edu", USER_PASSWORD, CLIENT)
        assert exc.value.kind == AuthErrorKind.REFRESH_TOKEN_ISSUE_FAILED
        assert await session_service.get_active_sessions(db_session, test_user.id) == []


# =============================================================================
# REFRESH ROLE POLICY
# =============================================================================

class TestRefreshRole:

    @pytest.mark.asyncio
    async def test_role_comes_from_token_by_default(self, auth_service, db_session, test_user):
        result = await auth_service.login(db_session, "member@test.edu", USER_PASSWORD, CLIENT)
        test_user.role = Role.ADMIN
        db_session.add(test_user)
        db_session.commit()

        refreshed = await auth_service.refresh(db_session, result.refresh_token)

        assert refreshed.role == "USER"

    @pytest.mark.asyncio
    async def test_role_from_database_when_enabled(self, settings, tokens, resolver, notifier, db_session, test_user):
        service = AuthService(
            settings.model_copy(update={"REFRESH_ROLE_FROM_DB": True}),
            tokens=tokens,
            resolver=resolver,
            notifier=notifier,
        )
        result = await service.login(db_session, "member@test.edu", USER_PASSWORD, CLIENT)
        test_user.role = Role.ADMIN
        db_session.add(test_user)
        db_session.commit()

        refreshed = await service.refresh(db_session, result.refresh_token)

        assert refreshed.role == "ADMIN"
        assert tokens.validate_access(refreshed.access_token).role == "ADMIN"

    @pytest.mark.asyncio
    async def test_refresh_does_not_touch_session_row(self, auth_service, db_session, test_user):
        result = await auth_service.login(db_session, "member@test.edu", USER_PASSWORD, CLIENT)

        await auth_service.refresh(db_session, result.refresh_token)
        await auth_service.refresh(db_session, result.refresh_token)

        assert len(await session_service.get_active_sessions(db_session, test_user.id)) == 1


# =============================================================================
# AUTHORIZATION
# =============================================================================

class TestOwnership:

    @pytest.mark.asyncio
    async def test_update_requires_identity(self, auth_service, db_session, test_user, other_user):
        with pytest.raises(AuthError) as exc:
            await auth_service.update_user(db_session, other_user.id, test_user.id, {"bio": "x"})
        assert exc.value.kind == AuthErrorKind.FORBIDDEN

    @pytest.mark.asyncio
    async def test_delete_requires_identity(self, auth_service, db_session, test_user, other_user):
        with pytest.raises(AuthError) as exc:
            await auth_service.delete_user(db_session, other_user.id, test_user.id)
        assert exc.value.kind == AuthErrorKind.FORBIDDEN


# =============================================================================
# VERIFICATION EMAIL
# =============================================================================

class TestVerificationEmail:

    @pytest.mark.asyncio
    async def test_delivery_failure_does_not_block_registration(self, settings, tokens, resolver, db_session):
        service = AuthService(settings, tokens=tokens, resolver=resolver, notifier=FailingNotifier())

        user = await service.register(db_session, "a@x.edu", "Secret123!")

        assert user.id is not None
        assert user.is_onboarded is False

    @pytest.mark.asyncio
    async def test_resend_notifier_posts_link(self):
        captured = []

        def handler(request):
            captured.append(request)
            return httpx.Response(200, json={"id": "email-1"})

        notifier = ResendNotifier(
            api_key="re_test",
            sender="GDSC <no-reply@gdsc.test>",
            verify_url="https://gdsc.test/verify",
            transport=httpx.MockTransport(handler),
        )

        await notifier.send_verification("a@x.edu", "tok-123")

        request = captured[0]
        body = json.loads(request.content)
        assert str(request.url) == RESEND_API_URL
        assert request.headers["Authorization"] == "Bearer re_test"
        assert body["to"] == ["a@x.edu"]
        assert "https://gdsc.test/verify?token=tok-123" in body["html"]

    @pytest.mark.asyncio
    async def test_resend_notifier_rejection(self):
        notifier = ResendNotifier(
            api_key="re_test",
            sender="s",
            verify_url="https://gdsc.test/verify",
            transport=httpx.MockTransport(lambda request: httpx.Response(422)),
        )

        with pytest.raises(NotificationError):
            await notifier.send_verification("a@x.edu", "tok")

    @pytest.mark.asyncio
    async def test_logging_notifier_keeps_nothing(self, caplog):
        caplog.set_level(logging.INFO)
        notifier = LoggingNotifier()

        for i in range(50):
            await notifier.send_verification(f"user{i}@x.edu", f"tok-{i}")

        assert vars(notifier) == {}
        assert "tok-1" not in caplog.text
        assert "user1@x.edu" not in caplog.text

    def test_build_notifier(self, settings):
        assert isinstance(build_notifier(settings), LoggingNotifier)
        assert isinstance(
            build_notifier(settings.model_copy(update={"RESEND_API_KEY": "re_live"})),
            ResendNotifier,
        )


# =============================================================================
# LOGGING
# =============================================================================

class TestAuthLogging:

    @pytest.mark.asyncio
    async def test_secrets_never_logged(self, auth_service, db_session, test_user, caplog):
        caplog.set_level(logging.DEBUG)

        result = await auth_service.login(db_session, "member@test.edu", USER_PASSWORD, CLIENT)
        await auth_service.refresh(db_session, result.refresh_token)
        await auth_service.logout(db_session, result.refresh_token)

        assert "auth.login.success" in caplog.text
        assert "auth.logout" in caplog.text
        assert USER_PASSWORD not in caplog.text
        assert result.refresh_token not in caplog.text
        assert result.access_token not in caplog.text

    @pytest.mark.asyncio
    async def test_failed_login_logged_with_reason(self, auth_service, db_session, test_user, caplog):
        caplog.set_level(logging.INFO)

        with pytest.raises(AuthError):
            await auth_service.login(db_session, "member@test.edu", "WrongPass1", CLIENT)

        assert "auth.login.failure" in caplog.text
        assert "invalid_password" in caplog.text
        assert "WrongPass1" not in caplog.text
