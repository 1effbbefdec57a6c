"""
GDSC API - Test Configuration

Pytest fixtures for authentication testing.
Provides settings, a test database, fake OAuth providers, the app client,
and user fixtures.
"""

import json
from typing import Generator
from urllib.parse import parse_qs

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, select

from gdsc_api.app import create_app
from gdsc_api.config import Settings
from gdsc_api.auth import password
from gdsc_api.auth.models import User, Role, Session as RefreshSession
from gdsc_api.auth.oauth import FederationResolver, OAuthClients
from gdsc_api.auth.password import hash_password
from gdsc_api.auth.service import AuthService
from gdsc_api.auth.tokens import TokenService


# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite:///:memory:"

USER_PASSWORD = "UserPass123"
ADMIN_PASSWORD = "AdminPass123"

GITHUB_TOKEN_URL = "https://github.com/login/oauth/access_token"
GITHUB_USER_URL = "https://api.github.com/user"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"


class RecordingNotifier:
    """Verification notifier that remembers who it mailed and with which token."""

    def __init__(self):
        self.sent: list = []

    async def send_verification(self, recipient: str, token: str) -> None:
        self.sent.append((recipient, token))


class FakeProviders:
    """
    In-memory stand-in for the GitHub and Google OAuth endpoints.

    Register a code with add_code; any other code is rejected the way the
    real providers reject it.
    """

    def __init__(self):
        self.codes: dict = {}
        self.requests: list = []

    def add_code(self, code: str, profile: dict) -> None:
        """Accept code and answer the profile request with this document."""
        self.codes[code] = profile

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)

        if url == GITHUB_TOKEN_URL:
            code = parse_qs(request.content.decode())["code"][0]
            if code not in self.codes:
                # GitHub answers a bad code with 200 and an error field
                return httpx.Response(200, json={"error": "bad_verification_code"})
            return httpx.Response(200, json={"access_token": f"gh-{code}", "token_type": "bearer"})

        if url == GOOGLE_TOKEN_URL:
            code = parse_qs(request.content.decode())["code"][0]
            if code not in self.codes:
                return httpx.Response(400, json={"error": "invalid_grant"})
            return httpx.Response(200, json={"access_token": f"gg-{code}", "token_type": "Bearer"})

        if url in (GITHUB_USER_URL, GOOGLE_USERINFO_URL):
            bearer = request.headers.get("Authorization", "")
            code = bearer.removeprefix("Bearer ")[3:]
            if code not in self.codes:
                return httpx.Response(401, json={"message": "Bad credentials"})
            return httpx.Response(200, content=json.dumps(self.codes[code]))

        return httpx.Response(404)


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Lower the bcrypt work factor so tests stay fast."""
    monkeypatch.setattr(password, "BCRYPT_WORK_FACTOR", 4)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        DATABASE_URL=TEST_DATABASE_URL,
        JWT_ACCESS_SECRET="test-access-secret",
        JWT_REFRESH_SECRET="test-refresh-secret",
        JWT_TEMP_SECRET="test-temp-secret",
        GITHUB_CLIENT_ID="github-client-id",
        GITHUB_CLIENT_SECRET="github-client-secret",
        GOOGLE_CLIENT_ID="google-client-id",
        GOOGLE_CLIENT_SECRET="google-client-secret",
        RESEND_API_KEY="",
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def tokens(settings) -> TokenService:
    return TokenService(settings)


@pytest.fixture
def providers() -> FakeProviders:
    return FakeProviders()


@pytest.fixture
def resolver(settings, providers) -> FederationResolver:
    return FederationResolver(
        OAuthClients.from_settings(settings),
        timeout=settings.OAUTH_HTTP_TIMEOUT_SECONDS,
        transport=httpx.MockTransport(providers.handler),
    )


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def auth_service(settings, tokens, resolver, notifier) -> AuthService:
    return AuthService(settings, tokens=tokens, resolver=resolver, notifier=notifier)


@pytest.fixture(scope="function")
def test_engine():
    """Create a fresh test database engine for each test."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    SQLModel.metadata.create_all(engine)

    yield engine

    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(test_engine) -> Generator[Session, None, None]:
    """Create a database session for testing."""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(scope="function")
def app(settings, test_engine, auth_service):
    return create_app(settings=settings, engine=test_engine, auth_service=auth_service)


@pytest.fixture(scope="function")
def client(app) -> Generator[TestClient, None, None]:
    """Create a test client with fresh database."""
    with TestClient(app) as c:
        yield c


def _make_user(db_session, email: str, plain_password: str, role: Role) -> User:
    user = User(
        email=email,
        password_hash=hash_password(plain_password),
        role=role,
        is_onboarded=True,
        email_verified=True,
        full_name="Test User",
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture(scope="function")
def test_user(db_session) -> User:
    """Create a regular member with a password."""
    return _make_user(db_session, "member@test.edu", USER_PASSWORD, Role.USER)


@pytest.fixture(scope="function")
def other_user(db_session) -> User:
    """A second regular member."""
    return _make_user(db_session, "other@test.edu", USER_PASSWORD, Role.USER)


@pytest.fixture(scope="function")
def test_admin(db_session) -> User:
    """Create a test admin user."""
    return _make_user(db_session, "admin@test.edu", ADMIN_PASSWORD, Role.ADMIN)


def login_user(client: TestClient, email: str, password: str) -> dict:
    """
    Log in and return the access token and refresh token.

    The refresh token is taken from the Set-Cookie of this response, so
    several logins in a row each yield their own token.
    """
    response = client.post(
        "/auth/login",
        json={"email": email, "password": password},
    )
    if response.status_code != 200:
        return None
    return {
        "access_token": response.json()["accessToken"],
        "refresh_token": response.cookies["refresh_token"],
        "user": response.json()["user"],
    }


def auth_headers(access_token: str) -> dict:
    """Create authorization headers for authenticated requests."""
    return {"Authorization": f"Bearer {access_token}"}


def use_refresh_cookie(client: TestClient, refresh_token: str) -> None:
    """Make the client present exactly this refresh token."""
    client.cookies.clear()
    client.cookies.set("refresh_token", refresh_token)


def count_rows(engine, model) -> int:
    """Count rows with a fresh session so cached objects do not interfere."""
    with Session(engine) as session:
        return session.exec(select(func.count()).select_from(model)).one()


def count_users(engine) -> int:
    return count_rows(engine, User)


def count_sessions(engine) -> int:
    return count_rows(engine, RefreshSession)
