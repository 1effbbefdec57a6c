"""
GDSC API - OAuth Federation

GitHub and Google sign-in. The resolver exchanges an authorization code
for a provider access token, fetches the provider's "who am I" document,
and normalizes it into one OAuthProfile so nothing downstream branches on
the provider again.

Provider clients are built once from Settings at startup
(OAuthClients.from_settings) and injected into FederationResolver.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from gdsc_api.config import Settings
from gdsc_api.auth.errors import AuthError, AuthErrorKind
from gdsc_api.auth.schemas import OAuthProfile

LOGGER = logging.getLogger(__name__)


class Provider(str, Enum):
    GITHUB = "github"
    GOOGLE = "google"


@dataclass(frozen=True)
class OAuthProviderConfig:
    """Client registration and endpoints of one provider."""
    client_id: str
    client_secret: str
    redirect_uri: str
    authorize_url: str
    token_url: str
    userinfo_url: str
    scopes: tuple[str, ...]


def _redirect_uri(settings: Settings, provider: Provider) -> str:
    return f"{settings.OAUTH_REDIRECT_BASE_URL.rstrip('/')}/auth/{provider.value}/callback"


@dataclass
class OAuthClients:
    """Configured providers. A provider without credentials is absent."""
    providers: Dict[Provider, OAuthProviderConfig] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Settings) -> "OAuthClients":
        providers: Dict[Provider, OAuthProviderConfig] = {}

        if settings.GITHUB_CLIENT_ID and settings.GITHUB_CLIENT_SECRET:
            providers[Provider.GITHUB] = OAuthProviderConfig(
                client_id=settings.GITHUB_CLIENT_ID,
                client_secret=settings.GITHUB_CLIENT_SECRET,
                redirect_uri=_redirect_uri(settings, Provider.GITHUB),
                authorize_url="https://github.com/login/oauth/authorize",
                token_url="https://github.com/login/oauth/access_token",
                userinfo_url="https://api.github.com/user",
                scopes=("user:email",),
            )
        else:
            LOGGER.info("GitHub OAuth not configured")

        if settings.GOOGLE_CLIENT_ID and settings.GOOGLE_CLIENT_SECRET:
            providers[Provider.GOOGLE] = OAuthProviderConfig(
                client_id=settings.GOOGLE_CLIENT_ID,
                client_secret=settings.GOOGLE_CLIENT_SECRET,
                redirect_uri=_redirect_uri(settings, Provider.GOOGLE),
                authorize_url="https://accounts.google.com/o/oauth2/auth",
                token_url="https://oauth2.googleapis.com/token",
                userinfo_url="https://www.googleapis.com/oauth2/v2/userinfo",
                scopes=("email", "profile"),
            )
        else:
            LOGGER.info("Google OAuth not configured")

        return cls(providers=providers)


def _optional_str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if isinstance(value, str) and value:
        return value
    return None


def normalize_github_profile(data: Dict[str, Any]) -> OAuthProfile:
    """GitHub sends an integer id; it becomes a string."""
    raw_id = data.get("id")
    # bool is an int subclass
    if isinstance(raw_id, bool) or not isinstance(raw_id, int):
        raise AuthError(AuthErrorKind.PROFILE_FETCH_FAILED)
    return OAuthProfile(
        provider_user_id=str(raw_id),
        provider=Provider.GITHUB.value,
        name=_optional_str(data, "name"),
        email=_optional_str(data, "email"),
        avatar_url=_optional_str(data, "avatar_url"),
    )


def normalize_google_profile(data: Dict[str, Any]) -> OAuthProfile:
    raw_id = _optional_str(data, "id")
    if raw_id is None:
        raise AuthError(AuthErrorKind.PROFILE_FETCH_FAILED)
    return OAuthProfile(
        provider_user_id=raw_id,
        provider=Provider.GOOGLE.value,
        name=_optional_str(data, "name"),
        email=_optional_str(data, "email"),
        avatar_url=_optional_str(data, "picture"),
    )


_NORMALIZERS = {
    Provider.GITHUB: normalize_github_profile,
    Provider.GOOGLE: normalize_google_profile,
}


class FederationResolver:
    """
    Turns a provider authorization code into an OAuthProfile.

    Args:
        clients: Provider configuration built at startup
        timeout: Per-request timeout for provider calls, in seconds
        transport: Optional httpx transport (tests inject a MockTransport)
    """

    def __init__(
        self,
        clients: OAuthClients,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.clients = clients
        self.timeout = timeout
        self._transport = transport

    def _provider_config(self, provider: str) -> tuple[Provider, OAuthProviderConfig]:
        try:
            key = Provider(provider)
        except ValueError:
            raise AuthError(AuthErrorKind.UNSUPPORTED_PROVIDER)
        config = self.clients.providers.get(key)
        if config is None:
            raise AuthError(AuthErrorKind.PROVIDER_NOT_INITIALIZED)
        return key, config

    def build_authorization_url(self, provider: str, state: str) -> str:
        """
        Build the provider consent-screen URL.

        Args:
            provider: "github" or "google"
            state: Anti-CSRF value echoed back on the callback

        Raises:
            AuthError: UNSUPPORTED_PROVIDER or PROVIDER_NOT_INITIALIZED
        """
        _, config = self._provider_config(provider)
        query = {
            "client_id": config.client_id,
            "redirect_uri": config.redirect_uri,
            "response_type": "code",
            "scope": " ".join(config.scopes),
            "state": state,
        }
        return f"{config.authorize_url}?{urlencode(query)}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _exchange_code(self, client: httpx.AsyncClient, config: OAuthProviderConfig, code: str) -> str:
        data = {
            "client_id": config.client_id,
            "client_secret": config.client_secret,
            "code": code,
            "redirect_uri": config.redirect_uri,
            "grant_type": "authorization_code",
        }
        try:
            resp = await client.post(config.token_url, data=data, headers={"Accept": "application/json"})
        except httpx.HTTPError as e:
            LOGGER.warning("OAuth token exchange request failed: %s", type(e).__name__)
            raise AuthError(AuthErrorKind.EXCHANGE_FAILED)

        if resp.status_code != 200:
            LOGGER.warning("OAuth token exchange rejected with status %s", resp.status_code)
            raise AuthError(AuthErrorKind.EXCHANGE_FAILED)

        try:
            payload = resp.json()
        except ValueError:
            raise AuthError(AuthErrorKind.EXCHANGE_FAILED)

        # GitHub reports bad codes as 200 with an "error" field
        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token:
            LOGGER.warning("OAuth token exchange returned no access token")
            raise AuthError(AuthErrorKind.EXCHANGE_FAILED)
        return access_token

    async def _fetch_userinfo(
        self,
        client: httpx.AsyncClient,
        config: OAuthProviderConfig,
        access_token: str,
    ) -> Dict[str, Any]:
        try:
            resp = await client.get(
                config.userinfo_url,
                headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            LOGGER.warning("OAuth profile request failed: %s", type(e).__name__)
            raise AuthError(AuthErrorKind.PROFILE_FETCH_FAILED)

        if resp.status_code != 200:
            LOGGER.warning("OAuth profile request rejected with status %s", resp.status_code)
            raise AuthError(AuthErrorKind.PROFILE_FETCH_FAILED)

        try:
            data = resp.json()
        except ValueError:
            raise AuthError(AuthErrorKind.PROFILE_FETCH_FAILED)
        if not isinstance(data, dict):
            raise AuthError(AuthErrorKind.PROFILE_FETCH_FAILED)
        return data

    async def exchange_and_fetch_profile(self, provider: str, code: str) -> OAuthProfile:
        """
        Exchange an authorization code and fetch the normalized profile.

        Raises:
            AuthError: UNSUPPORTED_PROVIDER, PROVIDER_NOT_INITIALIZED,
                EXCHANGE_FAILED or PROFILE_FETCH_FAILED
        """
        key, config = self._provider_config(provider)
        if not code:
            raise AuthError(AuthErrorKind.EXCHANGE_FAILED)

        async with self._client() as client:
            access_token = await self._exchange_code(client, config, code)
            data = await self._fetch_userinfo(client, config, access_token)

        return _NORMALIZERS[key](data)
