"""Cookie helpers for the refresh token and the OAuth state value."""

from datetime import datetime, timezone

from fastapi import Response

from gdsc_api.config import Settings


REFRESH_COOKIE_NAME = "refresh_token"
OAUTH_STATE_COOKIE_NAME = "oauth_state"
OAUTH_STATE_MAX_AGE = 600


def set_refresh_cookie(response: Response, token: str, expires_at: datetime, settings: Settings) -> None:
    # expires_at is naive UTC; Starlette needs an aware value
    response.set_cookie(
        key=REFRESH_COOKIE_NAME,
        value=token,
        expires=expires_at.replace(tzinfo=timezone.utc),
        path="/",
        httponly=True,
        secure=settings.REFRESH_COOKIE_SECURE,
        samesite="strict",
    )


def clear_refresh_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=REFRESH_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.REFRESH_COOKIE_SECURE,
        samesite="strict",
    )


def set_oauth_state_cookie(response: Response, state: str, settings: Settings) -> None:
    """
    Remember the state handed to the provider.

    SameSite=Lax, because the provider redirect back to the callback is a
    cross-site top-level navigation and a Strict cookie would not be sent.
    """
    response.set_cookie(
        key=OAUTH_STATE_COOKIE_NAME,
        value=state,
        max_age=OAUTH_STATE_MAX_AGE,
        path="/",
        httponly=True,
        secure=settings.REFRESH_COOKIE_SECURE,
        samesite="lax",
    )


def clear_oauth_state_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=OAUTH_STATE_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.REFRESH_COOKIE_SECURE,
        samesite="lax",
    )
