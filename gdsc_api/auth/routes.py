"""
GDSC API - Authentication Routes

API endpoints for authentication:
- POST  /auth/register               - Create a credential account
- POST  /auth/login                  - Authenticate and open a session
- PATCH /auth/refresh                - New access token from the refresh cookie
- POST  /auth/logout                 - Close the current session
- POST  /auth/logoutAll              - Close every session of the caller
- GET   /auth/{provider}/login       - Redirect to the provider consent screen
- GET   /auth/{provider}/callback    - Finish an OAuth login
- POST  /auth/complete-registration  - Create the account for a new OAuth identity
- GET   /auth/verify-email           - Confirm an email address
- GET   /auth/me                     - Current user
- GET   /auth/sessions               - Active sessions of the caller

And account management under /users.

Handlers stay thin: the flows live in AuthService and raise AuthError,
which the app renders as {"error": message}.
"""

import logging
import secrets
from typing import Optional, Union
from uuid import UUID

from fastapi import APIRouter, Cookie, Depends, Query, Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse

from gdsc_api.auth.cookies import (
    clear_oauth_state_cookie,
    clear_refresh_cookie,
    set_oauth_state_cookie,
    set_refresh_cookie,
)
from gdsc_api.auth.dependencies import (
    AuthenticatedUser,
    get_auth_service,
    get_client_context,
    get_current_user,
    get_db,
    require_role,
)
from gdsc_api.auth.errors import AuthError, AuthErrorKind, StorageError, error_response
from gdsc_api.auth.models import Role
from gdsc_api.auth.schemas import (
    ActiveSessionsResponse,
    CompleteRegistrationRequest,
    ErrorResponse,
    LoginRequest,
    LoginResponse,
    LogoutAllResponse,
    MessageResponse,
    RefreshResponse,
    RegisterRequest,
    RegistrationRequiredResponse,
    RegistrationUserData,
    SessionInfo,
    UpdateUserRequest,
    UserListResponse,
    UserResponse,
)
from gdsc_api.auth.service import LoginResult, RegistrationRequired


LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])
users_router = APIRouter(prefix="/users", tags=["users"])


def _login_response(request: Request, response: Response, result: LoginResult) -> LoginResponse:
    set_refresh_cookie(
        response,
        result.refresh_token,
        result.refresh_expires_at,
        request.app.state.settings,
    )
    return LoginResponse(
        access_token=result.access_token,
        user=UserResponse.model_validate(result.user),
    )


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
    summary="Create a credential account",
)
async def register(request: Request, body: RegisterRequest):
    """
    Register with email and password.

    The account starts un-onboarded and unverified; a verification email
    is sent. No session is opened.
    """
    db = get_db(request)

    try:
        user = await get_auth_service(request).register(db, body.email, body.password)
        return UserResponse.model_validate(user)
    finally:
        db.close()


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Authenticate user and create session",
)
async def login(request: Request, response: Response, credentials: LoginRequest):
    """
    Authenticate with email and password.

    Returns the access token in the body; the refresh token is set as an
    HttpOnly cookie.

    Raises:
        401: Invalid credentials (same message for unknown email and wrong password)
    """
    db = get_db(request)

    try:
        result = await get_auth_service(request).login(
            db,
            credentials.email,
            credentials.password,
            get_client_context(request),
        )
        return _login_response(request, response, result)
    finally:
        db.close()


@router.patch(
    "/refresh",
    response_model=RefreshResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
    summary="Issue a new access token",
)
async def refresh(request: Request, refresh_token: Optional[str] = Cookie(default=None)):
    """The refresh token is not rotated; the same cookie keeps working until it expires."""
    db = get_db(request)

    try:
        result = await get_auth_service(request).refresh(db, refresh_token)
        return RefreshResponse(access_token=result.access_token)
    finally:
        db.close()


@router.post(
    "/logout",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
    summary="Close the current session",
)
async def logout(
    request: Request,
    response: Response,
    refresh_token: Optional[str] = Cookie(default=None),
):
    """
    Delete the session behind the refresh cookie and clear the cookie.

    Access tokens already issued stay valid until they expire.
    """
    db = get_db(request)

    try:
        await get_auth_service(request).logout(db, refresh_token)
    finally:
        db.close()

    clear_refresh_cookie(response, request.app.state.settings)
    return MessageResponse(message="Logged out successfully")


@router.post(
    "/logoutAll",
    response_model=LogoutAllResponse,
    summary="Close every session of the current user",
)
async def logout_all(
    request: Request,
    response: Response,
    user: AuthenticatedUser = Depends(get_current_user),
):
    db = get_db(request)

    try:
        count = await get_auth_service(request).logout_all(db, user.user_id)
    finally:
        db.close()

    clear_refresh_cookie(response, request.app.state.settings)
    return LogoutAllResponse(sessions_invalidated=count)


@router.get(
    "/verify-email",
    response_model=MessageResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Confirm an email address",
)
async def verify_email(request: Request, token: str = Query(default="")):
    db = get_db(request)

    try:
        await get_auth_service(request).verify_email(db, token)
    finally:
        db.close()

    return MessageResponse(message="Email verified successfully")


@router.post(
    "/complete-registration",
    response_model=LoginResponse,
    responses={401: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Create the account for a new OAuth identity",
)
async def complete_registration(
    request: Request,
    response: Response,
    body: CompleteRegistrationRequest,
):
    """
    Finish an OAuth sign-up.

    The identity comes from the temporary token issued by the callback;
    the body only adds the profile fields the provider does not know.
    """
    db = get_db(request)

    try:
        result = await get_auth_service(request).complete_registration(
            db,
            temp_token=body.temp_token,
            first_name=body.first_name,
            last_name=body.last_name,
            position=body.position,
            branch=body.branch,
            graduation_date=body.graduation_date,
            client=get_client_context(request),
        )
        return _login_response(request, response, result)
    finally:
        db.close()


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get current user information",
)
async def get_me(
    request: Request,
    user: AuthenticatedUser = Depends(get_current_user),
):
    db = get_db(request)

    try:
        db_user = await get_auth_service(request).get_user(db, user.user_id)
        return UserResponse.model_validate(db_user)
    finally:
        db.close()


@router.get(
    "/sessions",
    response_model=ActiveSessionsResponse,
    summary="List active sessions",
)
async def list_sessions(
    request: Request,
    user: AuthenticatedUser = Depends(get_current_user),
    refresh_token: Optional[str] = Cookie(default=None),
):
    """
    List the unexpired sessions of the current user.

    The session matching the caller's refresh cookie is flagged as current.
    """
    db = get_db(request)

    try:
        active_sessions = await get_auth_service(request).list_sessions(db, user.user_id)

        session_list = []
        for s in active_sessions:
            session_list.append(SessionInfo(
                id=s.id,
                issued_at=s.issued_at,
                expires_at=s.expires_at,
                ip_address=s.ip_address,
                user_agent=s.user_agent,
                is_current=(refresh_token is not None and s.token == refresh_token),
            ))

        return ActiveSessionsResponse(
            sessions=session_list,
            total=len(session_list),
        )
    finally:
        db.close()


@router.get(
    "/{provider}/login",
    status_code=status.HTTP_307_TEMPORARY_REDIRECT,
    responses={400: {"model": ErrorResponse}},
    summary="Start an OAuth login",
)
async def oauth_login(request: Request, provider: str):
    """
    Redirect to the provider consent screen.

    A fresh random state is sent to the provider and remembered in a
    short-lived cookie for the callback to compare against.
    """
    state = secrets.token_urlsafe(32)
    url = get_auth_service(request).build_authorization_url(provider, state)

    response = RedirectResponse(url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
    set_oauth_state_cookie(response, state, request.app.state.settings)
    return response


def _callback_failure(kind: AuthErrorKind, settings) -> JSONResponse:
    status_code, message = error_response(kind)
    failed = JSONResponse(status_code=status_code, content={"error": message})
    clear_oauth_state_cookie(failed, settings)
    return failed


@router.get(
    "/{provider}/callback",
    response_model=Union[LoginResponse, RegistrationRequiredResponse],
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
    summary="Finish an OAuth login",
)
async def oauth_callback(
    request: Request,
    response: Response,
    provider: str,
    code: str = Query(default=""),
    state: Optional[str] = Query(default=None),
    oauth_state: Optional[str] = Cookie(default=None),
):
    """
    Exchange the authorization code and sign the user in.

    A known identity gets a session like a password login. An unknown one
    gets registration_required with a temporary token; nothing is stored.

    The state cookie is single use and is cleared on every outcome.
    """
    settings = request.app.state.settings
    db = get_db(request)

    try:
        try:
            result = await get_auth_service(request).oauth_callback(
                db,
                provider,
                code,
                state,
                oauth_state,
                get_client_context(request),
            )
        except AuthError as e:
            return _callback_failure(e.kind, settings)
        except StorageError:
            LOGGER.exception("OAuth callback failed on storage for provider=%s", provider)
            return _callback_failure(AuthErrorKind.STORAGE_FAILED, settings)

        clear_oauth_state_cookie(response, settings)

        if isinstance(result, RegistrationRequired):
            profile = result.profile
            return RegistrationRequiredResponse(
                temp_token=result.temp_token,
                user_data=RegistrationUserData(
                    email=profile.email,
                    name=profile.name,
                    avatar_url=profile.avatar_url,
                    provider=profile.provider,
                ),
            )

        return _login_response(request, response, result)
    finally:
        db.close()


# ============================================================================
# Account management
# ============================================================================

@users_router.get(
    "",
    response_model=UserListResponse,
    responses={403: {"model": ErrorResponse}},
    summary="List users (admin only)",
)
@require_role(Role.ADMIN)
async def list_users(
    request: Request,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user: AuthenticatedUser = Depends(get_current_user),
):
    db = get_db(request)

    try:
        users, total = await get_auth_service(request).list_users(db, page, limit)
        return UserListResponse(
            users=[UserResponse.model_validate(u) for u in users],
            total=total,
            page=page,
            limit=limit,
        )
    finally:
        db.close()


@users_router.get(
    "/{user_id}",
    response_model=UserResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get a user",
)
async def get_user(
    request: Request,
    user_id: UUID,
    user: AuthenticatedUser = Depends(get_current_user),
):
    db = get_db(request)

    try:
        db_user = await get_auth_service(request).get_user(db, user_id)
        return UserResponse.model_validate(db_user)
    finally:
        db.close()


@users_router.patch(
    "/{user_id}",
    response_model=UserResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Update a profile",
)
async def update_user(
    request: Request,
    user_id: UUID,
    body: UpdateUserRequest,
    user: AuthenticatedUser = Depends(get_current_user),
):
    """Only the fields present in the body change. Users may only edit themselves."""
    db = get_db(request)

    try:
        db_user = await get_auth_service(request).update_user(
            db,
            user.user_id,
            user_id,
            body.model_dump(exclude_unset=True),
        )
        return UserResponse.model_validate(db_user)
    finally:
        db.close()


@users_router.delete(
    "/{user_id}",
    response_model=MessageResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Delete an account",
)
async def delete_user(
    request: Request,
    response: Response,
    user_id: UUID,
    user: AuthenticatedUser = Depends(get_current_user),
):
    """Delete the caller's own account together with all of its sessions."""
    db = get_db(request)

    try:
        await get_auth_service(request).delete_user(db, user.user_id, user_id)
    finally:
        db.close()

    clear_refresh_cookie(response, request.app.state.settings)
    return MessageResponse(message="User deleted successfully")
