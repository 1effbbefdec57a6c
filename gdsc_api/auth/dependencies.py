"""
GDSC API - Security Dependencies

FastAPI dependencies for authentication and authorization.

Usage:
    @router.get("/protected")
    async def protected_route(user: AuthenticatedUser = Depends(get_current_user)):
        ...

    @router.get("/admin-only")
    @require_role(Role.ADMIN)
    async def admin_route(user: AuthenticatedUser = Depends(get_current_user)):
        ...

Security:
- Only the access token is checked here; it is stateless, so a logout
  does not revoke access tokens already handed out
- A request without a valid token is rejected before the handler runs
"""

from functools import wraps
from typing import Optional
from uuid import UUID

from fastapi import HTTPException, status, Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel
from sqlmodel import Session as DBSession

from gdsc_api.auth.errors import AuthError, AuthErrorKind
from gdsc_api.auth.models import Role
from gdsc_api.auth.service import AuthService, ClientContext


# HTTP Bearer scheme for JWT extraction
security = HTTPBearer(auto_error=False)


class AuthenticatedUser(BaseModel):
    """
    The principal of an authenticated request.

    Available in route handlers via Depends(get_current_user).
    """
    user_id: UUID
    role: Role


def get_db(request: Request) -> DBSession:
    """Open a database session from app state. The caller closes it."""
    return request.app.state.db_session_factory()


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_client_ip(request: Request) -> str:
    """Extract client IP from request."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def get_user_agent(request: Request) -> str:
    """Extract user agent from request."""
    return request.headers.get("User-Agent", "unknown")[:512]


def get_client_context(request: Request) -> ClientContext:
    return ClientContext(ip_address=get_client_ip(request), user_agent=get_user_agent(request))


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AuthenticatedUser:
    """
    Validate the bearer access token and return the principal.

    The user id and role are also stored on request.state for handlers
    and middleware that read them from there.

    Raises:
        HTTPException 401: Missing Authorization header
        AuthError(INVALID_TOKEN): Bad signature, expired, or malformed claims
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    claims = get_auth_service(request).tokens.validate_access(credentials.credentials)

    try:
        user = AuthenticatedUser(user_id=UUID(claims.user_id), role=Role(claims.role))
    except ValueError:
        raise AuthError(AuthErrorKind.INVALID_TOKEN)

    request.state.user_id = user.user_id
    request.state.role = user.role
    return user


def require_role(role: Role):
    """
    Decorator requiring a specific role.

    Usage:
        @require_role(Role.ADMIN)
        async def admin_only(user: AuthenticatedUser = Depends(get_current_user)):
            ...
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            user: Optional[AuthenticatedUser] = kwargs.get("user")

            if user is None:
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail="Authentication required",
                )

            if user.role != role:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=f"Requires role: {role.value}",
                )

            return await func(*args, **kwargs)
        return wrapper
    return decorator
