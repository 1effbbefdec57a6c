"""
GDSC API - Authentication Package

Authentication and session lifecycle with:
- Password login and GitHub/Google federation
- Short-lived access tokens, persisted refresh tokens
- bcrypt password hashing
- One closed error taxonomy for every failure
"""

from gdsc_api.auth.models import User, Session, Role
from gdsc_api.auth.errors import AuthError, AuthErrorKind
from gdsc_api.auth.service import AuthService
from gdsc_api.auth.dependencies import get_current_user, require_role

__all__ = [
    "User",
    "Session",
    "Role",
    "AuthError",
    "AuthErrorKind",
    "AuthService",
    "get_current_user",
    "require_role",
]
