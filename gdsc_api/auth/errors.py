"""
GDSC API - Authentication Errors

Every failure an auth flow can produce is one member of AuthErrorKind.
Flows raise AuthError(kind); the HTTP layer renders it through
ERROR_RESPONSES, which must cover every kind.

Messages are deliberately generic: the client never learns why a
credential or token was rejected, and storage error text never leaves
the server.
"""

from enum import Enum
from typing import Dict, Tuple

from fastapi import status


class AuthErrorKind(str, Enum):
    """Closed set of authentication and session failures."""
    # Client input
    MISSING_STATE = "missing_state"
    STATE_MISMATCH = "state_mismatch"
    MISSING_REFRESH_TOKEN = "missing_refresh_token"
    UNSUPPORTED_PROVIDER = "unsupported_provider"
    PROVIDER_NOT_INITIALIZED = "provider_not_initialized"

    # Authentication
    INVALID_CREDENTIALS = "invalid_credentials"
    INVALID_TOKEN = "invalid_token"
    SESSION_NOT_FOUND = "session_not_found"
    SESSION_EXPIRED = "session_expired"
    TOKEN_CLAIMS_MISMATCH = "token_claims_mismatch"
    EXCHANGE_FAILED = "exchange_failed"
    PROFILE_FETCH_FAILED = "profile_fetch_failed"

    # Authorization / lookup
    FORBIDDEN = "forbidden"
    USER_NOT_FOUND = "user_not_found"

    # State conflict
    USER_EXISTS = "user_exists"

    # Server side
    ACCESS_TOKEN_ISSUE_FAILED = "access_token_issue_failed"
    REFRESH_TOKEN_ISSUE_FAILED = "refresh_token_issue_failed"
    TEMP_TOKEN_ISSUE_FAILED = "temp_token_issue_failed"
    SESSION_CREATE_FAILED = "session_create_failed"
    REGISTRATION_FAILED = "registration_failed"
    STORAGE_FAILED = "storage_failed"


ERROR_RESPONSES: Dict[AuthErrorKind, Tuple[int, str]] = {
    AuthErrorKind.MISSING_STATE: (status.HTTP_400_BAD_REQUEST, "Missing state parameter"),
    AuthErrorKind.STATE_MISMATCH: (status.HTTP_400_BAD_REQUEST, "Invalid state parameter"),
    AuthErrorKind.MISSING_REFRESH_TOKEN: (status.HTTP_400_BAD_REQUEST, "Refresh token is required"),
    AuthErrorKind.UNSUPPORTED_PROVIDER: (status.HTTP_400_BAD_REQUEST, "Unsupported provider"),
    AuthErrorKind.PROVIDER_NOT_INITIALIZED: (status.HTTP_400_BAD_REQUEST, "Provider is not configured"),
    AuthErrorKind.INVALID_CREDENTIALS: (status.HTTP_401_UNAUTHORIZED, "Invalid credentials"),
    AuthErrorKind.INVALID_TOKEN: (status.HTTP_401_UNAUTHORIZED, "Invalid or expired token"),
    AuthErrorKind.SESSION_NOT_FOUND: (status.HTTP_401_UNAUTHORIZED, "Session not found"),
    AuthErrorKind.SESSION_EXPIRED: (status.HTTP_401_UNAUTHORIZED, "Refresh token expired"),
    AuthErrorKind.TOKEN_CLAIMS_MISMATCH: (status.HTTP_401_UNAUTHORIZED, "Invalid token claims"),
    AuthErrorKind.EXCHANGE_FAILED: (status.HTTP_401_UNAUTHORIZED, "Failed to authenticate"),
    AuthErrorKind.PROFILE_FETCH_FAILED: (status.HTTP_401_UNAUTHORIZED, "Failed to authenticate"),
    AuthErrorKind.FORBIDDEN: (status.HTTP_403_FORBIDDEN, "Not authorized to modify this user"),
    AuthErrorKind.USER_NOT_FOUND: (status.HTTP_404_NOT_FOUND, "User not found"),
    AuthErrorKind.USER_EXISTS: (status.HTTP_409_CONFLICT, "Email already registered"),
    AuthErrorKind.ACCESS_TOKEN_ISSUE_FAILED: (status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to generate access token"),
    AuthErrorKind.REFRESH_TOKEN_ISSUE_FAILED: (status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to generate refresh token"),
    AuthErrorKind.TEMP_TOKEN_ISSUE_FAILED: (status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to generate registration token"),
    AuthErrorKind.SESSION_CREATE_FAILED: (status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to create new session"),
    AuthErrorKind.REGISTRATION_FAILED: (status.HTTP_500_INTERNAL_SERVER_ERROR, "Registration failed"),
    AuthErrorKind.STORAGE_FAILED: (status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error"),
}


def error_response(kind: AuthErrorKind) -> Tuple[int, str]:
    """HTTP status and client-facing message for an error kind."""
    return ERROR_RESPONSES[kind]


class AuthError(Exception):
    """Raised by auth flows; carries exactly one AuthErrorKind."""

    def __init__(self, kind: AuthErrorKind):
        self.kind = kind
        super().__init__(kind.value)

    @property
    def status_code(self) -> int:
        return error_response(self.kind)[0]

    @property
    def message(self) -> str:
        return error_response(self.kind)[1]


class StorageError(Exception):
    """Raised by the credential and session stores on persistence failure."""
    pass


class DuplicateRecordError(StorageError):
    """Raised when a uniqueness constraint rejects an insert."""
    pass


class TokenIssueError(Exception):
    """Raised when a token cannot be signed."""
    pass
