"""
GDSC API - JWT Token Management

Issues and validates the signed tokens used by the auth flows:

- access:        {user_id, role, exp}, signed with the access secret
- refresh:       {user_id, role, iat, exp}, signed with the refresh secret
- registration:  {oauth_data, iat, exp, nbf}, bridges an OAuth login with
                 no local account to the complete-registration call
- verification:  {user_id, email, exp}, embedded in verification emails

Every token also carries a "typ" marker and a random "jti"; the jti keeps
two refresh tokens minted for the same user in the same second distinct.

Security:
- Nothing here is persisted; refresh tokens are stored by the caller
- Every validation failure surfaces as the same INVALID_TOKEN error
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID
import secrets

from jose import jwt
from jose.exceptions import JOSEError
from pydantic import BaseModel, Field, ValidationError

from gdsc_api.config import Settings
from gdsc_api.auth.errors import AuthError, AuthErrorKind, TokenIssueError
from gdsc_api.auth.schemas import OAuthProfile


ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"
REGISTRATION_TOKEN = "registration"
VERIFICATION_TOKEN = "verification"


class TokenClaims(BaseModel):
    """
    Decoded payload of an access or refresh token.

    Attributes:
        user_id: Subject user ID
        role: Role at issue time
        typ: Token type marker
        jti: Unique token ID
        exp: Expiration time
        iat: Issued-at time (refresh tokens)
    """
    user_id: str = Field(..., description="User ID")
    role: str = Field(..., description="User role")
    typ: str = Field(..., description="Token type")
    jti: str = Field(..., description="Token ID")
    exp: datetime = Field(..., description="Expiration time")
    iat: Optional[datetime] = Field(default=None, description="Issued at time")


class RegistrationClaims(BaseModel):
    """Decoded payload of a temporary registration token."""
    oauth_data: OAuthProfile
    typ: str
    exp: datetime
    iat: datetime
    nbf: datetime


class VerificationClaims(BaseModel):
    """Decoded payload of an email verification token."""
    user_id: str
    email: str
    typ: str
    exp: datetime


@dataclass
class IssuedToken:
    """A freshly signed token and its validity window (naive UTC)."""
    token: str
    expires_at: datetime
    issued_at: Optional[datetime] = None


class TokenService:
    """
    Signs and validates tokens with the configured secrets.

    The temporary secret signs registration and verification tokens; it
    defaults to the access secret. The "typ" claim keeps a token minted
    for one purpose from validating as another even when secrets coincide.
    """

    def __init__(self, settings: Settings):
        self.access_secret = settings.JWT_ACCESS_SECRET
        self.refresh_secret = settings.JWT_REFRESH_SECRET
        self.temp_secret = settings.temp_token_secret
        self.algorithm = settings.JWT_ALGORITHM
        self.access_ttl = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        self.refresh_ttl = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
        self.temp_ttl = timedelta(minutes=settings.TEMP_TOKEN_EXPIRE_MINUTES)
        self.verification_ttl = timedelta(hours=settings.VERIFICATION_TOKEN_EXPIRE_HOURS)

    def _sign(self, payload: dict, secret: str) -> str:
        payload["jti"] = secrets.token_hex(16)
        try:
            return jwt.encode(payload, secret, algorithm=self.algorithm)
        except JOSEError as e:
            raise TokenIssueError(str(e)) from e

    def issue_access(
        self,
        user_id: UUID,
        role: str,
        expires_delta: Optional[timedelta] = None,
    ) -> IssuedToken:
        """
        Create a short-lived access token.

        Args:
            user_id: User's unique identifier
            role: Role claim
            expires_delta: Override for the default 15 minute lifetime

        Returns:
            IssuedToken with the encoded JWT and its expiry

        Raises:
            TokenIssueError: If signing fails
        """
        expire = datetime.utcnow() + (expires_delta or self.access_ttl)
        payload = {
            "user_id": str(user_id),
            "role": role,
            "typ": ACCESS_TOKEN,
            "exp": expire,
        }
        return IssuedToken(token=self._sign(payload, self.access_secret), expires_at=expire)

    def issue_refresh(
        self,
        user_id: UUID,
        role: str,
        expires_delta: Optional[timedelta] = None,
    ) -> IssuedToken:
        """
        Create a long-lived refresh token.

        The caller must persist it through the session store; a refresh
        token with no stored row is rejected at refresh time.
        """
        now = datetime.utcnow().replace(microsecond=0)
        expire = now + (expires_delta or self.refresh_ttl)
        payload = {
            "user_id": str(user_id),
            "role": role,
            "typ": REFRESH_TOKEN,
            "iat": now,
            "exp": expire,
        }
        return IssuedToken(
            token=self._sign(payload, self.refresh_secret),
            expires_at=expire,
            issued_at=now,
        )

    def issue_temporary(self, profile: OAuthProfile) -> IssuedToken:
        """Create a registration token carrying an unpersisted OAuth profile."""
        now = datetime.utcnow()
        expire = now + self.temp_ttl
        payload = {
            "oauth_data": profile.model_dump(),
            "typ": REGISTRATION_TOKEN,
            "iat": now,
            "nbf": now,
            "exp": expire,
        }
        return IssuedToken(token=self._sign(payload, self.temp_secret), expires_at=expire, issued_at=now)

    def issue_verification(self, user_id: UUID, email: str) -> IssuedToken:
        """Create an email verification token."""
        expire = datetime.utcnow() + self.verification_ttl
        payload = {
            "user_id": str(user_id),
            "email": email,
            "typ": VERIFICATION_TOKEN,
            "exp": expire,
        }
        return IssuedToken(token=self._sign(payload, self.temp_secret), expires_at=expire)

    def validate(self, token: str, secret: str, expected_type: str = ACCESS_TOKEN) -> dict:
        """
        Verify signature, expiry and type of a token.

        Args:
            token: Encoded JWT string
            secret: Secret the token must be signed with
            expected_type: Required "typ" claim

        Returns:
            Raw claims dictionary

        Raises:
            AuthError(INVALID_TOKEN): On any failure, without detail
        """
        if not token:
            raise AuthError(AuthErrorKind.INVALID_TOKEN)
        try:
            claims = jwt.decode(token, secret, algorithms=[self.algorithm])
        except JOSEError:
            raise AuthError(AuthErrorKind.INVALID_TOKEN)
        if claims.get("typ") != expected_type:
            raise AuthError(AuthErrorKind.INVALID_TOKEN)
        return claims

    def _parse(self, model, claims: dict):
        try:
            return model(**claims)
        except (ValidationError, TypeError):
            raise AuthError(AuthErrorKind.INVALID_TOKEN)

    def validate_access(self, token: str) -> TokenClaims:
        claims = self.validate(token, self.access_secret, ACCESS_TOKEN)
        return self._parse(TokenClaims, claims)

    def validate_refresh(self, token: str) -> TokenClaims:
        claims = self.validate(token, self.refresh_secret, REFRESH_TOKEN)
        return self._parse(TokenClaims, claims)

    def validate_temporary(self, token: str) -> RegistrationClaims:
        claims = self.validate(token, self.temp_secret, REGISTRATION_TOKEN)
        return self._parse(RegistrationClaims, claims)

    def validate_verification(self, token: str) -> VerificationClaims:
        claims = self.validate(token, self.temp_secret, VERIFICATION_TOKEN)
        return self._parse(VerificationClaims, claims)
