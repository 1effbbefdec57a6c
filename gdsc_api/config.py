"""
GDSC API - Configuration Management

Centralized configuration using Pydantic Settings.
All secrets and OAuth credentials are loaded from environment variables.

The Settings object is built once at process start (see gdsc_api.app)
and handed to every component that needs it.

Security: No secrets are hardcoded. Use .env for local development.
"""

from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        DATABASE_URL: SQLAlchemy URL (PostgreSQL in production, SQLite locally)
        JWT_ACCESS_SECRET: Signing key for access tokens
        JWT_REFRESH_SECRET: Signing key for refresh tokens
        JWT_TEMP_SECRET: Signing key for registration/verification tokens
            (falls back to JWT_ACCESS_SECRET when empty)
        REFRESH_ROLE_FROM_DB: Re-read the user's role on refresh instead of
            trusting the refresh token's claims
        OAUTH_VERIFY_STATE: Compare the OAuth callback state against the
            value stored at initiation (presence-only check when False)
        OAUTH_REDIRECT_BASE_URL: Public base URL the providers redirect back to
        ALLOWED_ORIGINS: CORS allowed origins for the frontend
    """

    # Database (PostgreSQL for production, SQLite for development)
    DATABASE_URL: str = "sqlite:///./gdsc.db"

    # Token signing
    JWT_ACCESS_SECRET: str = ""  # Must be set via environment
    JWT_REFRESH_SECRET: str = ""  # Must be set via environment
    JWT_TEMP_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"

    # Token lifetimes
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    TEMP_TOKEN_EXPIRE_MINUTES: int = 15
    VERIFICATION_TOKEN_EXPIRE_HOURS: int = 2

    # Session policy
    REFRESH_COOKIE_SECURE: bool = False  # Enable behind HTTPS
    REFRESH_ROLE_FROM_DB: bool = False

    # OAuth federation
    OAUTH_REDIRECT_BASE_URL: str = "http://localhost:8080"
    OAUTH_VERIFY_STATE: bool = True
    OAUTH_HTTP_TIMEOUT_SECONDS: float = 15.0
    GITHUB_CLIENT_ID: str = ""
    GITHUB_CLIENT_SECRET: str = ""
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""

    # Email verification
    RESEND_API_KEY: str = ""
    EMAIL_FROM: str = "GDSC <no-reply@gdsc-csusm.com>"
    VERIFY_EMAIL_URL: str = "https://gdsc-csusm.com/verify"

    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    @property
    def temp_token_secret(self) -> str:
        """Secret for short-lived registration and verification tokens."""
        return self.JWT_TEMP_SECRET or self.JWT_ACCESS_SECRET

    def missing_secrets(self) -> List[str]:
        """Names of required signing secrets that are not configured."""
        required = ("JWT_ACCESS_SECRET", "JWT_REFRESH_SECRET")
        return [name for name in required if not getattr(self, name)]
