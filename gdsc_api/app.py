"""
GDSC API - FastAPI Application Entrypoint

This module initializes the FastAPI application with:
- CORS and security middleware
- Authentication and account routes
- Database lifecycle management
- Uniform error bodies: {"error": message}, or {"errors": [...]} for
  request validation failures

Run locally with:
    uvicorn gdsc_api.app:app --reload
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gdsc_api import __version__
from gdsc_api.config import Settings
from gdsc_api.logging_config import configure_logging
from gdsc_api.gateway.middleware import SecurityMiddleware
from gdsc_api.auth.database import get_engine, init_db, get_session_factory
from gdsc_api.auth.errors import AuthError, AuthErrorKind, StorageError, error_response
from gdsc_api.auth.routes import router as auth_router, users_router
from gdsc_api.auth.service import AuthService

LOGGER = logging.getLogger(__name__)


def _validation_messages(exc: RequestValidationError) -> list[str]:
    messages = []
    for error in exc.errors():
        # Drop the request part ("body", "query", ...) from the location
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "cookie")]
        field = ".".join(location)
        message = error.get("msg", "Invalid value")
        messages.append(f"{field}: {message}" if field else message)
    return messages


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        LOGGER.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
        status_code, message = error_response(AuthErrorKind.STORAGE_FAILED)
        return JSONResponse(status_code=status_code, content={"error": message})

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"errors": _validation_messages(exc)},
        )


def create_app(
    settings: Optional[Settings] = None,
    engine=None,
    auth_service: Optional[AuthService] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Application settings (read from the environment when omitted)
        engine: SQLAlchemy engine (built from settings.DATABASE_URL when omitted)
        auth_service: Preassembled AuthService (built from settings when omitted)
    """
    settings = settings or Settings()
    configure_logging(settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.

        Startup:
            - Refuse to start without signing secrets
            - Initialize SQLModel database (users, refresh tokens)
            - Assemble the auth service

        Shutdown:
            - Dispose of the engine it created
        """
        missing = settings.missing_secrets()
        if missing:
            raise RuntimeError(f"Missing required settings: {', '.join(missing)}")

        db_engine = engine if engine is not None else get_engine(settings.DATABASE_URL)
        init_db(db_engine)

        app.state.settings = settings
        app.state.db_engine = db_engine
        app.state.db_session_factory = get_session_factory(db_engine)
        app.state.auth_service = auth_service or AuthService(settings)

        LOGGER.info("GDSC API %s started", __version__)

        yield

        if engine is None:
            db_engine.dispose()

    app = FastAPI(
        title="GDSC API",
        description="Authentication and account service for the GDSC student organization",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "PUT", "PATCH"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    )

    app.add_middleware(SecurityMiddleware)

    register_exception_handlers(app)

    app.include_router(auth_router)
    app.include_router(users_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint for local dev tooling."""
        return {"status": "healthy", "version": __version__}

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "name": "GDSC API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    return app


app = create_app()
