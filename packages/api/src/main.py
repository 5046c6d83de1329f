# This project was developed with assistance from AI tools.
"""FastAPI application entry point."""

import logging
import uuid
from contextlib import asynccontextmanager

from db import get_db_service
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .admin import setup_admin
from .core.auth import is_auth_bypass_active
from .core.config import Settings, get_settings
from .core.errors import AppError
from .core.logging import configure_logging
from .routes import audit, auth, csrf, health, saml
from .schemas.error import ErrorResponse
from .services.audit import AuditService
from .services.tokens import TokenService

logger = logging.getLogger(__name__)

_HTTP_STATUS_TITLES: dict[int, str] = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    409: "Conflict",
    422: "Unprocessable Entity",
    500: "Internal Server Error",
    501: "Not Implemented",
    503: "Service Unavailable",
}


def _request_id(request: Request) -> str:
    return request.headers.get("x-request-id", str(uuid.uuid4()))


def _build_error(status_code: int, detail: str, request_id: str, **extra) -> ErrorResponse:
    return ErrorResponse(
        type="about:blank",
        title=_HTTP_STATUS_TITLES.get(status_code, "Error"),
        status=status_code,
        detail=detail,
        request_id=request_id,
        **extra,
    )


def _error_response(body: ErrorResponse, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(status_code=body.status, content=body.model_dump(exclude_none=True), headers=headers)


def _install_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        """Convert AppError subclasses to RFC 7807 Problem Details."""
        request_id = _request_id(request)
        detail = exc.message
        if not exc.is_operational:
            logger.error("Non-operational error (request_id=%s): %s", request_id, exc.message, exc_info=exc)
            if settings.is_production:
                detail = "An unexpected error occurred."
        extra = {k: v for k, v in exc.extra.items() if k in ("required_roles", "user_role")}
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return _error_response(_build_error(exc.status_code, detail, request_id, **extra), headers)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Convert HTTPException to RFC 7807 Problem Details."""
        body = _build_error(exc.status_code, str(exc.detail), _request_id(request))
        return _error_response(body, getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Convert Pydantic validation errors to RFC 7807 Problem Details."""
        body = _build_error(422, str(exc.errors()), _request_id(request))
        return _error_response(body)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        """Catch-all for unhandled exceptions -- log and return 500."""
        request_id = _request_id(request)
        logger.exception("Unhandled exception (request_id=%s)", request_id)
        detail = "An unexpected error occurred." if settings.is_production else f"{type(exc).__name__}: {exc}"
        return _error_response(_build_error(500, detail, request_id))


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application around one immutable ``Settings`` value."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        """Application startup/shutdown lifecycle."""
        configure_logging(settings.LOG_LEVEL)
        logger.info("Starting %s (environment=%s)", settings.APP_NAME, settings.ENVIRONMENT)
        if is_auth_bypass_active(settings):
            logger.warning("AUTH_BYPASS active -- all requests authenticate as a synthetic ADMIN")
        elif settings.AUTH_BYPASS:
            logger.warning("AUTH_BYPASS is set but ignored outside local development")
        logger.info("SAML SSO %s", "enabled" if settings.SAML_ENABLED else "disabled")
        yield
        await get_db_service().dispose()

    app = FastAPI(
        title="Training Management System API",
        description="Authentication, session and audit service for the Training Management System",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.token_service = TokenService(settings)
    app.state.audit_service = AuditService()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_HOSTS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-CSRF-Token", "X-Request-ID"],
    )

    _install_exception_handlers(app, settings)

    app.include_router(health.router, prefix="/health", tags=["health"])
    app.include_router(csrf.router, prefix="/api", tags=["csrf"])
    app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
    app.include_router(audit.router, prefix="/api/audit", tags=["audit"])
    app.include_router(saml.router, prefix="/auth/saml", tags=["saml"])

    # Setup SQLAdmin dashboard at /admin
    setup_admin(app, settings)

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint"""
        return {"message": "Welcome to the Training Management System API"}

    return app


app = create_app()
