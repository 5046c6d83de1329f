# This project was developed with assistance from AI tools.
"""
Request authentication and role authorization dependencies.

Verifies HS256 access tokens issued by ``TokenService``, taken from the
``Authorization: Bearer`` header or, failing that, the auth cookie. The
resolved identity is returned and also attached to ``request.state.user``.

Setting AUTH_BYPASS only takes effect in development against a non-production
database; see ``core.auth.is_auth_bypass_active``.
"""

import logging
from typing import Annotated

from db.enums import UserRole
from fastapi import Depends, Request

from ..core.auth import is_auth_bypass_active
from ..core.config import Settings
from ..core.deps import get_app_settings, get_audit_service, get_token_service
from ..core.errors import ForbiddenError, UnauthorizedError
from ..schemas.auth import UserContext
from ..services.audit import AuditService
from ..services.tokens import TokenService

logger = logging.getLogger(__name__)

_BYPASS_USER = UserContext(
    user_id="dev-user",
    role=UserRole.ADMIN,
    email="dev@tms.local",
    name="Dev User",
)


def _extract_token(request: Request, cookie_name: str) -> str | None:
    """Bearer header first, then the auth cookie."""
    auth = request.headers.get("Authorization")
    if auth and auth.startswith("Bearer "):
        token = auth[7:].strip()
        if token:
            return token
    return request.cookies.get(cookie_name) or None


def _resolve(request: Request, settings: Settings, tokens: TokenService) -> UserContext | None:
    token = _extract_token(request, settings.AUTH_COOKIE_NAME)
    if token is None:
        return None
    payload = tokens.verify(token, expected_use="access")
    return UserContext(user_id=payload.sub, role=payload.role, email=payload.email)


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------


async def get_current_user(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    tokens: TokenService = Depends(get_token_service),
) -> UserContext:
    """Validate the access token and return the caller.

    Raises:
        UnauthorizedError: no token, or the token fails verification.
    """
    if is_auth_bypass_active(settings):
        request.state.user = _BYPASS_USER
        return _BYPASS_USER

    user = _resolve(request, settings, tokens)
    if user is None:
        raise UnauthorizedError("Missing authentication token")
    request.state.user = user
    return user


async def get_optional_user(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    tokens: TokenService = Depends(get_token_service),
) -> UserContext | None:
    """Like ``get_current_user`` but an absent or invalid token yields None."""
    if is_auth_bypass_active(settings):
        request.state.user = _BYPASS_USER
        return _BYPASS_USER

    try:
        user = _resolve(request, settings, tokens)
    except UnauthorizedError:
        return None
    if user is not None:
        request.state.user = user
    return user


# Type aliases for use in route signatures
CurrentUser = Annotated[UserContext, Depends(get_current_user)]
OptionalUser = Annotated[UserContext | None, Depends(get_optional_user)]


def require_roles(*allowed_roles: UserRole):
    """Dependency factory: restrict a route to specific roles.

    A denial is written to the audit trail before the 403 is raised.

    Usage:
        @router.get("/admin-only", dependencies=[Depends(require_roles(UserRole.ADMIN))])
    """
    required = [r.value for r in allowed_roles]

    async def _check(
        request: Request,
        user: CurrentUser,
        audit: AuditService = Depends(get_audit_service),
    ) -> UserContext:
        if user.role in allowed_roles:
            return user

        logger.warning(
            "RBAC denied: user=%s role=%s attempted %s %s requiring %s",
            user.user_id,
            user.role.value,
            request.method,
            request.url.path,
            required,
        )
        await audit.log_authorization_denied(request, required, user.role.value)
        raise ForbiddenError(
            "Insufficient permissions",
            required_roles=required,
            user_role=user.role.value,
        )

    return _check
