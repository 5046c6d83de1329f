# This project was developed with assistance from AI tools.
"""SAML 2.0 SSO endpoints (HTTP-Redirect login, HTTP-POST callback).

All endpoints except logout answer 501 while SAML_ENABLED is false. Callback
and logout are exempt from CSRF: the IdP posts the callback cross-site.
"""

import logging

from db import get_db
from db.enums import AuditEventType, AuditOutcome
from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import RedirectResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings
from ..core.deps import AppSettings, Audit, Tokens, get_app_settings
from ..core.errors import AppError, NotImplementedFeatureError
from ..middleware.auth import OptionalUser
from ..services.federation import on_assertion
from ..services.saml import build_login_url, generate_metadata, parse_saml_response
from .auth import clear_auth_cookies, set_auth_cookies

logger = logging.getLogger(__name__)

router = APIRouter()

_POST_LOGIN_PATH = "/admin/programs"


async def require_saml(settings: Settings = Depends(get_app_settings)) -> None:
    if not settings.SAML_ENABLED:
        raise NotImplementedFeatureError("SAML SSO is not enabled on this server")


def _frontend(settings: Settings, path: str = "") -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}{path}"


@router.get("/login", dependencies=[Depends(require_saml)])
async def saml_login(
    settings: AppSettings,
    relay_state: str | None = Query(default=None, alias="RelayState"),
) -> RedirectResponse:
    """Redirect the browser to the IdP."""
    return RedirectResponse(build_login_url(settings, relay_state), status_code=302)


@router.post("/callback", dependencies=[Depends(require_saml)])
async def saml_callback(
    request: Request,
    settings: AppSettings,
    tokens: Tokens,
    audit: Audit,
    saml_response: str = Form(alias="SAMLResponse"),
    session: AsyncSession = Depends(get_db),
) -> RedirectResponse:
    """Consume the IdP assertion, provision the account and set auth cookies."""
    try:
        claims = parse_saml_response(saml_response, settings)
        user = await on_assertion(session, claims, provider="saml", sync_role=settings.SSO_SYNC_ROLE_ON_LOGIN)
    except AppError as exc:
        logger.warning("SAML callback rejected: %s", exc.message)
        await audit.log_auth(
            request,
            AuditEventType.AUTH_FAILURE,
            AuditOutcome.FAILURE,
            error_message=f"SAML: {exc.message}",
        )
        return RedirectResponse(_frontend(settings, "/login?error=saml_failed"), status_code=303)

    await audit.log_auth(
        request,
        AuditEventType.SSO_LOGIN,
        AuditOutcome.SUCCESS,
        user_id=user.id,
        user_email=user.email,
        user_role=user.role.value,
    )
    redirect = RedirectResponse(_frontend(settings, _POST_LOGIN_PATH), status_code=303)
    set_auth_cookies(redirect, tokens.issue(user), settings)
    return redirect


@router.get("/metadata", dependencies=[Depends(require_saml)])
async def saml_metadata(settings: AppSettings) -> Response:
    return Response(content=generate_metadata(settings), media_type="text/xml")


@router.post("/logout")
async def saml_logout(request: Request, settings: AppSettings, audit: Audit, user: OptionalUser) -> RedirectResponse:
    if user is not None:
        await audit.log_auth(
            request,
            AuditEventType.LOGOUT,
            AuditOutcome.SUCCESS,
            user_id=user.user_id,
            user_email=user.email,
            user_role=user.role.value,
        )
    redirect = RedirectResponse(_frontend(settings), status_code=303)
    clear_auth_cookies(redirect, settings)
    return redirect
