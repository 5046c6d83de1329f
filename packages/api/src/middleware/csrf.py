# This project was developed with assistance from AI tools.
"""Double-submit cookie CSRF protection.

The http-only cookie carries ``value.signature`` (HMAC-SHA256 of the value
under CSRF_SECRET); a second, script-readable cookie carries the bare value
so the frontend can echo it in the ``x-csrf-token`` header. A state-changing
request passes only if the cookie signature verifies and the header equals
the cookie value.
"""

import hashlib
import hmac
import logging
import secrets

from fastapi import Depends, Request, Response

from ..core.config import Settings
from ..core.deps import get_app_settings
from ..core.errors import UnauthorizedError

logger = logging.getLogger(__name__)

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


def value_cookie_name(settings: Settings) -> str:
    return f"{settings.CSRF_COOKIE_NAME}-value"


def generate_token() -> str:
    return secrets.token_hex(32)


def sign_token(value: str, secret: str) -> str:
    return hmac.new(secret.encode(), value.encode(), hashlib.sha256).hexdigest()


def verify_signature(value: str, signature: str, secret: str) -> bool:
    return hmac.compare_digest(signature.encode(), sign_token(value, secret).encode())


def issue_csrf_cookies(response: Response, settings: Settings) -> str:
    """Set both CSRF cookies with one expiry and return the bare value."""
    value = generate_token()
    signed = f"{value}.{sign_token(value, settings.CSRF_SECRET)}"
    common = {
        "max_age": settings.CSRF_TTL_SECONDS,
        "secure": settings.is_production,
        "samesite": "strict",
        "path": "/",
    }
    response.set_cookie(settings.CSRF_COOKIE_NAME, signed, httponly=True, **common)
    response.set_cookie(value_cookie_name(settings), value, httponly=False, **common)
    return value


def ensure_csrf_token(request: Request, response: Response, settings: Settings) -> str:
    """Return the current value, issuing a fresh pair when none verifies.

    A cookie signed under a rotated secret, or otherwise malformed, is replaced.
    """
    existing = request.cookies.get(settings.CSRF_COOKIE_NAME)
    if existing:
        value, _, signature = existing.partition(".")
        if value and signature and verify_signature(value, signature, settings.CSRF_SECRET):
            return value
        logger.info("Replacing unverifiable CSRF cookie")
    return issue_csrf_cookies(response, settings)


async def validate_csrf(request: Request, settings: Settings = Depends(get_app_settings)) -> None:
    """Reject state-changing requests without a valid double-submitted token.

    Raises:
        UnauthorizedError: cookie or header missing, malformed cookie, bad
            signature, or header/cookie mismatch.
    """
    if request.method in SAFE_METHODS or settings.ENVIRONMENT == "test":
        return

    cookie = request.cookies.get(settings.CSRF_COOKIE_NAME)
    if not cookie:
        raise UnauthorizedError("CSRF token not found in cookie")

    value, _, signature = cookie.partition(".")
    if not value or not signature:
        raise UnauthorizedError("Invalid CSRF token format")

    if not verify_signature(value, signature, settings.CSRF_SECRET):
        logger.warning("CSRF signature mismatch on %s %s", request.method, request.url.path)
        raise UnauthorizedError("Invalid CSRF token signature")

    header = request.headers.get(settings.CSRF_HEADER_NAME)
    if not header:
        raise UnauthorizedError("CSRF token not found in header")

    if not hmac.compare_digest(header.encode(), value.encode()):
        logger.warning("CSRF header mismatch on %s %s", request.method, request.url.path)
        raise UnauthorizedError("CSRF token mismatch")
