# This project was developed with assistance from AI tools.
"""CSRF token bootstrap endpoint for the frontend."""

from fastapi import APIRouter, Request, Response

from ..core.deps import AppSettings
from ..middleware.csrf import ensure_csrf_token
from ..schemas.auth import CsrfTokenResponse

router = APIRouter()


@router.get("/csrf-token", response_model=CsrfTokenResponse)
async def get_csrf_token(request: Request, response: Response, settings: AppSettings) -> CsrfTokenResponse:
    """Return the value to echo in ``x-csrf-token``; cookies are set only if absent."""
    return CsrfTokenResponse(csrf_token=ensure_csrf_token(request, response, settings))
