# This project was developed with assistance from AI tools.
"""FastAPI dependencies for the process-wide components built in ``create_app``.

Everything here reads from ``request.app.state``; tests swap components via
``app.dependency_overrides`` or by building the app with their own settings.
"""

from typing import Annotated

from fastapi import Depends, Request

from ..services.audit import AuditService
from ..services.tokens import TokenService
from .config import Settings


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_audit_service(request: Request) -> AuditService:
    return request.app.state.audit_service


AppSettings = Annotated[Settings, Depends(get_app_settings)]
Tokens = Annotated[TokenService, Depends(get_token_service)]
Audit = Annotated[AuditService, Depends(get_audit_service)]
