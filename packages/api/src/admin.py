# This project was developed with assistance from AI tools.
"""
SQLAdmin configuration for database administration UI

Access the admin panel at: http://localhost:4000/admin

Sign in with the email and password of a local ADMIN account. While the dev
auth bypass is active the panel is open.
"""

import logging

from db import AuditLog, SessionLocal, User
from db.database import engine
from db.enums import UserRole
from fastapi import FastAPI
from sqladmin import Admin, ModelView
from sqladmin.authentication import AuthenticationBackend
from starlette.requests import Request
from starlette.responses import Response

from .core.auth import is_auth_bypass_active
from .core.config import Settings
from .core.errors import UnauthorizedError
from .services.users import authenticate

logger = logging.getLogger(__name__)


class AdminAuth(AuthenticationBackend):
    """Session-based auth gate for SQLAdmin, backed by the users table."""

    def __init__(self, settings: Settings):
        super().__init__(secret_key=settings.SESSION_SECRET)
        self._settings = settings

    async def login(self, request: Request) -> bool:
        form = await request.form()
        email = str(form.get("username") or "").lower()
        password = str(form.get("password") or "")
        try:
            async with SessionLocal() as session:
                user = await authenticate(session, email=email, password=password)
        except UnauthorizedError:
            logger.warning("Admin console login failed for %s", email)
            return False
        if user.role != UserRole.ADMIN:
            logger.warning("Admin console login refused for non-admin %s", user.id)
            return False
        request.session.update({"admin_user_id": user.id})
        return True

    async def logout(self, request: Request) -> bool:
        request.session.clear()
        return True

    async def authenticate(self, request: Request) -> Response | bool:
        if is_auth_bypass_active(self._settings):
            return True
        return bool(request.session.get("admin_user_id"))


class UserAdmin(ModelView, model=User):
    column_list = [
        User.id,
        User.email,
        User.name,
        User.role,
        User.sso_provider,
        User.last_login_at,
        User.created_at,
    ]
    column_searchable_list = [User.email, User.name]
    column_sortable_list = [User.email, User.role, User.last_login_at, User.created_at]
    column_default_sort = [(User.created_at, True)]
    column_details_exclude_list = [User.password_hash]
    form_excluded_columns = [User.password_hash, User.created_at, User.updated_at]
    can_delete = False
    name = "User"
    name_plural = "Users"
    icon = "fa-solid fa-user"


class AuditLogAdmin(ModelView, model=AuditLog):
    column_list = [
        AuditLog.id,
        AuditLog.timestamp,
        AuditLog.event_type,
        AuditLog.action,
        AuditLog.outcome,
        AuditLog.user_email,
        AuditLog.resource_type,
    ]
    column_searchable_list = [AuditLog.action, AuditLog.user_email]
    column_sortable_list = [AuditLog.id, AuditLog.timestamp, AuditLog.event_type, AuditLog.outcome]
    column_default_sort = [(AuditLog.timestamp, True)]
    can_create = False
    can_edit = False
    can_delete = False
    name = "Audit Log"
    name_plural = "Audit Logs"
    icon = "fa-solid fa-shield-alt"


def setup_admin(app: FastAPI, settings: Settings) -> Admin:
    """Set up SQLAdmin and mount it to the FastAPI app."""
    admin = Admin(
        app,
        engine,
        title="Training Management Admin",
        authentication_backend=AdminAuth(settings),
    )
    admin.add_view(UserAdmin)
    admin.add_view(AuditLogAdmin)
    return admin
