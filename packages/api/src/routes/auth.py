# This project was developed with assistance from AI tools.
"""Local authentication endpoints: register, login, refresh, me, logout."""

from db import get_db
from db.enums import AuditEventType, AuditOutcome, UserRole
from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import is_auth_bypass_active
from ..core.config import Settings
from ..core.deps import AppSettings, Audit, Tokens
from ..core.errors import ForbiddenError, UnauthorizedError, ValidationError
from ..middleware.auth import CurrentUser, OptionalUser
from ..middleware.csrf import validate_csrf
from ..schemas.auth import (
    AuthResponse,
    AuthTokens,
    ChangePasswordRequest,
    LoginRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    UserResponse,
)
from ..services.users import authenticate, change_password, get_user, register_user

router = APIRouter()


def set_auth_cookies(response: Response, tokens: AuthTokens, settings: Settings) -> None:
    common = {"httponly": True, "secure": settings.is_production, "samesite": "lax", "path": "/"}
    response.set_cookie(
        settings.AUTH_COOKIE_NAME,
        tokens.access_token,
        max_age=settings.ACCESS_TOKEN_TTL_SECONDS,
        **common,
    )
    response.set_cookie(
        settings.REFRESH_COOKIE_NAME,
        tokens.refresh_token,
        max_age=settings.REFRESH_TOKEN_TTL_SECONDS,
        **common,
    )


def clear_auth_cookies(response: Response, settings: Settings) -> None:
    for name in (settings.AUTH_COOKIE_NAME, settings.REFRESH_COOKIE_NAME):
        response.delete_cookie(name, path="/", secure=settings.is_production, httponly=True, samesite="lax")


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(validate_csrf)],
)
async def register(
    body: RegisterRequest,
    request: Request,
    response: Response,
    caller: OptionalUser,
    settings: AppSettings,
    tokens: Tokens,
    audit: Audit,
    session: AsyncSession = Depends(get_db),
) -> AuthResponse:
    """Create a local account.

    Anyone may self-register as FACILITATOR; any other role requires an
    authenticated ADMIN. Self-registration also signs the new user in.
    """
    if body.role != UserRole.lowest_privilege() and (caller is None or caller.role != UserRole.ADMIN):
        caller_role = caller.role.value if caller else None
        await audit.log_authorization_denied(request, [UserRole.ADMIN.value], caller_role)
        raise ForbiddenError(
            "Only administrators can assign this role",
            required_roles=[UserRole.ADMIN.value],
            user_role=caller_role,
        )

    user = await register_user(session, email=body.email, password=body.password, name=body.name, role=body.role)
    await audit.log_resource_change(
        request,
        AuditEventType.CREATE,
        "user",
        user.id,
        resource_name=user.email,
        metadata={"role": user.role.value, "createdBy": caller.user_id if caller else "self"},
    )

    issued = tokens.issue(user)
    if caller is None:
        set_auth_cookies(response, issued, settings)
    return AuthResponse(user=UserResponse.model_validate(user), **issued.model_dump())


@router.post("/login", response_model=AuthResponse, dependencies=[Depends(validate_csrf)])
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    settings: AppSettings,
    tokens: Tokens,
    audit: Audit,
    session: AsyncSession = Depends(get_db),
) -> AuthResponse:
    try:
        user = await authenticate(session, email=body.email, password=body.password)
    except UnauthorizedError as exc:
        await audit.log_auth(
            request,
            AuditEventType.AUTH_FAILURE,
            AuditOutcome.FAILURE,
            user_email=body.email,
            error_message=exc.message,
        )
        raise

    await audit.log_auth(
        request,
        AuditEventType.LOGIN,
        AuditOutcome.SUCCESS,
        user_id=user.id,
        user_email=user.email,
        user_role=user.role.value,
    )
    issued = tokens.issue(user)
    set_auth_cookies(response, issued, settings)
    return AuthResponse(user=UserResponse.model_validate(user), **issued.model_dump())


@router.post("/refresh", response_model=AuthResponse, dependencies=[Depends(validate_csrf)])
async def refresh(
    request: Request,
    response: Response,
    settings: AppSettings,
    tokens: Tokens,
    body: RefreshRequest | None = None,
    session: AsyncSession = Depends(get_db),
) -> AuthResponse:
    """Exchange a refresh token (body or cookie) for a new token pair."""
    refresh_token = (body.refresh_token if body else None) or request.cookies.get(settings.REFRESH_COOKIE_NAME)
    if not refresh_token:
        raise ValidationError("Refresh token required")

    issued, user = await tokens.refresh(session, refresh_token)
    set_auth_cookies(response, issued, settings)
    return AuthResponse(user=UserResponse.model_validate(user), **issued.model_dump())


@router.get("/me", response_model=UserResponse)
async def me(user: CurrentUser, settings: AppSettings, session: AsyncSession = Depends(get_db)) -> UserResponse:
    """Stored profile of the caller. The dev bypass identity has no row and is echoed back."""
    if is_auth_bypass_active(settings):
        return UserResponse(id=user.user_id, email=user.email, name=user.name, role=user.role)
    return UserResponse.model_validate(await get_user(session, user.user_id))


@router.post("/logout", response_model=MessageResponse, dependencies=[Depends(validate_csrf)])
async def logout(
    request: Request,
    response: Response,
    user: CurrentUser,
    settings: AppSettings,
    audit: Audit,
) -> MessageResponse:
    """Clear the auth cookies. Issued tokens stay valid until they expire."""
    await audit.log_auth(
        request,
        AuditEventType.LOGOUT,
        AuditOutcome.SUCCESS,
        user_id=user.user_id,
        user_email=user.email,
        user_role=user.role.value,
    )
    clear_auth_cookies(response, settings)
    return MessageResponse(message="Logged out successfully")


@router.post("/change-password", response_model=MessageResponse, dependencies=[Depends(validate_csrf)])
async def update_password(
    body: ChangePasswordRequest,
    request: Request,
    user: CurrentUser,
    audit: Audit,
    session: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await change_password(
        session,
        user.user_id,
        current_password=body.current_password,
        new_password=body.new_password,
    )
    await audit.log_resource_change(
        request,
        AuditEventType.UPDATE,
        "user",
        user.user_id,
        resource_name=user.email,
        metadata={"fields": ["password"]},
    )
    return MessageResponse(message="Password updated")
