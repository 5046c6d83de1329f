# This project was developed with assistance from AI tools.
"""Authentication and authorization schemas."""

import re
from datetime import datetime
from typing import Literal

from db.enums import UserRole
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

_MIN_PASSWORD_LENGTH = 12
_MAX_PASSWORD_LENGTH = 128

_PASSWORD_RULES = (
    (re.compile(r"[A-Z]"), "Password must contain uppercase letter"),
    (re.compile(r"[a-z]"), "Password must contain lowercase letter"),
    (re.compile(r"[0-9]"), "Password must contain number"),
    (re.compile(r"[^A-Za-z0-9]"), "Password must contain special character"),
)


def check_password_strength(value: str) -> str:
    for pattern, message in _PASSWORD_RULES:
        if not pattern.search(value):
            raise ValueError(message)
    return value


class UserContext(BaseModel):
    """Injected by auth middleware into every authenticated request."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    role: UserRole
    email: str
    name: str = ""


class TokenPayload(BaseModel):
    """Decoded JWT claims. Access and refresh tokens share this shape."""

    sub: str
    email: str
    role: UserRole
    token_use: Literal["access", "refresh"]
    iat: int | None = None
    exp: int


class AuthTokens(BaseModel):
    access_token: str
    refresh_token: str


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str
    role: UserRole
    sso_provider: str | None = None
    last_login_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class AuthResponse(BaseModel):
    """Returned by register, login and refresh."""

    user: UserResponse
    access_token: str
    refresh_token: str


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=_MIN_PASSWORD_LENGTH, max_length=_MAX_PASSWORD_LENGTH)
    name: str = Field(min_length=1, max_length=200)
    role: UserRole = UserRole.FACILITATOR

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("password")
    @classmethod
    def _strong_password(cls, value: str) -> str:
        return check_password_strength(value)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value: str) -> str:
        return value.lower()


class RefreshRequest(BaseModel):
    """Body is optional on /refresh; the refresh cookie is the fallback."""

    refresh_token: str | None = Field(default=None, alias="refreshToken")

    model_config = ConfigDict(populate_by_name=True)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=_MIN_PASSWORD_LENGTH, max_length=_MAX_PASSWORD_LENGTH)

    @field_validator("new_password")
    @classmethod
    def _strong_password(cls, value: str) -> str:
        return check_password_strength(value)


class CsrfTokenResponse(BaseModel):
    csrf_token: str = Field(serialization_alias="csrfToken")


class MessageResponse(BaseModel):
    message: str
