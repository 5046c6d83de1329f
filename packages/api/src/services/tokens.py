# This project was developed with assistance from AI tools.
"""JWT access/refresh token service.

Both token kinds carry the same claims (``sub``, ``email``, ``role``) and are
signed with one shared secret; they differ in lifetime and in the
``token_use`` claim. Verification is stateless -- no store lookup -- except
for ``refresh``, which re-reads the account so role changes take effect.
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Literal, Protocol

import jwt
from db import User
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings
from ..core.errors import NotFoundError, UnauthorizedError
from ..schemas.auth import AuthTokens, TokenPayload

logger = logging.getLogger(__name__)

TokenUse = Literal["access", "refresh"]

_INVALID_TOKEN = "Invalid or expired token"


class TokenSubject(Protocol):
    id: str
    email: str
    role: object


class TokenService:
    """Issues and verifies the signed credentials handed to clients."""

    def __init__(self, settings: Settings):
        self._secret = settings.JWT_SECRET
        self._algorithm = settings.JWT_ALGORITHM
        self._ttl: dict[str, timedelta] = {
            "access": timedelta(seconds=settings.ACCESS_TOKEN_TTL_SECONDS),
            "refresh": timedelta(seconds=settings.REFRESH_TOKEN_TTL_SECONDS),
        }

    def _sign(self, subject: TokenSubject, token_use: TokenUse, now: datetime) -> str:
        role = getattr(subject.role, "value", subject.role)
        claims = {
            "sub": str(subject.id),
            "email": subject.email,
            "role": role,
            "token_use": token_use,
            "iat": int(now.timestamp()),
            "exp": int((now + self._ttl[token_use]).timestamp()),
        }
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    def issue(self, subject: TokenSubject) -> AuthTokens:
        """Sign an access and a refresh token for ``subject``."""
        now = datetime.now(UTC)
        return AuthTokens(
            access_token=self._sign(subject, "access", now),
            refresh_token=self._sign(subject, "refresh", now),
        )

    def verify(self, token: str, expected_use: TokenUse | None = None) -> TokenPayload:
        """Decode ``token``; every failure mode raises the same 401."""
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["exp", "sub"]},
            )
            payload = TokenPayload(**claims)
        except (jwt.InvalidTokenError, PydanticValidationError, TypeError) as exc:
            logger.debug("Token rejected: %s", exc)
            raise UnauthorizedError(_INVALID_TOKEN) from exc

        if expected_use is not None and payload.token_use != expected_use:
            logger.debug("Token rejected: expected %s token, got %s", expected_use, payload.token_use)
            raise UnauthorizedError(_INVALID_TOKEN)
        return payload

    async def refresh(self, session: AsyncSession, refresh_token: str) -> tuple[AuthTokens, User]:
        """Re-issue both tokens with the account's current role.

        Raises:
            UnauthorizedError: refresh token invalid, expired or not a refresh token.
            NotFoundError: the account no longer exists.
        """
        payload = self.verify(refresh_token, expected_use="refresh")
        user = await session.get(User, payload.sub)
        if user is None:
            raise NotFoundError("User not found")

        if user.role != payload.role:
            logger.info(
                "Role for user %s changed since issuance: %s -> %s",
                user.id,
                payload.role.value,
                getattr(user.role, "value", user.role),
            )
        return self.issue(user), user
