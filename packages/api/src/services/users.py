# This project was developed with assistance from AI tools.
"""Local credential store: registration, password login and password change.

SSO-only accounts have no password hash and can never pass ``authenticate``.
"""

import logging
from datetime import UTC, datetime

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError
from db import User
from db.enums import UserRole
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import ConflictError, NotFoundError, UnauthorizedError

logger = logging.getLogger(__name__)

_PASSWORD_HASHER = PasswordHasher()

_INVALID_CREDENTIALS = "Invalid credentials"

# Checked when no stored hash exists; every failed login runs one argon2 verification.
_DUMMY_HASH = _PASSWORD_HASHER.hash("no-account-placeholder")


def hash_password(password: str) -> str:
    return _PASSWORD_HASHER.hash(password)


def verify_password(password_hash: str | None, password: str) -> bool:
    """Constant-time check; a missing or corrupt hash never verifies."""
    if not password_hash:
        return False
    try:
        return _PASSWORD_HASHER.verify(password_hash, password)
    except VerifyMismatchError:
        return False
    except (InvalidHashError, VerificationError):
        logger.warning("Stored password hash could not be verified")
        return False


async def get_user(session: AsyncSession, user_id: str) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


async def register_user(
    session: AsyncSession,
    *,
    email: str,
    password: str,
    name: str,
    role: UserRole = UserRole.FACILITATOR,
) -> User:
    """Create a local account.

    Raises:
        ConflictError: the email is already registered, including when a
            concurrent registration wins the unique-constraint race.
    """
    email = email.lower()
    if await get_user_by_email(session, email) is not None:
        raise ConflictError("User already exists")

    user = User(email=email, name=name, role=role, password_hash=hash_password(password))
    session.add(user)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ConflictError("User already exists") from exc
    await session.refresh(user)

    logger.info("Registered user %s (%s)", user.id, user.role.value)
    return user


async def authenticate(session: AsyncSession, *, email: str, password: str) -> User:
    """Verify a password login and stamp ``last_login_at``.

    Unknown email, SSO-only account and wrong password all raise the same
    ``UnauthorizedError`` so callers cannot probe which accounts exist.
    """
    user = await get_user_by_email(session, email)
    if user is None or not user.password_hash:
        verify_password(_DUMMY_HASH, password)
        raise UnauthorizedError(_INVALID_CREDENTIALS)
    if not verify_password(user.password_hash, password):
        raise UnauthorizedError(_INVALID_CREDENTIALS)

    if _PASSWORD_HASHER.check_needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
    user.last_login_at = datetime.now(UTC)
    await session.commit()
    return user


async def change_password(
    session: AsyncSession,
    user_id: str,
    *,
    current_password: str,
    new_password: str,
) -> User:
    user = await get_user(session, user_id)
    if not verify_password(user.password_hash, current_password):
        raise UnauthorizedError("Current password is incorrect")

    user.password_hash = hash_password(new_password)
    await session.commit()
    logger.info("Password changed for user %s", user.id)
    return user
