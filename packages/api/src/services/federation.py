# This project was developed with assistance from AI tools.
"""Federated sign-in: claim extraction and just-in-time provisioning.

``on_assertion`` is the only code path that creates accounts without a
registration request. Each call performs exactly one create-or-update and
commits it as a single transaction.
"""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from db import User
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import map_role_from_groups
from ..core.errors import ConflictError, ValidationError
from .users import get_user_by_email

logger = logging.getLogger(__name__)

_WS_CLAIMS = "http://schemas.xmlsoap.org/ws/2005/05/identity/claims"
_MS_CLAIMS = "http://schemas.microsoft.com/ws/2008/06/identity/claims"

# Checked in order; first non-empty value wins.
EMAIL_KEYS = ("email", "mail", "nameID", f"{_WS_CLAIMS}/emailaddress")
GIVEN_NAME_KEYS = ("firstName", "givenName", f"{_WS_CLAIMS}/givenname")
FAMILY_NAME_KEYS = ("lastName", "surname", f"{_WS_CLAIMS}/surname")
DISPLAY_NAME_KEYS = ("name", "displayName", f"{_WS_CLAIMS}/name")
GROUP_KEYS = ("groups", "memberOf", f"{_MS_CLAIMS}/groups")
SUBJECT_KEYS = ("nameID", "sub")


@dataclass(frozen=True)
class FederatedProfile:
    email: str
    name: str
    sso_id: str
    given_name: str = ""
    family_name: str = ""
    groups: tuple[str, ...] = field(default_factory=tuple)


def _first(raw: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        value = raw.get(key)
        if isinstance(value, (list, tuple)):
            value = value[0] if value else None
        if value not in (None, ""):
            return value
    return None


def _groups(raw: Mapping[str, Any]) -> tuple[str, ...]:
    for key in GROUP_KEYS:
        value = raw.get(key)
        if not value:
            continue
        if isinstance(value, str):
            return (value,)
        return tuple(str(v) for v in value)
    return ()


def extract_profile(raw: Mapping[str, Any]) -> FederatedProfile:
    """Normalize an IdP assertion into a ``FederatedProfile``.

    Raises:
        ValidationError: no email-bearing claim is present.
    """
    email = _first(raw, EMAIL_KEYS)
    if not email:
        raise ValidationError("Email not provided by identity provider")
    email = str(email).strip().lower()

    given = str(_first(raw, GIVEN_NAME_KEYS) or "")
    family = str(_first(raw, FAMILY_NAME_KEYS) or "")
    name = _first(raw, DISPLAY_NAME_KEYS) or f"{given} {family}".strip() or email

    return FederatedProfile(
        email=email,
        name=str(name),
        sso_id=str(_first(raw, SUBJECT_KEYS) or email),
        given_name=given,
        family_name=family,
        groups=_groups(raw),
    )


async def on_assertion(
    session: AsyncSession,
    raw: Mapping[str, Any],
    *,
    provider: str = "saml",
    sync_role: bool = True,
) -> User:
    """Resolve a verified assertion to a local account, creating it if needed.

    Args:
        raw: Claims from the verified assertion, keyed by attribute name.
        provider: Value stored in ``sso_provider``.
        sync_role: Overwrite an existing account's role with the mapped role.

    Raises:
        ValidationError: the assertion carries no email.
        ConflictError: a concurrent login created the same email first.
    """
    profile = extract_profile(raw)
    role = map_role_from_groups(profile.groups)
    now = datetime.now(UTC)

    user = await get_user_by_email(session, profile.email)
    created = user is None
    if created:
        user = User(
            email=profile.email,
            name=profile.name,
            role=role,
            sso_provider=provider,
            sso_id=profile.sso_id,
            last_login_at=now,
        )
        session.add(user)
    else:
        user.sso_provider = provider
        user.sso_id = profile.sso_id
        user.last_login_at = now
        if sync_role and user.role != role:
            logger.info(
                "SSO role for %s changed: %s -> %s",
                user.id,
                getattr(user.role, "value", user.role),
                role.value,
            )
            user.role = role

    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ConflictError("User already exists") from exc

    if created:
        await session.refresh(user)
        logger.info("Provisioned SSO user %s via %s (%s)", user.id, provider, role.value)
    return user


__all__ = [
    "FederatedProfile",
    "extract_profile",
    "map_role_from_groups",
    "on_assertion",
]
