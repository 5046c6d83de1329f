# This project was developed with assistance from AI tools.
"""Pure auth utility functions with no FastAPI or HTTP dependencies.

Used by the middleware layer and the federation adapter.
"""

from collections.abc import Callable, Iterable

from db.enums import UserRole

from .config import Settings

RolePredicate = Callable[[str], bool]


def _contains(keyword: str) -> RolePredicate:
    def _match(group: str) -> bool:
        return keyword in group

    return _match


# Evaluated top to bottom against lower-cased group names; first hit wins.
ROLE_RULES: tuple[tuple[RolePredicate, UserRole], ...] = (
    (_contains("admin"), UserRole.ADMIN),
    (_contains("coordinator"), UserRole.COORDINATOR),
    (_contains("hr"), UserRole.HR),
)


def map_role_from_groups(groups: Iterable[str] | None) -> UserRole:
    """Map IdP group claims to a role using ``ROLE_RULES``."""
    lowered = [str(g).lower() for g in groups or ()]
    for predicate, role in ROLE_RULES:
        if any(predicate(group) for group in lowered):
            return role
    return UserRole.lowest_privilege()


def is_auth_bypass_active(settings: Settings) -> bool:
    """True only when every dev-bypass condition holds at once."""
    if not settings.AUTH_BYPASS:
        return False
    if settings.ENVIRONMENT != "development":
        return False
    db_url = settings.DATABASE_URL.lower()
    return not any(marker.lower() in db_url for marker in settings.PRODUCTION_DATABASE_MARKERS)
