# This project was developed with assistance from AI tools.
"""
Domain enums for identities and the audit trail.

Shared domain types used by both SQLAlchemy models (db package)
and Pydantic schemas (api package).
"""

import enum


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    COORDINATOR = "COORDINATOR"
    HR = "HR"
    FACILITATOR = "FACILITATOR"

    @classmethod
    def lowest_privilege(cls) -> "UserRole":
        """Role assigned when nothing grants more (SSO default, self-registration)."""
        return cls.FACILITATOR


class AuditEventType(str, enum.Enum):
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    AUTH_FAILURE = "AUTH_FAILURE"
    SSO_LOGIN = "SSO_LOGIN"
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    EXPORT = "EXPORT"
    IMPORT = "IMPORT"
    AUTHORIZATION_DENIED = "AUTHORIZATION_DENIED"

    @classmethod
    def auth_events(cls) -> frozenset["AuditEventType"]:
        return frozenset({cls.LOGIN, cls.LOGOUT, cls.AUTH_FAILURE, cls.SSO_LOGIN})

    @classmethod
    def mutation_events(cls) -> frozenset["AuditEventType"]:
        return frozenset({cls.CREATE, cls.UPDATE, cls.DELETE})

    @classmethod
    def bulk_events(cls) -> frozenset["AuditEventType"]:
        return frozenset({cls.EXPORT, cls.IMPORT})


class AuditOutcome(str, enum.Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    DENIED = "DENIED"
