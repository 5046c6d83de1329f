# This project was developed with assistance from AI tools.
"""
Training Management System -- identity and audit models

User accounts (local and SSO-provisioned) and the append-only audit trail.
"""

import uuid

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Integer,
    String,
    Text,
    func,
)

from .database import Base
from .enums import AuditEventType, AuditOutcome, UserRole


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """Identity record. SSO-only accounts have no password hash."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "password_hash IS NOT NULL OR sso_provider IS NOT NULL",
            name="ck_users_credential_present",
        ),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    role = Column(
        Enum(UserRole, name="user_role", native_enum=False),
        nullable=False,
        default=UserRole.FACILITATOR,
    )
    password_hash = Column(String(255), nullable=True)
    sso_provider = Column(String(50), nullable=True)
    sso_id = Column(String(255), nullable=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"


class AuditLog(Base):
    """Append-only audit trail. INSERT + SELECT only -- no UPDATE or DELETE."""

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    event_type = Column(
        Enum(AuditEventType, name="audit_event_type", native_enum=False),
        nullable=False,
        index=True,
    )
    action = Column(String(255), nullable=False)
    outcome = Column(
        Enum(AuditOutcome, name="audit_outcome", native_enum=False),
        nullable=False,
        index=True,
    )

    user_id = Column(String(36), nullable=True, index=True)
    user_email = Column(String(255), nullable=True)
    user_role = Column(String(50), nullable=True)

    resource_type = Column(String(100), nullable=True, index=True)
    resource_id = Column(String(255), nullable=True)
    resource_name = Column(String(255), nullable=True)

    ip_address = Column(String(100), nullable=True)
    user_agent = Column(Text, nullable=True)
    request_path = Column(String(500), nullable=True)
    request_method = Column(String(10), nullable=True)
    status_code = Column(Integer, nullable=True)

    # "metadata" is reserved on declarative classes
    event_metadata = Column("metadata", JSON, nullable=True)
    error_message = Column(Text, nullable=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, type='{self.event_type}', outcome='{self.outcome}')>"

