# This project was developed with assistance from AI tools.
"""Audit trail schemas: the write-side entry and the query responses."""

from datetime import datetime
from typing import Any

from db.enums import AuditEventType, AuditOutcome
from pydantic import BaseModel, Field


class AuditEntry(BaseModel):
    """One audit record before persistence. Everything except the event is optional."""

    event_type: AuditEventType
    action: str
    outcome: AuditOutcome

    user_id: str | None = None
    user_email: str | None = None
    user_role: str | None = None

    resource_type: str | None = None
    resource_id: str | None = None
    resource_name: str | None = None

    ip_address: str | None = None
    user_agent: str | None = None
    request_path: str | None = None
    request_method: str | None = None
    status_code: int | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)
    error_message: str | None = None


class AuditLogItem(AuditEntry):
    """Single persisted audit row in a query response."""

    id: int
    timestamp: datetime


class AuditLogResponse(BaseModel):
    count: int
    logs: list[AuditLogItem]


class AuditUserCount(BaseModel):
    user_id: str | None = None
    count: int


class AuditStatsResponse(BaseModel):
    total: int
    by_type: dict[str, int] = Field(default_factory=dict)
    by_outcome: dict[str, int] = Field(default_factory=dict)
    top_users: list[AuditUserCount] = Field(default_factory=list)
