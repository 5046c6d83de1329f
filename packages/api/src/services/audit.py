# This project was developed with assistance from AI tools.
"""Audit event service.

Writes append-only audit trail entries. Each write runs in its own session,
independent of the caller's transaction, so a rolled-back business operation
still leaves its audit record. A failed audit write is logged and absorbed;
it never reaches the HTTP response.

The wrapper methods are fixed projections into ``AuditEntry``; they add no
behaviour of their own beyond reading request context.
"""

import csv
import io
import json
import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from db import AuditLog, SessionLocal
from db.enums import AuditEventType, AuditOutcome
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.requests import Request

from ..schemas.audit import AuditEntry
from ..schemas.auth import UserContext

logger = logging.getLogger(__name__)

_EXPORT_COLUMNS = (
    "id",
    "timestamp",
    "event_type",
    "action",
    "outcome",
    "user_id",
    "user_email",
    "user_role",
    "resource_type",
    "resource_id",
    "resource_name",
    "ip_address",
    "user_agent",
    "request_path",
    "request_method",
    "status_code",
    "metadata",
    "error_message",
)


def get_client_ip(request: Request) -> str:
    """First hop of X-Forwarded-For, then X-Real-IP, then the peer address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def _request_context(request: Request) -> dict[str, Any]:
    return {
        "ip_address": get_client_ip(request),
        "user_agent": request.headers.get("user-agent"),
        "request_path": request.url.path,
        "request_method": request.method,
    }


def _actor(request: Request) -> dict[str, Any]:
    user: UserContext | None = getattr(request.state, "user", None)
    if user is None:
        return {}
    return {"user_id": user.user_id, "user_email": user.email, "user_role": user.role.value}


class AuditService:
    """Persists audit entries through its own session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = SessionLocal):
        self._session_factory = session_factory

    async def record(self, entry: AuditEntry) -> None:
        """Persist ``entry``; never raises."""
        try:
            async with self._session_factory() as session:
                session.add(
                    AuditLog(
                        event_type=entry.event_type,
                        action=entry.action,
                        outcome=entry.outcome,
                        user_id=entry.user_id,
                        user_email=entry.user_email,
                        user_role=entry.user_role,
                        resource_type=entry.resource_type,
                        resource_id=entry.resource_id,
                        resource_name=entry.resource_name,
                        ip_address=entry.ip_address,
                        user_agent=entry.user_agent,
                        request_path=entry.request_path,
                        request_method=entry.request_method,
                        status_code=entry.status_code,
                        event_metadata=entry.metadata,
                        error_message=entry.error_message,
                    )
                )
                await session.commit()
        except Exception:
            logger.exception(
                "Failed to write audit log: type=%s action=%s outcome=%s user=%s",
                entry.event_type.value,
                entry.action,
                entry.outcome.value,
                entry.user_id,
            )
            return

        logger.info(
            "Audit event type=%s action=%s outcome=%s user=%s resource=%s",
            entry.event_type.value,
            entry.action,
            entry.outcome.value,
            entry.user_id,
            entry.resource_type,
        )

    async def log_auth(
        self,
        request: Request,
        event_type: AuditEventType,
        outcome: AuditOutcome,
        *,
        user_id: str | None = None,
        user_email: str | None = None,
        user_role: str | None = None,
        error_message: str | None = None,
    ) -> None:
        """LOGIN, LOGOUT, AUTH_FAILURE or SSO_LOGIN."""
        if event_type not in AuditEventType.auth_events():
            raise ValueError(f"{event_type} is not an authentication event")
        await self.record(
            AuditEntry(
                event_type=event_type,
                action=event_type.value,
                outcome=outcome,
                user_id=user_id,
                user_email=user_email,
                user_role=user_role,
                error_message=error_message,
                **_request_context(request),
            )
        )

    async def log_authorization_denied(
        self,
        request: Request,
        required_roles: list[str],
        user_role: str | None = None,
    ) -> None:
        actor = _actor(request)
        role = actor.get("user_role") or user_role
        await self.record(
            AuditEntry(
                event_type=AuditEventType.AUTHORIZATION_DENIED,
                action=f"{request.method}_{request.url.path}",
                outcome=AuditOutcome.DENIED,
                user_id=actor.get("user_id"),
                user_email=actor.get("user_email"),
                user_role=role,
                status_code=403,
                metadata={"requiredRoles": list(required_roles), "userRole": role},
                **_request_context(request),
            )
        )

    async def log_resource_change(
        self,
        request: Request,
        event_type: AuditEventType,
        resource_type: str,
        resource_id: str,
        *,
        resource_name: str | None = None,
        outcome: AuditOutcome = AuditOutcome.SUCCESS,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        """CREATE, UPDATE or DELETE; ``metadata`` typically holds before/after values."""
        if event_type not in AuditEventType.mutation_events():
            raise ValueError(f"{event_type} is not a mutation event")
        await self.record(
            AuditEntry(
                event_type=event_type,
                action=f"{event_type.value}_{resource_type.upper()}",
                outcome=outcome,
                resource_type=resource_type,
                resource_id=resource_id,
                resource_name=resource_name,
                metadata=dict(metadata or {}),
                **_actor(request),
                **_request_context(request),
            )
        )

    async def log_bulk_operation(
        self,
        request: Request,
        event_type: AuditEventType,
        resource_type: str,
        count: int,
        *,
        outcome: AuditOutcome = AuditOutcome.SUCCESS,
        error_message: str | None = None,
    ) -> None:
        """IMPORT or EXPORT of ``count`` items."""
        if event_type not in AuditEventType.bulk_events():
            raise ValueError(f"{event_type} is not a bulk event")
        await self.record(
            AuditEntry(
                event_type=event_type,
                action=f"{event_type.value}_{resource_type.upper()}",
                outcome=outcome,
                resource_type=resource_type,
                metadata={"count": count},
                error_message=error_message,
                **_actor(request),
                **_request_context(request),
            )
        )


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def _filtered(
    stmt,
    *,
    event_type: AuditEventType | None = None,
    user_id: str | None = None,
    resource_type: str | None = None,
    outcome: AuditOutcome | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
):
    if event_type is not None:
        stmt = stmt.where(AuditLog.event_type == event_type)
    if user_id is not None:
        stmt = stmt.where(AuditLog.user_id == user_id)
    if resource_type is not None:
        stmt = stmt.where(AuditLog.resource_type == resource_type)
    if outcome is not None:
        stmt = stmt.where(AuditLog.outcome == outcome)
    if start is not None:
        stmt = stmt.where(AuditLog.timestamp >= start)
    if end is not None:
        stmt = stmt.where(AuditLog.timestamp <= end)
    return stmt


async def get_recent_logs(
    session: AsyncSession,
    limit: int = 100,
    *,
    event_type: AuditEventType | None = None,
    user_id: str | None = None,
    resource_type: str | None = None,
    outcome: AuditOutcome | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[AuditLog]:
    """Return matching audit rows, newest first."""
    stmt = _filtered(
        select(AuditLog),
        event_type=event_type,
        user_id=user_id,
        resource_type=resource_type,
        outcome=outcome,
        start=start,
        end=end,
    )
    stmt = stmt.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_stats(
    session: AsyncSession,
    start: datetime | None = None,
    end: datetime | None = None,
) -> dict:
    """Total count, counts by event type and outcome, and the ten most active users."""
    total = (await session.execute(_filtered(select(func.count(AuditLog.id)), start=start, end=end))).scalar() or 0

    by_type_stmt = _filtered(
        select(AuditLog.event_type, func.count(AuditLog.id)).group_by(AuditLog.event_type),
        start=start,
        end=end,
    )
    by_type = {_enum_value(k): n for k, n in (await session.execute(by_type_stmt)).all()}

    by_outcome_stmt = _filtered(
        select(AuditLog.outcome, func.count(AuditLog.id)).group_by(AuditLog.outcome),
        start=start,
        end=end,
    )
    by_outcome = {_enum_value(k): n for k, n in (await session.execute(by_outcome_stmt)).all()}

    count_col = func.count(AuditLog.id).label("count")
    top_stmt = _filtered(
        select(AuditLog.user_id, count_col)
        .where(AuditLog.user_id.is_not(None))
        .group_by(AuditLog.user_id)
        .order_by(count_col.desc())
        .limit(10),
        start=start,
        end=end,
    )
    top_users = [{"user_id": uid, "count": n} for uid, n in (await session.execute(top_stmt)).all()]

    return {"total": total, "by_type": by_type, "by_outcome": by_outcome, "top_users": top_users}


def _enum_value(value) -> str:
    return getattr(value, "value", value)


def serialize_log(row: AuditLog) -> dict[str, Any]:
    return {
        "id": row.id,
        "timestamp": row.timestamp.isoformat() if row.timestamp else None,
        "event_type": _enum_value(row.event_type),
        "action": row.action,
        "outcome": _enum_value(row.outcome),
        "user_id": row.user_id,
        "user_email": row.user_email,
        "user_role": row.user_role,
        "resource_type": row.resource_type,
        "resource_id": row.resource_id,
        "resource_name": row.resource_name,
        "ip_address": row.ip_address,
        "user_agent": row.user_agent,
        "request_path": row.request_path,
        "request_method": row.request_method,
        "status_code": row.status_code,
        "metadata": row.event_metadata or {},
        "error_message": row.error_message,
    }


async def export_logs(
    session: AsyncSession,
    fmt: str = "json",
    limit: int = 10_000,
    **filters: Any,
) -> tuple[str, str, int]:
    """Render matching rows as CSV or JSON.

    Returns:
        (content, media_type, row_count)
    """
    if fmt not in ("json", "csv"):
        raise ValueError(f"Unsupported export format: {fmt}")
    rows = [serialize_log(r) for r in await get_recent_logs(session, limit, **filters)]

    if fmt == "json":
        return json.dumps(rows, default=str), "application/json", len(rows)

    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=_EXPORT_COLUMNS)
    writer.writeheader()
    for row in rows:
        writer.writerow({**row, "metadata": json.dumps(row["metadata"], default=str)})
    return buffer.getvalue(), "text/csv", len(rows)
