# This project was developed with assistance from AI tools.
"""Admin audit trail query, statistics and export endpoints."""

from datetime import datetime

from db import get_db
from db.enums import AuditEventType, AuditOutcome, UserRole
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.deps import Audit
from ..middleware.auth import require_roles
from ..schemas.audit import AuditLogItem, AuditLogResponse, AuditStatsResponse
from ..services.audit import export_logs, get_recent_logs, get_stats, serialize_log

router = APIRouter(dependencies=[Depends(require_roles(UserRole.ADMIN))])


@router.get("", response_model=AuditLogResponse)
async def list_audit_logs(
    event_type: AuditEventType | None = Query(default=None, alias="eventType"),
    user_id: str | None = Query(default=None, alias="userId"),
    resource_type: str | None = Query(default=None, alias="resourceType"),
    outcome: AuditOutcome | None = None,
    start_date: datetime | None = Query(default=None, alias="startDate"),
    end_date: datetime | None = Query(default=None, alias="endDate"),
    limit: int = Query(default=100, ge=1, le=1000),
    session: AsyncSession = Depends(get_db),
) -> AuditLogResponse:
    """Filtered audit entries, newest first."""
    rows = await get_recent_logs(
        session,
        limit,
        event_type=event_type,
        user_id=user_id,
        resource_type=resource_type,
        outcome=outcome,
        start=start_date,
        end=end_date,
    )
    return AuditLogResponse(count=len(rows), logs=[AuditLogItem(**serialize_log(r)) for r in rows])


@router.get("/stats", response_model=AuditStatsResponse)
async def audit_stats(
    start_date: datetime | None = Query(default=None, alias="startDate"),
    end_date: datetime | None = Query(default=None, alias="endDate"),
    session: AsyncSession = Depends(get_db),
) -> AuditStatsResponse:
    return AuditStatsResponse(**await get_stats(session, start_date, end_date))


@router.get("/export")
async def audit_export(
    request: Request,
    audit: Audit,
    fmt: str = Query(default="json", pattern="^(json|csv)$", description="Export format"),
    event_type: AuditEventType | None = Query(default=None, alias="eventType"),
    start_date: datetime | None = Query(default=None, alias="startDate"),
    end_date: datetime | None = Query(default=None, alias="endDate"),
    limit: int = Query(default=10_000, ge=1, le=50_000, description="Max entries"),
    session: AsyncSession = Depends(get_db),
) -> Response:
    """Export the audit trail as CSV or JSON. The export itself is audited."""
    content, media_type, count = await export_logs(
        session,
        fmt,
        limit,
        event_type=event_type,
        start=start_date,
        end=end_date,
    )
    await audit.log_bulk_operation(request, AuditEventType.EXPORT, "audit_log", count)

    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="audit_export.{fmt}"'},
    )
