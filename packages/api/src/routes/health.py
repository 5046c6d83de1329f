# This project was developed with assistance from AI tools.
"""Liveness and readiness checks."""

import logging

from db import DatabaseService, get_db_service
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from .. import __version__
from ..schemas.health import HealthItem

logger = logging.getLogger(__name__)

router = APIRouter()


async def _database_item(db: DatabaseService) -> HealthItem:
    try:
        await db.ping()
    except Exception as exc:
        logger.warning("Database health check failed: %s", exc)
        return HealthItem(name="Database", status="unhealthy", message=f"PostgreSQL unreachable: {type(exc).__name__}")
    return HealthItem(name="Database", status="healthy", message="PostgreSQL connection OK")


@router.get("/", response_model=list[HealthItem])
async def health(db: DatabaseService = Depends(get_db_service)) -> list[HealthItem]:
    """API and database status. Always 200; inspect each item's status."""
    api = HealthItem(name="API", status="healthy", message="API is running", version=__version__)
    return [api, await _database_item(db)]


@router.get("/ready", response_model=list[HealthItem])
async def ready(db: DatabaseService = Depends(get_db_service)):
    """503 until the database answers."""
    item = await _database_item(db)
    if item.status != "healthy":
        return JSONResponse(status_code=503, content=[item.model_dump()])
    return [item]
