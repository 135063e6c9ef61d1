"""
Wastebin: Health Check Route
==============================

What:  GET /health for monitors and container probes.
How:   Runs SELECT 1 on the app's engine and reads the schema version.

Status levels:
    healthy:    database reachable and the pastes table is at the latest version
    degraded:   database reachable, but the table is missing or needs /upgrade
    unhealthy:  database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from wastebin import __version__
from wastebin.dependencies import get_migrator
from wastebin.exceptions import StorageError
from wastebin.models.paste import SCHEMA_VERSION
from wastebin.schemas.paste import HealthResponse
from wastebin.services.migrations import SchemaMigrator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
)
async def health_check(migrator: SchemaMigrator = Depends(get_migrator)):
    db_status = "connected"
    schema_version = None
    overall = "healthy"

    try:
        async with migrator.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        schema_version = await migrator.current_version()
    except (SQLAlchemyError, StorageError) as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    if overall == "healthy" and schema_version != SCHEMA_VERSION:
        overall = "degraded"

    health = HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        schema_version=schema_version,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
    if overall == "unhealthy":
        return JSONResponse(status_code=503, content=health.model_dump())
    return health
