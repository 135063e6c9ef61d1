"""
Wastebin: Administrative Route Handlers
=========================================

    GET  /install              create the pastes table in its current version
    POST /upgrade/{version}    apply one schema migration (admin password)

/install is meant to be run once against an empty database. Calling it again
fails with a 500 because the table already exists; it never drops data.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from wastebin.dependencies import get_migrator, get_store, require_admin
from wastebin.exceptions import NotFoundError
from wastebin.models.paste import PasteRecord
from wastebin.schemas.paste import ErrorResponse, MigrationResult
from wastebin.services.migrations import SchemaMigrator
from wastebin.services.paste_store import PasteStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Admin"])


@router.get(
    "/install",
    response_class=PlainTextResponse,
    summary="Create the database table",
    responses={500: {"description": "Table exists or could not be created", "model": ErrorResponse}},
)
async def install(store: PasteStore = Depends(get_store)) -> PlainTextResponse:
    await store.create_schema()
    return PlainTextResponse(f"Created table {PasteRecord.__tablename__}\n")


@router.post(
    "/upgrade/{version}",
    response_model=MigrationResult,
    summary="Apply a schema migration",
    dependencies=[Depends(require_admin)],
    responses={
        403: {"description": "Wrong or missing admin password", "model": ErrorResponse},
        404: {"description": "No migration with this version", "model": ErrorResponse},
        500: {"description": "A migration step failed", "model": ErrorResponse},
    },
)
async def upgrade(
    version: str,
    migrator: SchemaMigrator = Depends(get_migrator),
) -> MigrationResult:
    """
    Bring the pastes table to `version`.

    Already-applied versions return `applied: false` without touching the
    table. A failed step returns 500 with the step name and what to fix by
    hand in `details`. A version that is not a number is just another
    unknown migration.
    """
    try:
        number = int(version)
    except ValueError:
        raise NotFoundError(resource="migration", resource_id=version)
    return await migrator.apply(number)
