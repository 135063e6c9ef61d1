"""
Wastebin: FastAPI Application Factory
=======================================

What:  Builds the FastAPI application and runs it under uvicorn.
How:   `create_app(settings)` validates the settings, creates the engine and
       everything built on it, and keeps them on `app.state`:

           app.state.settings        Settings
           app.state.engine          AsyncEngine (one pooled connection)
           app.state.store           PasteStore
           app.state.migrator        SchemaMigrator
           app.state.paste_service   PasteService
           app.state.templates       Jinja2Templates

       Handlers reach these through wastebin.dependencies, never through
       module globals.

Middleware chain (outermost first):
    RequestID → access log → GZip → routes

Exit codes of `main()`:
    1  no usable database path       2  no admin password
    3  bad config file               4  invalid setting value
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional, Sequence

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from wastebin import __version__
from wastebin.config import Settings, load_settings
from wastebin.database import create_engine, dispose_engine
from wastebin.exceptions import (
    AlreadyPersistedError,
    ConfigurationError,
    CorruptRowError,
    ForbiddenError,
    MigrationError,
    NotFoundError,
    StorageError,
    ValidationError,
    WastebinError,
)
from wastebin.middleware.logging import RequestLoggingMiddleware
from wastebin.middleware.request_id import RequestIDMiddleware, request_id_var
from wastebin.routes import admin, health, pastes
from wastebin.services.migrations import SchemaMigrator
from wastebin.services.paste_service import PasteService
from wastebin.services.paste_store import PasteStore
from wastebin.templating import create_templates

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger once, before the app is built."""
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Access lines come from wastebin.access instead
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    if level != "DEBUG":
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
        logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("multipart").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings: Settings = app.state.settings
    logger.info("Wastebin %s starting", __version__)
    logger.info("Database: %s", settings.database_file)
    if not await app.state.store.has_table():
        logger.warning("Table 'pastes' does not exist yet; visit /install to create it")

    yield

    logger.info("Wastebin shutting down")
    await dispose_engine(app.state.engine)
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error(status_code: int, error: str, message: str, details: Optional[dict] = None) -> JSONResponse:
    content = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map the WastebinError hierarchy onto HTTP responses.

        ValidationError                 → 422
        NotFoundError                   → 404
        ForbiddenError                  → 403
        MigrationError                  → 500, step and recovery in details
        StorageError                    → 500, engine details only in the log
        AlreadyPersistedError           → 500
        CorruptRowError                 → 500
        WastebinError / Exception       → 500
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error(422, "validation_error", exc.message, exc.context)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error(404, "not_found", exc.message)

    @app.exception_handler(ForbiddenError)
    async def handle_forbidden(request: Request, exc: ForbiddenError):
        return _error(403, "forbidden", exc.message)

    @app.exception_handler(MigrationError)
    async def handle_migration_error(request: Request, exc: MigrationError):
        logger.error("[%s] %s", request_id_var.get(""), exc.message)
        return _error(500, "migration_failed", exc.message, exc.context)

    @app.exception_handler(StorageError)
    async def handle_storage_error(request: Request, exc: StorageError):
        logger.error(
            "[%s] Storage error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context
        )
        return _error(500, "server_error", exc.message)

    @app.exception_handler(AlreadyPersistedError)
    async def handle_already_persisted(request: Request, exc: AlreadyPersistedError):
        logger.error("[%s] %s", request_id_var.get(""), exc.message)
        return _error(500, "server_error", "An internal error occurred. Please try again later.")

    @app.exception_handler(CorruptRowError)
    async def handle_corrupt_row(request: Request, exc: CorruptRowError):
        logger.error("[%s] %s", request_id_var.get(""), exc.message)
        return _error(500, "server_error", "The stored paste could not be read.")

    @app.exception_handler(WastebinError)
    async def handle_wastebin_error(request: Request, exc: WastebinError):
        logger.error("[%s] %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return _error(500, "server_error", exc.message)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("[%s] Unexpected error: %s", request_id_var.get(""), str(exc), exc_info=True)
        return _error(500, "internal_server_error", "An unexpected error occurred.")


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Assemble the application.

    Args:
        settings: Loaded settings; read from the environment and default
                  config file when None

    Raises:
        ConfigurationError: the settings cannot run a server
    """
    if settings is None:
        settings = load_settings([])
    settings.validate_required()

    app = FastAPI(
        title="Wastebin",
        description="A small pastebin: submit text, share its link, browse recent pastes.",
        version=__version__,
        lifespan=lifespan,
    )

    engine = create_engine(settings)
    store = PasteStore(engine, timeout=settings.store_timeout)
    app.state.settings = settings
    app.state.engine = engine
    app.state.store = store
    app.state.migrator = SchemaMigrator(engine, timeout=settings.store_timeout)
    app.state.paste_service = PasteService(settings)
    app.state.templates = create_templates(settings)

    # Last added runs first
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(admin.router)
    app.include_router(pastes.router)

    return app


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Command-line entry point: `wastebin [options]` or `python -m wastebin`."""
    try:
        settings = load_settings(argv)
        setup_logging(settings.log_level)
        app = create_app(settings)
    except ConfigurationError as e:
        setup_logging()
        logger.error("Configuration error: %s", e.message)
        sys.exit(e.exit_code)

    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
