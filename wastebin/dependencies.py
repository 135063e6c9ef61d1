"""
Wastebin: FastAPI Dependencies
================================

What:  Accessors for the objects the app factory keeps on `app.state`, plus
       the administrator password check.
How:   Handlers declare `Depends(get_store)` and friends; tests can swap any of
       them with `app.dependency_overrides`.
"""

import logging
import secrets
from typing import Optional

from fastapi import Form, Request
from fastapi.templating import Jinja2Templates

from wastebin.config import Settings
from wastebin.exceptions import ForbiddenError
from wastebin.middleware.request_id import request_id_var
from wastebin.services.migrations import SchemaMigrator
from wastebin.services.paste_service import PasteService
from wastebin.services.paste_store import PasteStore

logger = logging.getLogger(__name__)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> PasteStore:
    return request.app.state.store


def get_migrator(request: Request) -> SchemaMigrator:
    return request.app.state.migrator


def get_paste_service(request: Request) -> PasteService:
    return request.app.state.paste_service


def get_templates(request: Request) -> Jinja2Templates:
    return request.app.state.templates


def require_admin(request: Request, password: Optional[str] = Form(None)) -> None:
    """
    Gate an administrative action on the `password` form field.

    Raises:
        ForbiddenError: the field is missing or does not match admin_password
    """
    expected = get_settings(request).admin_password or ""
    if password is None or not secrets.compare_digest(password.encode(), expected.encode()):
        logger.warning(
            "[%s] Rejected admin request to %s", request_id_var.get(""), request.url.path
        )
        raise ForbiddenError()
