"""
Wastebin: Paste Route Handlers
================================

What:  The public HTML surface plus raw-text access and admin deletion.

Route Inventory:
    GET  /                        blank submission form
    POST /new                     submit a paste → 303 to /{id}
    GET  /list?page=N             paged listing, newest first
    GET  /{id}                    rendered paste
    GET  /{id}/raw                paste body as text/plain
    POST /{id}/delete             admin-only delete → 303 to /

Paste identifiers:
    `{paste_id:pasteid}` only matches the canonical 8-4-4-4-12 hex form
    (either case), so any other path falls through to a 404 from the router.
    The convertor upper-cases the value before the handler sees it.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from starlette.convertors import Convertor, register_url_convertor

from wastebin.dependencies import (
    get_paste_service,
    get_store,
    get_templates,
    require_admin,
)
from wastebin.exceptions import PasteTooLargeError
from wastebin.services.paste_service import PasteService, parse_page_number
from wastebin.services.paste_store import PasteStore

logger = logging.getLogger(__name__)


class PasteIdConvertor(Convertor):
    regex = "(?i:[0-9A-F]{8}-[0-9A-F]{4}-[0-9A-F]{4}-[0-9A-F]{4}-[0-9A-F]{12})"

    def convert(self, value: str) -> str:
        return value.upper()

    def to_string(self, value: str) -> str:
        return str(value).upper()


# Must be registered before any route below compiles its path
register_url_convertor("pasteid", PasteIdConvertor())

router = APIRouter(tags=["Pastes"])


@router.get("/", response_class=HTMLResponse, summary="New paste form")
async def new_paste_form(
    request: Request,
    templates: Jinja2Templates = Depends(get_templates),
):
    return templates.TemplateResponse(request, "new-paste.html", {})


@router.post(
    "/new",
    response_class=HTMLResponse,
    status_code=303,
    summary="Submit a new paste",
    responses={
        200: {"description": "Body too long; form shown again with the text preserved"},
        303: {"description": "Created; redirects to the new paste"},
        422: {"description": "Missing field or unknown mode"},
    },
)
async def create_paste(
    request: Request,
    body: Optional[str] = Form(None),
    mode: Optional[str] = Form(None),
    store: PasteStore = Depends(get_store),
    service: PasteService = Depends(get_paste_service),
    templates: Jinja2Templates = Depends(get_templates),
):
    """
    Validate and store a submission.

    An over-long body is not an error response: the form comes back with an
    explanation and the submitted text, and nothing is stored.
    """
    try:
        paste = service.build_paste(body, mode)
    except PasteTooLargeError as e:
        return templates.TemplateResponse(
            request,
            "new-paste.html",
            {
                "paste": e.paste,
                "error": "pasteBodyCount",
                "paste_body_limit": e.limit,
                "paste_body_size": e.size,
            },
        )

    await paste.save(store)
    return RedirectResponse(url=f"/{paste.id}", status_code=303)


@router.get("/list", response_class=HTMLResponse, summary="List pastes")
async def list_pastes(
    request: Request,
    page: Optional[str] = Query(None, description="1-based page number"),
    store: PasteStore = Depends(get_store),
    service: PasteService = Depends(get_paste_service),
    templates: Jinja2Templates = Depends(get_templates),
):
    listing = await service.list_page(store, parse_page_number(page))
    return templates.TemplateResponse(
        request,
        "list.html",
        {
            "pastes": listing.pastes,
            "pages": listing.pages,
            "current_page": listing.current_page,
            "paste_count": listing.paste_count,
        },
    )


@router.get("/{paste_id:pasteid}", response_class=HTMLResponse, summary="Show a paste")
async def show_paste(
    request: Request,
    paste_id: str,
    store: PasteStore = Depends(get_store),
    templates: Jinja2Templates = Depends(get_templates),
):
    paste = await store.load_by_id(paste_id)
    return templates.TemplateResponse(request, "paste.html", {"paste": paste})


@router.get("/{paste_id:pasteid}/raw", response_class=PlainTextResponse, summary="Raw paste body")
async def raw_paste(paste_id: str, store: PasteStore = Depends(get_store)):
    paste = await store.load_by_id(paste_id)
    return PlainTextResponse(paste.body)


@router.post(
    "/{paste_id:pasteid}/delete",
    status_code=303,
    summary="Delete a paste",
    dependencies=[Depends(require_admin)],
    responses={403: {"description": "Wrong or missing admin password"}},
)
async def delete_paste(paste_id: str, store: PasteStore = Depends(get_store)):
    """Idempotent: deleting an identifier with no paste still redirects home."""
    await store.delete_by_id(paste_id)
    return RedirectResponse(url="/", status_code=303)
