"""
Wastebin: Paste Service
=========================

What:  Request-level rules that sit between the HTTP handlers and the store:
       validating a submission and computing a listing page.
How:   `PasteService` holds only the settings it needs (mode allow-list and
       size limit); the store is passed into each call.

Submission rules, checked in this order:
    1. body and mode must both be present       → ValidationError (422)
    2. mode must be one of the configured modes → ValidationError (422)
    3. body length must not exceed max_size     → PasteTooLargeError, carrying
                                                  the unsaved paste so the form
                                                  can be shown again
"""

import logging
import math
from typing import Optional

from wastebin.config import Settings
from wastebin.exceptions import PasteTooLargeError, ValidationError
from wastebin.paste import Paste
from wastebin.schemas.paste import ListPage
from wastebin.services.paste_store import PAGE_SIZE, PasteStore

logger = logging.getLogger(__name__)


def parse_page_number(raw: Optional[str]) -> int:
    """1-based page from a query value; absent, garbled or < 1 means page 1."""
    if raw is None:
        return 1
    try:
        page = int(raw.strip())
    except ValueError:
        return 1
    return page if page >= 1 else 1


class PasteService:
    """
    Submission validation and list paging.

    Args:
        settings: Application settings (modes, max_size)
    """

    def __init__(self, settings: Settings):
        self.modes = set(settings.mode_names)
        self.max_size = settings.max_size

    def build_paste(self, body: Optional[str], mode: Optional[str]) -> Paste:
        """
        Turn submitted form fields into an unsaved Paste.

        Raises:
            ValidationError: a field is missing or the mode is not allowed
            PasteTooLargeError: the body is longer than max_size
        """
        if body is None:
            raise ValidationError("Missing form field 'body'", field="body")
        if mode is None:
            raise ValidationError("Missing form field 'mode'", field="mode")
        if mode not in self.modes:
            raise ValidationError(
                f"Unknown mode '{mode}'",
                field="mode",
                context={"allowed_modes": sorted(self.modes)},
            )

        paste = Paste.new(body, mode)
        if paste.size > self.max_size:
            logger.info("Rejected paste of %d chars (limit %d)", paste.size, self.max_size)
            raise PasteTooLargeError(paste, size=paste.size, limit=self.max_size)
        return paste

    async def list_page(self, store: PasteStore, page: int) -> ListPage:
        """
        Build one listing page.

        A page past the end is not an error: it has no pastes but still
        reports the real count and page list.
        """
        page = max(page, 1)
        paste_count = await store.count()
        page_count = math.ceil(paste_count / PAGE_SIZE)
        pastes = await store.list(offset=(page - 1) * PAGE_SIZE, limit=PAGE_SIZE)
        return ListPage(
            pastes=pastes,
            pages=list(range(1, page_count + 1)),
            current_page=page,
            paste_count=paste_count,
            page_count=page_count,
        )
