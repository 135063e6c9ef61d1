"""
Wastebin: Paste Domain Object
===============================

What:  In-memory representation of a paste and its two construction paths.

    Paste.new(body, mode)   a fresh, unsaved paste: random identifier, no
                            creation time
    Paste.from_row(row)     a paste hydrated from a stored row; every field
                            must be present and well-formed, otherwise
                            CorruptRowError says which field failed and why

`created_at is None` is the only marker of an unsaved paste. Persistence is
delegated to the store; this module knows nothing about SQL.
"""

import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Mapping, Optional

from wastebin.exceptions import CorruptRowError

if TYPE_CHECKING:
    from wastebin.services.paste_store import PasteStore

# Stored text form of created_at. Changing it breaks every existing row.
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

# Grouped 8-4-4-4-12 hex in either case, nothing around it
CANONICAL_ID = re.compile(
    r"^[0-9A-F]{8}-[0-9A-F]{4}-[0-9A-F]{4}-[0-9A-F]{4}-[0-9A-F]{12}\Z", re.IGNORECASE
)


def new_identifier() -> str:
    """A random 128-bit identifier in canonical 8-4-4-4-12 upper-case hex."""
    return str(uuid.uuid4()).upper()


def format_timestamp(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(text: str) -> datetime:
    """Inverse of format_timestamp; raises ValueError on any other shape."""
    return datetime.strptime(text, TIMESTAMP_FORMAT).astimezone(timezone.utc)


@dataclass
class Paste:
    id: str
    body: str
    mode: str
    created_at: Optional[datetime] = None
    fork_of: Optional[str] = None

    @classmethod
    def new(cls, body: str, mode: str) -> "Paste":
        return cls(id=new_identifier(), body=body, mode=mode)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Paste":
        """
        Hydrate a paste from a stored row.

        Args:
            row: Mapping with uuid, date, raw and mode keys; fork_of is optional

        Raises:
            CorruptRowError: a field is absent/NULL ("missing") or malformed
                             ("unparsable")
        """
        values = {}
        for field in ("uuid", "date", "raw", "mode"):
            value = row.get(field)
            if value is None:
                raise CorruptRowError(field, CorruptRowError.MISSING)
            if not isinstance(value, str):
                raise CorruptRowError(field, CorruptRowError.UNPARSABLE, value)
            values[field] = value

        if not CANONICAL_ID.match(values["uuid"]):
            raise CorruptRowError("uuid", CorruptRowError.UNPARSABLE, values["uuid"])
        paste_id = values["uuid"].upper()

        try:
            created_at = parse_timestamp(values["date"])
        except ValueError:
            raise CorruptRowError("date", CorruptRowError.UNPARSABLE, values["date"])

        return cls(
            id=paste_id,
            body=values["raw"],
            mode=values["mode"],
            created_at=created_at,
            fork_of=row.get("fork_of"),
        )

    @property
    def is_saved(self) -> bool:
        return self.created_at is not None

    @property
    def size(self) -> int:
        """Body length in characters, the unit max_size is expressed in."""
        return len(self.body)

    async def save(self, store: "PasteStore") -> None:
        await store.create(self)

    async def delete(self, store: "PasteStore") -> None:
        await store.delete_by_id(self.id)
