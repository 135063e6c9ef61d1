"""
Wastebin: Pydantic Response Schemas
=====================================

What:  Pydantic models for the JSON the service returns: the listing page
       model handed to the list template, administrative results, errors and
       health.
How:   JSON routes return these and FastAPI serializes them; the list view
       unpacks a ListPage into its template context.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from wastebin.paste import Paste


class ListPage(BaseModel):
    """
    One page of the paste listing.

    Fields:
        pastes:        Up to 50 pastes, newest first
        pages:         Page numbers 1..page_count, empty when there are no pastes
        current_page:  The requested (1-based) page
        paste_count:   Total number of stored pastes
        page_count:    ceil(paste_count / 50)
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    pastes: List[Paste] = Field(description="Pastes on this page, newest first")
    pages: List[int] = Field(description="All page numbers, 1-based")
    current_page: int = Field(ge=1, description="The requested page")
    paste_count: int = Field(ge=0, description="Total pastes stored")
    page_count: int = Field(ge=0, description="Number of pages")


class MigrationResult(BaseModel):
    """
    Returned by POST /upgrade/{version}.

    `applied` is False when the table already had this version; rows_copied
    is only set when the copy actually ran.
    """
    version: int = Field(description="Schema version requested")
    description: str = Field(description="What the migration changes")
    applied: bool = Field(description="Whether the table was rebuilt by this call")
    rows_copied: Optional[int] = Field(default=None, description="Rows carried into the new table")


class ErrorResponse(BaseModel):
    """
    Error body used by every exception handler.

    Example:
        {
            "error": "not_found",
            "message": "paste with ID '0F1E...' was not found",
            "details": {"resource": "paste", "resource_id": "0F1E..."},
            "request_id": "550e8400-e29b-41d4-a716-446655440000"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    schema_version: Optional[int] = Field(
        default=None,
        description="Applied schema version; null before /install",
    )
    uptime_seconds: float = Field(description="Seconds since service started")
