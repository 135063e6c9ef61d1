"""
Wastebin: Custom Exception Hierarchy
======================================

What:  Application-specific exceptions for every failure the store, the
       migrator and the request handlers can report.
How:   Each exception carries a human-readable message and an optional context
       dict. Global handlers registered in main.py translate them into HTTP
       responses; nothing is retried internally.

Exception Hierarchy:
    WastebinError (base)
    ├── ValidationError          → 422 Unprocessable Entity (bad mode, missing field)
    │   └── PasteTooLargeError   → form re-rendered with an error context
    ├── NotFoundError            → 404 Not Found
    ├── ForbiddenError           → 403 Forbidden (wrong admin password)
    ├── AlreadyPersistedError    → 500 (a paste was saved twice; programmer error)
    ├── CorruptRowError          → 500 on single load, skipped in list scans
    ├── StorageError             → 500 (engine/I-O failure or timeout)
    ├── MigrationError           → 500, names the failed step
    └── ConfigurationError       → fatal at startup
"""

from typing import Any, Dict, Optional


class WastebinError(Exception):
    """
    Base exception for all Wastebin errors.

    Attributes:
        message:  Description safe to return in a response
        context:  Additional debug info (logged, and returned only where noted)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(WastebinError):
    """
    Raised when a submission fails validation at the handler boundary.

    When:    Missing `body`/`mode` field, or a mode outside the allow-list.
    HTTP:    422 Unprocessable Entity
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class PasteTooLargeError(ValidationError):
    """
    Raised when a paste body exceeds the configured maximum size.

    Carries the rejected (unsaved) paste so the submission form can be rendered
    again with the original text in place.
    """

    def __init__(self, paste, size: int, limit: int):
        super().__init__(
            message=f"Paste body is {size} characters; the limit is {limit}",
            field="body",
            context={"size": size, "limit": limit},
        )
        self.paste = paste
        self.size = size
        self.limit = limit


class NotFoundError(WastebinError):
    """
    Raised when a requested resource does not exist.

    When:    Loading a paste whose identifier has no row, or requesting an
             unknown schema migration version.
    HTTP:    404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ForbiddenError(WastebinError):
    """Raised when an administrative request carries a wrong or missing password."""

    def __init__(self, message: str = "Administrator password required"):
        super().__init__(message=message)


class AlreadyPersistedError(WastebinError):
    """
    Raised when a paste that already has a creation timestamp is saved again.

    This is a contract violation by the caller, never a silent no-op.
    """

    def __init__(self, paste_id: str):
        super().__init__(
            message=f"Paste '{paste_id}' has already been saved",
            context={"paste_id": paste_id},
        )
        self.paste_id = paste_id


class CorruptRowError(WastebinError):
    """
    Raised when a stored row cannot be turned into a Paste.

    Attributes:
        field:   Column that failed (uuid, date, raw or mode)
        reason:  "missing" when the value is absent, "unparsable" when it is
                 present but malformed
    """

    MISSING = "missing"
    UNPARSABLE = "unparsable"

    def __init__(self, field: str, reason: str, value: Any = None):
        if reason == self.MISSING:
            message = f"Stored paste row has no value for '{field}'"
        else:
            message = f"Stored paste row has an unparsable '{field}': {value!r}"
        super().__init__(message=message, context={"field": field, "reason": reason})
        self.field = field
        self.reason = reason


class StorageError(WastebinError):
    """
    Raised when the storage engine fails or an operation times out.

    The message returned to the client is generic; engine details go to the
    log only.
    """

    def __init__(
        self,
        message: str = "A storage error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class MigrationError(WastebinError):
    """
    Raised when one step of a copy-rename schema migration fails.

    Attributes:
        version:   Migration version being applied
        step:      "create", "copy", "drop" or "rename"
        recovery:  What an operator has to do by hand, if anything
    """

    def __init__(self, version: int, step: str, detail: str, recovery: Optional[str] = None):
        message = f"Migration {version} failed at step '{step}': {detail}"
        context: Dict[str, Any] = {"version": version, "step": step}
        if recovery:
            context["recovery"] = recovery
        super().__init__(message=message, context=context)
        self.version = version
        self.step = step
        self.recovery = recovery


class ConfigurationError(WastebinError):
    """
    Raised when the process cannot start with the loaded settings.

    `exit_code` is the status the command-line entry point exits with.
    """

    NO_DATABASE = 1
    NO_PASSWORD = 2
    BAD_CONFIG_FILE = 3
    INVALID_SETTING = 4

    def __init__(self, message: str, exit_code: int = NO_DATABASE):
        super().__init__(message=message, context={"exit_code": exit_code})
        self.exit_code = exit_code
