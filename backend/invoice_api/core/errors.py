"""Domain exceptions raised by the ingestion pipeline and CRUD routes.

Every exception carries the HTTP status it maps to and a short message
that is safe to show to API clients.  The underlying cause (provider
error bodies, database errors, tracebacks) is attached with
``raise ... from`` and logged server side, never rendered.
"""

from __future__ import annotations

from typing import Optional


class InvoiceAPIError(Exception):
    """Base class for errors rendered as ``{"error": message}``."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequest(InvoiceAPIError):
    status_code = 400
    default_message = "Bad request"


class InvalidReference(BadRequest):
    """A ``categoryId`` or ``typeId`` did not resolve to a live record."""

    def __init__(self, which: str) -> None:
        self.which = which
        super().__init__(f"Invalid {which}")


class Unauthenticated(InvoiceAPIError):
    status_code = 401
    default_message = "Not authenticated"


class Forbidden(InvoiceAPIError):
    status_code = 403
    default_message = "Access denied"


class QuotaExceeded(Forbidden):
    """Business-rule denial from the quota gate."""

    NO_PLAN = "no-plan"
    LIMIT_REACHED = "limit-reached"

    MESSAGES = {
        NO_PLAN: "Subscribe to a plan to process invoices.",
        LIMIT_REACHED: "Invoice limit reached. Upgrade your plan to continue.",
    }

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(self.MESSAGES.get(reason, self.default_message))


class NotFound(InvoiceAPIError):
    status_code = 404
    default_message = "Not found"


class ExtractionFailed(InvoiceAPIError):
    """The OCR engine could not read the uploaded document."""

    status_code = 500
    default_message = "Could not extract text from the document"


class StructuringFailed(InvoiceAPIError):
    """The generative-text service failed or returned an unusable payload."""

    status_code = 502
    default_message = "Could not extract invoice fields from the document"


class PersistenceFailed(InvoiceAPIError):
    status_code = 500
    default_message = "Could not save the invoice"


__all__ = [
    "InvoiceAPIError",
    "BadRequest",
    "InvalidReference",
    "Unauthenticated",
    "Forbidden",
    "QuotaExceeded",
    "NotFound",
    "ExtractionFailed",
    "StructuringFailed",
    "PersistenceFailed",
]
