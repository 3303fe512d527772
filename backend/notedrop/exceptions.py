"""
NoteDrop Backend — Custom Exception Hierarchy
==============================================

What:  Defines application-specific exceptions for each failure the note
       store can surface.
Why:   Every failure except a transformer outage must reach the caller
       distinguishably, so each one gets its own type and HTTP status.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses with correct HTTP status codes.
Who:   Raised by services and routes; caught by global handlers.

Exception Hierarchy:
    NoteDropError (base)
    ├── ValidationError              → 400 Bad Request (client can fix)
    ├── UnsupportedContentTypeError  → 415 Unsupported Media Type
    ├── UnauthorizedError            → 401 Unauthorized
    ├── NotFoundError                → 404 Not Found
    │   └── DocumentNotFoundError    → (internal) no notes document yet
    ├── CorruptDocumentError         → 500 Internal Server Error
    ├── ConflictError                → 409 Conflict (retryable)
    ├── TransientError               → 503 Service Unavailable
    ├── RemoteReadError              → 502 Bad Gateway
    ├── RemoteWriteError             → 502 Bad Gateway
    └── RateLimitExceededError       → 429 Too Many Requests

Transformer failures are deliberately absent: the transformation pipeline
falls back to the original text and never raises.
"""

from typing import Any, Dict, Optional


class NoteDropError(Exception):
    """
    Base exception for all NoteDrop application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(NoteDropError):
    """
    Raised when a submission is missing a field or the field is blank.

    HTTP:    400 Bad Request

    Example response:
        {
            "error": "validation_error",
            "message": "Field 'title' is required and must not be empty",
            "details": {"field": "title"}
        }
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


class UnsupportedContentTypeError(NoteDropError):
    """Raised when a submission body is neither JSON nor a form. HTTP 415."""

    def __init__(
        self,
        content_type: str = "",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["content_type"] = content_type
        super().__init__(
            message=(
                "Unsupported Content-Type. Send application/json or "
                "application/x-www-form-urlencoded."
            ),
            context=ctx,
        )


class UnauthorizedError(NoteDropError):
    """
    Raised when the submitted password does not match the shared secret.

    HTTP:    401 Unauthorized

    The response carries no hint about why the check failed.
    """

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(message="Unauthorized", context=context)


class NotFoundError(NoteDropError):
    """
    Raised when a requested note does not exist.

    When:    GET /api/notes/{id} with an id absent from the loaded document.
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


class DocumentNotFoundError(NotFoundError):
    """
    Raised by a DocumentStore when the notes document has never been written.

    The Note Store turns this into an empty collection with no revision
    token; it only reaches a client if raised from somewhere unexpected.
    """

    def __init__(self, path: str = "", context: Optional[Dict[str, Any]] = None):
        super().__init__(resource="document", resource_id=path or None, context=context)


class CorruptDocumentError(NoteDropError):
    """
    Raised when the stored document cannot be decoded into notes.

    When:    Invalid base64, invalid JSON, or entries with the wrong shape.
    HTTP:    500 Internal Server Error

    The decode diagnostic stays in `context` and is logged server-side;
    the client only sees a generic message.
    """

    def __init__(
        self,
        message: str = "The notes document could not be decoded",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ConflictError(NoteDropError):
    """
    Raised when a conditional write presents a stale revision token.

    When:    Another request rewrote the document between our load and persist.
    HTTP:    409 Conflict

    The submitter's note was NOT stored. The response tells them to retry.
    """

    def __init__(
        self,
        message: str = "The notes document changed while saving. Please resubmit.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class TransientError(NoteDropError):
    """
    Raised on network failure or a 5xx answer from the document endpoint.

    HTTP:    503 Service Unavailable
    """

    def __init__(
        self,
        message: str = "The notes repository is temporarily unavailable",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RemoteReadError(NoteDropError):
    """
    Raised when the document endpoint refuses a read (bad token, quota).

    HTTP:    502 Bad Gateway
    """

    def __init__(
        self,
        message: str = "The notes repository refused the read",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RemoteWriteError(NoteDropError):
    """
    Raised when the document endpoint rejects a write for a non-conflict reason.

    HTTP:    502 Bad Gateway

    Attributes:
        payload: Raw response body from the endpoint, kept for diagnostics.
    """

    def __init__(
        self,
        payload: str = "",
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["payload"] = payload
        if status_code is not None:
            ctx["status_code"] = status_code
        super().__init__(message=f"Repository write failed: {payload}", context=ctx)
        self.payload = payload
        self.status_code = status_code


class RateLimitExceededError(NoteDropError):
    """
    Raised when a client exceeds the per-IP submission rate limit.

    HTTP:    429 Too Many Requests
    """

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
