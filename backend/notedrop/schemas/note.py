"""
NoteDrop Backend — Pydantic Request/Response Schemas
=====================================================

What:  Pydantic models defining the HTTP contract.
Why:   Automatic serialization and OpenAPI doc generation; the domain Note
       never leaves the service layer directly.
How:   Route handlers return these models; FastAPI serializes them.

Design Decision:
    NoteSubmission is deliberately permissive (all fields optional strings).
    Missing or blank fields are reported by NoteStore as our own
    ValidationError (400) rather than FastAPI's 422, so JSON and form
    submissions fail the same way.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class NoteSubmission(BaseModel):
    """
    What:  Body of POST /api/notes, from JSON or form fields.
    Why optional: validation of presence happens in NoteStore.append().
    """
    title: Optional[str] = Field(default=None, description="Note title")
    content: Optional[str] = Field(default=None, description="Note body")
    password: Optional[str] = Field(default=None, description="Shared submission secret")


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class NoteResponse(BaseModel):
    """
    What:  A single note as served by GET /api/notes/{id}.
    content_visible tells the client whether `content` is the real body or
    the redaction placeholder.
    """
    id: str = Field(description="Unique note identifier")
    title: str = Field(description="Note title (always visible)")
    content: str = Field(description="Note body, or the redaction placeholder")
    content_visible: bool = Field(description="False when content is redacted")
    created_at: datetime = Field(description="When the note was created (UTC ISO 8601)")


class NoteListItem(BaseModel):
    """Compact entry for the listing: no content at all."""
    id: str = Field(description="Unique note identifier")
    title: str = Field(description="Note title")
    created_at: datetime = Field(description="Creation timestamp (UTC)")


class NoteListResponse(BaseModel):
    """
    What:  Response of GET /api/notes.
    Order: oldest first, by created_at. The stored document is a mapping and
    carries no order of its own.
    """
    notes: List[NoteListItem] = Field(description="All notes, oldest first")
    total_count: int = Field(description="Number of notes in the document")


class CreateNoteResponse(BaseModel):
    """Returned by POST /api/notes with HTTP 201."""
    message: str = Field(default="Note published")
    note: NoteListItem = Field(description="The stored note, without content")


# ══════════════════════════════════════════════════════════════════════════
# Error / Health Models
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "error": "conflict",
            "message": "The notes document changed while saving. Please resubmit.",
            "details": {"retryable": true},
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded")
    version: str = Field(description="Application version")
    document_store: str = Field(description="Repository status: reachable, unreachable")
    uptime_seconds: float = Field(description="Seconds since service started")
