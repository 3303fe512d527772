"""
NoteDrop Backend — Notes Route Handlers
========================================

What:  GET /api/notes (list), GET /api/notes/{id} (detail), POST /api/notes (submit).
How:   Extract request data, delegate to NoteStore, return JSON.

Every handler loads the document itself; nothing is shared between requests.

Caching Strategy:
    - GET /api/notes: no-store (the document changes with every submission)
    - GET /api/notes/{id}: private, short max-age; the body depends on the
      User-Agent, so responses also carry Vary: User-Agent
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, Request, Response
from pydantic import ValidationError as PydanticValidationError

from notedrop.dependencies import get_note_store
from notedrop.exceptions import UnsupportedContentTypeError, ValidationError
from notedrop.schemas.note import (
    CreateNoteResponse,
    ErrorResponse,
    NoteListItem,
    NoteListResponse,
    NoteResponse,
    NoteSubmission,
)
from notedrop.services.note_service import NoteStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Notes"])

_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


@router.get(
    "/notes",
    response_model=NoteListResponse,
    responses={
        500: {"description": "Notes document is corrupt", "model": ErrorResponse},
        503: {"description": "Repository unavailable", "model": ErrorResponse},
    },
    summary="List all notes",
)
async def list_notes(
    response: Response,
    store: NoteStore = Depends(get_note_store),
) -> NoteListResponse:
    loaded = await store.load()
    notes = store.list_notes(loaded)

    response.headers["Cache-Control"] = "no-store"
    return NoteListResponse(
        notes=[NoteListItem(id=n.id, title=n.title, created_at=n.created_at) for n in notes],
        total_count=len(notes),
    )


@router.get(
    "/notes/{note_id}",
    response_model=NoteResponse,
    responses={
        404: {"description": "Note not found", "model": ErrorResponse},
        503: {"description": "Repository unavailable", "model": ErrorResponse},
    },
    summary="Get a single note by ID",
    description=(
        "Returns the note's title and, when the client's User-Agent carries the "
        "configured marker, its content. Otherwise content is a placeholder."
    ),
)
async def get_note(
    note_id: str,
    response: Response,
    user_agent: Optional[str] = Header(default=None),
    store: NoteStore = Depends(get_note_store),
) -> NoteResponse:
    loaded = await store.load()
    presented = store.get_note(loaded, note_id, client_identifier=user_agent)

    response.headers["Cache-Control"] = "private, max-age=60"
    response.headers["Vary"] = "User-Agent"
    return NoteResponse(**presented.model_dump())


@router.post(
    "/notes",
    status_code=201,
    response_model=CreateNoteResponse,
    responses={
        400: {"description": "Missing title or content", "model": ErrorResponse},
        401: {"description": "Wrong password", "model": ErrorResponse},
        409: {"description": "Lost a concurrent write; resubmit", "model": ErrorResponse},
        415: {"description": "Unsupported body type", "model": ErrorResponse},
        429: {"description": "Rate limit exceeded", "model": ErrorResponse},
        502: {"description": "Repository rejected the write", "model": ErrorResponse},
        503: {"description": "Repository unavailable", "model": ErrorResponse},
    },
    summary="Publish a new note",
    description=(
        "Accepts title, content and password as JSON or form fields. Content is "
        "obfuscated or filtered by remote services when they are reachable."
    ),
)
async def create_note(
    request: Request,
    store: NoteStore = Depends(get_note_store),
) -> CreateNoteResponse:
    submission = await _read_submission(request)

    logger.info(
        "Received note submission: title=%d chars, content=%d chars",
        len(submission.title or ""),
        len(submission.content or ""),
    )

    note = await store.create_note(
        title=submission.title,
        content=submission.content,
        password=submission.password,
    )
    return CreateNoteResponse(
        note=NoteListItem(id=note.id, title=note.title, created_at=note.created_at),
    )


async def _read_submission(request: Request) -> NoteSubmission:
    """Builds a NoteSubmission from a JSON or form body."""
    content_type = request.headers.get("content-type", "").lower()

    data: Dict[str, Any]
    if "application/json" in content_type:
        try:
            data = await request.json()
        except ValueError:
            raise ValidationError(message="Request body is not valid JSON")
        if not isinstance(data, dict):
            raise ValidationError(message="Request body must be a JSON object")
    elif any(t in content_type for t in _FORM_TYPES):
        form = await request.form()
        data = {key: value for key, value in form.items() if isinstance(value, str)}
    else:
        raise UnsupportedContentTypeError(content_type=content_type)

    fields: Dict[str, Optional[str]] = {}
    for name in ("title", "content", "password"):
        value = data.get(name)
        if value is not None and not isinstance(value, str):
            raise ValidationError(message=f"Field '{name}' must be a string", field=name)
        fields[name] = value

    try:
        return NoteSubmission(**fields)
    except PydanticValidationError as e:
        # Strings pydantic cannot hold, such as lone surrogates from JSON escapes
        field = str(e.errors()[0]["loc"][0])
        raise ValidationError(message=f"Field '{field}' is not valid UTF-8 text", field=field)
