"""
NoteDrop Backend — Note Codec
==============================

What:  Converts a NoteCollection to and from the bytes stored in notes.json.
Why:   The repository holds one JSON object keyed by note id; the id lives
       only in the key, so encode/decode must move it in and out.
How:   encode() builds {id: {title, content, createdAt}} and dumps it as
       indented UTF-8 JSON. decode() parses and validates every entry with a
       pydantic TypeAdapter, then rebuilds the Note objects.

Document format:
    {
      "3f0c...": {
        "title": "Hello",
        "content": "world",
        "createdAt": "2024-01-15T12:00:00.000Z"
      }
    }

Ordering:
    The document is a mapping, so decoded order is whatever order the keys
    appear in. Callers that need a stable listing sort on created_at.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Dict

from pydantic import BaseModel, TypeAdapter, ValidationError as PydanticValidationError

from notedrop.exceptions import CorruptDocumentError
from notedrop.models.note import Note, NoteCollection

logger = logging.getLogger(__name__)


class StoredNote(BaseModel):
    """One document entry: a note minus its id. Extra keys are ignored."""

    title: str
    content: str
    createdAt: datetime


_document_adapter = TypeAdapter(Dict[str, StoredNote])


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are read as UTC so listings can compare them
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def encode(notes: NoteCollection) -> bytes:
    """Serializes the collection to the document's UTF-8 JSON bytes."""
    document = {
        note.id: {
            "title": note.title,
            "content": note.content,
            "createdAt": note.created_at.isoformat(),
        }
        for note in notes
    }
    return json.dumps(document, indent=2, ensure_ascii=False).encode("utf-8")


def decode(raw: bytes) -> NoteCollection:
    """
    Parses document bytes back into a NoteCollection.

    Raises:
        CorruptDocumentError: bytes are not UTF-8 JSON, the root is not an
            object, or any entry is missing a field or has the wrong type.
    """
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise CorruptDocumentError(
            context={"stage": "json", "error": str(e)},
        ) from e

    # Strict: a numeric createdAt is a wrong type, not a Unix timestamp
    try:
        entries = _document_adapter.validate_json(text, strict=True)
    except PydanticValidationError as e:
        errors = e.errors(include_url=False)
        stage = "json" if any(err["type"] == "json_invalid" for err in errors) else "schema"
        raise CorruptDocumentError(context={"stage": stage, "errors": errors}) from e

    notes = NoteCollection()
    for note_id, entry in entries.items():
        if not note_id:
            raise CorruptDocumentError(context={"stage": "schema", "error": "empty note id"})
        notes.add(
            Note(
                id=note_id,
                title=entry.title,
                content=entry.content,
                created_at=_as_utc(entry.createdAt),
            )
        )

    logger.debug("Decoded notes document: %d entries", len(notes))
    return notes
