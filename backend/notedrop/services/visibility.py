"""
NoteDrop Backend — Visibility Gate
===================================

What:  Decides whether a reader sees a note's content or a placeholder.
How:   Content is shown when the client identifier (the User-Agent header)
       contains the configured marker, case-insensitively.

Security Note:
    This is an obscurity control, NOT authentication. Any client can send
    whatever User-Agent it likes. Keep it a plain boolean predicate; do not
    put anything behind it that actually needs protecting.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from notedrop.models.note import Note

DEFAULT_PLACEHOLDER = "Content hidden"


class PresentedNote(BaseModel):
    """A note as handed to a reader, after the gate has run."""

    id: str
    title: str
    content: str
    content_visible: bool
    created_at: datetime


class VisibilityGate:
    def __init__(self, marker: str, placeholder: str = DEFAULT_PLACEHOLDER):
        if not marker:
            raise ValueError("visibility marker must not be empty")
        self.marker = marker.lower()
        self.placeholder = placeholder

    def is_content_visible(self, client_identifier: Optional[str]) -> bool:
        if not client_identifier:
            return False
        return self.marker in client_identifier.lower()

    def present(self, note: Note, visible: bool) -> PresentedNote:
        # Title is always shown; only the body is redacted
        return PresentedNote(
            id=note.id,
            title=note.title,
            content=note.content if visible else self.placeholder,
            content_visible=visible,
            created_at=note.created_at,
        )
