"""
NoteDrop Backend — Note Domain Model
=====================================

What:  The Note value and the ordered, id-unique collection of notes.
Why:   The whole service revolves around one collection loaded from one
       document; keeping its invariants in one type keeps them honest.
How:   Note is a frozen pydantic model (never mutated after creation).
       NoteCollection wraps a list plus an id index.

Lifecycle:
    Notes are append-only. They are created by a successful submission and
    never updated or deleted; there is no API for either.
"""

import uuid
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Note(BaseModel):
    """
    A single published note.

    `created_at` is serialized as `createdAt` to stay compatible with the
    documents already sitting in the repository.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(min_length=1)
    title: str
    content: str
    created_at: datetime = Field(alias="createdAt")

    @classmethod
    def create(cls, title: str, content: str) -> "Note":
        """Builds a new note with a fresh UUID4 id and the current UTC time."""
        return cls(
            id=str(uuid.uuid4()),
            title=title,
            content=content,
            created_at=datetime.now(timezone.utc),
        )


class NoteCollection:
    """
    Insertion-ordered notes with unique ids.

    Order here is creation order only for notes appended in this request;
    anything decoded from the document arrives in document key order.
    """

    def __init__(self, notes: Optional[List[Note]] = None):
        self._notes: List[Note] = []
        self._index: Dict[str, Note] = {}
        for note in notes or []:
            self.add(note)

    def add(self, note: Note) -> None:
        if note.id in self._index:
            raise ValueError(f"Duplicate note id '{note.id}'")
        self._notes.append(note)
        self._index[note.id] = note

    def get(self, note_id: str) -> Optional[Note]:
        return self._index.get(note_id)

    def ids(self) -> List[str]:
        return [n.id for n in self._notes]

    def sorted_by_creation(self) -> List[Note]:
        """Oldest first; ties keep collection order (sorted() is stable)."""
        return sorted(self._notes, key=lambda n: n.created_at)

    def __contains__(self, note_id: object) -> bool:
        return note_id in self._index

    def __iter__(self) -> Iterator[Note]:
        return iter(list(self._notes))

    def __len__(self) -> int:
        return len(self._notes)

    def __repr__(self) -> str:
        return f"NoteCollection({len(self._notes)} notes)"
