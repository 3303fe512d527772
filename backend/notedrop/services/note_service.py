"""
NoteDrop Backend — Note Store (Business Logic Orchestrator)
============================================================

What:  The façade over codec, document store, transformer and visibility gate.
Why:   All reads and writes share one JSON document guarded only by a
       revision token; this is the one place that threads the token from
       load to persist.
How:   Every request builds its own LoadedNotes snapshot. Nothing is cached
       on the NoteStore between requests.
Who:   Called by route handlers through the get_note_store dependency.

Per-request state machine:
    ┌────────┐    ┌──────────────┐    ┌───────────┐
    │  Load  │───▶│    Append    │───▶│  Persist  │      (write path)
    └────────┘    │ validate     │    └───────────┘
        │         │ authorize    │
        │         │ transform    │
        │         └──────────────┘
        └────────▶ Read-one / List → Visibility Gate   (read path)

Concurrency:
    There is no lock. Two submissions that both load revision R race on the
    conditional write: one wins, the other gets ConflictError and its note is
    NOT stored. That loss is always reported to the submitter, never hidden.
    With conflict_retry_attempts > 0, create_note() reloads and re-appends
    the already-transformed note a bounded number of times before giving up.
"""

import hmac
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
)

from notedrop.exceptions import (
    ConflictError,
    CorruptDocumentError,
    DocumentNotFoundError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from notedrop.models.note import Note, NoteCollection
from notedrop.services import note_codec
from notedrop.services.document_store import DocumentStore
from notedrop.services.transform_service import ContentTransformer
from notedrop.services.visibility import PresentedNote, VisibilityGate

logger = logging.getLogger(__name__)


@dataclass
class LoadedNotes:
    """
    One request's view of the document.

    revision is None when no document existed at load time, which makes the
    following write unconditional.
    """

    notes: NoteCollection
    revision: Optional[str]


class NoteStore:
    """
    Business logic layer for note operations.

    Error Handling Strategy:
        Everything except a transformer outage propagates as its own
        exception type. CorruptDocumentError is logged here with its
        diagnostic before it leaves, because the client never sees it.
    """

    def __init__(
        self,
        document_store: DocumentStore,
        transformer: ContentTransformer,
        gate: VisibilityGate,
        secret: str,
        conflict_retry_attempts: int = 0,
    ):
        self.document_store = document_store
        self.transformer = transformer
        self.gate = gate
        self._secret = secret
        self.conflict_retry_attempts = conflict_retry_attempts

    # ── Load ──────────────────────────────────────────────────────────────

    async def load(self) -> LoadedNotes:
        """
        Fetch and decode the document.

        A missing document is an empty collection with no revision. Corrupt
        or unreachable documents fail closed: the caller gets the error
        instead of an empty list.
        """
        try:
            document = await self.document_store.fetch_document()
        except DocumentNotFoundError:
            logger.info("No notes document yet; starting from an empty collection")
            return LoadedNotes(notes=NoteCollection(), revision=None)

        try:
            notes = note_codec.decode(document.content)
        except CorruptDocumentError as e:
            logger.error(
                "Notes document at revision %s is corrupt: %s",
                document.revision,
                e.context,
            )
            raise

        return LoadedNotes(notes=notes, revision=document.revision)

    # ── Append ────────────────────────────────────────────────────────────

    def validate_submission(
        self, title: Optional[str], content: Optional[str]
    ) -> Tuple[str, str]:
        for field, value in (("title", title), ("content", content)):
            if value is None or not str(value).strip():
                raise ValidationError(
                    message=f"Field '{field}' is required and must not be empty",
                    field=field,
                )
            try:
                # JSON bodies may carry lone surrogates; the document is UTF-8
                str(value).encode("utf-8")
            except UnicodeEncodeError:
                raise ValidationError(
                    message=f"Field '{field}' is not valid UTF-8 text",
                    field=field,
                )
        return str(title), str(content)

    def authorize(self, password: Optional[str]) -> None:
        # An unset secret refuses everything rather than accepting blank passwords
        if not self._secret or password is None:
            raise UnauthorizedError()
        try:
            supplied = password.encode("utf-8")
        except UnicodeEncodeError:
            raise UnauthorizedError()
        if not hmac.compare_digest(supplied, self._secret.encode("utf-8")):
            raise UnauthorizedError()

    async def append(
        self,
        loaded: LoadedNotes,
        title: Optional[str],
        content: Optional[str],
        password: Optional[str],
    ) -> Note:
        """
        Validate, authorize, transform, then add a new note to `loaded`.

        Validation and the password check both run before any transformer
        call, so refused submissions cost no remote work.
        """
        note = await self._prepare_note(title, content, password)
        return self._add_unique(loaded, note)

    async def _prepare_note(
        self,
        title: Optional[str],
        content: Optional[str],
        password: Optional[str],
    ) -> Note:
        title, content = self.validate_submission(title, content)
        self.authorize(password)
        transformed = await self.transformer.process(content)
        return Note.create(title, transformed)

    def _add_unique(self, loaded: LoadedNotes, note: Note) -> Note:
        while note.id in loaded.notes:
            note = note.model_copy(update={"id": Note.create(note.title, note.content).id})
        loaded.notes.add(note)
        return note

    # ── Persist ───────────────────────────────────────────────────────────

    async def persist(self, loaded: LoadedNotes) -> str:
        """
        Encode and write `loaded`, conditioned on the revision it was read at.

        On success the snapshot's revision moves to the new token. On
        ConflictError nothing is merged or retried here.
        """
        encoded = note_codec.encode(loaded.notes)
        new_revision = await self.document_store.write_document(encoded, loaded.revision)
        loaded.revision = new_revision
        return new_revision

    # ── Write path ────────────────────────────────────────────────────────

    async def create_note(
        self,
        title: Optional[str],
        content: Optional[str],
        password: Optional[str],
    ) -> Note:
        """
        Full submission: validate → authorize → transform → load → append → persist.

        Transformation runs once, before the load, which keeps the window
        between reading and writing the document as short as possible. Any
        conflict retry reuses the transformed note (same id and timestamp).

        Raises:
            ValidationError, UnauthorizedError: before any remote call.
            ConflictError: the write lost a race and retries (if any) ran out.
            TransientError, RemoteReadError, RemoteWriteError,
            CorruptDocumentError: from load or persist.
        """
        note = await self._prepare_note(title, content, password)

        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(ConflictError),
            stop=stop_after_attempt(1 + self.conflict_retry_attempts),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                loaded = await self.load()
                note = self._add_unique(loaded, note)
                await self.persist(loaded)

        logger.info("Note %s published (%d notes total)", note.id, len(loaded.notes))
        return note

    # ── Read path ─────────────────────────────────────────────────────────

    def get_note(
        self,
        loaded: LoadedNotes,
        note_id: str,
        client_identifier: Optional[str],
    ) -> PresentedNote:
        note = loaded.notes.get(note_id)
        if note is None:
            raise NotFoundError(resource="note", resource_id=note_id)
        visible = self.gate.is_content_visible(client_identifier)
        return self.gate.present(note, visible)

    def list_notes(self, loaded: LoadedNotes) -> List[Note]:
        """All notes, oldest first."""
        return loaded.notes.sorted_by_creation()
