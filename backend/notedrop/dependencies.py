"""
NoteDrop Backend — Shared HTTP Client and Note Store Dependency
================================================================

What:  One process-wide httpx.AsyncClient plus the FastAPI dependency that
       assembles a NoteStore around it.
Why:   Every request talks to GitHub and possibly a transformer; reusing one
       connection pool avoids a TLS handshake per call.
How:   The client is created lazily and closed from the app lifespan. The
       NoteStore itself is cheap and built per request, so no note data can
       outlive the request that loaded it.

Testing:
    Override `get_note_store` with app.dependency_overrides to swap in an
    in-memory DocumentStore.
"""

import logging
from typing import Optional

import httpx

from notedrop.config import settings
from notedrop.services.document_store import GitHubDocumentStore
from notedrop.services.note_service import NoteStore
from notedrop.services.transform_service import ContentTransformer
from notedrop.services.visibility import VisibilityGate

logger = logging.getLogger(__name__)

_http_client: Optional[httpx.AsyncClient] = None


def get_http_client() -> httpx.AsyncClient:
    """Returns the shared client, creating it on first use."""
    global _http_client
    if _http_client is None or _http_client.is_closed:
        _http_client = httpx.AsyncClient(
            headers={"User-Agent": settings.user_agent},
            limits=httpx.Limits(max_connections=50, max_keepalive_connections=10),
        )
        logger.debug("Shared HTTP client created")
    return _http_client


async def close_http_client() -> None:
    """Called during application shutdown (lifespan handler)."""
    global _http_client
    if _http_client is not None and not _http_client.is_closed:
        await _http_client.aclose()
    _http_client = None


def build_note_store(client: httpx.AsyncClient) -> NoteStore:
    return NoteStore(
        document_store=GitHubDocumentStore.from_settings(client, settings),
        transformer=ContentTransformer.from_settings(client, settings),
        gate=VisibilityGate(settings.visibility_marker, settings.redaction_placeholder),
        secret=settings.notes_post_password,
        conflict_retry_attempts=settings.conflict_retry_attempts,
    )


async def get_note_store() -> NoteStore:
    """
    FastAPI dependency providing a NoteStore per request.

    Example usage in a route:
        @router.get("/notes")
        async def list_notes(store: NoteStore = Depends(get_note_store)):
            loaded = await store.load()
    """
    return build_note_store(get_http_client())
