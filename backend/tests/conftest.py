"""
NoteDrop Backend — Test Configuration (conftest.py)
====================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy (all function-scoped):
    ├── memory_store: InMemoryDocumentStore honouring revision tokens like GitHub
    ├── passthrough_transformer: ContentTransformer stand-in that records calls
    ├── note_store: NoteStore wired to the two fakes above
    ├── make_note: factory for Note objects with controllable timestamps
    └── test_client: HTTPX AsyncClient against the FastAPI app, note store overridden
"""

import asyncio
import os
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Override settings BEFORE any notedrop import reads them
os.environ["GITHUB_REPO_OWNER"] = "octo"
os.environ["GITHUB_REPO_NAME"] = "notes"
os.environ["GITHUB_TOKEN"] = "test-token-not-real"
os.environ["NOTES_POST_PASSWORD"] = "s3cret"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RATE_LIMIT_REQUESTS"] = "1000"

from notedrop.exceptions import ConflictError, DocumentNotFoundError  # noqa: E402
from notedrop.models.note import Note  # noqa: E402
from notedrop.services.document_store import DocumentStore, RemoteDocument  # noqa: E402
from notedrop.services.note_service import NoteStore  # noqa: E402
from notedrop.services.transform_service import ContentTransformer  # noqa: E402
from notedrop.services.visibility import VisibilityGate  # noqa: E402

TEST_PASSWORD = "s3cret"


class InMemoryDocumentStore(DocumentStore):
    """
    DocumentStore double with GitHub's conditional-write semantics.

    Every read and write yields to the event loop once, so concurrent
    coroutines interleave at the same points they would against the network.
    """

    def __init__(self, content: Optional[bytes] = None):
        self.content = content
        self._version = 1 if content is not None else 0
        self.writes: List[Optional[str]] = []
        self.fetch_count = 0
        self.healthy = True

    @property
    def revision(self) -> Optional[str]:
        return f"rev-{self._version}" if self.content is not None else None

    async def fetch_document(self) -> RemoteDocument:
        self.fetch_count += 1
        await asyncio.sleep(0)
        if self.content is None:
            raise DocumentNotFoundError(path="notes.json")
        return RemoteDocument(content=self.content, revision=self.revision)

    async def write_document(self, content: bytes, previous_revision: Optional[str]) -> str:
        self.writes.append(previous_revision)
        await asyncio.sleep(0)
        if previous_revision != self.revision:
            raise ConflictError(context={"previous_revision": previous_revision})
        self.content = content
        self._version += 1
        return self.revision

    async def health_check(self) -> bool:
        return self.healthy


@pytest.fixture
def memory_store():
    return InMemoryDocumentStore()


@pytest.fixture
def passthrough_transformer():
    """
    A ContentTransformer whose process() returns its input unchanged.

    Usage:
        passthrough_transformer.process.assert_not_awaited()
    """
    transformer = MagicMock(spec=ContentTransformer)
    transformer.process = AsyncMock(side_effect=lambda text: text)
    return transformer


@pytest.fixture
def gate():
    return VisibilityGate(marker="roblox", placeholder="Content hidden")


@pytest.fixture
def note_store(memory_store, passthrough_transformer, gate):
    return NoteStore(
        document_store=memory_store,
        transformer=passthrough_transformer,
        gate=gate,
        secret=TEST_PASSWORD,
    )


@pytest.fixture
def make_note() -> Callable[..., Note]:
    """Builds notes whose created_at is `minutes` after a fixed base time."""
    base = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)

    def _make(note_id: str, title: str = "Title", content: str = "Body", minutes: int = 0) -> Note:
        return Note(
            id=note_id,
            title=title,
            content=content,
            created_at=base + timedelta(minutes=minutes),
        )

    return _make


@pytest_asyncio.fixture
async def test_client(note_store):
    """
    HTTPX AsyncClient talking to the app in-process, with the note store
    dependency pointed at the in-memory fixtures.

    Usage:
        async def test_list(test_client):
            response = await test_client.get("/api/notes")
    """
    from notedrop.dependencies import get_note_store
    from notedrop.main import app

    app.dependency_overrides[get_note_store] = lambda: note_store
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
