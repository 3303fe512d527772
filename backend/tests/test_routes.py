"""
NoteDrop Backend — API Route Integration Tests
===============================================

What:  HTTP-level tests through the FastAPI app with the note store
       dependency pointed at the in-memory document store.

What we test:
    ✅ POST /api/notes: JSON and form bodies, 400 / 401 / 409 / 415
    ✅ GET /api/notes: ordering, no content in the listing
    ✅ GET /api/notes/{id}: User-Agent gate, 404
    ✅ Fail-closed reads: corrupt → 500 (generic), unavailable → 503
    ✅ /health, request IDs, submission rate limiting
"""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from notedrop.exceptions import ConflictError, TransientError
from notedrop.middleware.rate_limit import RateLimitMiddleware
from notedrop.models.note import NoteCollection
from notedrop.services import note_codec

from conftest import TEST_PASSWORD


def _submission(**overrides):
    body = {"title": "Hello", "content": "world", "password": TEST_PASSWORD}
    body.update(overrides)
    return body


class TestCreateNote:

    @pytest.mark.asyncio
    async def test_json_submission(self, test_client, memory_store):
        response = await test_client.post("/api/notes", json=_submission())

        assert response.status_code == 201
        data = response.json()
        assert data["message"] == "Note published"
        assert data["note"]["title"] == "Hello"
        assert "content" not in data["note"]

        stored = note_codec.decode(memory_store.content)
        assert stored.get(data["note"]["id"]).content == "world"

    @pytest.mark.asyncio
    async def test_form_submission(self, test_client, memory_store):
        response = await test_client.post("/api/notes", data=_submission(title="Form"))

        assert response.status_code == 201
        assert [n.title for n in note_codec.decode(memory_store.content)] == ["Form"]

    @pytest.mark.asyncio
    async def test_wrong_password(self, test_client, memory_store, passthrough_transformer):
        response = await test_client.post("/api/notes", json=_submission(password="nope"))

        assert response.status_code == 401
        assert response.json()["message"] == "Unauthorized"
        assert memory_store.writes == []
        passthrough_transformer.process.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_password(self, test_client):
        body = _submission()
        del body["password"]
        response = await test_client.post("/api/notes", json=body)
        assert response.status_code == 401

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["title", "content"])
    async def test_missing_field(self, test_client, memory_store, field):
        body = _submission()
        del body[field]

        response = await test_client.post("/api/notes", json=body)

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"
        assert response.json()["details"]["field"] == field
        assert memory_store.writes == []

    @pytest.mark.asyncio
    async def test_non_string_field(self, test_client):
        response = await test_client.post("/api/notes", json=_submission(title=5))
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_json_array_body(self, test_client):
        response = await test_client.post("/api/notes", json=["Hello", "world"])
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_lone_surrogate_in_json_is_400(self, test_client, memory_store):
        body = (
            '{"title": "T", "content": "a \\ud800", "password": "' + TEST_PASSWORD + '"}'
        ).encode("ascii")

        response = await test_client.post(
            "/api/notes", content=body, headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["details"]["field"] == "content"
        assert memory_store.writes == []

    @pytest.mark.asyncio
    async def test_unsupported_content_type(self, test_client, memory_store):
        response = await test_client.post(
            "/api/notes",
            content=b"title=Hello",
            headers={"Content-Type": "text/plain"},
        )

        assert response.status_code == 415
        assert response.json()["error"] == "unsupported_media_type"
        assert memory_store.writes == []

    @pytest.mark.asyncio
    async def test_lost_race_is_conflict(self, test_client, memory_store):
        async def always_conflict(content, previous_revision):
            raise ConflictError()

        memory_store.write_document = always_conflict

        response = await test_client.post("/api/notes", json=_submission())

        assert response.status_code == 409
        assert response.json()["details"] == {"retryable": True}
        assert response.headers["Retry-After"] == "1"


class TestListNotes:

    @pytest.mark.asyncio
    async def test_empty_repository(self, test_client):
        response = await test_client.get("/api/notes")

        assert response.status_code == 200
        assert response.json() == {"notes": [], "total_count": 0}
        assert response.headers["Cache-Control"] == "no-store"

    @pytest.mark.asyncio
    async def test_listing_oldest_first_without_content(self, test_client, memory_store, make_note):
        memory_store.content = note_codec.encode(NoteCollection([
            make_note("b", "Second", minutes=5),
            make_note("a", "First", minutes=0),
        ]))

        response = await test_client.get("/api/notes")

        data = response.json()
        assert [n["id"] for n in data["notes"]] == ["a", "b"]
        assert data["total_count"] == 2
        assert all("content" not in n for n in data["notes"])

    @pytest.mark.asyncio
    async def test_corrupt_document_is_500_without_details(self, test_client, memory_store):
        memory_store.content = b'{"a": {"title": 1}}'

        response = await test_client.get("/api/notes")

        assert response.status_code == 500
        data = response.json()
        assert data["message"] == "The notes could not be read. Please try again later."
        assert "details" not in data

    @pytest.mark.asyncio
    async def test_repository_unavailable_is_503(self, test_client, memory_store):
        async def unavailable():
            raise TransientError()

        memory_store.fetch_document = unavailable

        response = await test_client.get("/api/notes")

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "5"


class TestGetNote:

    @pytest.mark.asyncio
    async def test_matching_user_agent_sees_content(self, test_client, memory_store, make_note):
        memory_store.content = note_codec.encode(NoteCollection([
            make_note("n1", "T", "print('hi')"),
        ]))

        response = await test_client.get("/api/notes/n1", headers={"User-Agent": "Roblox/WinInet"})

        assert response.status_code == 200
        data = response.json()
        assert data["content"] == "print('hi')"
        assert data["content_visible"] is True
        vary = [v.strip() for v in response.headers["Vary"].split(",")]
        assert "User-Agent" in vary

    @pytest.mark.asyncio
    async def test_other_user_agent_gets_placeholder(self, test_client, memory_store, make_note):
        memory_store.content = note_codec.encode(NoteCollection([
            make_note("n1", "T", "print('hi')"),
        ]))

        response = await test_client.get(
            "/api/notes/n1", headers={"User-Agent": "Mozilla/5.0 (X11; Linux x86_64)"},
        )

        data = response.json()
        assert data["title"] == "T"
        assert data["content"] == "Content hidden"
        assert data["content_visible"] is False

    @pytest.mark.asyncio
    async def test_unknown_id(self, test_client):
        response = await test_client.get("/api/notes/does-not-exist")

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_submit_then_read_back(self, test_client):
        created = await test_client.post("/api/notes", json=_submission(content="local x = 1"))
        note_id = created.json()["note"]["id"]

        hidden = await test_client.get(f"/api/notes/{note_id}")
        shown = await test_client.get(f"/api/notes/{note_id}", headers={"User-Agent": "ROBLOX"})

        assert hidden.json()["content"] == "Content hidden"
        assert shown.json()["content"] == "local x = 1"


class TestHealth:

    @pytest.mark.asyncio
    async def test_healthy(self, test_client):
        response = await test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["document_store"] == "reachable"

    @pytest.mark.asyncio
    async def test_degraded_when_repository_unreachable(self, test_client, memory_store):
        memory_store.healthy = False

        response = await test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"


class TestRequestId:

    @pytest.mark.asyncio
    async def test_generated_when_absent(self, test_client):
        response = await test_client.get("/api/notes")
        assert response.headers.get("X-Request-ID")

    @pytest.mark.asyncio
    async def test_echoed_when_supplied(self, test_client):
        response = await test_client.get("/api/notes", headers={"X-Request-ID": "abc-123"})
        assert response.headers["X-Request-ID"] == "abc-123"


class TestRateLimit:

    @pytest.mark.asyncio
    async def test_posts_limited_reads_not(self):
        app = FastAPI()

        @app.post("/submit")
        async def submit():
            return {"ok": True}

        @app.get("/read")
        async def read():
            return {"ok": True}

        app.add_middleware(RateLimitMiddleware, max_requests=2, window_seconds=60)

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            codes = [(await client.post("/submit")).status_code for _ in range(3)]
            read = await client.get("/read")

        assert codes == [200, 200, 429]
        assert read.status_code == 200

    @pytest.mark.asyncio
    async def test_zero_limit_refuses_every_post(self):
        app = FastAPI()

        @app.post("/submit")
        async def submit():
            return {"ok": True}

        app.add_middleware(RateLimitMiddleware, max_requests=0, window_seconds=60)

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.post("/submit")

        assert response.status_code == 429
        assert response.headers["Retry-After"] in ("60", "61")

    def test_inactive_ips_swept(self):
        middleware = RateLimitMiddleware(FastAPI(), max_requests=5, window_seconds=60)
        middleware._requests["10.0.0.1"] = [100.0]
        middleware._requests["10.0.0.2"] = [500.0]

        middleware._cleanup_inactive_ips(window_start=200.0)

        assert list(middleware._requests) == ["10.0.0.2"]
