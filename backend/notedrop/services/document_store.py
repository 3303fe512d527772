"""
NoteDrop Backend — Remote Document Store
=========================================

What:  Reads and writes the single notes document kept in a Git repository.
Why:   The repository host is the only durable storage. Its per-file
       revision token (the blob sha) is our only concurrency control.
How:   DocumentStore is the abstract contract; GitHubDocumentStore speaks the
       GitHub contents API over a shared httpx.AsyncClient.
Who:   Called by NoteStore for every load and persist.

Revision tokens:
    fetch_document() returns the sha of the blob it read. The caller hands
    that sha back to write_document(); GitHub refuses the write with 409 if
    the file moved on in the meantime. The client itself keeps no state,
    so threading the token from read to write is the caller's job.

Status mapping:
    read   200 → RemoteDocument      404 → DocumentNotFoundError
           5xx / network → TransientError (retried)   other → RemoteReadError
    write  200/201 → new sha         409, 422 about sha → ConflictError
           5xx / network → TransientError             other → RemoteWriteError
"""

import base64
import binascii
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from notedrop.config import Settings
from notedrop.exceptions import (
    ConflictError,
    CorruptDocumentError,
    DocumentNotFoundError,
    RemoteReadError,
    RemoteWriteError,
    TransientError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemoteDocument:
    """Raw document bytes plus the revision token they were read at."""

    content: bytes
    revision: str


class DocumentStore(ABC):
    """
    Abstract interface for the remote notes document.

    Contract:
        - fetch_document() raises DocumentNotFoundError when nothing has been
          written yet; callers treat that as an empty collection.
        - write_document() with a previous revision is conditional on it and
          raises ConflictError when it is stale. With None it is unconditional.
        - Implementations keep no per-request state.
    """

    @abstractmethod
    async def fetch_document(self) -> RemoteDocument:
        """
        Raises:
            DocumentNotFoundError: No document exists yet.
            TransientError: Network failure or server-side error.
            RemoteReadError: The endpoint refused the read.
            CorruptDocumentError: The envelope could not be unpacked.
        """
        ...

    @abstractmethod
    async def write_document(self, content: bytes, previous_revision: Optional[str]) -> str:
        """
        Returns the new revision token.

        Raises:
            ConflictError: previous_revision no longer matches the document.
            TransientError: Network failure or server-side error.
            RemoteWriteError: Any other rejection; carries the raw payload.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """True when the backing repository is reachable and readable."""
        ...


class GitHubDocumentStore(DocumentStore):
    """
    DocumentStore backed by one file in a GitHub repository.

    The httpx client is injected so the application can share one
    connection pool across requests and tests can inject a MockTransport.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        owner: str,
        repo: str,
        branch: str,
        token: str,
        path: str = "notes.json",
        api_url: str = "https://api.github.com",
        user_agent: str = "NoteDrop/1.0",
        commit_message: str = "Update notes",
        timeout: float = 10.0,
        fetch_attempts: int = 3,
        retry_min_wait: float = 0.5,
        retry_max_wait: float = 4.0,
    ):
        self.client = client
        self.owner = owner
        self.repo = repo
        self.branch = branch
        self.path = path.lstrip("/")
        self.api_url = api_url.rstrip("/")
        self.commit_message = commit_message
        self.timeout = timeout
        self.fetch_attempts = fetch_attempts
        self.retry_min_wait = retry_min_wait
        self.retry_max_wait = retry_max_wait
        self.headers = {
            "Authorization": f"token {token}",
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": user_agent,
        }

    @classmethod
    def from_settings(cls, client: httpx.AsyncClient, settings: Settings) -> "GitHubDocumentStore":
        return cls(
            client=client,
            owner=settings.github_repo_owner,
            repo=settings.github_repo_name,
            branch=settings.github_branch,
            token=settings.github_token,
            path=settings.notes_document_path,
            api_url=settings.github_api_url,
            user_agent=settings.user_agent,
            commit_message=settings.commit_message,
            timeout=settings.document_timeout,
            fetch_attempts=settings.fetch_retry_attempts,
            retry_min_wait=settings.retry_min_wait,
            retry_max_wait=settings.retry_max_wait,
        )

    @property
    def contents_url(self) -> str:
        return f"{self.api_url}/repos/{self.owner}/{self.repo}/contents/{self.path}"

    # ── Read ──────────────────────────────────────────────────────────────

    async def fetch_document(self) -> RemoteDocument:
        # Only transient failures are worth repeating; a 404 or a refused
        # read will not change on the next attempt.
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(TransientError),
            stop=stop_after_attempt(self.fetch_attempts),
            wait=wait_exponential_jitter(
                initial=self.retry_min_wait,
                max=self.retry_max_wait,
                jitter=1,
            ),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                return await self._fetch_once()
        raise AssertionError("unreachable")  # pragma: no cover

    async def _fetch_once(self) -> RemoteDocument:
        response = await self._send("GET", params={"ref": self.branch})

        if response.status_code == 404:
            raise DocumentNotFoundError(path=self.path)
        if response.status_code >= 500:
            raise TransientError(
                context={"status_code": response.status_code, "body": response.text[:500]},
            )
        if response.status_code != 200:
            logger.error(
                "Repository refused read of %s: %d %s",
                self.path,
                response.status_code,
                response.text[:500],
            )
            raise RemoteReadError(
                context={"status_code": response.status_code, "body": response.text[:500]},
            )

        data = self._json_body(response)
        if not isinstance(data, dict):
            raise CorruptDocumentError(
                context={"stage": "envelope", "error": f"{self.path} is not a file"},
            )

        sha = data.get("sha")
        encoded = data.get("content")
        encoding = data.get("encoding", "base64")
        if not isinstance(sha, str) or not isinstance(encoded, str):
            raise CorruptDocumentError(
                context={"stage": "envelope", "error": "missing content or sha"},
            )
        if encoding != "base64":
            # The contents API stops inlining files above 1MB
            raise CorruptDocumentError(
                context={"stage": "envelope", "error": f"unsupported encoding '{encoding}'"},
            )

        try:
            # b64decode skips the newlines GitHub wraps the payload with
            content = base64.b64decode(encoded)
        except (binascii.Error, ValueError) as e:
            raise CorruptDocumentError(
                context={"stage": "base64", "error": str(e)},
            ) from e

        logger.info("Fetched %s at revision %s (%d bytes)", self.path, sha[:7], len(content))
        return RemoteDocument(content=content, revision=sha)

    # ── Write ─────────────────────────────────────────────────────────────

    async def write_document(self, content: bytes, previous_revision: Optional[str]) -> str:
        body: Dict[str, Any] = {
            "message": self.commit_message,
            "content": base64.b64encode(content).decode("ascii"),
            "branch": self.branch,
        }
        if previous_revision:
            body["sha"] = previous_revision

        response = await self._send("PUT", json=body)

        if response.status_code in (200, 201):
            try:
                data = response.json()
            except ValueError:
                data = None
            new_sha = (data.get("content") or {}).get("sha") if isinstance(data, dict) else None
            if not isinstance(new_sha, str):
                raise RemoteWriteError(payload=response.text, status_code=response.status_code)
            logger.info(
                "Wrote %s: revision %s → %s",
                self.path,
                (previous_revision or "none")[:7],
                new_sha[:7],
            )
            return new_sha

        if self._is_conflict(response):
            logger.warning(
                "Conditional write of %s lost: revision %s is stale",
                self.path,
                (previous_revision or "none")[:7],
            )
            raise ConflictError(
                context={
                    "status_code": response.status_code,
                    "previous_revision": previous_revision,
                },
            )
        if response.status_code >= 500:
            raise TransientError(
                context={"status_code": response.status_code, "body": response.text[:500]},
            )

        logger.error(
            "Repository rejected write of %s: %d %s",
            self.path,
            response.status_code,
            response.text,
        )
        raise RemoteWriteError(payload=response.text, status_code=response.status_code)

    # ── Health ────────────────────────────────────────────────────────────

    async def health_check(self) -> bool:
        try:
            response = await self.client.get(
                f"{self.api_url}/repos/{self.owner}/{self.repo}",
                headers=self.headers,
                timeout=self.timeout,
            )
        except httpx.RequestError as e:
            logger.warning("Repository health check failed: %s", str(e))
            return False
        return response.status_code == 200

    # ── Helpers ───────────────────────────────────────────────────────────

    async def _send(self, method: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self.client.request(
                method,
                self.contents_url,
                headers=self.headers,
                timeout=self.timeout,
                **kwargs,
            )
        except httpx.RequestError as e:
            logger.warning("%s %s failed: %s", method, self.path, str(e))
            raise TransientError(
                context={"method": method, "error_type": type(e).__name__},
            ) from e

    @staticmethod
    def _is_conflict(response: httpx.Response) -> bool:
        if response.status_code == 409:
            return True
        # 422 "sha wasn't supplied": the file appeared after we saw it absent
        return response.status_code == 422 and "sha" in response.text

    def _json_body(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise CorruptDocumentError(
                context={"stage": "envelope", "error": f"non-JSON response: {e}"},
            ) from e
