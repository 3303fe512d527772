"""
NoteDrop Backend — Content Transformation Pipeline
===================================================

What:  Classifies submitted content and sends it to the obfuscator (script-like
       text) or the filter (everything else) before it is stored.
Why:   Published scripts should not be stored readable, and plain text goes
       through a profanity/cleanup filter.
How:   One POST per submission via the shared httpx client.
Who:   Called by NoteStore.create_note() after the password check.

Failure policy (fail-open):
    Any transport error, timeout, unencodable payload, non-2xx status,
    undecodable body, or a body without the expected result field returns
    the ORIGINAL text. Nothing here ever raises to the submitter, and
    nothing is retried: each call hits the remote service exactly once.

Limitations:
    classify() is a substring heuristic, not a parser. "JavaScript" counts as
    script-like; a Lua script that avoids the marker words does not.
"""

import enum
import logging
from typing import Iterable, Optional

import httpx

from notedrop.config import Settings

logger = logging.getLogger(__name__)


class ContentKind(str, enum.Enum):
    SCRIPT_LIKE = "script_like"
    PLAIN_TEXT = "plain_text"


DEFAULT_SCRIPT_MARKERS = ("game", "script")


class ContentTransformer:
    """
    Routes content to one of two remote transformers with fail-open fallback.

    Request/response contracts:
        obfuscator: {"script": text} → {"obfuscated": text}
        filter:     {"text": text}   → {"filtered": text}
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        obfuscator_url: str,
        filter_url: str,
        timeout: float = 5.0,
        script_markers: Iterable[str] = DEFAULT_SCRIPT_MARKERS,
    ):
        self.client = client
        self.obfuscator_url = obfuscator_url
        self.filter_url = filter_url
        self.timeout = timeout
        self.script_markers = tuple(m.lower() for m in script_markers if m)

    @classmethod
    def from_settings(cls, client: httpx.AsyncClient, settings: Settings) -> "ContentTransformer":
        return cls(
            client=client,
            obfuscator_url=settings.obfuscator_url,
            filter_url=settings.filter_url,
            timeout=settings.transform_timeout,
            script_markers=settings.script_markers_list,
        )

    def classify(self, text: str) -> ContentKind:
        lowered = text.lower()
        if any(marker in lowered for marker in self.script_markers):
            return ContentKind.SCRIPT_LIKE
        return ContentKind.PLAIN_TEXT

    async def transform(self, text: str, kind: ContentKind) -> str:
        if kind is ContentKind.SCRIPT_LIKE:
            return await self._call(self.obfuscator_url, {"script": text}, "obfuscated", text)
        return await self._call(self.filter_url, {"text": text}, "filtered", text)

    async def process(self, text: str) -> str:
        """classify() then transform(); the path NoteStore uses."""
        return await self.transform(text, self.classify(text))

    async def _call(self, url: str, payload: dict, result_field: str, original: str) -> str:
        try:
            response = await self.client.post(url, json=payload, timeout=self.timeout)
        except (httpx.RequestError, UnicodeEncodeError) as e:
            # Lone surrogates cannot be sent as UTF-8 JSON
            return self._fallback(original, url, f"{type(e).__name__}: {e}")

        if not response.is_success:
            return self._fallback(original, url, f"status {response.status_code}")

        try:
            data = response.json()
        except ValueError:
            return self._fallback(original, url, "response body is not JSON")

        result: Optional[object] = data.get(result_field) if isinstance(data, dict) else None
        if not isinstance(result, str) or not result:
            return self._fallback(original, url, f"response has no '{result_field}' string")
        try:
            result.encode("utf-8")
        except UnicodeEncodeError:
            return self._fallback(original, url, "response is not valid UTF-8 text")

        logger.info("Content transformed by %s (%d → %d chars)", url, len(original), len(result))
        return result

    @staticmethod
    def _fallback(original: str, url: str, reason: str) -> str:
        logger.warning("Transformer %s unavailable, storing content unchanged: %s", url, reason)
        return original
