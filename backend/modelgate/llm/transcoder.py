"""
Streaming Transcoder — Provider SSE → Canonical SSE

Callers consume one streaming dialect regardless of upstream: OpenAI-style
chat-completion chunks terminated by a [DONE] sentinel::

    data: {"choices": [{"delta": {"content": "Hel"}, "index": 0}]}

    data: [DONE]

Chat-completions providers already speak it, so their bytes pass through.
Generate-content providers emit one JSON object per `data: ` line; each is
rewritten here, incrementally, without buffering the response.

Per-event contract (generate-content):
  - error payload     → logged and dropped; the stream continues
  - invalid JSON      → skipped silently; the stream continues
  - non-empty text    → one canonical chunk, index 0
  - end of input      → exactly one [DONE], even if nothing was emitted

Both generators own the upstream response: it is closed in `finally`, which
runs on normal completion, on error, and when the caller abandons the stream
(generator closed or task cancelled on client disconnect).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator

import httpx

from modelgate.core.errors import TranscodeSkip

logger = logging.getLogger(__name__)

EVENT_PREFIX  = "data: "
DONE_SENTINEL = "[DONE]"


# ---------------------------------------------------------------------------
# Canonical chunk
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CanonicalStreamChunk:
    """One unit of the canonical stream."""
    delta:    str  = ""
    index:    int  = 0
    terminal: bool = False

    @classmethod
    def done(cls) -> "CanonicalStreamChunk":
        return cls(terminal=True)

    def encode(self) -> bytes:
        if self.terminal:
            return f"{EVENT_PREFIX}{DONE_SENTINEL}\n\n".encode()
        payload = {"choices": [{"delta": {"content": self.delta}, "index": self.index}]}
        return f"{EVENT_PREFIX}{json.dumps(payload, ensure_ascii=False)}\n\n".encode()


# ---------------------------------------------------------------------------
# Event decoding
# ---------------------------------------------------------------------------

def decode_generate_content_event(line: str) -> CanonicalStreamChunk | None:
    """
    Decode one generate-content SSE line.

    Returns:
        A content chunk, or None for lines that carry no text (blank lines,
        non-data fields, empty increments).

    Raises:
        TranscodeSkip: For malformed JSON (silent) or error payloads.
    """
    if not line.startswith(EVENT_PREFIX):
        return None
    raw = line[len(EVENT_PREFIX):].strip()
    if not raw:
        return None

    try:
        event: Any = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise TranscodeSkip(f"malformed event: {exc}", silent=True) from exc

    if not isinstance(event, dict):
        raise TranscodeSkip("event is not a JSON object", silent=True)

    if event.get("error"):
        raise TranscodeSkip(f"upstream error event: {json.dumps(event['error'])[:500]}")

    text = _candidate_text(event)
    if not text:
        return None
    return CanonicalStreamChunk(delta=text, index=0)


def _candidate_text(event: dict[str, Any]) -> str:
    candidates = event.get("candidates") or []
    if not candidates or not isinstance(candidates[0], dict):
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(
        part["text"] for part in parts
        if isinstance(part, dict) and isinstance(part.get("text"), str)
    )


# ---------------------------------------------------------------------------
# Stream adapters
# ---------------------------------------------------------------------------

async def transcode_generate_content(
    response: httpx.Response,
    label: str = "generate-content",
) -> AsyncIterator[bytes]:
    """
    Re-emit a generate-content SSE response as canonical SSE bytes.

    Yields:
        Encoded canonical chunks, then exactly one [DONE] sentinel.
    """
    emitted = 0
    skipped = 0
    try:
        try:
            async for line in response.aiter_lines():
                try:
                    chunk = decode_generate_content_event(line)
                except TranscodeSkip as skip:
                    skipped += 1
                    if skip.silent:
                        logger.debug("Transcoder | %s skipped line: %s", label, skip.reason)
                    else:
                        logger.error("Transcoder | %s %s", label, skip.reason)
                    continue

                if chunk is not None:
                    emitted += 1
                    yield chunk.encode()

        except httpx.ReadTimeout:
            logger.warning("Transcoder | %s upstream idle timeout — ending stream", label)
        except httpx.StreamError as exc:
            logger.warning("Transcoder | %s upstream stream broke: %s", label, exc)
        except httpx.TransportError as exc:
            logger.warning("Transcoder | %s upstream transport error: %s", label, exc)

        yield CanonicalStreamChunk.done().encode()
        logger.info("Transcoder | %s done chunks=%d skipped=%d", label, emitted, skipped)

    finally:
        await response.aclose()


async def passthrough(
    response: httpx.Response,
    label: str = "chat-completions",
) -> AsyncIterator[bytes]:
    """Forward an already-canonical upstream stream byte-for-byte."""
    try:
        async for chunk in response.aiter_bytes():
            yield chunk
    except httpx.ReadTimeout:
        logger.warning("Passthrough | %s upstream idle timeout — ending stream", label)
    except (httpx.StreamError, httpx.TransportError) as exc:
        logger.warning("Passthrough | %s upstream stream broke: %s", label, exc)
    finally:
        await response.aclose()
