"""
Incremental NDJSON and SSE stream handling

Upstream bodies arrive in arbitrary chunks. Frames (NDJSON lines, SSE events)
are assembled in a text buffer and only complete frames are handed on; the
trailing partial frame waits for the next chunk. The upstream response is
closed on every exit path, including consumer cancellation.
"""
from typing import Any, AsyncIterator, List, Optional
import json
import logging

import httpx

from .errors import StreamUnreadableError, UpstreamError

logger = logging.getLogger(__name__)

NDJSON_DELIMITER = "\n"
SSE_DELIMITER = "\n\n"
SSE_DATA_PREFIX = "data:"
SSE_DONE = "[DONE]"

STREAM_ERROR_MESSAGE = "An error occurred while streaming results"
AI_STREAM_ERROR_MESSAGE = "An error occurred during AI processing"


class FrameBuffer:
    """Accumulates text and splits off complete delimiter-terminated frames"""

    def __init__(self, delimiter: str):
        self.delimiter = delimiter
        self.buffer = ""

    def feed(self, text: str) -> List[str]:
        """Add text, return the frames it completed"""
        self.buffer += text
        *complete, self.buffer = self.buffer.split(self.delimiter)
        return complete

    def flush(self) -> str:
        """Return and clear whatever is left"""
        rest, self.buffer = self.buffer, ""
        return rest


async def _iter_text(response: httpx.Response) -> AsyncIterator[str]:
    if not hasattr(response, "aiter_text"):
        raise StreamUnreadableError()
    try:
        async for chunk in response.aiter_text():
            yield chunk
    except (httpx.StreamConsumed, httpx.StreamClosed) as e:
        raise StreamUnreadableError() from e


async def _close(response: Any) -> None:
    aclose = getattr(response, "aclose", None)
    if aclose is not None:
        await aclose()


# Parsing (consumer side)
async def iter_ndjson(response: httpx.Response) -> AsyncIterator[Any]:
    """
    Yield each JSON value of an NDJSON body as it arrives

    Malformed lines are logged and skipped; they never abort the stream.

    Raises:
        StreamUnreadableError: If the response has no readable body
    """
    frames = FrameBuffer(NDJSON_DELIMITER)
    try:
        async for text in _iter_text(response):
            for line in frames.feed(text):
                line = line.strip()
                if not line:
                    continue
                try:
                    record = json.loads(line)
                except ValueError:
                    logger.error(f"Failed to parse JSON line: {line}")
                    continue
                yield record

        rest = frames.flush().strip()
        if rest:
            try:
                record = json.loads(rest)
            except ValueError as e:
                logger.error(f"Failed to parse final buffer: {rest} ({e})")
            else:
                yield record
    finally:
        await _close(response)


def _event_payloads(event: str) -> List[str]:
    payloads = []
    for line in event.split("\n"):
        line = line.rstrip("\r")
        if line.startswith(SSE_DATA_PREFIX):
            payload = line[len(SSE_DATA_PREFIX):]
            if payload.startswith(" "):
                payload = payload[1:]
            payloads.append(payload)
    return payloads


def _extract_content(payload: str) -> Optional[str]:
    try:
        parsed = json.loads(payload)
    except ValueError:
        # Plain text deltas are passed through as-is
        return payload

    if not isinstance(parsed, dict):
        return None
    if "error" in parsed and "choices" not in parsed:
        # In-band failure reported mid-stream
        error = parsed["error"]
        if isinstance(error, dict):
            error = error.get("message") or "Unknown error"
        raise UpstreamError(str(error))

    choices = parsed.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        delta = choices[0].get("delta")
        if isinstance(delta, dict):
            content = delta.get("content")
            if isinstance(content, str) and content:
                return content
    content = parsed.get("content")
    if isinstance(content, str) and content:
        return content
    return None


async def iter_sse(response: httpx.Response) -> AsyncIterator[str]:
    """
    Yield content deltas from an OpenRouter-style SSE body

    Stops at the first ``data: [DONE]`` payload, even when more bytes follow
    in the same chunk.

    Raises:
        StreamUnreadableError: If the response has no readable body
        UpstreamError: If an event carries an ``{"error": ...}`` payload
    """
    frames = FrameBuffer(SSE_DELIMITER)
    try:
        async for text in _iter_text(response):
            for event in frames.feed(text):
                if not event.strip():
                    continue
                for payload in _event_payloads(event):
                    if payload == SSE_DONE:
                        return
                    content = _extract_content(payload)
                    if content is not None:
                        yield content
    finally:
        await _close(response)


def is_search_metadata(record: Any) -> bool:
    """Progress record: carries total/completed, no result fields"""
    return (
        isinstance(record, dict)
        and ("total" in record or "completed" in record)
        and "source" not in record
        and "checkResult" not in record
    )


def is_search_result(record: Any) -> bool:
    """Platform check record"""
    return isinstance(record, dict) and "source" in record and "checkResult" in record


def is_stream_error(record: Any) -> bool:
    """Terminal in-band error record"""
    return isinstance(record, dict) and "error" in record and not is_search_result(record)


# Pass-through relays (server side)
def _is_done_event(event: str) -> bool:
    return SSE_DONE in _event_payloads(event)


async def relay_ndjson(
    response: httpx.Response,
    expose_errors: bool = True,
) -> AsyncIterator[bytes]:
    """
    Forward complete NDJSON lines from upstream without re-encoding them

    A failure after the first byte has been sent becomes a final
    ``{"error": ...}`` line.
    """
    frames = FrameBuffer(NDJSON_DELIMITER)
    try:
        async for text in _iter_text(response):
            for line in frames.feed(text):
                if line.strip():
                    yield (line + NDJSON_DELIMITER).encode("utf-8")

        rest = frames.flush()
        if rest.strip():
            yield (rest + NDJSON_DELIMITER).encode("utf-8")
    except Exception as e:
        logger.error(f"NDJSON streaming error: {e}")
        message = str(e) if expose_errors else STREAM_ERROR_MESSAGE
        yield (json.dumps({"error": message}) + NDJSON_DELIMITER).encode("utf-8")
    finally:
        await _close(response)


async def relay_sse(
    response: httpx.Response,
    expose_errors: bool = True,
) -> AsyncIterator[bytes]:
    """
    Forward complete SSE events from upstream with their framing intact

    The upstream terminal marker is replaced by our own ``data: [DONE]`` on
    clean completion. A mid-stream failure becomes a final
    ``data: {"error": ...}`` event.
    """
    frames = FrameBuffer(SSE_DELIMITER)
    try:
        async for text in _iter_text(response):
            for event in frames.feed(text):
                if event.strip() and not _is_done_event(event):
                    yield (event + SSE_DELIMITER).encode("utf-8")

        rest = frames.flush()
        if rest.strip() and not _is_done_event(rest):
            yield (rest + SSE_DELIMITER).encode("utf-8")
        yield f"{SSE_DATA_PREFIX} {SSE_DONE}{SSE_DELIMITER}".encode("utf-8")
    except Exception as e:
        logger.error(f"SSE streaming error: {e}")
        message = (str(e) or "Unknown error") if expose_errors else AI_STREAM_ERROR_MESSAGE
        yield f"{SSE_DATA_PREFIX} {json.dumps({'error': message})}{SSE_DELIMITER}".encode("utf-8")
    finally:
        await _close(response)
