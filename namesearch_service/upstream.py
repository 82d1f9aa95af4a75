"""
HTTP client for the third-party APIs behind the search routes
"""
import httpx
from typing import Any, List, Optional, Tuple
import json
import logging

from .config import Settings
from .errors import ConfigurationError, UpstreamError, UpstreamTimeoutError
from .key_rotation import (
    build_username_query,
    format_error_message,
    is_retryable_error,
    rotated_order,
)
from .schemas import ChatMessage, GoogleSearchResponse

logger = logging.getLogger(__name__)

GOOGLE_RESPONSE_FIELDS = ",".join([
    "items(title,link,displayLink,snippet,formattedUrl)",
    "searchInformation(searchTime,totalResults)",
    "queries(request(searchTerms))",
])


class UpstreamClient:
    """HTTP client for WhatsMyName, Google Custom Search and OpenRouter"""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = httpx.Timeout(10.0, connect=5.0)
        self.transport = transport
        self.client: Optional[httpx.AsyncClient] = None

    async def start(self):
        """Initialize HTTP client"""
        self.client = httpx.AsyncClient(timeout=self.timeout, transport=self.transport)
        logger.info("Upstream client initialized")

    async def stop(self):
        """Close HTTP client"""
        if self.client:
            await self.client.aclose()
            self.client = None
            logger.info("Upstream client closed")

    def _require_client(self) -> httpx.AsyncClient:
        if not self.client:
            raise RuntimeError("Upstream client not initialized")
        return self.client

    async def _open_stream(self, service: str, request: httpx.Request) -> httpx.Response:
        """Send a request and return the response with its body still unread"""
        client = self._require_client()
        try:
            response = await client.send(request, stream=True)
        except httpx.TimeoutException as e:
            logger.error(f"{service} request timed out: {e}")
            raise UpstreamTimeoutError()
        except httpx.HTTPError as e:
            logger.error(f"{service} request failed: {e}")
            raise UpstreamError(f"{service} API error: {e.__class__.__name__}")

        if response.is_success:
            return response

        try:
            await response.aread()
            logger.error(f"{service} API error ({response.status_code}): {response.text}")
        finally:
            await response.aclose()
        raise UpstreamError(f"{service} API error: {response.reason_phrase}", response.status_code)

    # WhatsMyName
    async def open_whatsmyname_stream(self, username: str, settings: Settings) -> httpx.Response:
        """Start a WhatsMyName search, returning the unread NDJSON response"""
        if not settings.WHATSMYNAME_API_KEY:
            raise ConfigurationError("WhatsMyName API key not configured")

        request = self._require_client().build_request(
            "GET",
            settings.WHATSMYNAME_API_URL,
            params={"username": username},
            headers={
                "x-api-key": settings.WHATSMYNAME_API_KEY,
                "Accept": "application/x-ndjson",
            },
            timeout=settings.WHATSMYNAME_TIMEOUT,
        )
        return await self._open_stream("WhatsMyName", request)

    # Google Custom Search
    async def google_search(
        self,
        username: str,
        num: int,
        settings: Settings,
    ) -> Tuple[GoogleSearchResponse, int]:
        """
        Search Google for mentions of a username, rotating through API keys

        Keys are tried in a rotation seeded by the lowercased username. A
        retryable failure (quota, auth, rate limit, or a timeout) moves on to
        the next key; anything else stops immediately.

        Returns:
            Tuple of (response, index of the key that served it)
        """
        keys = settings.google_api_keys
        cx = settings.GOOGLE_CUSTOM_SEARCH_CX
        if not keys or not cx:
            raise ConfigurationError(
                "Google Custom Search API credentials not configured "
                "(set GOOGLE_CUSTOM_SEARCH_CX and GOOGLE_CUSTOM_SEARCH_API_KEY(S))"
            )

        query = build_username_query(username)
        client = self._require_client()
        key_order = rotated_order(keys, username.lower())
        last_error: Optional[UpstreamError] = None

        for attempt, rotated in enumerate(key_order, start=1):
            is_last = attempt == len(key_order)
            params = {
                "key": rotated.key,
                "cx": cx,
                "q": query,
                "num": str(num),
                "safe": "active",
                "fields": GOOGLE_RESPONSE_FIELDS,
            }

            try:
                response = await client.get(
                    settings.GOOGLE_SEARCH_API_URL,
                    params=params,
                    timeout=settings.GOOGLE_TIMEOUT,
                )
            except httpx.TimeoutException:
                if is_last:
                    raise UpstreamTimeoutError()
                logger.warning(
                    f"Google Search API attempt {attempt}/{len(key_order)} timed out "
                    f"(keyIndex={rotated.index}). Retrying with next key..."
                )
                last_error = UpstreamTimeoutError()
                continue
            except httpx.HTTPError as e:
                logger.error(f"Google Search API request failed: {e}")
                raise UpstreamError(f"Google Search API error: {e.__class__.__name__}")

            if response.is_success:
                return GoogleSearchResponse.from_upstream(response.json()), rotated.index

            payload = _error_payload(response)
            message = format_error_message(response.status_code, payload)
            last_error = UpstreamError(message, response.status_code)

            if is_last or not is_retryable_error(response.status_code, payload):
                raise last_error

            logger.warning(
                f"Google Search API attempt {attempt}/{len(key_order)} failed "
                f"(status={response.status_code}, keyIndex={rotated.index}). Retrying with next key..."
            )

        raise last_error or UpstreamError("Google Search API error (all API keys failed)")

    # OpenRouter
    async def open_chat_stream(
        self,
        messages: List[ChatMessage],
        settings: Settings,
        referer: Optional[str] = None,
    ) -> httpx.Response:
        """Start a streaming chat completion, returning the unread SSE response"""
        if not settings.OPENROUTER_API_KEY:
            raise ConfigurationError("OpenRouter API key not configured")

        request = self._require_client().build_request(
            "POST",
            settings.OPENROUTER_API_URL,
            headers={
                "Authorization": f"Bearer {settings.OPENROUTER_API_KEY}",
                "HTTP-Referer": referer or settings.SITE_URL,
                "X-Title": settings.SITE_TITLE,
            },
            json={
                "model": settings.OPENROUTER_MODEL,
                "messages": [{"role": m.role, "content": m.content} for m in messages],
                "stream": True,
                "temperature": settings.OPENROUTER_TEMPERATURE,
                "max_tokens": settings.OPENROUTER_MAX_TOKENS,
            },
            timeout=settings.OPENROUTER_TIMEOUT,
        )
        return await self._open_stream("OpenRouter", request)


def _error_payload(response: httpx.Response) -> Any:
    """Structured error body, or a synthetic one wrapping the raw text"""
    text = response.text
    try:
        return json.loads(text)
    except ValueError:
        return {"error": {"message": text or response.reason_phrase}}


# Global upstream client instance
upstream_client = UpstreamClient()


async def get_upstream_client() -> UpstreamClient:
    """Dependency for getting upstream client instance"""
    return upstream_client
