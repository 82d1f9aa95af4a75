"""
Python client for the username search API

Consumes the NDJSON, JSON and SSE routes the way the browser front end
does and folds what it receives into the state store.
"""
import httpx
from contextlib import aclosing
from pydantic import ValidationError
from typing import Any, AsyncIterator, Callable, List, Optional, Sequence
import asyncio
import logging

from .cache import CachedSearch, SearchCache
from .errors import UpstreamError
from .schemas import ChatMessage, GoogleSearchResponse, SearchMetadata, SearchResult
from .store import (
    ErrorSet,
    GoogleErrorSet,
    GoogleResponseSet,
    ProgressAdvanced,
    ProgressCompleted,
    ProgressTotalSet,
    ResultsAppended,
    SearchEvent,
    SearchStarted,
    SearchState,
    SearchStopped,
    reduce,
)
from .stream_relay import (
    is_search_metadata,
    is_search_result,
    is_stream_error,
    iter_ndjson,
    iter_sse,
)

logger = logging.getLogger(__name__)

WHATSMYNAME_PATH = "/api/search/whatsmyname"
GOOGLE_PATH = "/api/search/google"
AI_ANALYZE_PATH = "/api/ai/analyze"

EXISTENCE_SEARCH_FAILED = "Failed to complete WhatsMyName search"
WEB_SEARCH_FAILED = "Failed to complete Google search"


class SearchClient:
    """Client for the search and AI routes"""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cache: Optional[SearchCache] = None,
    ):
        self.base_url = base_url
        self.timeout = httpx.Timeout(60.0, connect=5.0)
        self.transport = transport
        self.cache = cache if cache is not None else SearchCache()
        self.client: Optional[httpx.AsyncClient] = None

    async def start(self):
        """Initialize HTTP client"""
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
        )
        logger.info(f"Search client initialized for {self.base_url}")

    async def stop(self):
        """Close HTTP client"""
        if self.client:
            await self.client.aclose()
            self.client = None
            logger.info("Search client closed")

    def _require_client(self) -> httpx.AsyncClient:
        if not self.client:
            raise RuntimeError("Search client not initialized")
        return self.client

    async def iter_search_events(self, username: str) -> AsyncIterator[SearchEvent]:
        """
        Stream a WhatsMyName search as store events

        Raises:
            UpstreamError: If the route rejects the request or the stream
                carries an error record
        """
        client = self._require_client()
        request = client.build_request("GET", WHATSMYNAME_PATH, params={"username": username})
        response = await client.send(request, stream=True)

        if not response.is_success:
            try:
                await response.aread()
            finally:
                await response.aclose()
            raise UpstreamError(_error_message(response, EXISTENCE_SEARCH_FAILED), response.status_code)

        async with aclosing(iter_ndjson(response)) as records:
            async for record in records:
                if is_stream_error(record):
                    raise UpstreamError(str(record["error"]))

                try:
                    events = _record_events(record)
                except ValidationError as e:
                    logger.warning(f"Skipping malformed search record: {e}")
                    continue
                for event in events:
                    yield event

    async def web_search(self, username: str, num: int = 10) -> GoogleSearchResponse:
        """
        Run a Google search through the API

        Raises:
            UpstreamError: On a non-success status or an unexpected body
        """
        client = self._require_client()
        response = await client.get(GOOGLE_PATH, params={"username": username, "num": num})
        payload = _json_or_none(response)

        if not response.is_success:
            raise UpstreamError(_error_message(response, WEB_SEARCH_FAILED), response.status_code)
        if not isinstance(payload, dict):
            raise UpstreamError(WEB_SEARCH_FAILED)

        try:
            return GoogleSearchResponse.model_validate(payload)
        except ValidationError as e:
            raise UpstreamError(WEB_SEARCH_FAILED) from e

    async def search(
        self,
        username: str,
        on_update: Optional[Callable[[SearchState], Any]] = None,
        use_cache: bool = True,
    ) -> SearchState:
        """
        Run the existence search and the web search concurrently

        Each side's failure is recorded in its own slot of the state; the other
        side still completes. A recent search for the same username is served
        from the cache without touching the API.

        Args:
            username: Username to search for, surrounding whitespace ignored
            on_update: Called with every intermediate state
            use_cache: Consult and fill the search cache

        Returns:
            Final search state
        """
        username = username.strip()
        state = SearchState()
        if not username:
            return state

        def dispatch(event: SearchEvent):
            nonlocal state
            state = reduce(state, event)
            if on_update:
                on_update(state)

        cached = self.cache.get(username) if use_cache else None
        if cached and cached.results:
            logger.info(f"Serving cached search for {username}")
            for event in _cached_events(username, cached):
                dispatch(event)
            return state

        async def run_existence_search():
            async for event in self.iter_search_events(username):
                dispatch(event)

        async def run_web_search():
            dispatch(GoogleResponseSet(response=await self.web_search(username)))

        dispatch(SearchStarted(username=username))
        existence, web = await asyncio.gather(
            run_existence_search(),
            run_web_search(),
            return_exceptions=True,
        )

        if isinstance(existence, Exception):
            logger.error(f"WhatsMyName search failed for {username}: {existence}")
            dispatch(ErrorSet(error=EXISTENCE_SEARCH_FAILED))
        if isinstance(web, Exception):
            logger.error(f"Google search failed for {username}: {web}")
            dispatch(GoogleErrorSet(error=WEB_SEARCH_FAILED))

        if use_cache and not isinstance(existence, Exception) and state.results:
            self.cache.set(username, state.results, _google_response(state))

        dispatch(SearchStopped())
        return state

    async def stream_chat(
        self,
        messages: Sequence[ChatMessage],
        username: Optional[str] = None,
    ) -> AsyncIterator[str]:
        """
        Ask the AI route about a search and yield the answer as it streams

        Raises:
            UpstreamError: If the route rejects the request or the stream
                carries an error payload
        """
        client = self._require_client()
        body: dict = {"messages": [m.model_dump() for m in messages]}
        if username:
            body["username"] = username

        request = client.build_request("POST", AI_ANALYZE_PATH, json=body)
        response = await client.send(request, stream=True)

        if not response.is_success:
            try:
                await response.aread()
            finally:
                await response.aclose()
            raise UpstreamError(_error_message(response, "AI analysis failed"), response.status_code)

        async with aclosing(iter_sse(response)) as deltas:
            async for delta in deltas:
                yield delta


def _record_events(record: Any) -> List[SearchEvent]:
    """Store events for one NDJSON record, none for unrecognised records"""
    if is_search_result(record):
        return [
            ResultsAppended(results=(SearchResult.model_validate(record),)),
            ProgressAdvanced(count=1),
        ]
    if not is_search_metadata(record):
        return []

    metadata = SearchMetadata.model_validate(record)
    events: List[SearchEvent] = []
    if metadata.total:
        events.append(ProgressTotalSet(total=metadata.total))
    if metadata.completed:
        events.append(ProgressCompleted())
    return events


def _cached_events(username: str, cached: CachedSearch) -> List[SearchEvent]:
    return [
        SearchStarted(username=username),
        ResultsAppended(results=cached.results),
        GoogleResponseSet(response=cached.google_response),
        ProgressTotalSet(total=len(cached.results)),
        ProgressCompleted(),
        SearchStopped(),
    ]


def _google_response(state: SearchState) -> Optional[GoogleSearchResponse]:
    if not state.google_results:
        return None
    return GoogleSearchResponse(
        items=list(state.google_results),
        search_information=state.google_search_information,
        query=state.google_query,
    )


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _error_message(response: httpx.Response, fallback: str) -> str:
    payload = _json_or_none(response)
    if isinstance(payload, dict) and isinstance(payload.get("error"), str):
        return payload["error"]
    return fallback
