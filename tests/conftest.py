"""
Shared fixtures: settings, a stubbed upstream and a fresh rate limiter
"""
from fastapi.testclient import TestClient
from typing import AsyncIterator, Callable, Dict, Iterable, List
import httpx
import pytest

from namesearch_service.config import Settings, get_settings
from namesearch_service.main import app
from namesearch_service.rate_limiter import RateLimiter, get_rate_limiter
from namesearch_service.upstream import UpstreamClient, get_upstream_client

WHATSMYNAME_HOST = "api.whatsmynameapp.org"
GOOGLE_HOST = "www.googleapis.com"
OPENROUTER_HOST = "openrouter.ai"

GOOGLE_KEYS = ("key-a", "key-b", "key-c")


async def chunked(chunks: Iterable[bytes]) -> AsyncIterator[bytes]:
    """Async body that delivers the given chunks one read at a time"""
    for chunk in chunks:
        yield chunk


class UpstreamStub:
    """MockTransport handler dispatching on the request host"""

    def __init__(self):
        self.handlers: Dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: List[httpx.Request] = []

    def on(self, host: str, handler: Callable[[httpx.Request], httpx.Response]):
        self.handlers[host] = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.handlers.get(request.url.host)
        if handler is None:
            return httpx.Response(404, json={"error": "no stub"})
        return handler(request)


def make_settings(**overrides) -> Settings:
    values = {
        "ENVIRONMENT": "test",
        "REDIS_ENABLED": False,
        "WHATSMYNAME_API_KEY": "wmn-test-key",
        "GOOGLE_CUSTOM_SEARCH_API_KEYS": ",".join(GOOGLE_KEYS),
        "GOOGLE_CUSTOM_SEARCH_API_KEY": None,
        "GOOGLE_CUSTOM_SEARCH_CX": "cx-test",
        "OPENROUTER_API_KEY": "or-test-key",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def upstream_stub():
    return UpstreamStub()


@pytest.fixture
def upstream(upstream_stub):
    client = UpstreamClient(transport=httpx.MockTransport(upstream_stub))
    client.client = httpx.AsyncClient(timeout=client.timeout, transport=client.transport)
    return client


@pytest.fixture
def limiter():
    return RateLimiter()


@pytest.fixture
def client(settings, upstream, limiter):
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_upstream_client] = lambda: upstream
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
