import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, List

import httpx
import pytest
import pytest_asyncio
from typer.testing import CliRunner

from ltrfantasy.infrastructure.config.settings import ThrottleSettings, clear_test_config
from ltrfantasy.infrastructure.http.fetch_client import CachedFetchClient
from ltrfantasy.infrastructure.messaging.hub import NotificationHub
from ltrfantasy.infrastructure.resilience.throttler import Throttler
from ltrfantasy.infrastructure.storage.backends import MemoryBackend
from ltrfantasy.infrastructure.storage.store import PersistentStore


class FakeClock:
    """Virtual time: calling it reads the time, ``sleep`` advances it."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class RouteTransport:
    """Builds an httpx.MockTransport from a URL -> response table and records requests."""

    def __init__(self, routes: Dict[str, Any]):
        self.routes = {str(httpx.URL(url)): route for url, route in routes.items()}
        self.requests: List[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        route = self.routes.get(url)
        if route is None:
            return httpx.Response(404, json={"message": "not found"})
        response = route(request) if callable(route) else route
        if isinstance(response, httpx.Response):
            # Fresh copy per request, a Response can only be sent once
            return httpx.Response(response.status_code, headers=response.headers, content=response.content)
        return httpx.Response(200, json=response)

    def count(self, url: str) -> int:
        return self.requests.count(str(httpx.URL(url)))


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def reset_test_config():
    """Keeps configuration overrides from leaking between tests."""
    yield
    clear_test_config()


@pytest.fixture
def memory_store(clock: FakeClock) -> PersistentStore:
    """A store whose primary and fallback both live in memory."""
    return PersistentStore(primary=MemoryBackend(), fallback=MemoryBackend(), clock=clock)


@pytest.fixture
def disk_store(tmp_path: Path, clock: FakeClock):
    store = PersistentStore(directory=tmp_path / "store", clock=clock)
    yield store
    store.close()


@pytest.fixture
def fast_throttler(clock: FakeClock) -> Throttler:
    settings = ThrottleSettings(max_requests=100, window_seconds=30.0, spacing_seconds=0.0)
    return Throttler(settings, clock=clock, sleep=clock.sleep)


@pytest.fixture
def make_transport() -> Callable[[Dict[str, Any]], RouteTransport]:
    return RouteTransport


@pytest_asyncio.fixture
async def make_client(memory_store: PersistentStore, fast_throttler: Throttler, clock: FakeClock):
    """Factory for CachedFetchClient instances backed by a RouteTransport."""
    http_clients: List[httpx.AsyncClient] = []

    def factory(transport: RouteTransport, **kwargs: Any) -> CachedFetchClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(transport.handler))
        http_clients.append(http_client)
        kwargs.setdefault("sleep", clock.sleep)
        kwargs.setdefault("hub", NotificationHub())
        return CachedFetchClient(memory_store, fast_throttler, http_client, **kwargs)

    yield factory
    for http_client in http_clients:
        await http_client.aclose()
