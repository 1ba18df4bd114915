"""
Shared pytest fixtures for Land Registry gateway tests.

Nothing here touches the network: the gateway's httpx client is wired to an
in-process MockTransport backed by FakeLandRegistry, which serves canned
responses per (method, path) and records every request it sees.
"""
from typing import Any, Callable, Optional

import httpx
import pytest

from app.data.cache import TTLCache
from app.data.executor import RequestExecutor
from app.data.land_registry_client import LandRegistryGateway

BASE_URL = "http://landreg.test/api/land-registry"
_PREFIX = "/api/land-registry"


class FakeClock:
    """Manually advanced monotonic clock for TTL and retention tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeLandRegistry:
    """MockTransport handler standing in for the Land Registry API."""

    def __init__(self) -> None:
        self._routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    # ── Route setup ──────────────────────────────────────────────────────

    def respond(
        self,
        method: str,
        path: str,
        status: int = 200,
        json: Any = None,
        content: Optional[bytes] = None,
    ) -> None:
        def _build(request: httpx.Request) -> httpx.Response:
            if content is not None:
                return httpx.Response(status, content=content)
            return httpx.Response(status, json=json)
        self._routes[(method, path)] = _build

    def ok(self, method: str, path: str, data: Any, meta: Optional[dict] = None) -> None:
        body = {"success": True, "data": data}
        if meta is not None:
            body["meta"] = meta
        self.respond(method, path, json=body)

    def fail_with(self, method: str, path: str, exc_type: type[httpx.TransportError], message: str) -> None:
        def _raise(request: httpx.Request) -> httpx.Response:
            raise exc_type(message, request=request)
        self._routes[(method, path)] = _raise

    def handle(self, method: str, path: str, fn: Callable[[httpx.Request], httpx.Response]) -> None:
        self._routes[(method, path)] = fn

    # ── Transport entrypoint ─────────────────────────────────────────────

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.startswith(_PREFIX):
            path = path[len(_PREFIX):]
        route = self._routes.get((request.method, path))
        if route is None:
            return httpx.Response(404, json={"statusCode": 404, "message": f"Cannot {request.method} {path}"})
        return route(request)

    # ── Assertions ───────────────────────────────────────────────────────

    def calls(self, method: Optional[str] = None, path: Optional[str] = None) -> int:
        count = 0
        for r in self.requests:
            r_path = r.url.path[len(_PREFIX):] if r.url.path.startswith(_PREFIX) else r.url.path
            if method is not None and r.method != method:
                continue
            if path is not None and r_path != path:
                continue
            count += 1
        return count


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_api() -> FakeLandRegistry:
    return FakeLandRegistry()


@pytest.fixture
def executor(fake_api) -> RequestExecutor:
    return RequestExecutor(BASE_URL, transport=httpx.MockTransport(fake_api))


@pytest.fixture
def gateway(executor, clock) -> LandRegistryGateway:
    """Gateway with 300s short / 1800s long TTLs on a fake clock."""
    return LandRegistryGateway(
        executor,
        cache=TTLCache(default_ttl=300, clock=clock),
        short_ttl=300,
        long_ttl=1800,
    )
