"""Shared test fixtures for all test modules."""

import asyncio
from collections.abc import AsyncGenerator, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import httpx
import pytest

from homers.core.models import (
    InstanceDescriptor,
    InstanceIdentity,
    InstanceOptions,
    ServiceKind,
)
from homers.core.ports import CollectionContext

# Noon UTC; windows computed from this clock are UTC based.
FIXED_NOW = datetime(2024, 6, 15, 12, 0, 0, tzinfo=UTC)


@dataclass
class Route:
    """Canned upstream answer for one path."""

    payload: Any = None
    status: int = 200
    delay: float = 0.0
    error: Exception | None = None
    text: str | None = None


class FakeUpstream:
    """httpx.MockTransport handler serving canned JSON per path.

    Routes are keyed by "host/path" or by path alone; the host-qualified
    key wins. A payload may be a callable taking the request.
    """

    def __init__(self) -> None:
        self.routes: dict[str, Route] = {}
        self.requests: list[httpx.Request] = []

    def add(self, path: str, payload: Any = None, **options: Any) -> "FakeUpstream":
        self.routes[path] = Route(payload=payload, **options)
        return self

    def count(self, path: str) -> int:
        return sum(1 for request in self.requests if request.url.path == path)

    def last(self, path: str) -> httpx.Request:
        return [request for request in self.requests if request.url.path == path][-1]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(f"{request.url.host}{request.url.path}") or self.routes.get(
            request.url.path
        )
        if route is None:
            return httpx.Response(404, json={"message": "not found"})
        if route.delay:
            await asyncio.sleep(route.delay)
        if route.error is not None:
            raise route.error
        if route.text is not None:
            return httpx.Response(route.status, text=route.text)
        payload = route.payload(request) if callable(route.payload) else route.payload
        return httpx.Response(route.status, json=payload)


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    """Clock frozen at FIXED_NOW."""
    return lambda: FIXED_NOW


@pytest.fixture
def upstream() -> FakeUpstream:
    """Empty fake upstream; tests register routes on it."""
    return FakeUpstream()


@pytest.fixture
def make_descriptor():
    """Factory fixture for instance descriptors.

    Usage:
        descriptor = make_descriptor(ServiceKind.SONARR, "main", missing_days=3)
    """

    def _descriptor(
        kind: ServiceKind,
        name: str = "main",
        address: str | None = None,
        credential: str = "secret",
        **options: Any,
    ) -> InstanceDescriptor:
        return InstanceDescriptor(
            identity=InstanceIdentity(kind=kind, name=name),
            address=address or f"http://{kind.value}-{name}.test",
            credential=credential,
            options=InstanceOptions(**options),
        )

    return _descriptor


@pytest.fixture
async def http_client(upstream: FakeUpstream) -> AsyncGenerator[httpx.AsyncClient]:
    """AsyncClient whose transport is the fake upstream."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(upstream)) as client:
        yield client


@pytest.fixture
def context(
    http_client: httpx.AsyncClient, fixed_clock: Callable[[], datetime]
) -> CollectionContext:
    """Collection context wired to the fake upstream and the fixed clock."""
    return CollectionContext(client=http_client, timeout=5.0, clock=fixed_clock)


# === ASGI Test Fixtures ===


@pytest.fixture
def asgi_test_client():
    """Factory fixture that creates an httpx.AsyncClient for ASGI testing.

    Returns a callable that accepts an ASGI app and yields a client
    with ASGITransport configured.

    Usage:
        async def test_something(asgi_test_client):
            app = create_asgi_app(aggregator)
            async with asgi_test_client(app) as client:
                response = await client.get("/metrics")
    """

    def _get_client(app):
        """Return an AsyncClient context manager for the given app."""
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        )

    return _get_client


@pytest.fixture
def asgi_scope():
    """Factory fixture for creating ASGI scope dicts."""

    def _scope(
        method: str = "GET", path: str = "/metrics", headers: list | None = None
    ) -> dict[str, Any]:
        return {
            "type": "http",
            "method": method,
            "path": path,
            "query_string": b"",
            "headers": headers or [],
        }

    return _scope


@pytest.fixture
def asgi_send_capture():
    """Fixture that returns a send callable and a responses list for capture."""

    responses: list[dict[str, object]] = []

    async def send(message: dict[str, object]) -> None:
        """Capture ASGI messages."""
        responses.append(message)

    return send, responses
