"""BDD step definitions for exporter scrape features."""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import httpx
import pytest
from pytest_bdd import given, parsers, then, when

from homers.adapters.frameworks.asgi import create_asgi_app
from homers.core.aggregator import Aggregator
from homers.core.models import (
    InstanceDescriptor,
    InstanceIdentity,
    InstanceOptions,
    ServiceKind,
)

SCENARIO_NOW = datetime(2024, 6, 15, 12, 0, tzinfo=UTC)


@dataclass
class ScrapeResult:
    """Status, headers and body of one scrape."""

    status: int
    content_type: str
    body: str


@dataclass
class ScrapeScenarioContext:
    """Shared state between steps in a scrape scenario."""

    routes: dict[str, Any] = field(default_factory=dict)
    failures: dict[str, Exception] = field(default_factory=dict)
    descriptors: list[InstanceDescriptor] = field(default_factory=list)
    result: ScrapeResult | None = None


def run_async(coro: Any) -> Any:
    """Run a coroutine synchronously."""
    return asyncio.run(coro)


def _descriptor(kind: ServiceKind, name: str) -> InstanceDescriptor:
    return InstanceDescriptor(
        identity=InstanceIdentity(kind=kind, name=name),
        address=f"http://{kind.value}-{name}.test",
        credential="secret",
        options=InstanceOptions(),
    )


async def _scrape(ctx: ScrapeScenarioContext, accept: str | None) -> ScrapeResult:
    async def handler(request: httpx.Request) -> httpx.Response:
        failure = ctx.failures.get(request.url.path)
        if failure is not None:
            raise failure
        if request.url.path not in ctx.routes:
            return httpx.Response(404, json={"message": "not found"})
        return httpx.Response(200, json=ctx.routes[request.url.path])

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as upstream_client:
        aggregator = Aggregator(
            ctx.descriptors, client=upstream_client, clock=lambda: SCENARIO_NOW
        )
        app = create_asgi_app(aggregator, deadline=5.0)
        headers = {"Accept": accept} if accept else {}
        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://exporter"
        ) as client:
            response = await client.get("/metrics", headers=headers)
        await aggregator.aclose()
    return ScrapeResult(
        status=response.status_code,
        content_type=response.headers["content-type"],
        body=response.text,
    )


def _samples(body: str, name: str) -> list[tuple[str, float]]:
    """Return (label block, value) for every sample line of one family."""
    found = []
    for line in body.splitlines():
        if line.startswith("#"):
            continue
        series, _, value = line.rpartition(" ")
        family, _, labels = series.partition("{")
        if family == name:
            found.append((labels, float(value)))
    return found


@pytest.fixture
def ctx() -> ScrapeScenarioContext:
    """Fresh scenario context for each test."""
    return ScrapeScenarioContext()


# === Background Steps ===
@given(parsers.parse('a Sonarr instance "{name}" with {count:d} episodes airing today'))
def step_sonarr(ctx: ScrapeScenarioContext, name: str, count: int) -> None:
    ctx.descriptors.append(_descriptor(ServiceKind.SONARR, name))
    ctx.routes["/api/v3/calendar"] = [
        {
            "title": f"Episode {number}",
            "seasonNumber": 2,
            "episodeNumber": number,
            "hasFile": True,
            "airDateUtc": f"2024-06-15T{number:02}:30:00Z",
            "series": {"title": "Andor"},
        }
        for number in range(1, count + 1)
    ]


@given(parsers.parse('an Overseerr instance "{name}" with {count:d} pending requests'))
def step_overseerr(ctx: ScrapeScenarioContext, name: str, count: int) -> None:
    ctx.descriptors.append(_descriptor(ServiceKind.OVERSEERR, name))
    ctx.routes["/api/v1/request"] = {
        "results": [
            {
                "id": request_id,
                "status": 1,
                "createdAt": "2024-06-15T08:00:00.000Z",
                "media": {"mediaType": "movie", "status": 2},
                "requestedBy": {"displayName": "Alice"},
            }
            for request_id in range(1, count + 1)
        ]
    }


@given("the Overseerr instance refuses connections")
def step_overseerr_down(ctx: ScrapeScenarioContext) -> None:
    ctx.failures["/api/v1/request"] = httpx.ConnectError("connection refused")


# === Scrape Steps ===
@when("Prometheus scrapes /metrics")
def step_scrape(ctx: ScrapeScenarioContext) -> None:
    ctx.result = run_async(_scrape(ctx, accept=None))


@when("an OpenMetrics client scrapes /metrics")
def step_scrape_openmetrics(ctx: ScrapeScenarioContext) -> None:
    ctx.result = run_async(_scrape(ctx, accept="application/openmetrics-text; version=1.0.0"))


# === Assertion Steps ===
@then(parsers.parse("the response status is {status:d}"))
def step_status(ctx: ScrapeScenarioContext, status: int) -> None:
    assert ctx.result is not None
    assert ctx.result.status == status


@then(parsers.parse('the body has {count:d} "{name}" samples'))
def step_sample_count(ctx: ScrapeScenarioContext, count: int, name: str) -> None:
    assert ctx.result is not None
    assert len(_samples(ctx.result.body, name)) == count


@then(parsers.parse('the body has {count:d} "{name}" samples with value {value:d}'))
def step_sample_count_with_value(
    ctx: ScrapeScenarioContext, count: int, name: str, value: int
) -> None:
    assert ctx.result is not None
    samples = _samples(ctx.result.body, name)
    assert len(samples) == count
    assert all(sample_value == value for _, sample_value in samples)


@then(parsers.parse('the body reports {value:d} for "{name}"'))
def step_single_value(ctx: ScrapeScenarioContext, name: str, value: int) -> None:
    assert ctx.result is not None
    assert [v for _, v in _samples(ctx.result.body, name)] == [value]


@then(parsers.parse('the body reports {value:d} "{status}" requests in "{name}"'))
def step_status_total(ctx: ScrapeScenarioContext, value: int, status: str, name: str) -> None:
    assert ctx.result is not None
    values = [
        v for labels, v in _samples(ctx.result.body, name) if f'status="{status}"' in labels
    ]
    assert values == [value]


@then(parsers.parse('service "{service}" instance "{name}" is reported {state}'))
def step_liveness(ctx: ScrapeScenarioContext, service: str, name: str, state: str) -> None:
    assert ctx.result is not None
    expected = 1.0 if state == "up" else 0.0
    values = [
        v
        for labels, v in _samples(ctx.result.body, "homers_service_up")
        if f'service="{service}"' in labels and f'name="{name}"' in labels
    ]
    assert values == [expected]


@then(parsers.parse('the body ends with "{marker}"'))
def step_ends_with(ctx: ScrapeScenarioContext, marker: str) -> None:
    assert ctx.result is not None
    assert ctx.result.body.rstrip("\n").endswith(marker)
