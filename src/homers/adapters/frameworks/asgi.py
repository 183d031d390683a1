"""ASGI exposition endpoint.

A framework-agnostic ASGI application that can be served by any ASGI server
(uvicorn, hypercorn, daphne). Every GET /metrics triggers a fresh collection
cycle through the aggregator.
"""

import json
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from homers.core.aggregator import DEFAULT_DEADLINE, Aggregator
from homers.core.encoding import encode, encode_openmetrics

logger = logging.getLogger(__name__)

# ASGI type aliases
Scope = dict[str, Any]
Receive = Callable[[], Coroutine[Any, Any, dict[str, Any]]]
Send = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]
ASGIApp = Callable[[Scope, Receive, Send], Coroutine[Any, Any, None]]

PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"
OPENMETRICS_CONTENT_TYPE = "application/openmetrics-text; version=1.0.0; charset=utf-8"

INDEX_HTML = """<!DOCTYPE html>
<html>
<head><title>Homers exporter</title></head>
<body>
<h1>Homers exporter</h1>
<p><a href="/metrics">Metrics</a></p>
</body>
</html>
"""


def _get_header(scope: Scope, header_name: str) -> str:
    """Return a request header value (case-insensitive), or "" when absent.

    Args:
        scope: ASGI scope dictionary containing request metadata.
        header_name: Name of the header to search for.
    """
    header_bytes = header_name.lower().encode()
    headers: list[tuple[bytes, bytes]] = scope.get("headers", [])
    for name, value in headers:
        if name.lower() == header_bytes:
            return value.decode("latin-1")
    return ""


def wants_openmetrics(accept: str) -> bool:
    """Return True when the Accept header asks for OpenMetrics."""
    return "openmetrics" in accept.lower()


async def _respond(
    send: Send,
    status: int,
    content_type: str,
    body: str,
    *,
    head: bool = False,
    headers: list[tuple[bytes, bytes]] | None = None,
) -> None:
    """Write a complete response; HEAD requests get the headers only."""
    payload = body.encode()
    await send(
        {
            "type": "http.response.start",
            "status": status,
            "headers": [
                (b"content-type", content_type.encode()),
                (b"content-length", str(len(payload)).encode()),
                *(headers or []),
            ],
        }
    )
    await send({"type": "http.response.body", "body": b"" if head else payload})


async def _serve_scrape(
    send: Send,
    scrape: Callable[[], Coroutine[Any, Any, str]],
    content_type: str,
    head: bool,
) -> None:
    """Run one scrape and write its body, or a JSON 500 if it fails.

    Collection failures never reach this point; the aggregator turns them
    into liveness samples. What remains is a broken snapshot (EncodingError)
    or a bug, and neither may produce a partial exposition body.
    """
    try:
        body = await scrape()
    except Exception:
        logger.exception("Error serving metrics endpoint")
        error_body = json.dumps({"error": "Internal Server Error"})
        await _respond(send, 500, "application/json", error_body, head=head)
        return
    await _respond(send, 200, content_type, body, head=head)


async def _lifespan(aggregator: Aggregator, receive: Receive, send: Send) -> None:
    while True:
        message = await receive()
        if message["type"] == "lifespan.startup":
            await send({"type": "lifespan.startup.complete"})
        elif message["type"] == "lifespan.shutdown":
            await aggregator.aclose()
            await send({"type": "lifespan.shutdown.complete"})
            return


def create_asgi_app(aggregator: Aggregator, deadline: float = DEFAULT_DEADLINE) -> ASGIApp:
    """Create an ASGI app serving / and /metrics.

    Args:
        aggregator: Aggregator collecting the configured instances.
        deadline: Per-scrape collection budget in seconds.

    Returns:
        ASGI application callable.
    """

    async def scrape(openmetrics: bool) -> str:
        snapshot = await aggregator.collect_all(deadline)
        return encode_openmetrics(snapshot) if openmetrics else encode(snapshot)

    async def app(scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "lifespan":
            await _lifespan(aggregator, receive, send)
            return
        if scope["type"] != "http":
            return

        path = scope["path"]
        head = scope["method"] == "HEAD"
        if path not in ("/", "/metrics"):
            await _respond(send, 404, "text/plain", "Not Found", head=head)
        elif scope["method"] not in ("GET", "HEAD"):
            await _respond(
                send, 405, "text/plain", "Method Not Allowed", headers=[(b"allow", b"GET, HEAD")]
            )
        elif path == "/":
            await _respond(send, 200, "text/html; charset=utf-8", INDEX_HTML, head=head)
        else:
            openmetrics = wants_openmetrics(_get_header(scope, "accept"))
            await _serve_scrape(
                send,
                lambda: scrape(openmetrics),
                OPENMETRICS_CONTENT_TYPE if openmetrics else PROMETHEUS_CONTENT_TYPE,
                head,
            )

    return app
