"""FastAPI adapter for embedding the exporter into an existing application."""

import json
import logging

from fastapi import APIRouter, Header, Response

from homers.adapters.frameworks.asgi import (
    OPENMETRICS_CONTENT_TYPE,
    PROMETHEUS_CONTENT_TYPE,
    wants_openmetrics,
)
from homers.core.aggregator import DEFAULT_DEADLINE, Aggregator
from homers.core.encoding import encode, encode_openmetrics

logger = logging.getLogger(__name__)


def create_exporter_router(
    aggregator: Aggregator, deadline: float = DEFAULT_DEADLINE
) -> APIRouter:
    """Create a FastAPI router with a /metrics endpoint.

    The host application owns the aggregator's lifecycle and should call
    ``aggregator.aclose()`` on shutdown.

    Args:
        aggregator: Aggregator collecting the configured instances.
        deadline: Per-scrape collection budget in seconds.

    Returns:
        APIRouter with /metrics configured.
    """
    router = APIRouter()

    @router.get("/metrics")
    async def get_metrics(accept: str = Header(default="")) -> Response:
        """Return a fresh snapshot in Prometheus or OpenMetrics text format."""
        openmetrics = wants_openmetrics(accept)
        try:
            snapshot = await aggregator.collect_all(deadline)
            body = encode_openmetrics(snapshot) if openmetrics else encode(snapshot)
        except Exception:
            logger.exception("Error serving metrics endpoint")
            return Response(
                content=json.dumps({"error": "Internal Server Error"}),
                status_code=500,
                media_type="application/json",
            )
        return Response(
            content=body,
            media_type=OPENMETRICS_CONTENT_TYPE if openmetrics else PROMETHEUS_CONTENT_TYPE,
        )

    return router
