"""Example FastAPI application embedding the exporter.

Run with:
    HOMERS_CONFIG=examples/config.toml uvicorn examples.fastapi_example:app --reload

Endpoints:
    /         - application root
    /metrics  - Prometheus text format, one fresh collection per scrape
                (OpenMetrics when the Accept header asks for it)
"""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from homers.adapters.frameworks.fastapi import create_exporter_router
from homers.adapters.logging import configure_logging
from homers.core.aggregator import Aggregator
from homers.core.config import load_config, resolve_descriptors

configure_logging()

config = load_config(os.environ.get("HOMERS_CONFIG", "examples/config.toml"))
aggregator = Aggregator(resolve_descriptors(config), request_timeout=config.http.deadline)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    await aggregator.aclose()


app = FastAPI(title="Homers Example", lifespan=lifespan)

# Mount the exporter endpoint
app.include_router(create_exporter_router(aggregator, deadline=config.http.deadline))


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint pointing at the exporter."""
    return {"message": "Hello! Check the /metrics endpoint."}
