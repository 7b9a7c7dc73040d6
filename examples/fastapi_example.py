"""Example FastAPI application with an embedded observability pipeline.

Run with:
    uvicorn examples.fastapi_example:app --reload

Endpoints:
    /observability/metrics             - JSON metrics summary
    /observability/logs                - NDJSON of persisted log entries
    /observability/logs?since=<ts>     - entries newer than a unix timestamp
    /observability/logs?level=<level>  - entries with exactly that level

Logs are written to ``observability.db`` (development preset) and printed
through the ``signalpipe.console`` stdlib logger.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, HTTPException

from signalpipe import (
    InstrumentedTransport,
    LoggerConfig,
    ObservabilityPipeline,
    PsutilSignalSource,
    monitor_async,
)
from signalpipe.adapters.frameworks.fastapi import create_observability_router

logging.basicConfig(level=logging.INFO)

pipeline = ObservabilityPipeline(
    LoggerConfig.for_environment("development", storage_path="observability.db"),
    signals=PsutilSignalSource(),
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    pipeline.start()
    yield
    await pipeline.aclose()


app = FastAPI(title="signalpipe example", lifespan=lifespan)
app.include_router(
    create_observability_router(pipeline.metrics, pipeline.store),
    prefix="/observability",
)


@monitor_async("load_users", pipeline.logger, pipeline.metrics)
async def load_users() -> list[dict[str, str]]:
    # Simulate database fetch
    await asyncio.sleep(0.05)
    return [{"id": "1", "name": "Alice"}, {"id": "2", "name": "Bob"}]


@app.get("/users")
async def get_users() -> dict[str, list[dict[str, str]]]:
    """Users endpoint timed through monitor_async."""
    pipeline.metrics.track_user_action("list_users", component="UsersPage")
    return {"users": await load_users()}


@app.get("/status")
async def upstream_status() -> dict[str, int]:
    """Outbound call timed through InstrumentedTransport."""
    transport = InstrumentedTransport(
        httpx.AsyncHTTPTransport(), pipeline.logger, pipeline.metrics
    )
    async with httpx.AsyncClient(transport=transport) as client:
        response = await client.get("https://example.com/")
    return {"upstream_status": response.status_code}


@app.get("/error")
async def error_endpoint() -> dict[str, str]:
    """Error endpoint recording the failure before responding."""
    try:
        raise ValueError("Intentional error for demonstration")
    except ValueError as e:
        pipeline.metrics.track_exception(e)
        raise HTTPException(status_code=500, detail=str(e)) from e
