"""FastAPI adapter exposing the metrics summary and persisted logs."""

import json
import logging
import math

from fastapi import APIRouter, Query, Response

from signalpipe.core.encoding.ndjson import encode_logs
from signalpipe.core.encoding.wire import summary_to_dict
from signalpipe.core.metrics import MetricsCollector
from signalpipe.core.models import LogLevel
from signalpipe.core.ports import LogStorePort
from signalpipe.core.scheduler import INTERNAL_LOGGER_NAME

_internal_log = logging.getLogger(INTERNAL_LOGGER_NAME)

_ERROR_BODY = json.dumps({"error": "Internal Server Error"})


def _parse_since(raw: float) -> float:
    """Clamp negative, NaN and infinite values to 0."""
    if raw < 0 or math.isnan(raw) or math.isinf(raw):
        return 0.0
    return raw


def _parse_level(raw: str | None) -> LogLevel | None:
    """Return the named level, or None when missing or unknown."""
    if not raw:
        return None
    try:
        return LogLevel.parse(raw)
    except ValueError:
        return None


def create_observability_router(
    metrics: MetricsCollector,
    store: LogStorePort,
) -> APIRouter:
    """Create a FastAPI router with /metrics and /logs endpoints.

    Args:
        metrics: Collector whose summary is served at /metrics.
        store: Durable store whose entries are served at /logs.

    Returns:
        APIRouter with /metrics and /logs endpoints configured.
    """
    router = APIRouter()

    @router.get("/metrics")
    async def get_metrics() -> Response:
        """Return the metrics summary as JSON."""
        body = json.dumps(summary_to_dict(metrics.get_metrics_summary()), default=str)
        return Response(content=body, media_type="application/json")

    @router.get("/logs")
    async def get_logs(
        since: float = Query(default=0),
        level: str | None = Query(default=None),
    ) -> Response:
        """Return persisted logs in NDJSON format.

        Args:
            since: Unix timestamp. Returns entries with timestamp > since.
            level: Only return entries with exactly this level.
        """
        threshold = _parse_since(since)
        wanted = _parse_level(level)
        try:
            entries = await store.read()
        except Exception:
            _internal_log.exception("Error reading persisted logs")
            return Response(
                content=_ERROR_BODY, status_code=500, media_type="application/json"
            )
        body = encode_logs(
            e
            for e in entries
            if e.timestamp > threshold and (wanted is None or e.level == wanted)
        )
        return Response(content=body, media_type="application/x-ndjson")

    return router
