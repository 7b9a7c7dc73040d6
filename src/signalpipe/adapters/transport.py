"""httpx adapters: batch delivery to the collector and outbound call timing."""

import json
from typing import Any

import httpx

from signalpipe.core.exceptions import TransportError
from signalpipe.core.instrumentation import track_api_call
from signalpipe.core.logger import Logger
from signalpipe.core.metrics import MetricsCollector


class HttpTransport:
    """TransportPort implementation posting batches as JSON.

    Any non-2xx response or network error raises TransportError; request
    timeouts are owned by the httpx client.

    Args:
        endpoint: Collector URL.
        client: Client to send with. One is created (and closed by
            ``aclose``) when omitted.
        timeout: Request timeout in seconds for the created client.
    """

    def __init__(
        self,
        endpoint: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.endpoint = endpoint
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def send(self, payload: dict[str, Any]) -> None:
        """POST one batch payload to the collector."""
        body = json.dumps(payload, default=str)
        try:
            response = await self._client.post(
                self.endpoint,
                content=body,
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            raise TransportError(f"Remote logging failed: {e}") from e
        if not response.is_success:
            raise TransportError(
                f"Remote logging failed: {response.status_code}",
                status_code=response.status_code,
            )

    async def aclose(self) -> None:
        """Close the client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()


class InstrumentedTransport(httpx.AsyncBaseTransport):
    """httpx transport wrapper timing every outbound request.

    Example:
        ```python
        transport = InstrumentedTransport(
            httpx.AsyncHTTPTransport(), pipeline.logger, pipeline.metrics
        )
        async with httpx.AsyncClient(transport=transport) as client:
            await client.get("https://api.example.com/orders")
        ```
    """

    def __init__(
        self,
        inner: httpx.AsyncBaseTransport,
        logger: Logger,
        metrics: MetricsCollector,
    ) -> None:
        self._inner = inner
        self._logger = logger
        self._metrics = metrics

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        return await track_api_call(
            lambda: self._inner.handle_async_request(request),
            str(request.url),
            request.method,
            logger=self._logger,
            metrics=self._metrics,
        )

    async def aclose(self) -> None:
        await self._inner.aclose()
