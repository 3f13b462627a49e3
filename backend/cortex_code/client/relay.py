"""HTTP client for the relay endpoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx

from cortex_code.config import settings

logger = logging.getLogger(__name__)


class RelayClient:
    """Posts chat turns to ``/api/generate`` and exposes the streamed reply."""

    def __init__(
        self,
        url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url or settings.relay_url
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def initialize(self) -> None:
        """Create the HTTP client."""
        # Cancellation is the only way a reply ends early
        self._client = httpx.AsyncClient(timeout=None, transport=self._transport)
        logger.info("RelayClient initialized (url=%s)", self._url)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @asynccontextmanager
    async def stream(self, body: dict[str, Any]) -> AsyncIterator[httpx.Response]:
        """POST ``body`` and yield the response before its body is read."""
        if self._client is None:
            await self.initialize()
        async with self._client.stream("POST", self._url, json=body) as response:
            yield response
