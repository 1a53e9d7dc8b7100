from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import httpx

from ..config import get_settings

LOGGER = logging.getLogger('chainradar.clients')


class RateLimitedClient:
    """httpx wrapper that keeps a minimum delay between consecutive requests.

    Every request first waits for the previous request's timer, then starts a
    new one.
    """

    def __init__(
        self,
        base_url: str = '',
        *,
        delay_seconds: float = 1.0,
        headers: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None
    ) -> None:
        self.base_url = base_url
        self.delay_seconds = max(0.0, delay_seconds)
        self._ready_at = 0.0
        self._owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(
                base_url=base_url,
                headers={'Accept': 'application/json', **(headers or {})},
                timeout=get_settings().http_timeout_seconds,
                follow_redirects=True
            )
        self._client = client

    async def _wait_ready(self) -> None:
        wait = self._ready_at - time.monotonic()
        if wait > 0:
            await asyncio.sleep(wait)

    def _start_timer(self) -> None:
        self._ready_at = time.monotonic() + self.delay_seconds

    async def request_json(self, method: str, url: str, **kwargs: Any) -> Any:
        await self._wait_ready()
        try:
            response = await self._client.request(method, url, **kwargs)
        finally:
            self._start_timer()
        response.raise_for_status()
        return response.json()

    async def get_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request_json('GET', url, params=params)

    async def post_json(self, url: str, payload: dict[str, Any]) -> Any:
        return await self.request_json('POST', url, json=payload)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
