"""Live Coin Watch client implementation."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from marketsync.core.logging import get_logger
from .base import MarketDataClient
from .errors import ConfigurationError, ProviderError, ProviderResponseError, RateLimitError

log = get_logger("ingestion.livecoinwatch")

DEFAULT_BASE_URL = "https://api.livecoinwatch.com"


class LiveCoinWatchClient(MarketDataClient):
    """Fetches ranked quotes and per-coin history from Live Coin Watch."""

    name = "livecoinwatch"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        currency: str = "USD",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise ConfigurationError("LIVECOINWATCH_API_KEY is not configured")
        self._api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.currency = currency
        self._transport = transport

    async def fetch_top_coins(self, limit: int) -> List[Dict[str, Any]]:
        body = {
            "currency": self.currency,
            "sort": "rank",
            "order": "ascending",
            "offset": 0,
            "limit": limit,
            "meta": False,
        }
        data = await self._post("/coins/list", body)
        if not isinstance(data, list):
            raise ProviderResponseError(f"Expected a list from /coins/list, got {type(data).__name__}")

        log.info(f"Fetched {len(data)} quotes from Live Coin Watch")
        return data

    async def fetch_history(self, code: str, start_ms: int, end_ms: int) -> List[Dict[str, Any]]:
        body = {
            "currency": self.currency,
            "code": code,
            "start": start_ms,
            "end": end_ms,
            "meta": False,
        }
        data = await self._post("/coins/single/history", body)
        if not isinstance(data, dict):
            raise ProviderResponseError(f"Expected an object from /coins/single/history, got {type(data).__name__}")

        history = data.get("history")
        if not isinstance(history, list):
            log.debug(f"No history array for {code} in [{start_ms}, {end_ms}]")
            return []
        return history

    async def _post(self, path: str, body: Dict[str, Any]) -> Any:
        headers = {
            "content-type": "application/json",
            "x-api-key": self._api_key,
        }
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                resp = await client.post(path, json=body, headers=headers)
        except httpx.HTTPError as exc:
            raise ProviderError(f"Live Coin Watch request to {path} failed: {exc!r}") from exc

        if resp.status_code == 429:
            raise RateLimitError(
                message=f"Live Coin Watch rate limit hit on {path}",
                retry_after_seconds=self._retry_after(resp),
            )
        if resp.is_error:
            raise ProviderResponseError(
                f"Live Coin Watch API error on {path}: {resp.status_code} {resp.reason_phrase}",
                status_code=resp.status_code,
            )

        try:
            return resp.json()
        except ValueError as exc:
            raise ProviderResponseError(f"Live Coin Watch returned invalid JSON on {path}") from exc

    @staticmethod
    def _retry_after(resp: httpx.Response) -> Optional[float]:
        value = resp.headers.get("retry-after")
        if not value:
            return None
        try:
            return float(value)
        except ValueError:
            return None
