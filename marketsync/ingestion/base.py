"""Abstract market data client interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List


class MarketDataClient(ABC):
    """Stateless request/response access to a market data provider.

    Implementations raise ProviderError (or a subclass) for any failure of a
    whole call; they never return partial results for a failed call.
    """

    name: str

    @abstractmethod
    async def fetch_top_coins(self, limit: int) -> List[Dict[str, Any]]:
        """Fetch current quotes ranked by the provider, best first."""

    @abstractmethod
    async def fetch_history(self, code: str, start_ms: int, end_ms: int) -> List[Dict[str, Any]]:
        """Fetch raw history samples (date/rate pairs) for one coin over [start_ms, end_ms]."""
