from marketsync.ingestion.base import MarketDataClient
from marketsync.ingestion.errors import ConfigurationError, ProviderError, ProviderResponseError, RateLimitError
from marketsync.ingestion.livecoinwatch import LiveCoinWatchClient

__all__ = [
    "MarketDataClient",
    "LiveCoinWatchClient",
    "ConfigurationError",
    "ProviderError",
    "ProviderResponseError",
    "RateLimitError",
]
