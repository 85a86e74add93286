"""Static lookups for coins the provider list endpoint does not name.

The provider's ranked list is requested without metadata, so display names
come from COIN_NAMES, falling back to the code itself. DEFAULT_TRACKED_CODES
is the universe used when the snapshot table cannot be queried.
"""

from types import MappingProxyType
from typing import Mapping

COIN_NAMES: Mapping[str, str] = MappingProxyType(
    {
        "BTC": "Bitcoin",
        "ETH": "Ethereum",
        "XRP": "XRP",
        "USDT": "Tether",
        "BNB": "BNB",
        "SOL": "Solana",
        "USDC": "USD Coin",
        "TRX": "TRON",
        "ADA": "Cardano",
        "DOGE": "Dogecoin",
        "AVAX": "Avalanche",
        "LINK": "Chainlink",
        "DOT": "Polkadot",
        "MATIC": "Polygon",
        "LTC": "Litecoin",
        "SHIB": "Shiba Inu",
        "LEO": "LEO Token",
        "UNI": "Uniswap",
        "ATOM": "Cosmos Hub",
        "TON": "Toncoin",
    }
)

DEFAULT_TRACKED_CODES: tuple[str, ...] = (
    "BTC", "ETH", "USDT", "BNB", "SOL", "USDC", "XRP", "DOGE", "ADA", "TRX",
)


def resolve_coin_name(code: str, provided: str | None = None) -> str:
    """Provider-supplied name first, then the static table, then the code."""
    if provided:
        return provided
    return COIN_NAMES.get(code, code)
