from marketsync.models.base import Base
from marketsync.models.coins import CoinSnapshot
from marketsync.models.history import PriceHistoryPoint, Timeframe, TIMEFRAME_SPANS_MS
from marketsync.models.runs import SyncRun
from marketsync.models.well_known import COIN_NAMES, DEFAULT_TRACKED_CODES, resolve_coin_name

__all__ = [
    "Base",
    "CoinSnapshot",
    "PriceHistoryPoint",
    "Timeframe",
    "TIMEFRAME_SPANS_MS",
    "SyncRun",
    "COIN_NAMES",
    "DEFAULT_TRACKED_CODES",
    "resolve_coin_name",
]
