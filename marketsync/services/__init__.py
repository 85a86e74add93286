# Services package
from marketsync.services.data_service import DataService
from marketsync.services.history_sync import HistoricalSyncer, discover_universe
from marketsync.services.live_sync import LiveSnapshotSyncer
from marketsync.services.scheduler import SyncScheduler, build_scheduler, build_syncers
from marketsync.services.store import MarketDataStore

__all__ = [
    "DataService",
    "HistoricalSyncer",
    "discover_universe",
    "LiveSnapshotSyncer",
    "SyncScheduler",
    "build_scheduler",
    "build_syncers",
    "MarketDataStore",
]
