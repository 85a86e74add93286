"""Background scheduler that owns the live and historical sync jobs.

Two job families run on independent fixed-rate clocks:
- live: LiveSnapshotSyncer.run_cycle, immediately on start then every
  live_interval seconds
- history: HistoricalSyncer.sync_all once on start (optional), then
  run_pass every history_interval seconds. A pass backfills codes that still
  lack provider history (new arrivals in the universe) before updating

Each family has a non-reentrant guard. A tick (or manual trigger) that arrives
while the family is still in flight is skipped, so at most one cycle per
family runs at a time.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from marketsync.core.logging import get_logger
from marketsync.ingestion.livecoinwatch import LiveCoinWatchClient
from marketsync.services.history_sync import HistoricalSyncer
from marketsync.services.live_sync import LiveSnapshotSyncer

log = get_logger("scheduler")

LIVE_FAMILY = "live"
HISTORY_FAMILY = "history"


class SyncScheduler:
    """Explicit lifecycle object for the sync jobs; one instance per process."""

    def __init__(
        self,
        live_syncer: LiveSnapshotSyncer,
        history_syncer: Optional[HistoricalSyncer] = None,
        live_interval: float = 30,
        history_interval: float = 60 * 60,
        live_enabled: bool = True,
        history_enabled: bool = True,
        backfill_on_start: bool = True,
    ):
        self.live_syncer = live_syncer
        self.history_syncer = history_syncer
        self.live_interval = live_interval
        self.history_interval = history_interval
        self.live_enabled = live_enabled
        self.history_enabled = history_enabled and history_syncer is not None
        self.backfill_on_start = backfill_on_start

        self._busy: Dict[str, bool] = {LIVE_FAMILY: False, HISTORY_FAMILY: False}
        self._loops: Set[asyncio.Task] = set()
        self._inflight: Set[asyncio.Task] = set()
        self._first_live_done: Optional[asyncio.Event] = None
        self._running = False

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------
    def start(self) -> None:
        """Start the recurring loops on the running event loop."""
        if self._running:
            log.warning("Sync scheduler already running")
            return
        self._running = True
        self._first_live_done = asyncio.Event()

        if self.live_enabled:
            self._loops.add(asyncio.create_task(self._live_loop(), name="live-sync-loop"))
            log.info(f"Live sync scheduled every {self.live_interval}s")
        else:
            log.info("Live sync is disabled (LIVE_SYNC_ENABLED=false)")

        if self.history_enabled:
            self._loops.add(asyncio.create_task(self._history_loop(), name="history-sync-loop"))
            log.info(f"History pass scheduled every {self.history_interval}s")
        else:
            log.info("History sync is disabled (HISTORY_SYNC_ENABLED=false)")

    async def stop(self) -> None:
        """Cancel the loops and abandon any in-flight cycle.

        Individual writes are atomic per row or per batch, so nothing needs
        to be rolled back.
        """
        if not self._running:
            return
        self._running = False

        tasks = list(self._loops) + list(self._inflight)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        self._loops.clear()
        self._inflight.clear()
        self._busy = {LIVE_FAMILY: False, HISTORY_FAMILY: False}
        log.info("Sync scheduler stopped")

    def is_running(self) -> bool:
        return self._running

    def is_busy(self, family: str) -> bool:
        return self._busy[family]

    def status(self) -> Dict[str, Any]:
        return {
            "is_running": self._running,
            "live_busy": self._busy[LIVE_FAMILY],
            "history_busy": self._busy[HISTORY_FAMILY],
            "live_sync_interval_seconds": int(self.live_interval),
            "history_update_interval_seconds": int(self.history_interval) if self.history_enabled else None,
            "history_sync_enabled": self.history_enabled,
        }

    # -------------------------------------------------------------------------
    # Triggers
    # -------------------------------------------------------------------------
    def trigger_live(self) -> bool:
        return self._launch(LIVE_FAMILY, "live", self.live_syncer.run_cycle)

    def trigger_backfill(self) -> bool:
        if self.history_syncer is None:
            return False
        return self._launch(HISTORY_FAMILY, "backfill", self.history_syncer.sync_all)

    def trigger_update(self) -> bool:
        if self.history_syncer is None:
            return False
        return self._launch(HISTORY_FAMILY, "update", self.history_syncer.update_all)

    def trigger_history_pass(self) -> bool:
        if self.history_syncer is None:
            return False
        return self._launch(HISTORY_FAMILY, "history-pass", self.history_syncer.run_pass)

    def _launch(self, family: str, job: str, job_fn: Callable[[], Awaitable[Any]]) -> bool:
        """Start `job` in the background unless its family is busy. Returns False when skipped."""
        if self._busy[family]:
            log.warning(f"Skipping {job}: previous {family} cycle still in flight")
            return False

        self._busy[family] = True
        task = asyncio.create_task(self._guarded(family, job, job_fn), name=f"{job}-cycle")
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return True

    async def _guarded(self, family: str, job: str, job_fn: Callable[[], Awaitable[Any]]) -> Any:
        try:
            return await job_fn()
        except asyncio.CancelledError:
            log.info(f"{job} cycle cancelled")
            raise
        except Exception as exc:  # noqa: BLE001
            # Keep the scheduler alive; the next tick retries
            log.exception(f"{job} cycle failed: {exc}")
            return None
        finally:
            self._busy[family] = False
            if family == LIVE_FAMILY and self._first_live_done is not None:
                self._first_live_done.set()

    # -------------------------------------------------------------------------
    # Loops
    # -------------------------------------------------------------------------
    async def _live_loop(self) -> None:
        try:
            while True:
                self.trigger_live()
                await asyncio.sleep(self.live_interval)
        except asyncio.CancelledError:
            log.info("Live sync loop cancelled")
            raise

    async def _history_loop(self) -> None:
        try:
            if self.backfill_on_start:
                # Universe discovery reads coin_snapshots; let the first live cycle populate it
                if self.live_enabled and self._first_live_done is not None:
                    await self._first_live_done.wait()
                self.trigger_backfill()
            while True:
                await asyncio.sleep(self.history_interval)
                self.trigger_history_pass()
        except asyncio.CancelledError:
            log.info("History sync loop cancelled")
            raise


def build_syncers(config: Any, session_factory: Callable[[], Any], client: Any = None) -> tuple[LiveSnapshotSyncer, HistoricalSyncer]:
    """Wire both syncers from settings.

    Constructing the default client raises ConfigurationError when the API key
    is missing, so a misconfigured process never starts syncing.
    """
    if client is None:
        client = LiveCoinWatchClient(
            api_key=config.LIVECOINWATCH_API_KEY,
            base_url=config.LIVECOINWATCH_BASE_URL,
            timeout=config.PROVIDER_TIMEOUT_SECONDS,
        )

    live = LiveSnapshotSyncer(client, session_factory, limit=config.LIVE_SYNC_LIMIT)
    history = HistoricalSyncer(
        client,
        session_factory,
        universe_limit=config.UNIVERSE_LIMIT,
        timeframe_delay_seconds=config.BACKFILL_TIMEFRAME_DELAY_SECONDS,
        backfill_batch_size=config.BACKFILL_BATCH_SIZE,
        backfill_batch_pause_seconds=config.BACKFILL_BATCH_PAUSE_SECONDS,
        update_batch_size=config.UPDATE_BATCH_SIZE,
        update_batch_pause_seconds=config.UPDATE_BATCH_PAUSE_SECONDS,
    )
    return live, history


def build_scheduler(config: Any, session_factory: Callable[[], Any], client: Any = None) -> SyncScheduler:
    live, history = build_syncers(config, session_factory, client)
    return SyncScheduler(
        live,
        history,
        live_interval=config.LIVE_SYNC_INTERVAL_SECONDS,
        history_interval=config.HISTORY_UPDATE_INTERVAL_SECONDS,
        live_enabled=config.LIVE_SYNC_ENABLED,
        history_enabled=config.HISTORY_SYNC_ENABLED,
        backfill_on_start=config.HISTORY_BACKFILL_ON_START,
    )
