"""Historical price series sync - one-time backfill per timeframe plus hourly approximate updates.

Workflow per run:
1. Discover the tracked universe from coin_snapshots (largest cap first)
2. backfill: for every timeframe with no provider points, fetch the provider's
   history over that timeframe's span and insert it
3. update: append one point per already-backfilled timeframe derived from the
   current snapshot rate. These points are flagged synthetic because they are
   an approximation, not a provider history read, and never count as backfilled.

Codes are processed sequentially with pauses between batches, since the
provider enforces per-key rate limits.
"""

from __future__ import annotations

import asyncio
import random
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketsync.core.logging import get_logger
from marketsync.ingestion.base import MarketDataClient
from marketsync.ingestion.errors import ProviderError
from marketsync.models.history import Timeframe
from marketsync.models.well_known import DEFAULT_TRACKED_CODES
from marketsync.schemas.provider import HistorySample
from marketsync.services.store import MarketDataStore

log = get_logger("history_sync")

BACKFILL_JOB = "backfill"
UPDATE_JOB = "update"

DEFAULT_UNIVERSE_LIMIT = 100

# Full width of the uniform perturbation applied to synthetic points:
# 0.005 means the price lands within +/-0.25% of the current rate.
UPDATE_VARIATION = {
    Timeframe.ONE_HOUR: 0.005,
    Timeframe.ONE_DAY: 0.01,
    Timeframe.SEVEN_DAYS: 0.02,
    Timeframe.THIRTY_DAYS: 0.03,
}


def now_ms() -> int:
    return int(time.time() * 1000)


def discover_universe(store: MarketDataStore, limit: int = DEFAULT_UNIVERSE_LIMIT) -> List[str]:
    """Codes to track this run: top `limit` snapshots by market cap, null caps excluded.

    Falls back to DEFAULT_TRACKED_CODES when the snapshot table cannot be read.
    """
    try:
        return store.query_tracked_codes(limit)
    except SQLAlchemyError as exc:
        store.db.rollback()
        log.warning(f"Universe discovery failed, using default codes: {exc}")
        return list(DEFAULT_TRACKED_CODES)


def samples_to_points(code: str, timeframe: Timeframe, samples: List[Any]) -> List[Dict[str, Any]]:
    """Map provider history samples to point rows, dropping malformed samples."""
    points: List[Dict[str, Any]] = []
    for raw in samples:
        try:
            sample = HistorySample.model_validate(raw)
        except ValidationError:
            log.debug(f"Dropping malformed {code} {timeframe.value} sample: {raw!r}")
            continue
        points.append(
            {
                "token_code": code,
                "timestamp": sample.date,
                "timeframe": timeframe.value,
                "price": sample.rate,
                "volume": sample.volume,
                "market_cap": sample.cap,
                "synthetic": False,
            }
        )
    return points


class HistoricalSyncer:
    """Sole writer of price_history_points."""

    def __init__(
        self,
        client: MarketDataClient,
        session_factory: Callable[[], Session],
        universe_limit: int = DEFAULT_UNIVERSE_LIMIT,
        timeframe_delay_seconds: float = 1.0,
        backfill_batch_size: int = 10,
        backfill_batch_pause_seconds: float = 5.0,
        update_batch_size: int = 20,
        update_batch_pause_seconds: float = 2.0,
        rng: Optional[random.Random] = None,
        clock: Callable[[], int] = now_ms,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.session_factory = session_factory
        self.universe_limit = universe_limit
        self.timeframe_delay_seconds = timeframe_delay_seconds
        self.backfill_batch_size = backfill_batch_size
        self.backfill_batch_pause_seconds = backfill_batch_pause_seconds
        self.update_batch_size = update_batch_size
        self.update_batch_pause_seconds = update_batch_pause_seconds
        self.rng = rng or random.Random()
        self.clock = clock
        self.sleep = sleep

    def discover_universe(self) -> List[str]:
        with self.session_factory() as db:
            return discover_universe(MarketDataStore(db), self.universe_limit)

    # -------------------------------------------------------------------------
    # Per-code operations
    # -------------------------------------------------------------------------
    async def backfill(self, code: str) -> int:
        """Populate every empty timeframe for `code` from the provider.

        A timeframe that already holds a provider point is never fetched again;
        synthetic points alone do not count.
        Failures are contained per timeframe. Returns points inserted.
        """
        total_inserted = 0
        calls_made = 0

        with self.session_factory() as db:
            store = MarketDataStore(db)

            for timeframe in Timeframe:
                if store.has_history(code, timeframe.value, authentic_only=True):
                    log.debug(f"{code} {timeframe.value} already backfilled, skipping")
                    continue

                if calls_made and self.timeframe_delay_seconds > 0:
                    await self.sleep(self.timeframe_delay_seconds)

                end = self.clock()
                start = end - timeframe.span_ms
                calls_made += 1
                try:
                    samples = await self.client.fetch_history(code, start, end)
                except ProviderError as exc:
                    log.warning(f"History fetch failed for {code} {timeframe.value}: {exc}")
                    continue

                points = samples_to_points(code, timeframe, samples)
                if not points:
                    log.info(f"No historical data available for {code} {timeframe.value}")
                    continue

                try:
                    inserted = store.insert_history_points(points)
                except SQLAlchemyError as exc:
                    log.error(f"Failed to store {code} {timeframe.value} history: {exc}")
                    continue

                total_inserted += inserted
                log.info(f"Inserted {inserted}/{len(points)} {code} {timeframe.value} points")

        return total_inserted

    async def update(self, code: str) -> int:
        """Append one synthetic point per backfilled timeframe from the current snapshot rate.

        Timeframes without provider points are left for backfill. Returns points
        inserted; 0 when the code has no snapshot.
        """
        with self.session_factory() as db:
            store = MarketDataStore(db)
            snapshot = store.get_snapshot(code)
            if snapshot is None or not snapshot.rate:
                log.debug(f"No snapshot rate for {code}, skipping update")
                return 0

            timestamp = self.clock()
            points = []
            for timeframe in Timeframe:
                if not store.has_history(code, timeframe.value, authentic_only=True):
                    continue
                variation = (self.rng.random() - 0.5) * UPDATE_VARIATION[timeframe]
                points.append(
                    {
                        "token_code": code,
                        "timestamp": timestamp,
                        "timeframe": timeframe.value,
                        "price": snapshot.rate * (1 + variation),
                        "synthetic": True,
                    }
                )
            return store.insert_history_points(points)

    # -------------------------------------------------------------------------
    # Batch drivers
    # -------------------------------------------------------------------------
    async def sync_all(self) -> Dict[str, Any]:
        """Backfill every code in the universe."""
        return await self._run_batch(
            BACKFILL_JOB,
            self.backfill,
            self.backfill_batch_size,
            self.backfill_batch_pause_seconds,
        )

    async def update_all(self) -> Dict[str, Any]:
        """Append synthetic points for every code in the universe."""
        return await self._run_batch(
            UPDATE_JOB,
            self.update,
            self.update_batch_size,
            self.update_batch_pause_seconds,
        )

    async def run_pass(self) -> Dict[str, Any]:
        """One recurring history tick: backfill codes still lacking provider history, then update.

        Codes that entered the universe since the last tick are backfilled here;
        already-backfilled timeframes cost no provider call.
        """
        backfill = await self.sync_all()
        update = await self.update_all()
        return {"success": backfill["success"] and update["success"], BACKFILL_JOB: backfill, UPDATE_JOB: update}

    async def _run_batch(
        self,
        job_name: str,
        operation: Callable[[str], Any],
        batch_size: int,
        pause_seconds: float,
    ) -> Dict[str, Any]:
        with self.session_factory() as db:
            store = MarketDataStore(db)
            codes = discover_universe(store, self.universe_limit)
            try:
                run = store.begin_run(job_name)
            except SQLAlchemyError as exc:
                log.error(f"Cannot record {job_name} run, store unavailable: {exc}")
                return {
                    "success": False,
                    "codes": len(codes),
                    "succeeded": 0,
                    "failed": 0,
                    "records_processed": 0,
                    "error": str(exc),
                }

        log.info(f"Starting {job_name} for {len(codes)} codes")

        succeeded = failed = points = 0
        for index, code in enumerate(codes, start=1):
            try:
                points += await operation(code)
                succeeded += 1
            except Exception as exc:  # noqa: BLE001
                failed += 1
                log.error(f"{job_name} failed for {code}: {exc}")

            if batch_size > 0 and index % batch_size == 0 and index < len(codes) and pause_seconds > 0:
                log.debug(f"{job_name}: processed {index}/{len(codes)}, pausing {pause_seconds}s")
                await self.sleep(pause_seconds)

        with self.session_factory() as db:
            MarketDataStore(db).finish_run(
                run,
                "success",
                records_processed=points,
                error_count=failed,
                meta={"codes": len(codes), "succeeded": succeeded},
            )

        log.info(f"{job_name} complete | codes={len(codes)} succeeded={succeeded} failed={failed} points={points}")
        return {
            "success": True,
            "codes": len(codes),
            "succeeded": succeeded,
            "failed": failed,
            "records_processed": points,
        }
