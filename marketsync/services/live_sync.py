"""Live snapshot sync - keeps coin_snapshots current for the top-N ranked coins."""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketsync.core.logging import get_logger
from marketsync.ingestion.base import MarketDataClient
from marketsync.ingestion.errors import ProviderError
from marketsync.models.well_known import resolve_coin_name
from marketsync.schemas.provider import CoinQuote
from marketsync.services.store import MarketDataStore

log = get_logger("live_sync")

JOB_NAME = "live"
DEFAULT_RANK_LIMIT = 100


def quote_to_snapshot_row(item: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Map one provider quote to a coin_snapshots row, or None when it is unusable.

    A quote without a code or with a missing/zero rate is rejected.
    """
    try:
        quote = CoinQuote.model_validate(item)
    except ValidationError:
        return None

    if not quote.code or not quote.rate:
        return None

    delta = quote.delta
    return {
        "code": quote.code,
        "name": resolve_coin_name(quote.code, quote.name),
        "rate": quote.rate,
        "volume": quote.volume or 0.0,
        "cap": quote.cap,
        "delta_hour": delta.hour if delta else None,
        "delta_day": delta.day if delta else None,
        "delta_week": delta.week if delta else None,
        "delta_month": delta.month if delta else None,
        "delta_quarter": delta.quarter if delta else None,
        "delta_year": delta.year if delta else None,
        "total_supply": quote.totalSupply,
        "circulating_supply": quote.circulatingSupply,
        "max_supply": quote.maxSupply,
    }


class LiveSnapshotSyncer:
    """Fetches the ranked quote list and upserts it into coin_snapshots.

    This is the only writer of coin_snapshots. A failed provider call leaves
    the table untouched so reads keep serving the last good snapshot set.
    """

    def __init__(
        self,
        client: MarketDataClient,
        session_factory: Callable[[], Session],
        limit: int = DEFAULT_RANK_LIMIT,
    ):
        self.client = client
        self.session_factory = session_factory
        self.limit = limit

    async def run_cycle(self) -> Dict[str, Any]:
        with self.session_factory() as db:
            store = MarketDataStore(db)
            try:
                run = store.begin_run(JOB_NAME)
            except SQLAlchemyError as exc:
                # Store unreachable; upserts would fail too, so leave the provider alone
                log.error(f"Cannot record live run, store unavailable: {exc}")
                return {"success": False, "records_processed": 0, "skipped": 0, "errors": 0, "error": str(exc)}

            try:
                quotes = await self.client.fetch_top_coins(self.limit)
            except ProviderError as exc:
                log.warning(f"Live Coin Watch temporarily unavailable, serving cached snapshots: {exc}")
                store.finish_run(run, "failure", error_message=str(exc))
                return {"success": False, "records_processed": 0, "skipped": 0, "errors": 0, "error": str(exc)}

            upserted = skipped = errors = 0
            for item in quotes:
                row = quote_to_snapshot_row(item) if isinstance(item, dict) else None
                if row is None:
                    log.warning(f"Skipping quote with missing essential data: {item!r}")
                    skipped += 1
                    continue

                try:
                    store.upsert_snapshot(row)
                    upserted += 1
                except SQLAlchemyError as exc:
                    log.error(f"Failed to upsert snapshot for {row['code']}: {exc}")
                    errors += 1

            store.finish_run(
                run,
                "success",
                records_processed=upserted,
                error_count=errors,
                meta={"received": len(quotes), "skipped": skipped},
            )

        log.info(f"Live sync complete | upserted={upserted} skipped={skipped} errors={errors}")
        return {"success": True, "records_processed": upserted, "skipped": skipped, "errors": errors}
