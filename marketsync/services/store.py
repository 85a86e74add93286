"""Store access layer for coin snapshots, price history and the sync run ledger.

Snapshot writes are keyed upserts (last writer wins). History writes are
insert-or-ignore on the natural key (token_code, timestamp, timeframe): a
conflicting row is left exactly as first inserted.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from marketsync.core.logging import get_logger
from marketsync.models.coins import CoinSnapshot
from marketsync.models.history import PriceHistoryPoint
from marketsync.models.runs import SyncRun

log = get_logger("store")

SNAPSHOT_MUTABLE_COLUMNS = (
    "name",
    "rate",
    "volume",
    "cap",
    "delta_hour",
    "delta_day",
    "delta_week",
    "delta_month",
    "delta_quarter",
    "delta_year",
    "total_supply",
    "circulating_supply",
    "max_supply",
    "last_updated",
)

HISTORY_KEY_COLUMNS = ("token_code", "timestamp", "timeframe")

# Keeps multi-row VALUES under the 999 bound-parameter limit of older SQLite builds
HISTORY_INSERT_CHUNK = 100


def _dialect_insert(db: Session) -> Callable[..., Any]:
    """Pick the INSERT construct that supports ON CONFLICT for the bound dialect."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Upserts are not supported on dialect '{dialect}'")


class MarketDataStore:
    """Reads and writes both market tables through one session.

    Write methods commit on success and roll back before re-raising on
    failure, so every call is atomic at its own granularity (one snapshot row,
    or one history batch).
    """

    def __init__(self, db: Session):
        self.db = db

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------
    def upsert_snapshot(self, row: Dict[str, Any]) -> None:
        """Insert a snapshot or overwrite every mutable column of the existing one."""
        values = {column: row.get(column) for column in SNAPSHOT_MUTABLE_COLUMNS}
        values["code"] = row["code"]
        values["last_updated"] = datetime.now(timezone.utc)
        if values["volume"] is None:
            values["volume"] = 0.0

        insert = _dialect_insert(self.db)
        stmt = insert(CoinSnapshot).values(values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[CoinSnapshot.code],
            set_={column: getattr(stmt.excluded, column) for column in SNAPSHOT_MUTABLE_COLUMNS},
        )
        try:
            self.db.execute(stmt)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def get_snapshot(self, code: str) -> Optional[CoinSnapshot]:
        return self.db.get(CoinSnapshot, code)

    def list_snapshots(self, sort_by_cap: bool = True) -> List[CoinSnapshot]:
        stmt = select(CoinSnapshot)
        if sort_by_cap:
            stmt = stmt.order_by(CoinSnapshot.cap.desc().nullslast(), CoinSnapshot.code.asc())
        else:
            stmt = stmt.order_by(CoinSnapshot.code.asc())
        return list(self.db.execute(stmt).scalars().all())

    def query_tracked_codes(self, limit: int) -> List[str]:
        """Codes with a known market cap, largest cap first."""
        stmt = (
            select(CoinSnapshot.code)
            .where(CoinSnapshot.cap.is_not(None))
            .order_by(CoinSnapshot.cap.desc(), CoinSnapshot.code.asc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    # -------------------------------------------------------------------------
    # Price history
    # -------------------------------------------------------------------------
    def insert_history_points(self, points: Iterable[Dict[str, Any]]) -> int:
        """Insert points, silently ignoring any whose natural key already exists.

        Returns the number of rows actually inserted when the driver reports it.
        """
        rows = [
            {
                "token_code": p["token_code"],
                "timestamp": int(p["timestamp"]),
                "timeframe": p["timeframe"],
                "price": p["price"],
                "volume": p.get("volume"),
                "market_cap": p.get("market_cap"),
                "synthetic": bool(p.get("synthetic", False)),
            }
            for p in points
        ]
        if not rows:
            return 0

        insert = _dialect_insert(self.db)
        inserted = 0
        try:
            for start in range(0, len(rows), HISTORY_INSERT_CHUNK):
                chunk = rows[start:start + HISTORY_INSERT_CHUNK]
                stmt = insert(PriceHistoryPoint).values(chunk)
                stmt = stmt.on_conflict_do_nothing(index_elements=list(HISTORY_KEY_COLUMNS))
                result = self.db.execute(stmt)
                if result.rowcount and result.rowcount > 0:
                    inserted += result.rowcount
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return inserted

    def has_history(self, code: str, timeframe: str, authentic_only: bool = False) -> bool:
        """Whether the series holds any point; with `authentic_only`, any provider point."""
        stmt = select(PriceHistoryPoint.id).where(
            PriceHistoryPoint.token_code == code,
            PriceHistoryPoint.timeframe == timeframe,
        )
        if authentic_only:
            stmt = stmt.where(PriceHistoryPoint.synthetic.is_(False))
        stmt = stmt.limit(1)
        return self.db.execute(stmt).first() is not None

    def query_history(
        self,
        code: str,
        timeframe: str,
        limit: Optional[int] = None,
        include_synthetic: bool = True,
    ) -> List[PriceHistoryPoint]:
        """Points for one series, oldest first. With `limit`, only the most recent `limit` points."""
        stmt = select(PriceHistoryPoint).where(
            PriceHistoryPoint.token_code == code,
            PriceHistoryPoint.timeframe == timeframe,
        )
        if not include_synthetic:
            stmt = stmt.where(PriceHistoryPoint.synthetic.is_(False))
        if limit is None:
            stmt = stmt.order_by(PriceHistoryPoint.timestamp.asc())
            return list(self.db.execute(stmt).scalars().all())

        stmt = stmt.order_by(PriceHistoryPoint.timestamp.desc()).limit(limit)
        return list(reversed(self.db.execute(stmt).scalars().all()))

    # -------------------------------------------------------------------------
    # Run ledger
    # -------------------------------------------------------------------------
    def begin_run(self, job_name: str) -> SyncRun:
        run = SyncRun(job_name=job_name, status="running", records_processed=0, error_count=0)
        try:
            self.db.add(run)
            self.db.commit()
            self.db.refresh(run)
        except Exception:
            self.db.rollback()
            raise
        return run

    def finish_run(
        self,
        run: SyncRun,
        status: str,
        records_processed: int = 0,
        error_count: int = 0,
        error_message: Optional[str] = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Close a run. Failures here are logged, never raised, so they cannot mask the sync result."""
        try:
            run.status = status
            run.records_processed = records_processed
            run.error_count = error_count
            run.error_message = error_message
            run.meta = meta
            run.ended_at = datetime.now(timezone.utc)
            self.db.add(run)
            self.db.commit()
        except Exception as exc:  # noqa: BLE001
            self.db.rollback()
            log.error(f"Failed to record end of {run.job_name} run {run.run_id}: {exc}")
