"""Data Service - read-only queries behind the HTTP routes."""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from marketsync.models.coins import CoinSnapshot
from marketsync.models.history import PriceHistoryPoint
from marketsync.models.runs import SyncRun
from marketsync.services.store import MarketDataStore

DEFAULT_HISTORY_LIMIT = 500
MAX_HISTORY_LIMIT = 5000


class DataService:
    """Handles all data query operations - reads from DB only, no writes."""

    def __init__(self, db: Session):
        self.db = db
        self.store = MarketDataStore(db)

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------
    def get_snapshots(self, sort_by_cap: bool = True) -> List[CoinSnapshot]:
        return self.store.list_snapshots(sort_by_cap=sort_by_cap)

    def get_snapshot(self, code: str) -> Optional[CoinSnapshot]:
        """Case-insensitive lookup by coin code."""
        stmt = select(CoinSnapshot).where(func.upper(CoinSnapshot.code) == code.upper()).limit(1)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_codes(self) -> List[str]:
        stmt = select(CoinSnapshot.code).order_by(CoinSnapshot.code.asc())
        return list(self.db.execute(stmt).scalars().all())

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------
    def get_history(
        self,
        code: str,
        timeframe: str,
        limit: int = DEFAULT_HISTORY_LIMIT,
        include_synthetic: bool = True,
    ) -> List[PriceHistoryPoint]:
        """Most recent points for one series (at most MAX_HISTORY_LIMIT), oldest first."""
        limit = max(1, min(limit, MAX_HISTORY_LIMIT))
        return self.store.query_history(
            code.upper(),
            timeframe,
            limit=limit,
            include_synthetic=include_synthetic,
        )

    # -------------------------------------------------------------------------
    # Sync runs
    # -------------------------------------------------------------------------
    def get_sync_runs(
        self,
        job_name: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 10,
        finished_only: bool = False,
    ) -> List[SyncRun]:
        """Newest runs first. A run still marked running has no ended_at."""
        conditions = []
        if job_name:
            conditions.append(SyncRun.job_name == job_name)
        if status:
            conditions.append(SyncRun.status == status)
        if finished_only:
            conditions.append(SyncRun.ended_at.is_not(None))

        stmt = select(SyncRun)
        if conditions:
            stmt = stmt.where(and_(*conditions))
        stmt = stmt.order_by(SyncRun.started_at.desc()).limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def get_last_finished_run(self, job_name: str) -> Optional[SyncRun]:
        """Most recent completed run of `job_name`; in-flight or abandoned runs are ignored."""
        runs = self.get_sync_runs(job_name=job_name, limit=1, finished_only=True)
        return runs[0] if runs else None
