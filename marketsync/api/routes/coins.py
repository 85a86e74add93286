"""Coin routes - current snapshots served from the database cache."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from marketsync.api.deps import get_db, get_optional_scheduler
from marketsync.schemas.api import CoinSnapshotOut, CoinsResponse
from marketsync.services.data_service import DataService
from marketsync.services.scheduler import SyncScheduler

router = APIRouter(prefix="/coins", tags=["coins"])


@router.get("", response_model=CoinsResponse)
def get_coins(
    sort_by_cap: bool = Query(True, description="Sort by market cap, largest first"),
    db: Session = Depends(get_db),
    scheduler: SyncScheduler | None = Depends(get_optional_scheduler),
):
    """
    Get every stored coin snapshot.

    Snapshots are refreshed by the live sync job; last_updated is the most
    recent refresh across all coins and is the staleness signal for clients.
    """
    service = DataService(db)
    coins = service.get_snapshots(sort_by_cap=sort_by_cap)
    last_updated = max((c.last_updated for c in coins), default=None)

    return CoinsResponse(
        coins=[CoinSnapshotOut.model_validate(c) for c in coins],
        last_updated=last_updated,
        is_service_running=scheduler.is_running() if scheduler else False,
    )


@router.get("/{code}", response_model=CoinSnapshotOut)
def get_coin(code: str, db: Session = Depends(get_db)):
    """Get a single coin snapshot by code (case-insensitive)."""
    service = DataService(db)
    coin = service.get_snapshot(code)

    if not coin:
        raise HTTPException(
            status_code=404,
            detail={"message": f"Token '{code}' not found", "available_tokens": service.get_codes()},
        )

    return CoinSnapshotOut.model_validate(coin)
