"""Sync routes - scheduler status and manual triggers."""

from fastapi import APIRouter, Depends, HTTPException

from marketsync.api.deps import get_scheduler
from marketsync.core.logging import get_logger
from marketsync.schemas.api import SyncStatusResponse, SyncTriggerResponse
from marketsync.services.scheduler import SyncScheduler

router = APIRouter(prefix="/sync", tags=["sync"])
log = get_logger("sync_routes")


@router.get("/status", response_model=SyncStatusResponse)
def get_status(scheduler: SyncScheduler = Depends(get_scheduler)):
    return SyncStatusResponse(**scheduler.status())


def _trigger(job: str, started: bool) -> SyncTriggerResponse:
    if not started:
        raise HTTPException(status_code=409, detail=f"A {job} cycle is already in flight or the job is disabled")
    log.info(f"Manual {job} sync queued")
    return SyncTriggerResponse(job=job, status="queued")


@router.post("/live", response_model=SyncTriggerResponse, status_code=202)
async def trigger_live(scheduler: SyncScheduler = Depends(get_scheduler)):
    """Run one live snapshot cycle in the background."""
    return _trigger("live", scheduler.trigger_live())


@router.post("/backfill", response_model=SyncTriggerResponse, status_code=202)
async def trigger_backfill(scheduler: SyncScheduler = Depends(get_scheduler)):
    """Backfill every tracked coin's empty timeframes in the background."""
    return _trigger("backfill", scheduler.trigger_backfill())


@router.post("/update", response_model=SyncTriggerResponse, status_code=202)
async def trigger_update(scheduler: SyncScheduler = Depends(get_scheduler)):
    """Append one synthetic point per timeframe for every tracked coin in the background."""
    return _trigger("update", scheduler.trigger_update())
