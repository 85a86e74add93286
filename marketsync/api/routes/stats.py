"""Stats routes - sync run observability."""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from marketsync.api.deps import get_db
from marketsync.schemas.api import SyncRunOut
from marketsync.services.data_service import DataService

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("", response_model=list[SyncRunOut])
def get_sync_stats(
    job: Optional[Literal["live", "backfill", "update"]] = Query(None, description="Filter by job name"),
    status: Optional[str] = Query(None, description="Filter by status (running, success, failure)"),
    limit: int = Query(10, ge=1, le=50, description="Number of runs to return"),
    db: Session = Depends(get_db),
):
    """
    Get recent sync run statistics.

    Shows records processed, error counts, duration and status.
    Use this for monitoring sync health and spotting provider outages.
    """
    service = DataService(db)
    runs = service.get_sync_runs(job_name=job, status=status, limit=limit)

    return [
        SyncRunOut(
            run_id=str(run.run_id),
            job_name=run.job_name,
            status=run.status,
            records_processed=run.records_processed,
            error_count=run.error_count,
            error_message=run.error_message,
            started_at=run.started_at,
            ended_at=run.ended_at,
        )
        for run in runs
    ]
