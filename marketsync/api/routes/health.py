"""Health routes - System health and readiness checks."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session
from sqlalchemy import text

from marketsync.api.deps import get_db, get_optional_scheduler
from marketsync.schemas.api import HealthResponse
from marketsync.services.data_service import DataService
from marketsync.services.scheduler import SyncScheduler

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", response_model=HealthResponse)
def health(
    response: Response,
    db: Session = Depends(get_db),
    scheduler: SyncScheduler | None = Depends(get_optional_scheduler),
):
    """
    Health check endpoint for load balancer and Docker health checks.

    Checks database connectivity and reports the last finished live sync run.
    Returns 503 if database is unreachable.
    """
    last_run = None
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
        last_run = DataService(db).get_last_finished_run("live")
    except Exception as e:
        db_status = f"down: {e}"
        response.status_code = 503

    return HealthResponse(
        database=db_status,
        is_sync_running=scheduler.is_running() if scheduler else False,
        last_live_sync_status=last_run.status if last_run else None,
        last_live_sync_at=last_run.ended_at if last_run else None,
    )


@router.get("/ready")
def readiness(response: Response, db: Session = Depends(get_db)):
    """
    Readiness probe - checks if service can serve traffic.

    Returns 200 if ready, 503 if database is unreachable.
    """
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ready", "timestamp": datetime.now(timezone.utc).isoformat()}
    except Exception as e:
        response.status_code = 503
        return {"status": "not_ready", "error": str(e), "timestamp": datetime.now(timezone.utc).isoformat()}
