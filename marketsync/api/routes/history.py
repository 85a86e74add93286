"""History routes - price series for charts."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from marketsync.api.deps import get_db
from marketsync.models.history import Timeframe
from marketsync.schemas.api import HistoryPointOut, HistoryResponse
from marketsync.services.data_service import DEFAULT_HISTORY_LIMIT, MAX_HISTORY_LIMIT, DataService

router = APIRouter(prefix="/history", tags=["history"])


@router.get("/{code}", response_model=HistoryResponse)
def get_history(
    code: str,
    timeframe: Timeframe = Query(Timeframe.ONE_DAY, description="Series granularity"),
    limit: int = Query(DEFAULT_HISTORY_LIMIT, ge=1, le=MAX_HISTORY_LIMIT),
    include_synthetic: bool = Query(True, description="Include points approximated from the live rate"),
    db: Session = Depends(get_db),
):
    """
    Get the stored series for one coin and timeframe, oldest first.

    Points with synthetic=true were derived from the live snapshot rate
    between provider backfills and are not authentic provider samples.
    """
    service = DataService(db)
    points = service.get_history(
        code,
        timeframe.value,
        limit=limit,
        include_synthetic=include_synthetic,
    )

    return HistoryResponse(
        token=code.upper(),
        timeframe=timeframe.value,
        points=[HistoryPointOut.model_validate(p) for p in points],
    )
