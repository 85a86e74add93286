from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class CoinSnapshotOut(BaseModel):
    code: str
    name: str
    rate: float
    volume: float
    cap: Optional[float] = None
    delta_hour: Optional[float] = None
    delta_day: Optional[float] = None
    delta_week: Optional[float] = None
    delta_month: Optional[float] = None
    delta_quarter: Optional[float] = None
    delta_year: Optional[float] = None
    total_supply: Optional[float] = None
    circulating_supply: Optional[float] = None
    max_supply: Optional[float] = None
    last_updated: datetime

    class Config:
        from_attributes = True


class CoinsResponse(BaseModel):
    coins: list[CoinSnapshotOut]
    last_updated: Optional[datetime] = None
    is_service_running: bool


class HistoryPointOut(BaseModel):
    timestamp: int
    price: float
    volume: Optional[float] = None
    market_cap: Optional[float] = None
    synthetic: bool

    class Config:
        from_attributes = True


class HistoryResponse(BaseModel):
    token: str
    timeframe: str
    points: list[HistoryPointOut]


class SyncStatusResponse(BaseModel):
    is_running: bool
    live_busy: bool
    history_busy: bool
    live_sync_interval_seconds: int
    history_update_interval_seconds: Optional[int] = None
    history_sync_enabled: bool


class SyncTriggerResponse(BaseModel):
    job: str
    status: str


class HealthResponse(BaseModel):
    database: str
    is_sync_running: bool
    last_live_sync_status: str | None
    last_live_sync_at: datetime | None


class SyncRunOut(BaseModel):
    run_id: str
    job_name: str
    status: str
    records_processed: int
    error_count: int
    error_message: str | None = None
    started_at: datetime
    ended_at: datetime | None
