import os

# Settings are read at import time; give the suite a throwaway database
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Any, Callable, Dict, List, Optional

import pytest
from sqlalchemy.orm import sessionmaker

from marketsync.core.db import build_engine
from marketsync.ingestion.base import MarketDataClient
from marketsync.models import Base
from marketsync.services.store import MarketDataStore

DAY_MS = 24 * 60 * 60 * 1000


class FakeMarketDataClient(MarketDataClient):
    """In-memory provider that records every call."""

    name = "fake"

    def __init__(
        self,
        quotes: Optional[List[Dict[str, Any]]] = None,
        history: Optional[Callable[[str, int], List[Dict[str, Any]]]] = None,
        quotes_error: Optional[Exception] = None,
        history_errors: Optional[Dict[str, Exception]] = None,
    ):
        self.quotes = quotes or []
        self.history = history or (lambda code, span: [])
        self.quotes_error = quotes_error
        self.history_errors = history_errors or {}
        self.top_calls: List[int] = []
        self.history_calls: List[tuple] = []

    async def fetch_top_coins(self, limit: int) -> List[Dict[str, Any]]:
        self.top_calls.append(limit)
        if self.quotes_error:
            raise self.quotes_error
        return list(self.quotes)[:limit]

    async def fetch_history(self, code: str, start_ms: int, end_ms: int) -> List[Dict[str, Any]]:
        span = end_ms - start_ms
        self.history_calls.append((code, span))
        if code in self.history_errors:
            raise self.history_errors[code]
        return self.history(code, span)

    def spans_for(self, code: str) -> List[int]:
        return [span for c, span in self.history_calls if c == code]


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path}/marketsync.db")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def store(session_factory):
    with session_factory() as db:
        yield MarketDataStore(db)


@pytest.fixture
def snapshot_row():
    def make(code: str, rate: float = 1.0, cap: Optional[float] = None, **extra: Any) -> Dict[str, Any]:
        row = {"code": code, "name": code, "rate": rate, "volume": 0.0, "cap": cap}
        row.update(extra)
        return row

    return make


@pytest.fixture
def no_sleep():
    """Records requested pauses instead of sleeping."""
    pauses: List[float] = []

    async def sleep(seconds: float) -> None:
        pauses.append(seconds)

    sleep.pauses = pauses
    return sleep
