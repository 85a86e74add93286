"""Append-only price series, one sample per (token_code, timestamp, timeframe)."""

from enum import Enum

from sqlalchemy import BigInteger, Boolean, Float, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from marketsync.models.base import Base


class Timeframe(str, Enum):
    """Independently retained series granularities. None is a rollup of another."""

    ONE_HOUR = "1H"
    ONE_DAY = "1D"
    SEVEN_DAYS = "7D"
    THIRTY_DAYS = "30D"

    @property
    def span_ms(self) -> int:
        return TIMEFRAME_SPANS_MS[self]


TIMEFRAME_SPANS_MS = {
    Timeframe.ONE_HOUR: 60 * 60 * 1000,
    Timeframe.ONE_DAY: 24 * 60 * 60 * 1000,
    Timeframe.SEVEN_DAYS: 7 * 24 * 60 * 60 * 1000,
    Timeframe.THIRTY_DAYS: 30 * 24 * 60 * 60 * 1000,
}


class PriceHistoryPoint(Base):
    """One price sample.

    token_code references coin_snapshots.code by value only; history may
    outlive a snapshot. Points are never updated or deleted once inserted.
    synthetic marks points approximated from the current snapshot rate rather
    than read from the provider's history endpoint.
    """

    __tablename__ = "price_history_points"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    token_code: Mapped[str] = mapped_column(String(32), nullable=False)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False, comment="Epoch milliseconds")
    timeframe: Mapped[str] = mapped_column(String(8), nullable=False)

    price: Mapped[float] = mapped_column(Float, nullable=False)
    volume: Mapped[float | None] = mapped_column(Float, nullable=True)
    market_cap: Mapped[float | None] = mapped_column(Float, nullable=True)

    synthetic: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("token_code", "timestamp", "timeframe", name="uq_price_history_code_ts_timeframe"),
        Index("ix_price_history_code_timeframe", "token_code", "timeframe"),
    )
