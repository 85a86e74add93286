"""Latest known quote per instrument - one row per coin code, upserted by the live syncer."""

from datetime import datetime

from sqlalchemy import DateTime, Float, String, func
from sqlalchemy.orm import Mapped, mapped_column

from marketsync.models.base import Base


class CoinSnapshot(Base):
    """Current snapshot of a coin as last reported by the provider.

    Every live sync cycle overwrites all mutable columns of existing rows
    (last writer wins) and creates rows for newly seen codes. Rows are never
    deleted.

    The delta_* columns are multiplicative ratios (new_price / old_price over
    the window), not percentages: 1.012 means +1.2%.
    """

    __tablename__ = "coin_snapshots"

    code: Mapped[str] = mapped_column(String(32), primary_key=True, comment="Provider short code, e.g. 'BTC'")

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    rate: Mapped[float] = mapped_column(Float, nullable=False)
    volume: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    cap: Mapped[float | None] = mapped_column(Float, nullable=True, index=True)

    delta_hour: Mapped[float | None] = mapped_column(Float, nullable=True)
    delta_day: Mapped[float | None] = mapped_column(Float, nullable=True)
    delta_week: Mapped[float | None] = mapped_column(Float, nullable=True)
    delta_month: Mapped[float | None] = mapped_column(Float, nullable=True)
    delta_quarter: Mapped[float | None] = mapped_column(Float, nullable=True)
    delta_year: Mapped[float | None] = mapped_column(Float, nullable=True)

    total_supply: Mapped[float | None] = mapped_column(Float, nullable=True)
    circulating_supply: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_supply: Mapped[float | None] = mapped_column(Float, nullable=True)

    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
