"""Provider payload schemas (Live Coin Watch wire shapes)."""

from typing import Optional

from pydantic import BaseModel


class CoinDelta(BaseModel):
    """Per-window price ratios (new / old). 1.05 means +5%."""

    hour: Optional[float] = None
    day: Optional[float] = None
    week: Optional[float] = None
    month: Optional[float] = None
    quarter: Optional[float] = None
    year: Optional[float] = None


class CoinQuote(BaseModel):
    """One entry of the ranked /coins/list response."""

    code: Optional[str] = None
    name: Optional[str] = None
    rate: Optional[float] = None
    volume: Optional[float] = None
    cap: Optional[float] = None
    delta: Optional[CoinDelta] = None
    totalSupply: Optional[float] = None
    circulatingSupply: Optional[float] = None
    maxSupply: Optional[float] = None


class HistorySample(BaseModel):
    """One entry of the /coins/single/history "history" array."""

    date: int
    rate: float
    volume: Optional[float] = None
    cap: Optional[float] = None
