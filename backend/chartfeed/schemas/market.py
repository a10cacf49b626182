"""Market data Pydantic schemas."""

from pydantic import BaseModel, Field

from chartfeed.models.market import Interval


class CandleResponse(BaseModel):
    model_config = {"from_attributes": True}

    time: int
    open: float
    high: float
    low: float
    close: float
    volume: float


class SessionStatsResponse(BaseModel):
    model_config = {"from_attributes": True}

    total_volume: float
    price_change: float
    price_change_percent: float
    high: float
    low: float
    candle_count: int


class ChartStatusResponse(BaseModel):
    base: str
    quote: str
    interval: Interval
    connected: bool
    last_price: float | None
    last_error: str | None
    candle_count: int


class IntervalRequest(BaseModel):
    interval: Interval


class TokenPairRequest(BaseModel):
    base: str = Field(min_length=1)
    quote: str = Field(min_length=1)
