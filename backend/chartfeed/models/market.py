"""Market data models: swap events, OHLCV candles, intervals and token pairs."""

from dataclasses import asdict, dataclass, replace
from enum import StrEnum
from typing import Any


class Interval(StrEnum):
    SECOND_1 = "1s"
    MINUTE_1 = "1m"
    MINUTE_5 = "5m"
    MINUTE_15 = "15m"
    HOUR_1 = "1h"
    HOUR_4 = "4h"
    DAY_1 = "1d"
    WEEK_1 = "1w"
    MONTH_1 = "1M"

    @property
    def seconds(self) -> int:
        return INTERVAL_SECONDS[self]

    @property
    def milliseconds(self) -> int:
        return INTERVAL_SECONDS[self] * 1000


INTERVAL_SECONDS: dict[Interval, int] = {
    Interval.SECOND_1: 1,
    Interval.MINUTE_1: 60,
    Interval.MINUTE_5: 300,
    Interval.MINUTE_15: 900,
    Interval.HOUR_1: 3600,
    Interval.HOUR_4: 14400,
    Interval.DAY_1: 86400,
    Interval.WEEK_1: 604800,
    Interval.MONTH_1: 2592000,  # approximate month (30 days)
}


@dataclass(frozen=True)
class TokenPair:
    """Tracked pair. Prices are expressed as quote per base."""

    base: str
    quote: str

    def matches(self, token_in: str, token_out: str) -> bool:
        return self.is_forward(token_in, token_out) or self.is_reverse(token_in, token_out)

    def is_forward(self, token_in: str, token_out: str) -> bool:
        return token_in == self.base and token_out == self.quote

    def is_reverse(self, token_in: str, token_out: str) -> bool:
        return token_in == self.quote and token_out == self.base


@dataclass(frozen=True)
class SwapEvent:
    """A single normalized swap execution.

    ``timestamp`` is whatever unit the feed delivered (seconds or
    milliseconds); the aggregator normalizes it when bucketing.
    """

    signature: str
    timestamp: float
    price: float
    volume: float
    token_in: str
    token_out: str
    amount_in: float
    amount_out: float


@dataclass
class Candle:
    """OHLCV bar. ``time`` is the bucket start in seconds since epoch."""

    time: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    def apply(self, price: float, volume: float) -> None:
        self.high = max(self.high, price)
        self.low = min(self.low, price)
        self.close = price
        self.volume += volume

    def copy(self) -> "Candle":
        return replace(self)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def flat(cls, time: int, price: float, volume: float = 0.0) -> "Candle":
        return cls(time=time, open=price, high=price, low=price, close=price, volume=volume)


@dataclass(frozen=True)
class CandleUpdate:
    candle: Candle
    is_new_candle: bool


@dataclass(frozen=True)
class SessionStats:
    total_volume: float = 0.0
    price_change: float = 0.0
    price_change_percent: float = 0.0
    high: float = 0.0
    low: float = 0.0
    candle_count: int = 0
