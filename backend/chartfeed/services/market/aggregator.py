"""Real-time OHLCV aggregation: folds swap events into time-bucketed candles."""

import math
import time
from collections.abc import Iterable
from typing import Any, Callable

from chartfeed.config import settings
from chartfeed.core.events import EventType, Listeners
from chartfeed.core.exceptions import InvalidIntervalError
from chartfeed.core.logging import get_logger
from chartfeed.core.metrics import metrics
from chartfeed.models.market import (
    Candle,
    CandleUpdate,
    Interval,
    SessionStats,
    SwapEvent,
    TokenPair,
)

logger = get_logger(__name__)

# Timestamps below this are taken to be seconds, otherwise milliseconds.
# A seconds value beyond year ~33658 or a millisecond value before
# 2001-09-09 is misclassified.
MS_THRESHOLD = 1e12

DEFAULT_MAX_CANDLES = 1000


def is_valid_price(price: float) -> bool:
    return math.isfinite(price) and price > 0


def parse_interval(value: str | Interval) -> Interval:
    try:
        return Interval(value)
    except ValueError as e:
        raise InvalidIntervalError(f"Unsupported candle interval: {value!r}") from e


def to_milliseconds(timestamp: float) -> float:
    return timestamp * 1000 if timestamp < MS_THRESHOLD else timestamp


def align_timestamp(timestamp: float, interval: Interval) -> int:
    """Bucket start, in seconds, for a timestamp given in seconds or milliseconds."""
    width_ms = interval.milliseconds
    aligned_ms = math.floor(to_milliseconds(timestamp) / width_ms) * width_ms
    return int(aligned_ms // 1000)


class OHLCVAggregator:
    """Maintains the candle set for one token pair at one interval.

    The candle map is private to the instance; every read and every
    ``CandleUpdate`` carries copies, so callers hold snapshots rather than
    live views.
    """

    def __init__(
        self,
        token_pair: TokenPair,
        interval: Interval | str = Interval.MINUTE_1,
        max_candles: int = DEFAULT_MAX_CANDLES,
        late_event_buckets: int | None = None,
    ) -> None:
        self._token_pair = token_pair
        self._interval = parse_interval(interval)
        self._max_candles = max_candles
        self._late_event_buckets = late_event_buckets
        self._candles: dict[int, Candle] = {}
        self._update_listeners: Listeners[CandleUpdate] = Listeners(EventType.CANDLE_UPDATE)

    @classmethod
    def from_settings(cls) -> "OHLCVAggregator":
        return cls(
            token_pair=settings.token_pair,
            interval=settings.interval,
            max_candles=settings.max_candles,
            late_event_buckets=settings.late_event_buckets,
        )

    @property
    def interval(self) -> Interval:
        return self._interval

    @property
    def token_pair(self) -> TokenPair:
        return self._token_pair

    def __len__(self) -> int:
        return len(self._candles)

    # --- Listeners ---

    def on_candle_update(self, handler: Callable[[CandleUpdate], Any]) -> None:
        self._update_listeners.add(handler)

    def remove_candle_update_handler(self, handler: Callable[[CandleUpdate], Any]) -> None:
        self._update_listeners.remove(handler)

    # --- Mutation ---

    def set_historical_data(self, bars: Iterable[Candle]) -> None:
        """Replace every candle with ``bars``, keyed by each bar's own time."""
        self._candles = {int(bar.time): bar.copy() for bar in bars}
        metrics.candle_count.set(len(self._candles))
        logger.info(
            "historical_data_loaded",
            candles=len(self._candles),
            interval=self._interval,
        )

    def process_event(self, event: SwapEvent) -> CandleUpdate | None:
        """Fold one swap into its bucket. Never raises.

        Returns the emitted update, or None when the event was ignored.
        """
        try:
            return self._process(event)
        except Exception as e:
            metrics.events_ignored.inc()
            logger.warning(
                "swap_event_dropped",
                signature=getattr(event, "signature", None),
                error=str(e),
            )
            return None

    def _process(self, event: SwapEvent) -> CandleUpdate | None:
        pair = self._token_pair
        if not pair.matches(event.token_in, event.token_out):
            metrics.events_ignored.inc()
            return None

        price = event.price if pair.is_forward(event.token_in, event.token_out) else 1 / event.price
        volume = event.volume
        if not is_valid_price(price) or not math.isfinite(volume) or volume < 0:
            metrics.events_ignored.inc()
            logger.debug("swap_event_invalid", signature=event.signature, price=price, volume=volume)
            return None

        candle_time = align_timestamp(event.timestamp, self._interval)
        if self._is_too_late(candle_time):
            metrics.events_ignored.inc()
            logger.debug("swap_event_late", signature=event.signature, candle_time=candle_time)
            return None
        if self._would_be_evicted(candle_time):
            metrics.events_ignored.inc()
            logger.debug("swap_event_beyond_retention", signature=event.signature, candle_time=candle_time)
            return None

        candle = self._candles.get(candle_time)
        is_new_candle = candle is None
        if candle is None:
            candle = Candle.flat(candle_time, price, volume)
            self._candles[candle_time] = candle
        else:
            candle.apply(price, volume)

        update = CandleUpdate(candle=candle.copy(), is_new_candle=is_new_candle)
        self._emit(update)
        self._cleanup_old_candles()
        return update

    def _is_too_late(self, candle_time: int) -> bool:
        if self._late_event_buckets is None or not self._candles:
            return False
        newest = max(self._candles)
        return candle_time < newest - self._late_event_buckets * self._interval.seconds

    def _would_be_evicted(self, candle_time: int) -> bool:
        """True when a new bucket would be the oldest of a full candle set."""
        if not self._candles or len(self._candles) < self._max_candles or candle_time in self._candles:
            return False
        return candle_time < min(self._candles)

    def generate_synthetic_candle(self, last_price: float, now: float | None = None) -> Candle | None:
        """Create a flat zero-volume candle for the current bucket if it has none."""
        if not is_valid_price(last_price):
            logger.debug("synthetic_candle_skipped", price=last_price)
            return None
        if now is None:
            now = time.time()
        candle_time = align_timestamp(now, self._interval)
        if candle_time in self._candles or self._would_be_evicted(candle_time):
            return None

        candle = Candle.flat(candle_time, last_price)
        self._candles[candle_time] = candle
        metrics.synthetic_candles.inc()
        logger.debug("synthetic_candle_generated", time=candle_time, price=last_price)

        self._emit(CandleUpdate(candle=candle.copy(), is_new_candle=True))
        self._cleanup_old_candles()
        return candle.copy()

    def set_token_pair(self, token_pair: TokenPair) -> None:
        """Change the tracked pair. Existing candles are kept."""
        self._token_pair = token_pair
        logger.info("token_pair_changed", base=token_pair.base, quote=token_pair.quote)

    def set_interval(self, interval: Interval | str) -> None:
        """Change the bucket width. Clears every candle."""
        self._interval = parse_interval(interval)
        self._candles.clear()
        metrics.candle_count.set(0)
        logger.info("interval_changed", interval=self._interval)

    # --- Reads ---

    def get_current_candles(self) -> list[Candle]:
        return [self._candles[t].copy() for t in sorted(self._candles)]

    def get_latest_candle(self) -> Candle | None:
        if not self._candles:
            return None
        return self._candles[max(self._candles)].copy()

    def get_session_stats(self) -> SessionStats:
        candles = self.get_current_candles()
        if not candles:
            return SessionStats()

        first, last = candles[0], candles[-1]
        price_change = last.close - first.open
        return SessionStats(
            total_volume=sum(c.volume for c in candles),
            price_change=price_change,
            price_change_percent=(price_change / first.open) * 100 if first.open else 0.0,
            high=max(c.high for c in candles),
            low=min(c.low for c in candles),
            candle_count=len(candles),
        )

    # --- Internals ---

    def _emit(self, update: CandleUpdate) -> None:
        metrics.candle_updates.inc()
        self._update_listeners.emit(update)

    def _cleanup_old_candles(self) -> None:
        excess = len(self._candles) - self._max_candles
        if excess > 0:
            for candle_time in sorted(self._candles)[:excess]:
                del self._candles[candle_time]
            logger.debug("old_candles_removed", removed=excess)
        metrics.candle_count.set(len(self._candles))
