"""Tests for the OHLCV aggregator."""

import math
import random

import pytest

from chartfeed.core.exceptions import InvalidIntervalError
from chartfeed.models.market import Candle, Interval, SessionStats, TokenPair
from chartfeed.services.market.aggregator import (
    OHLCVAggregator,
    align_timestamp,
    parse_interval,
    to_milliseconds,
)
from fakes import BONK, SOL, make_swap


@pytest.fixture
def aggregator(pair) -> OHLCVAggregator:
    return OHLCVAggregator(token_pair=pair, interval="1m")


class TestAlignment:
    def test_seconds_and_milliseconds_share_a_bucket(self):
        assert align_timestamp(1000, Interval.MINUTE_1) == 960
        assert align_timestamp(1_700_000_070_000, Interval.MINUTE_1) == 1_700_000_040
        assert align_timestamp(1_700_000_070, Interval.MINUTE_1) == 1_700_000_040

    def test_threshold(self):
        assert to_milliseconds(999_999_999_999) == 999_999_999_999_000
        assert to_milliseconds(1e12) == 1e12

    def test_bucket_is_on_interval_boundary(self):
        for interval in Interval:
            t = align_timestamp(1_700_123_456, interval)
            assert t % interval.seconds == 0
            assert t <= 1_700_123_456

    def test_parse_interval_rejects_unknown(self):
        with pytest.raises(InvalidIntervalError):
            parse_interval("2m")
        assert parse_interval("1M") is Interval.MONTH_1


class TestProcessEvent:
    def test_single_bucket_fold(self, aggregator):
        aggregator.process_event(make_swap(960, 10.0, 5.0))
        aggregator.process_event(make_swap(990, 12.0, 3.0))
        aggregator.process_event(make_swap(1019, 9.0, 2.0))

        assert aggregator.get_current_candles() == [
            Candle(time=960, open=10.0, high=12.0, low=9.0, close=9.0, volume=10.0)
        ]

    def test_events_straddling_a_boundary_split(self, aggregator):
        # 1000 floors to 960; 1030 and 1059 floor to 1020
        aggregator.process_event(make_swap(1000, 10.0, 5.0))
        aggregator.process_event(make_swap(1030, 12.0, 3.0))
        aggregator.process_event(make_swap(1059, 9.0, 2.0))

        assert aggregator.get_current_candles() == [
            Candle(time=960, open=10.0, high=10.0, low=10.0, close=10.0, volume=5.0),
            Candle(time=1020, open=12.0, high=12.0, low=9.0, close=9.0, volume=5.0),
        ]

    def test_random_prices_in_one_bucket(self, aggregator):
        rng = random.Random(7)
        prices = [rng.uniform(0.5, 5.0) for _ in range(50)]
        volumes = [rng.uniform(0.0, 10.0) for _ in range(50)]
        for i, (p, v) in enumerate(zip(prices, volumes)):
            aggregator.process_event(make_swap(1_700_000_000 + (i % 20), p, v))

        (candle,) = aggregator.get_current_candles()
        assert candle.open == prices[0]
        assert candle.close == prices[-1]
        assert candle.high == max(prices)
        assert candle.low == min(prices)
        assert candle.volume == pytest.approx(sum(volumes))

    def test_is_new_candle_flag(self, aggregator):
        first = aggregator.process_event(make_swap(1000, 10.0))
        second = aggregator.process_event(make_swap(1010, 11.0))
        third = aggregator.process_event(make_swap(1020 + 60, 11.0))
        assert first.is_new_candle is True
        assert second.is_new_candle is False
        assert third.is_new_candle is True

    def test_mirror_orientation_gives_same_prices(self, pair):
        forward = OHLCVAggregator(pair)
        reverse = OHLCVAggregator(pair)
        for t, p in [(1000, 2.5), (1005, 3.2), (1010, 1.7)]:
            forward.process_event(make_swap(t, p, token_in=BONK, token_out=SOL))
            reverse.process_event(make_swap(t, 1 / p, token_in=SOL, token_out=BONK))

        (a,) = forward.get_current_candles()
        (b,) = reverse.get_current_candles()
        for field in ("open", "high", "low", "close"):
            assert getattr(a, field) == pytest.approx(getattr(b, field))

    def test_other_pair_is_ignored(self, aggregator):
        result = aggregator.process_event(make_swap(1000, 1.0, token_in="X", token_out=SOL))
        assert result is None
        assert len(aggregator) == 0

    @pytest.mark.parametrize("price", [0.0, -1.0, math.inf, math.nan])
    def test_invalid_price_is_dropped(self, aggregator, price):
        assert aggregator.process_event(make_swap(1000, price)) is None
        assert aggregator.get_current_candles() == []

    def test_zero_price_in_reverse_orientation_never_raises(self, aggregator):
        event = make_swap(1000, 0.0, token_in=SOL, token_out=BONK)
        assert aggregator.process_event(event) is None

    def test_negative_volume_is_dropped(self, aggregator):
        assert aggregator.process_event(make_swap(1000, 1.0, volume=-3.0)) is None

    def test_millisecond_timestamps(self, aggregator):
        aggregator.process_event(make_swap(1_700_000_070_000, 1.0))
        aggregator.process_event(make_swap(1_700_000_080, 2.0))
        (candle,) = aggregator.get_current_candles()
        assert candle.time == 1_700_000_040
        assert candle.close == 2.0

    def test_out_of_order_events_are_sorted(self, aggregator):
        times = [1000 + 60 * k for k in range(10)]
        random.Random(3).shuffle(times)
        for t in times:
            aggregator.process_event(make_swap(t, 1.0))

        result = [c.time for c in aggregator.get_current_candles()]
        assert result == sorted(result)
        assert len(set(result)) == len(result) == 10

    def test_retention_cap(self, pair):
        aggregator = OHLCVAggregator(pair, interval="1m")
        for k in range(1500):
            aggregator.process_event(make_swap(60 * (k + 1), 1.0))

        candles = aggregator.get_current_candles()
        assert len(candles) <= 1000
        assert candles[-1].time == 60 * 1500
        assert candles[0].time == 60 * 501

    def test_late_event_guard(self, pair):
        aggregator = OHLCVAggregator(pair, interval="1m", late_event_buckets=2)
        aggregator.process_event(make_swap(6000, 1.0))
        assert aggregator.process_event(make_swap(6000 - 60 * 2, 2.0)) is not None
        assert aggregator.process_event(make_swap(6000 - 60 * 3, 3.0)) is None

    def test_without_guard_late_events_still_apply(self, aggregator):
        aggregator.process_event(make_swap(60_000, 1.0))
        update = aggregator.process_event(make_swap(60, 2.0))
        assert update is not None
        assert aggregator.get_current_candles()[0].time == 60

    def test_full_set_skips_bucket_older_than_all(self, pair):
        aggregator = OHLCVAggregator(pair, interval="1m", max_candles=3)
        updates = []
        aggregator.on_candle_update(updates.append)
        for t in (6000, 6060, 6120):
            aggregator.process_event(make_swap(t, 1.0))

        assert aggregator.process_event(make_swap(60, 2.0)) is None
        assert [c.time for c in aggregator.get_current_candles()] == [6000, 6060, 6120]
        assert len(updates) == 3

        update = aggregator.process_event(make_swap(6010, 4.0))
        assert update is not None
        assert update.candle.time == 6000
        assert update.candle.high == 4.0


class TestListeners:
    def test_update_listener_receives_copies(self, aggregator):
        updates = []
        aggregator.on_candle_update(updates.append)

        aggregator.process_event(make_swap(1000, 10.0))
        aggregator.process_event(make_swap(1010, 20.0))

        assert [u.candle.close for u in updates] == [10.0, 20.0]
        updates[0].candle.close = 999.0
        assert aggregator.get_latest_candle().close == 20.0

    def test_failing_listener_is_isolated(self, aggregator):
        seen = []

        def broken(update):
            raise RuntimeError("listener failure")

        aggregator.on_candle_update(broken)
        aggregator.on_candle_update(seen.append)

        update = aggregator.process_event(make_swap(1000, 10.0))
        assert update is not None
        assert len(seen) == 1

    def test_remove_handler(self, aggregator):
        seen = []
        aggregator.on_candle_update(seen.append)
        aggregator.remove_candle_update_handler(seen.append)
        aggregator.process_event(make_swap(1000, 10.0))
        assert seen == []


class TestHistoryAndSettings:
    def test_set_historical_data_replaces_candles(self, aggregator, history):
        aggregator.process_event(make_swap(1000, 1.0))
        aggregator.set_historical_data(history)
        assert [c.time for c in aggregator.get_current_candles()] == [c.time for c in history]

    def test_history_is_copied(self, aggregator, history):
        aggregator.set_historical_data(history)
        history[0].close = 0.01
        assert aggregator.get_current_candles()[0].close == 2.2

    def test_live_event_extends_history_bucket(self, aggregator, history):
        aggregator.set_historical_data(history)
        update = aggregator.process_event(make_swap(1699999930, 2.8, 5.0))
        assert update.is_new_candle is False
        assert update.candle.high == 2.8
        assert update.candle.volume == 30.0

    def test_snapshot_is_not_a_live_view(self, aggregator):
        aggregator.process_event(make_swap(1000, 10.0))
        snapshot = aggregator.get_current_candles()
        snapshot[0].high = 500.0
        snapshot.clear()
        assert aggregator.get_current_candles()[0].high == 10.0

    def test_set_interval_clears_candles(self, aggregator):
        for k in range(5):
            aggregator.process_event(make_swap(1000 + 60 * k, 1.0))
        assert len(aggregator.get_current_candles()) == 5

        aggregator.set_interval("5m")
        assert aggregator.get_current_candles() == []
        assert aggregator.interval is Interval.MINUTE_5

    def test_set_invalid_interval_keeps_state(self, aggregator):
        aggregator.process_event(make_swap(1000, 1.0))
        with pytest.raises(InvalidIntervalError):
            aggregator.set_interval("7m")
        assert aggregator.interval is Interval.MINUTE_1
        assert len(aggregator) == 1

    def test_set_token_pair_keeps_candles(self, aggregator):
        aggregator.process_event(make_swap(1000, 1.0))
        aggregator.set_token_pair(TokenPair(base="X", quote=SOL))
        assert len(aggregator) == 1
        assert aggregator.process_event(make_swap(1010, 1.0)) is None
        assert aggregator.process_event(make_swap(1010, 1.0, token_in="X")) is not None


class TestSyntheticCandles:
    def test_creates_flat_candle_for_empty_bucket(self, aggregator):
        updates = []
        aggregator.on_candle_update(updates.append)

        candle = aggregator.generate_synthetic_candle(4.2, now=1_700_000_070)

        assert candle == Candle(
            time=1_700_000_040, open=4.2, high=4.2, low=4.2, close=4.2, volume=0.0
        )
        assert updates[0].is_new_candle is True

    def test_existing_bucket_is_left_alone(self, aggregator):
        aggregator.process_event(make_swap(1_700_000_065, 3.0, 2.0))
        assert aggregator.generate_synthetic_candle(4.2, now=1_700_000_070) is None
        assert aggregator.get_latest_candle().close == 3.0

    @pytest.mark.parametrize("price", [0.0, -1.0, math.inf, math.nan])
    def test_unusable_price_creates_nothing(self, aggregator, price):
        updates = []
        aggregator.on_candle_update(updates.append)
        assert aggregator.generate_synthetic_candle(price, now=1_700_000_070) is None
        assert len(aggregator) == 0
        assert updates == []


class TestSessionStats:
    def test_empty(self, aggregator):
        assert aggregator.get_session_stats() == SessionStats()

    def test_stats(self, aggregator, history):
        aggregator.set_historical_data(history)
        stats = aggregator.get_session_stats()
        assert stats.candle_count == 3
        assert stats.total_volume == 175.0
        assert stats.high == 2.5
        assert stats.low == 1.9
        assert stats.price_change == pytest.approx(0.3)
        assert stats.price_change_percent == pytest.approx(15.0)

    def test_zero_open_does_not_divide(self, aggregator):
        aggregator.set_historical_data(
            [Candle(time=60, open=0.0, high=1.0, low=0.0, close=1.0, volume=1.0)]
        )
        assert aggregator.get_session_stats().price_change_percent == 0.0
