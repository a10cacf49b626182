"""Live chart session: history seeding, swap stream wiring and render-surface updates."""

from typing import Protocol

from chartfeed.config import settings
from chartfeed.core.exceptions import MarketDataError
from chartfeed.core.logging import get_logger
from chartfeed.models.market import Candle, CandleUpdate, Interval, SessionStats, SwapEvent, TokenPair
from chartfeed.services.exchange.swap_stream import SwapStreamClient
from chartfeed.services.market.aggregator import OHLCVAggregator, parse_interval
from chartfeed.services.market.data_collector import MarketDataCollector
from chartfeed.services.scheduler import PeriodicTask

logger = get_logger(__name__)


class RenderSurface(Protocol):
    """Anything that draws time-ordered bars and upserts the latest one."""

    def set_data(self, bars: list[Candle]) -> None: ...

    def update(self, bar: Candle) -> None: ...


class ChartSession:
    """Owns one aggregator and feeds it from history and the swap stream."""

    def __init__(
        self,
        aggregator: OHLCVAggregator,
        stream: SwapStreamClient,
        provider: MarketDataCollector,
        surface: RenderSurface | None = None,
        dex_programs: list[str] | None = None,
        history_periods: int | None = None,
        synthetic_candles: bool | None = None,
    ) -> None:
        self.aggregator = aggregator
        self.stream = stream
        self.provider = provider
        self.surface = surface
        self.dex_programs = dex_programs if dex_programs is not None else settings.dex_programs_list
        self.history_periods = history_periods or settings.chart_history_periods
        self.synthetic_candles = (
            settings.synthetic_candles_enabled if synthetic_candles is None else synthetic_candles
        )

        self.connected: bool = False
        self.last_error: str | None = None
        self.last_price: float | None = None
        self.stats: SessionStats = SessionStats()
        self._newest_drawn: int | None = None

        self._synthetic_task = PeriodicTask(
            "synthetic_candle",
            self.tick_synthetic_candle,
            period=lambda: self.aggregator.interval.seconds,
        )
        self._started = False

    @classmethod
    def from_settings(cls, surface: RenderSurface | None = None) -> "ChartSession":
        return cls(
            aggregator=OHLCVAggregator.from_settings(),
            stream=SwapStreamClient(),
            provider=MarketDataCollector(),
            surface=surface,
        )

    async def start(self) -> None:
        if self._started:
            return
        self._started = True

        self.aggregator.on_candle_update(self._handle_candle_update)
        self.stream.on_swap_event(self._handle_swap_event)
        self.stream.on_connection_status(self._handle_connection_status)
        self.stream.on_error(self._handle_error)

        await self.load_history()

        await self.stream.connect()
        for dex in self.dex_programs:
            await self.stream.subscribe_dex(dex)

        if self.synthetic_candles:
            self._synthetic_task.start()

        pair = self.aggregator.token_pair
        logger.info(
            "chart_session_started",
            base=pair.base,
            quote=pair.quote,
            interval=self.aggregator.interval,
            dex_programs=self.dex_programs,
        )

    async def stop(self) -> None:
        if not self._started:
            return
        self._started = False

        await self._synthetic_task.stop()
        await self.stream.disconnect()

        self.aggregator.remove_candle_update_handler(self._handle_candle_update)
        self.stream.remove_swap_event_handler(self._handle_swap_event)
        self.stream.remove_connection_status_handler(self._handle_connection_status)
        self.stream.remove_error_handler(self._handle_error)
        self.connected = False
        logger.info("chart_session_stopped")

    def scheduled_tasks(self) -> list[dict]:
        return [self._synthetic_task.status()]

    async def load_history(self) -> list[Candle]:
        """Seed the aggregator with recent bars and replace the surface data.

        A provider failure is recorded in ``last_error``; live aggregation
        continues from an empty candle set.
        """
        pair = self.aggregator.token_pair
        interval = self.aggregator.interval
        try:
            bars = await self.provider.get_recent_data(pair.base, interval, self.history_periods)
        except MarketDataError as e:
            self.last_error = e.message
            logger.error("history_load_failed", base=pair.base, interval=interval, error=e.message)
            bars = []

        self.aggregator.set_historical_data(bars)
        candles = self.aggregator.get_current_candles()
        if candles:
            self.last_price = candles[-1].close
        self._newest_drawn = candles[-1].time if candles else None
        self.stats = self.aggregator.get_session_stats()
        if self.surface is not None:
            self.surface.set_data(candles)
        return candles

    async def change_interval(self, interval: Interval | str) -> None:
        """Switch bucket width; candles are cleared and history reloaded."""
        new_interval = parse_interval(interval)
        if new_interval == self.aggregator.interval:
            return
        self.aggregator.set_interval(new_interval)
        await self.load_history()

    def change_token_pair(self, token_pair: TokenPair) -> None:
        """Re-target live events. Existing candles are kept."""
        self.aggregator.set_token_pair(token_pair)

    async def tick_synthetic_candle(self) -> None:
        latest = self.aggregator.get_latest_candle()
        last_price = latest.close if latest is not None else self.last_price
        if last_price is None:
            return
        self.aggregator.generate_synthetic_candle(last_price)

    def _handle_swap_event(self, event: SwapEvent) -> None:
        self.aggregator.process_event(event)

    def _handle_candle_update(self, update: CandleUpdate) -> None:
        self.stats = self.aggregator.get_session_stats()
        candle = update.candle
        if self._newest_drawn is not None and candle.time < self._newest_drawn:
            # A surface only upserts the last bar; an older bucket needs a full redraw
            logger.debug("chart_redraw_for_late_bar", time=candle.time, newest=self._newest_drawn)
            if self.surface is not None:
                self.surface.set_data(self.aggregator.get_current_candles())
            return

        self._newest_drawn = candle.time
        self.last_price = candle.close
        if self.surface is not None:
            self.surface.update(candle)

    def _handle_connection_status(self, connected: bool) -> None:
        self.connected = connected
        if connected:
            self.last_error = None

    def _handle_error(self, error: Exception) -> None:
        self.last_error = str(error)
        logger.error("chart_stream_error", error=str(error))
