"""Run a headless live chart session and log every candle update.

Loads recent history for the configured pair, connects to the Helius swap
stream and prints candles as they form. Useful for checking API keys and
the aggregation without starting the web app.

Usage:
    python scripts/run_chart.py
"""

import asyncio
import signal
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from chartfeed.config import settings
from chartfeed.core.logging import get_logger, setup_logging
from chartfeed.models.market import Candle
from chartfeed.services.chart_session import ChartSession

logger = get_logger(__name__)


class LogSurface:
    """Render surface that writes bars to the structured log."""

    def set_data(self, bars: list[Candle]) -> None:
        logger.info(
            "chart_set_data",
            candles=len(bars),
            first=bars[0].time if bars else None,
            last=bars[-1].time if bars else None,
        )

    def update(self, bar: Candle) -> None:
        logger.info("chart_update", **bar.to_dict())


async def main():
    setup_logging()
    logger.info(
        "chart_local_start",
        base=settings.chart_base_token,
        quote=settings.chart_quote_token,
        interval=settings.chart_interval,
    )

    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, shutdown.set)

    session = ChartSession.from_settings(surface=LogSurface())
    await session.start()
    logger.info("chart_running", message="Streaming swaps. Press Ctrl+C to stop.")

    await shutdown.wait()

    logger.info("shutting_down")
    stats = session.aggregator.get_session_stats()
    await session.stop()
    logger.info(
        "chart_session_summary",
        candles=stats.candle_count,
        volume=stats.total_volume,
        change_pct=round(stats.price_change_percent, 4),
    )


if __name__ == "__main__":
    asyncio.run(main())
