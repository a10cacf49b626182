"""Asyncio periodic tasks for chart housekeeping, such as synthetic candles.

Tasks run inside the application event loop; no worker process is involved.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Coroutine

from chartfeed.core.logging import get_logger

logger = get_logger(__name__)


class PeriodicTask:
    """Runs a coroutine repeatedly.

    ``period`` is a callable so the delay can follow live configuration,
    e.g. the chart interval width after an interval switch.
    """

    def __init__(
        self,
        name: str,
        coro_fn: Callable[[], Coroutine[Any, Any, None]],
        period: Callable[[], float],
        run_immediately: bool = False,
    ) -> None:
        self.name = name
        self.coro_fn = coro_fn
        self.period = period
        self.run_immediately = run_immediately
        self._task: asyncio.Task | None = None
        self._running = False
        self.last_run: datetime | None = None
        self.run_count: int = 0
        self.error_count: int = 0

    @property
    def running(self) -> bool:
        return self._running

    async def _loop(self) -> None:
        if not self.run_immediately:
            await asyncio.sleep(self.period())

        while self._running:
            try:
                await self.coro_fn()
                self.last_run = datetime.now(timezone.utc)
                self.run_count += 1
            except asyncio.CancelledError:
                break
            except Exception as e:
                self.error_count += 1
                logger.error(
                    "periodic_task_error",
                    task=self.name,
                    error=str(e),
                    error_count=self.error_count,
                )
            await asyncio.sleep(self.period())

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop(), name=f"periodic_{self.name}")
        logger.info("periodic_task_started", task=self.name, period=self.period())

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("periodic_task_stopped", task=self.name)

    def status(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "period_seconds": self.period(),
            "running": self._running,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "run_count": self.run_count,
            "error_count": self.error_count,
        }
