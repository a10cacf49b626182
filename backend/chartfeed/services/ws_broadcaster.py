"""Render surface that forwards chart updates to WebSocket hub clients.

Aggregator and stream listeners are synchronous, so messages are queued and
a background task performs the async sends.
"""

import asyncio

from chartfeed.api.websocket.hub import CANDLES_CHANNEL, WebSocketHub, ws_hub
from chartfeed.core.events import Event, EventType
from chartfeed.core.logging import get_logger
from chartfeed.models.market import Candle

logger = get_logger(__name__)

QUEUE_MAXSIZE = 1000


class ChartBroadcaster:
    """Queues surface calls and pushes them to the hub's candle channel."""

    def __init__(
        self,
        hub: WebSocketHub | None = None,
        channel: str = CANDLES_CHANNEL,
        maxsize: int = QUEUE_MAXSIZE,
    ) -> None:
        self._hub = hub or ws_hub
        self._channel = channel
        self._queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=maxsize)
        self._running = False
        self._task: asyncio.Task | None = None
        self.dropped: int = 0

    # --- RenderSurface ---

    def set_data(self, bars: list[Candle]) -> None:
        self._enqueue(Event(
            type=EventType.CANDLE_SET,
            data={"bars": [bar.to_dict() for bar in bars]},
        ))

    def update(self, bar: Candle) -> None:
        self._enqueue(Event(type=EventType.CANDLE_UPDATE, data={"bar": bar.to_dict()}))

    # --- Stream listeners ---

    def push_status(self, connected: bool) -> None:
        self._enqueue(Event(type=EventType.CONNECTION_STATUS, data={"connected": connected}))

    def push_error(self, error: Exception) -> None:
        self._enqueue(Event(
            type=EventType.STREAM_ERROR,
            data={"message": str(error), "code": getattr(error, "code", "UNKNOWN_ERROR")},
        ))

    def _enqueue(self, event: Event) -> None:
        if self._queue.full():
            # Drop the oldest message so the producer never blocks
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(event)

    # --- Lifecycle ---

    async def start(self) -> None:
        self._running = True
        self._task = asyncio.create_task(self._loop(), name="chart_broadcaster")
        logger.info("chart_broadcaster_started")

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("chart_broadcaster_stopped", dropped=self.dropped)

    async def drain(self) -> int:
        """Send every queued message now. Returns the number sent."""
        sent = 0
        while not self._queue.empty():
            await self._dispatch(self._queue.get_nowait())
            sent += 1
        return sent

    async def _loop(self) -> None:
        while self._running:
            try:
                event = await self._queue.get()
                await self._dispatch(event)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("chart_broadcaster_error", error=str(e))

    async def _dispatch(self, event: Event) -> None:
        await self._hub.broadcast(self._channel, event.to_message())
