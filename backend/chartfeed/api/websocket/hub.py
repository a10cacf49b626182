"""WebSocket connection manager for pushing candle data to chart clients."""

import json
from typing import Any

from fastapi import WebSocket

from chartfeed.core.logging import get_logger
from chartfeed.core.metrics import metrics

logger = get_logger(__name__)

CANDLES_CHANNEL = "candles"


class WebSocketHub:
    """Tracks chart clients per channel and fans candle messages out to them."""

    def __init__(self) -> None:
        self._connections: dict[str, list[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, channel: str = CANDLES_CHANNEL) -> None:
        await websocket.accept()
        self._connections.setdefault(channel, []).append(websocket)
        metrics.ws_connections.set(self.connection_count)
        logger.info("ws_client_connected", channel=channel, total=self.clients(channel))

    def disconnect(self, websocket: WebSocket, channel: str = CANDLES_CHANNEL) -> None:
        clients = self._connections.get(channel)
        if clients is None or websocket not in clients:
            return
        clients.remove(websocket)
        if not clients:
            del self._connections[channel]
        metrics.ws_connections.set(self.connection_count)
        logger.info("ws_client_disconnected", channel=channel, total=self.clients(channel))

    async def send(self, websocket: WebSocket, data: dict[str, Any]) -> None:
        await websocket.send_text(json.dumps(data))

    async def broadcast(self, channel: str, data: dict[str, Any]) -> int:
        """Send ``data`` to every client on ``channel``. Returns the number reached.

        Clients whose send fails are dropped from the channel.
        """
        clients = list(self._connections.get(channel, ()))
        if not clients:
            return 0

        message = json.dumps(data)
        delivered = 0
        for ws in clients:
            try:
                await ws.send_text(message)
                delivered += 1
            except Exception as e:
                logger.warning("ws_send_failed", channel=channel, error=str(e))
                self.disconnect(ws, channel)
        return delivered

    def clients(self, channel: str = CANDLES_CHANNEL) -> int:
        return len(self._connections.get(channel, ()))

    @property
    def connection_count(self) -> int:
        return sum(len(clients) for clients in self._connections.values())


ws_hub = WebSocketHub()
