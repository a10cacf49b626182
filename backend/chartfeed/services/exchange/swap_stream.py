"""Helius swap stream client with exponential-backoff reconnect and listener fan-out."""

import asyncio
import json
from enum import StrEnum
from typing import Any, Awaitable, Callable

import websockets
from websockets.exceptions import ConnectionClosed

from chartfeed.config import settings
from chartfeed.core.events import EventType, Listeners
from chartfeed.core.exceptions import MessageParseError, ReconnectExhaustedError
from chartfeed.core.logging import get_logger
from chartfeed.core.metrics import metrics
from chartfeed.core.resilience import RetryConfig
from chartfeed.models.market import SwapEvent
from chartfeed.services.exchange.normalizer import parse_notification

logger = get_logger(__name__)

DEX_PROGRAMS: dict[str, list[str]] = {
    "jupiter": ["JUP4Fb2cqiRUcaTHdrPC8h2gNsA2ETXiPDD33WcGuJB"],
    "raydium": [
        "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8",  # AMM
        "5Q544fKrFoe6tsEbD7S8EmxGTJYAKtTVhAW5Q5pge4j1",  # Stable AMM
    ],
    "orca": [
        "9W959DqEETiGZocYWCQPaJ6sBmUzgfxXfqGeTEdp3aQP",
        "whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc",  # Whirlpools
    ],
}

Connector = Callable[[str], Awaitable[Any]]


class StreamState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


def build_subscription_request(accounts: list[str], request_id: int) -> dict[str, Any]:
    """JSON-RPC ``transactionSubscribe`` request for the given accounts."""
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "method": "transactionSubscribe",
        "params": [
            {
                "accountInclude": accounts,
                "vote": False,
                "failed": False,
            },
            {
                "commitment": "confirmed",
                "transactionDetails": "full",
                "showRewards": False,
                "maxSupportedTransactionVersion": 0,
            },
        ],
    }


class SwapStreamClient:
    """Push-feed adapter that turns transaction notifications into SwapEvents.

    ``connect()`` is a no-op unless the client is fully disconnected, so it
    is safe to call while a connection or a backoff is in flight. Retained
    subscriptions are replayed on every successful connect until
    ``disconnect()`` clears them.
    """

    def __init__(
        self,
        url: str | None = None,
        retry: RetryConfig | None = None,
        connector: Connector | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        self._url = url or settings.helius_ws_url
        self._retry = retry or RetryConfig.from_settings()
        self._connector = connector or websockets.connect
        self._sleep = sleep or asyncio.sleep

        self._ws: Any = None
        self._state = StreamState.DISCONNECTED
        self._generation: int = 0
        self._reconnect_attempts: int = 0
        self._reader_task: asyncio.Task | None = None
        self._reconnect_task: asyncio.Task | None = None
        self._subscriptions: dict[str, None] = {}
        self._request_id: int = 0
        # Backoff delays scheduled since the last successful connect
        self.reconnect_delays: list[float] = []

        self._swap_listeners: Listeners[SwapEvent] = Listeners(EventType.SWAP_EVENT)
        self._status_listeners: Listeners[bool] = Listeners(EventType.CONNECTION_STATUS)
        self._error_listeners: Listeners[Exception] = Listeners(EventType.STREAM_ERROR)

    # --- Listener registration ---

    def on_swap_event(self, handler: Callable[[SwapEvent], Any]) -> None:
        self._swap_listeners.add(handler)

    def on_connection_status(self, handler: Callable[[bool], Any]) -> None:
        self._status_listeners.add(handler)

    def on_error(self, handler: Callable[[Exception], Any]) -> None:
        self._error_listeners.add(handler)

    def remove_swap_event_handler(self, handler: Callable[[SwapEvent], Any]) -> None:
        self._swap_listeners.remove(handler)

    def remove_connection_status_handler(self, handler: Callable[[bool], Any]) -> None:
        self._status_listeners.remove(handler)

    def remove_error_handler(self, handler: Callable[[Exception], Any]) -> None:
        self._error_listeners.remove(handler)

    # --- State ---

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is StreamState.CONNECTED

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    @property
    def subscriptions(self) -> tuple[str, ...]:
        return tuple(self._subscriptions)

    # --- Lifecycle ---

    async def connect(self) -> None:
        """Open the transport. No-op while connecting, connected or backing off."""
        if self._state is not StreamState.DISCONNECTED:
            return

        self._state = StreamState.CONNECTING
        generation = self._generation
        logger.info("stream_connecting", attempt=self._reconnect_attempts)

        try:
            ws = await self._connector(self._url)
        except asyncio.CancelledError:
            self._state = StreamState.DISCONNECTED
            raise
        except Exception as e:
            if generation != self._generation:
                return
            self._state = StreamState.DISCONNECTED
            logger.warning(
                "stream_connect_failed",
                error=str(e),
                attempt=self._reconnect_attempts,
            )
            self._status_listeners.emit(False)
            self._schedule_reconnect()
            return

        if generation != self._generation:
            # disconnect() ran while the handshake was in flight
            await ws.close()
            return

        self._ws = ws
        self._state = StreamState.CONNECTED
        self._reconnect_attempts = 0
        self.reconnect_delays.clear()
        metrics.stream_connected.set(1)
        logger.info("stream_connected", subscriptions=len(self._subscriptions))

        self._status_listeners.emit(True)
        self._reader_task = asyncio.create_task(self._listen(ws), name="swap_stream_reader")
        await self._resubscribe()

    async def disconnect(self) -> None:
        """Tear down the transport and drop retained subscriptions.

        Safe from any state. Cancels a pending reconnect, restores the full
        retry budget and emits nothing.
        """
        self._generation += 1
        self._state = StreamState.DISCONNECTED
        self._subscriptions.clear()
        self._reconnect_attempts = 0
        self.reconnect_delays.clear()
        metrics.stream_connected.set(0)

        current = asyncio.current_task()
        tasks = [
            t for t in (self._reconnect_task, self._reader_task)
            if t is not None and t is not current and not t.done()
        ]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._reconnect_task = None
        self._reader_task = None

        ws, self._ws = self._ws, None
        if ws is not None:
            try:
                await ws.close()
            except Exception as e:
                logger.warning("stream_close_error", error=str(e))

        logger.info("stream_disconnected", manual=True)

    # --- Subscriptions ---

    async def subscribe(self, *accounts: str) -> None:
        """Retain the accounts and request delivery now if connected."""
        new = list(dict.fromkeys(a for a in accounts if a and a not in self._subscriptions))
        if not new:
            return
        self._subscriptions.update(dict.fromkeys(new))

        if self._state is StreamState.CONNECTED and self._ws is not None:
            await self._send_subscription(new)
        else:
            logger.debug("stream_subscription_deferred", accounts=new, state=self._state)

    async def subscribe_dex(self, name: str) -> None:
        programs = DEX_PROGRAMS.get(name.lower())
        if programs is None:
            logger.warning("unknown_dex_program", dex=name)
            return
        await self.subscribe(*programs)

    async def subscribe_jupiter_swaps(self) -> None:
        await self.subscribe_dex("jupiter")

    async def subscribe_raydium_swaps(self) -> None:
        await self.subscribe_dex("raydium")

    async def subscribe_orca_swaps(self) -> None:
        await self.subscribe_dex("orca")

    async def _send_subscription(self, accounts: list[str]) -> None:
        self._request_id += 1
        request = build_subscription_request(accounts, self._request_id)
        await self._ws.send(json.dumps(request))
        logger.info("stream_subscribed", accounts=accounts, request_id=self._request_id)

    async def _resubscribe(self) -> None:
        if not self._subscriptions or self._ws is None:
            return
        try:
            await self._send_subscription(list(self._subscriptions))
        except Exception as e:
            logger.error("stream_resubscribe_failed", error=str(e))

    # --- Inbound ---

    def handle_message(self, raw: str | bytes) -> None:
        """Parse one inbound frame and emit a SwapEvent if it is a swap."""
        try:
            message = json.loads(raw)
        except (TypeError, ValueError) as e:
            metrics.messages_dropped.inc()
            logger.warning("stream_message_unparsable", error=str(e))
            self._error_listeners.emit(MessageParseError())
            return

        try:
            event = parse_notification(message)
        except Exception as e:
            metrics.messages_dropped.inc()
            logger.error("stream_message_error", error=str(e))
            return

        if event is None:
            metrics.messages_dropped.inc()
            return

        metrics.swaps_received.inc()
        self._swap_listeners.emit(event)

    async def _listen(self, ws: Any) -> None:
        try:
            async for raw in ws:
                self.handle_message(raw)
        except ConnectionClosed as e:
            logger.warning("stream_closed", code=getattr(e.rcvd, "code", None))
        except Exception as e:
            logger.error("stream_reader_error", error=str(e))

        if self._ws is ws and self._state is StreamState.CONNECTED:
            self._on_connection_lost()

    # --- Reconnect ---

    def _on_connection_lost(self) -> None:
        self._ws = None
        self._reader_task = None
        self._state = StreamState.DISCONNECTED
        metrics.stream_connected.set(0)
        logger.info("stream_disconnected", manual=False)

        self._status_listeners.emit(False)
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if not self._retry.can_retry(self._reconnect_attempts):
            logger.error("stream_reconnect_exhausted", attempts=self._reconnect_attempts)
            self._error_listeners.emit(ReconnectExhaustedError())
            return

        self._reconnect_attempts += 1
        delay = self._retry.delay_for(self._reconnect_attempts)
        self.reconnect_delays.append(delay)
        metrics.reconnect_attempts.inc()
        self._state = StreamState.RECONNECTING

        logger.info(
            "stream_reconnect_scheduled",
            attempt=self._reconnect_attempts,
            max_attempts=self._retry.max_retries,
            delay=delay,
        )
        self._reconnect_task = asyncio.create_task(
            self._reconnect_after(delay, self._generation),
            name="swap_stream_reconnect",
        )

    async def _reconnect_after(self, delay: float, generation: int) -> None:
        await self._sleep(delay)
        if generation != self._generation or self._state is not StreamState.RECONNECTING:
            return
        self._state = StreamState.DISCONNECTED
        await self.connect()
