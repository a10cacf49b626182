"""Instance-owned observer lists and the event envelope pushed to dashboard clients."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Callable, Generic, TypeVar

from chartfeed.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class EventType(StrEnum):
    # Aggregator events
    CANDLE_SET = "candle.set"
    CANDLE_UPDATE = "candle.update"

    # Stream events
    SWAP_EVENT = "stream.swap"
    CONNECTION_STATUS = "stream.connection"
    STREAM_ERROR = "stream.error"


@dataclass
class Event:
    type: EventType
    data: dict[str, Any]
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    source: str = "chartfeed"

    def to_message(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "data": self.data,
            "timestamp": self.timestamp,
            "source": self.source,
        }


class Listeners(Generic[T]):
    """Ordered listener list with per-listener fault isolation.

    A listener that raises is logged and skipped; the remaining listeners
    still receive the payload and nothing propagates to the emitter.
    """

    def __init__(self, channel: EventType) -> None:
        self.channel = channel
        self._listeners: list[Callable[[T], Any]] = []

    def add(self, listener: Callable[[T], Any]) -> None:
        self._listeners.append(listener)

    def remove(self, listener: Callable[[T], Any]) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def emit(self, payload: T) -> None:
        # Copy so listeners may unregister themselves while being notified
        for listener in list(self._listeners):
            try:
                listener(payload)
            except Exception as e:
                logger.error(
                    "listener_error",
                    channel=self.channel,
                    listener=getattr(listener, "__qualname__", repr(listener)),
                    error=str(e),
                )

    def __len__(self) -> int:
        return len(self._listeners)
