"""Prometheus-format metrics for the chart feed."""

from dataclasses import dataclass, field


@dataclass
class Counter:
    """Simple counter metric."""

    name: str
    help: str
    _value: float = 0.0
    _labels: dict[str, float] = field(default_factory=dict)

    def inc(self, value: float = 1.0, labels: dict[str, str] | None = None) -> None:
        if labels:
            key = ",".join(f'{k}="{v}"' for k, v in sorted(labels.items()))
            self._labels[key] = self._labels.get(key, 0) + value
        else:
            self._value += value

    @property
    def value(self) -> float:
        return self._value

    def to_prometheus(self) -> str:
        lines = [f"# HELP {self.name} {self.help}", f"# TYPE {self.name} counter"]
        if self._labels:
            for key, val in self._labels.items():
                lines.append(f"{self.name}{{{key}}} {val}")
        else:
            lines.append(f"{self.name} {self._value}")
        return "\n".join(lines)


@dataclass
class Gauge:
    """Simple gauge metric."""

    name: str
    help: str
    _value: float = 0.0

    def set(self, value: float) -> None:
        self._value = value

    def inc(self, value: float = 1.0) -> None:
        self._value += value

    def dec(self, value: float = 1.0) -> None:
        self._value -= value

    @property
    def value(self) -> float:
        return self._value

    def to_prometheus(self) -> str:
        return (
            f"# HELP {self.name} {self.help}\n"
            f"# TYPE {self.name} gauge\n"
            f"{self.name} {self._value}"
        )


class MetricsRegistry:
    """Central registry for all chart feed metrics."""

    def __init__(self):
        # Swap stream
        self.swaps_received = Counter(
            "swap_events_received_total", "Swap events normalized from the push feed"
        )
        self.messages_dropped = Counter(
            "stream_messages_dropped_total", "Feed messages dropped as non-swap or malformed"
        )
        self.reconnect_attempts = Counter(
            "stream_reconnect_attempts_total", "Scheduled reconnection attempts"
        )
        self.stream_connected = Gauge(
            "stream_connected", "Swap stream connection state (1=connected)"
        )

        # Aggregator
        self.candle_updates = Counter(
            "candle_updates_total", "Candle update notifications emitted"
        )
        self.events_ignored = Counter(
            "aggregator_events_ignored_total", "Swap events ignored by the aggregator"
        )
        self.synthetic_candles = Counter(
            "synthetic_candles_total", "Flat candles generated during quiet periods"
        )
        self.candle_count = Gauge(
            "aggregator_candle_count", "Candles currently held by the aggregator"
        )

        # WebSocket
        self.ws_connections = Gauge(
            "websocket_active_connections", "Active dashboard WebSocket connections"
        )

    def collect(self) -> str:
        """Collect all metrics in Prometheus text format."""
        metrics = [
            self.swaps_received,
            self.messages_dropped,
            self.reconnect_attempts,
            self.stream_connected,
            self.candle_updates,
            self.events_ignored,
            self.synthetic_candles,
            self.candle_count,
            self.ws_connections,
        ]
        return "\n\n".join(m.to_prometheus() for m in metrics) + "\n"


# Module-level singleton
metrics = MetricsRegistry()
