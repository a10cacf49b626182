class ChartFeedError(Exception):
    """Base exception for all chartfeed errors."""

    def __init__(self, message: str = "", code: str = "UNKNOWN_ERROR"):
        self.message = message
        self.code = code
        super().__init__(self.message)


# --- Stream Errors ---


class StreamError(ChartFeedError):
    """Base exception for swap stream errors."""

    def __init__(self, message: str = "", code: str = "STREAM_ERROR"):
        super().__init__(message, code)


class ReconnectExhaustedError(StreamError):
    def __init__(self, message: str = "Max reconnection attempts reached"):
        super().__init__(message, "RECONNECT_EXHAUSTED")


class MessageParseError(StreamError):
    def __init__(self, message: str = "Failed to parse WebSocket message"):
        super().__init__(message, "MESSAGE_PARSE_ERROR")


# --- Market Data Errors ---


class MarketDataError(ChartFeedError):
    """Base exception for historical market data errors."""

    def __init__(self, message: str = "", code: str = "MARKET_DATA_ERROR"):
        super().__init__(message, code)


# --- Aggregation Errors ---


class AggregationError(ChartFeedError):
    """Base exception for candle aggregation errors."""

    def __init__(self, message: str = "", code: str = "AGGREGATION_ERROR"):
        super().__init__(message, code)


class InvalidIntervalError(AggregationError):
    def __init__(self, message: str = "Unsupported candle interval"):
        super().__init__(message, "INVALID_INTERVAL")
