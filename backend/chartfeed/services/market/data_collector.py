"""Market data collector: fetches historical OHLCV bars from the Solana Tracker chart API."""

from datetime import datetime, timezone
from typing import Any

import httpx

from chartfeed.config import settings
from chartfeed.core.exceptions import MarketDataError
from chartfeed.core.logging import get_logger
from chartfeed.models.market import Candle, Interval

logger = get_logger(__name__)

COMMON_TOKENS = {
    "SOL": "So11111111111111111111111111111111111111112",
    "USDC": "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
    "USDT": "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB",
    "BONK": "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263",
    "RAY": "4k3Dyjzvzp8eMZWUXbBCjEvwSkkk59S5iCNLY3QrkX6R",
    "ORCA": "orcaEKTdK7LKz57vaAYr9QeNsVEPfiu6QeMU1kektZE",
}


def _now_seconds() -> int:
    return int(datetime.now(timezone.utc).timestamp())


def _to_candle(item: dict[str, Any]) -> Candle:
    return Candle(
        time=int(item["time"]),
        open=float(item["open"]),
        high=float(item["high"]),
        low=float(item["low"]),
        close=float(item["close"]),
        volume=float(item.get("volume") or 0.0),
    )


class MarketDataCollector:
    """Historical OHLCV provider.

    ``transport`` is passed to ``httpx.AsyncClient`` and lets tests supply
    an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key if api_key is not None else settings.solana_tracker_api_key
        self._base_url = (base_url or settings.solana_tracker_base_url).rstrip("/")
        self._timeout = timeout or settings.market_data_timeout
        self._transport = transport

    async def fetch_historical(
        self,
        token: str,
        interval: Interval = Interval.MINUTE_1,
        time_from: int | None = None,
        time_to: int | None = None,
        limit: int | None = None,
    ) -> list[Candle]:
        """Fetch OHLCV bars for a token mint. Raises MarketDataError on failure."""
        params: dict[str, Any] = {"type": str(interval)}
        if time_from:
            params["time_from"] = time_from
        if time_to:
            params["time_to"] = time_to
        if limit:
            params["limit"] = limit

        url = f"{self._base_url}/chart/{token}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.get(
                    url,
                    params=params,
                    headers={"x-api-key": self._api_key, "Content-Type": "application/json"},
                )
                resp.raise_for_status()
                payload = resp.json()
        except httpx.HTTPStatusError as e:
            logger.error("historical_fetch_failed", token=token, status=e.response.status_code)
            raise MarketDataError(f"HTTP error! status: {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("historical_fetch_failed", token=token, error=str(e))
            raise MarketDataError(f"Failed to fetch chart data: {e}") from e

        if not isinstance(payload, dict) or not payload.get("success", False):
            message = (isinstance(payload, dict) and payload.get("message")) or "Failed to fetch chart data"
            logger.error("historical_fetch_rejected", token=token, message=message)
            raise MarketDataError(message)

        try:
            candles = [_to_candle(item) for item in payload.get("data", [])]
        except (KeyError, TypeError, ValueError) as e:
            raise MarketDataError(f"Malformed chart data: {e}") from e

        logger.info(
            "historical_data_fetched",
            token=token,
            interval=interval,
            candles=len(candles),
        )
        return candles

    async def get_recent_data(
        self,
        token: str,
        interval: Interval = Interval.MINUTE_1,
        periods: int = 100,
    ) -> list[Candle]:
        """Bars covering the last ``periods`` intervals up to now."""
        now = _now_seconds()
        time_from = now - periods * interval.seconds
        return await self.fetch_historical(token, interval, time_from, now)

    async def get_data_for_range(
        self,
        token: str,
        interval: Interval,
        start: datetime,
        end: datetime,
    ) -> list[Candle]:
        return await self.fetch_historical(
            token,
            interval,
            int(start.timestamp()),
            int(end.timestamp()),
        )

    async def get_current_price(self, token: str) -> float | None:
        """Close of the most recent 1m bar, or None if unavailable."""
        try:
            recent = await self.get_recent_data(token, Interval.MINUTE_1, 1)
        except MarketDataError as e:
            logger.warning("current_price_unavailable", token=token, error=e.message)
            return None
        return recent[-1].close if recent else None

    async def health_check(self) -> bool:
        try:
            await self.get_recent_data(COMMON_TOKENS["SOL"], Interval.HOUR_1, 1)
            return True
        except MarketDataError as e:
            logger.warning("market_data_health_check_failed", error=e.message)
            return False
