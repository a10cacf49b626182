"""Market data endpoints for the live chart."""

from fastapi import APIRouter, Depends, HTTPException, Query

from chartfeed.core.logging import get_logger
from chartfeed.dependencies import get_chart_session
from chartfeed.models.market import Interval, TokenPair
from chartfeed.schemas.market import (
    CandleResponse,
    ChartStatusResponse,
    IntervalRequest,
    SessionStatsResponse,
    TokenPairRequest,
)
from chartfeed.services.chart_session import ChartSession

logger = get_logger(__name__)

router = APIRouter()


@router.get("/candles", response_model=list[CandleResponse])
async def get_candles(
    limit: int = Query(default=500, ge=1, le=1000),
    session: ChartSession = Depends(get_chart_session),
):
    """Current candles in ascending time order (most recent ``limit``)."""
    return session.aggregator.get_current_candles()[-limit:]


@router.get("/candles/latest", response_model=CandleResponse | None)
async def get_latest_candle(session: ChartSession = Depends(get_chart_session)):
    return session.aggregator.get_latest_candle()


@router.get("/stats", response_model=SessionStatsResponse)
async def get_stats(session: ChartSession = Depends(get_chart_session)):
    """Session volume, price change, high/low and candle count."""
    return session.aggregator.get_session_stats()


@router.get("/status", response_model=ChartStatusResponse)
async def get_status(session: ChartSession = Depends(get_chart_session)):
    pair = session.aggregator.token_pair
    return ChartStatusResponse(
        base=pair.base,
        quote=pair.quote,
        interval=session.aggregator.interval,
        connected=session.connected,
        last_price=session.last_price,
        last_error=session.last_error,
        candle_count=len(session.aggregator),
    )


@router.get("/intervals")
async def get_intervals():
    """Supported candle intervals and their widths in seconds."""
    return {"intervals": [{"interval": i.value, "seconds": i.seconds} for i in Interval]}


@router.post("/interval", response_model=list[CandleResponse])
async def change_interval(
    body: IntervalRequest,
    session: ChartSession = Depends(get_chart_session),
):
    """Switch the bucket width; candles are rebuilt from history."""
    await session.change_interval(body.interval)
    logger.info("interval_change_requested", interval=body.interval)
    return session.aggregator.get_current_candles()


@router.post("/pair")
async def change_token_pair(
    body: TokenPairRequest,
    session: ChartSession = Depends(get_chart_session),
):
    if body.base == body.quote:
        raise HTTPException(status_code=422, detail="base and quote must differ")
    session.change_token_pair(TokenPair(base=body.base, quote=body.quote))
    return {"base": body.base, "quote": body.quote}
