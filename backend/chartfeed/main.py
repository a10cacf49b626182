"""chartfeed FastAPI application factory."""

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chartfeed.config import settings
from chartfeed.core.logging import get_logger, setup_logging
from chartfeed.api.v1.router import api_router
from chartfeed.api.websocket.streams import router as ws_router
from chartfeed.services.chart_session import ChartSession
from chartfeed.services.ws_broadcaster import ChartBroadcaster

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: start the broadcaster and the live chart session."""
    setup_logging()
    logger.info(
        "chartfeed_starting",
        env=settings.app_env,
        base=settings.chart_base_token,
        quote=settings.chart_quote_token,
        interval=settings.chart_interval,
    )

    broadcaster = ChartBroadcaster()
    await broadcaster.start()

    session = ChartSession.from_settings(surface=broadcaster)
    session.stream.on_connection_status(broadcaster.push_status)
    session.stream.on_error(broadcaster.push_error)

    try:
        await session.start()
        app.state.chart_session = session
    except Exception as e:
        logger.error("chart_session_start_failed", error=str(e))
        await session.stop()

    yield

    # --- Shutdown ---
    if getattr(app.state, "chart_session", None) is not None:
        await app.state.chart_session.stop()
        app.state.chart_session = None
    await broadcaster.stop()

    logger.info("chartfeed_shutdown")


def create_app() -> FastAPI:
    app = FastAPI(
        title="chartfeed",
        description="Live OHLCV candles aggregated from Solana DEX swaps",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.chart_session = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # API routes
    app.include_router(api_router, prefix="/api/v1")

    # WebSocket routes
    app.include_router(ws_router)

    return app


app = create_app()
