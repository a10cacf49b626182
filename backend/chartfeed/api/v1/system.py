"""System endpoints: health check and metrics."""

from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

from chartfeed.config import settings
from chartfeed.core.metrics import metrics

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    session = getattr(request.app.state, "chart_session", None)
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": "0.1.0",
        "env": settings.app_env,
        "session_running": session is not None,
        "stream_state": session.stream.state.value if session else None,
        "scheduled_tasks": session.scheduled_tasks() if session else [],
    }


@router.get("/metrics", response_class=PlainTextResponse)
async def prometheus_metrics():
    """Prometheus-compatible metrics endpoint."""
    return metrics.collect()
