"""FastAPI dependency injection for the live chart session."""

from fastapi import HTTPException, Request, WebSocket, status

from chartfeed.services.chart_session import ChartSession


def get_chart_session(request: Request) -> ChartSession:
    session = getattr(request.app.state, "chart_session", None)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Chart session not running",
        )
    return session


def get_ws_chart_session(websocket: WebSocket) -> ChartSession | None:
    return getattr(websocket.app.state, "chart_session", None)
