"""WebSocket endpoint streaming candle updates to chart clients."""

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from chartfeed.api.websocket.hub import CANDLES_CHANNEL, ws_hub
from chartfeed.core.events import Event, EventType
from chartfeed.dependencies import get_ws_chart_session

router = APIRouter()


@router.websocket("/ws/candles")
async def candle_stream(websocket: WebSocket):
    """Sends the current candle set on connect, then live updates."""
    await ws_hub.connect(websocket, CANDLES_CHANNEL)

    session = get_ws_chart_session(websocket)
    if session is not None:
        snapshot = Event(
            type=EventType.CANDLE_SET,
            data={"bars": [c.to_dict() for c in session.aggregator.get_current_candles()]},
        )
        await ws_hub.send(websocket, snapshot.to_message())

    try:
        while True:
            # Keep connection alive, receive client pings
            await websocket.receive_text()
    except WebSocketDisconnect:
        ws_hub.disconnect(websocket, CANDLES_CHANNEL)
