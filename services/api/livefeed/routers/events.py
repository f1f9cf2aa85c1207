"""
Live post events:
  WS /ws/posts — every connected client receives `{action, post}` for each
                 committed create / update / delete. No filtering, no replay.
"""
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState

logger = logging.getLogger(__name__)
router = APIRouter()


class WebSocketObserver:
    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket

    async def send(self, event: dict[str, Any]) -> None:
        if self.websocket.application_state != WebSocketState.CONNECTED:
            raise ConnectionError("WebSocket is no longer connected")
        await self.websocket.send_json(event)

    def __repr__(self) -> str:
        client = self.websocket.client
        return f"WebSocketObserver({client.host}:{client.port})" if client else "WebSocketObserver()"


@router.websocket("/ws/posts")
async def post_events(websocket: WebSocket):
    hub = websocket.app.state.hub
    await websocket.accept()
    observer = WebSocketObserver(websocket)
    hub.connect(observer)
    logger.info("Viewer connected: %r", observer)
    try:
        # Clients don't send anything meaningful; keep reading so a
        # disconnect is noticed and pings get answered.
        while True:
            message = await websocket.receive_text()
            if message == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        logger.info("Viewer disconnected: %r", observer)
    finally:
        hub.disconnect(observer)
