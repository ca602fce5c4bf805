"""Chat WebSocket endpoint."""

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def chat_socket(websocket: WebSocket):
    relay = websocket.app.state.relay
    sid = await relay.connect(websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            await relay.dispatch(sid, raw)
    except WebSocketDisconnect:
        pass
    finally:
        await relay.disconnect(sid)
