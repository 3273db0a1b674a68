"""WebSocket endpoint for chat and live notifications."""

from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from marias.chat import ChatService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])


@router.websocket("/ws")
async def ws_chat(ws: WebSocket) -> None:
    """Chat socket.

    Connect: ws://host:port/ws, then send {"type": "auth", "userId": <id>}.
    Envelopes are processed one at a time, in arrival order.
    """
    chat: ChatService = ws.app.state.chat
    await ws.accept()
    chat.open(ws)
    try:
        while True:
            frame = await ws.receive()
            if frame["type"] == "websocket.disconnect":
                break
            raw = frame.get("text")
            if raw is None:
                raw = frame.get("bytes") or b""
            await chat.handle_raw(ws, raw)
            if not chat.is_open(ws):
                # Dropped for falling too far behind on outbound envelopes
                await ws.close(code=1013)
                break
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.debug("WebSocket error", exc_info=True)
    finally:
        chat.close(ws)
