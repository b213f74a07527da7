"""WebSocket relay — per-session update channel delivered to the browser.

Learn: Only used with the redis transport. Each browser tab connects to
/ws/{session_id}; the handler subscribes to that session's update channel
and forwards every message verbatim:

    {"event": "update", "data": {"record_type": "Post", "id": 42, ...}}

Two concurrent tasks run; when either side disconnects both are cancelled.
"""

import asyncio
import json

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from hyperrecord.config import settings
from hyperrecord.pubsub.keys import KeySpace
from hyperrecord.realtime.redis import get_redis

logger = structlog.get_logger()
router = APIRouter()


@router.websocket("/ws/{session_id}")
async def session_updates(websocket: WebSocket, session_id: str):
    if settings.resource_transport != "redis":
        await websocket.close(code=4003, reason="WebSocket delivery is not enabled")
        return

    await websocket.accept()

    channel = KeySpace(
        prefix=settings.key_prefix, channel_prefix=settings.channel_prefix
    ).channel(session_id)
    pubsub = get_redis().pubsub()
    await pubsub.subscribe(channel)
    logger.info("realtime.ws_connected", channel=channel)

    async def redis_listener():
        """Forward Redis messages to the WebSocket client."""
        try:
            async for message in pubsub.listen():
                if message["type"] == "message":
                    await websocket.send_text(message["data"])
        except asyncio.CancelledError:
            pass

    async def client_listener():
        """Answer pings; everything else from the client is ignored."""
        try:
            while True:
                data = await websocket.receive_text()
                try:
                    msg = json.loads(data)
                except json.JSONDecodeError:
                    continue
                if isinstance(msg, dict) and msg.get("type") == "ping":
                    await websocket.send_text(json.dumps({"type": "pong"}))
        except (WebSocketDisconnect, asyncio.CancelledError):
            pass

    redis_task = asyncio.create_task(redis_listener())
    client_task = asyncio.create_task(client_listener())

    try:
        done, pending = await asyncio.wait(
            [redis_task, client_task],
            return_when=asyncio.FIRST_COMPLETED,
        )
        for task in pending:
            task.cancel()
    finally:
        await pubsub.unsubscribe(channel)
        await pubsub.aclose()
        logger.info("realtime.ws_disconnected", channel=channel)
        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.close()
