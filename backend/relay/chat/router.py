"""Chat router providing the relay WebSocket endpoint.

This module provides:
    - WebSocket /ws: Real-time relay connection

Every frame is a JSON envelope ``{"event": <name>, "data": {...}}`` in both
directions. See ``relay.chat.events`` for the event catalogue.
"""
import logging

from fastapi import APIRouter, WebSocket

from .broadcaster import ClientConnection
from .events import EventRouter

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def websocket_relay_endpoint(websocket: WebSocket) -> None:
    """WebSocket endpoint for one relay client.

    Protocol Flow:
        1. Client connects → connection id assigned, nothing sent yet
        2. Client sends: {event: "authenticate", data: {userId, name}}
           → Server sends: {event: "authenticated", data: {success, userId, message}}
        3. Client sends: {event: "join_room", data: {roomId}}
           → Server sends: {event: "previous_messages", data: {roomId, messages}}
        4. Client sends: {event: "send_message", data: {roomId, text, correlationId}}
           → Server broadcasts: {event: "new_message", data: {...fullMessage}}
        5. On disconnect → binding and room subscriptions are removed

    Args:
        websocket: The WebSocket connection.
    """
    events: EventRouter = websocket.app.state.events

    await websocket.accept()
    connection = ClientConnection(websocket)
    events.connect(connection)
    connection.start()
    logger.info(f"[WS] Connection accepted: {connection.id}")

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            text = message.get("text")
            if text is None:
                await events.handle(connection, None)
                continue

            logger.debug("[WS] %s received %d bytes", connection.id, len(text))
            await events.handle_text(connection, text)
    finally:
        events.disconnect(connection)
        await connection.wait_closed()
