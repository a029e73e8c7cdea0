"""Inbound event handling for relay connections.

The :class:`EventRouter` receives one decoded event at a time for a given
connection, resolves the sender through the connection registry, checks
preconditions, mutates room/history state and hands outbound events to the
broadcaster.

Protocol Message Types (inbound → outbound):
    - authenticate → authenticated (sender)
    - join_room    → previous_messages (sender)
    - leave_room   → nothing
    - send_message → new_message (room, including sender) | error (sender)
    - typing       → user_typing (room, excluding sender)
    - ping         → pong (sender)

Errors never leave the originating connection: precondition failures and
malformed payloads become an ``error`` event for the sender; misses on
unknown rooms or unbound connections are silent no-ops.
"""
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Tuple, Type

from pydantic import BaseModel, ValidationError

from .broadcaster import OutboundChannel
from .schemas import (
    AuthenticatePayload,
    JoinRoomPayload,
    LeaveRoomPayload,
    PingPayload,
    SendMessagePayload,
    TypingPayload,
    utc_timestamp,
)
from .state import RelayState

logger = logging.getLogger(__name__)


class PreconditionError(Exception):
    """The event requires a state the connection is not in."""


class MalformedPayload(Exception):
    """The frame could not be decoded into a known event."""


Handler = Callable[[OutboundChannel, Any], Awaitable[None]]


class EventRouter:
    """Dispatches inbound events against a :class:`RelayState`."""

    def __init__(self, state: RelayState) -> None:
        self.state = state
        self._handlers: Dict[str, Tuple[Type[BaseModel], Handler]] = {
            "authenticate": (AuthenticatePayload, self._on_authenticate),
            "join_room": (JoinRoomPayload, self._on_join_room),
            "leave_room": (LeaveRoomPayload, self._on_leave_room),
            "send_message": (SendMessagePayload, self._on_send_message),
            "typing": (TypingPayload, self._on_typing),
            "ping": (PingPayload, self._on_ping),
        }

    # =========================================================================
    # Connection lifecycle
    # =========================================================================

    def connect(self, connection: OutboundChannel) -> None:
        self.state.broadcaster.register(connection)
        logger.info(f"[Events] New connection: {connection.id}")

    def disconnect(self, connection: OutboundChannel) -> None:
        """Tear down everything a connection holds.

        Unbinds its user and removes it from every subscriber set before
        returning, so no later event can observe the connection.
        """
        user = self.state.connections.unbind(connection.id)
        rooms = self.state.broadcaster.remove_connection(connection.id)
        if user:
            logger.info(f"[Events] User disconnected: {user.displayName} ({user.id})")
        logger.info(
            f"[Events] Connection {connection.id} closed, left {len(rooms)} room(s)"
        )

    # =========================================================================
    # Dispatch
    # =========================================================================

    async def handle_text(self, connection: OutboundChannel, raw: str) -> None:
        """Decode one JSON text frame and dispatch it."""
        try:
            envelope = json.loads(raw)
        except json.JSONDecodeError as e:
            await self._reject(connection, f"Invalid JSON: {e.msg}")
            return
        await self.handle(connection, envelope)

    async def handle(self, connection: OutboundChannel, envelope: Any) -> None:
        """Dispatch one ``{"event": ..., "data": {...}}`` envelope."""
        try:
            event, data = self._parse_envelope(envelope)
            model, handler = self._handlers[event]
            payload = model.model_validate(data)
        except MalformedPayload as e:
            await self._reject(connection, str(e))
            return
        except ValidationError as e:
            await self._reject(connection, _describe_validation_error(event, e))
            return

        try:
            await handler(connection, payload)
        except MalformedPayload as e:
            await self._reject(connection, str(e))
        except PreconditionError as e:
            logger.info(f"[Events] {event} rejected for {connection.id}: {e}")
            await self._emit(connection, "error", {"message": str(e)})

    def _parse_envelope(self, envelope: Any) -> Tuple[str, dict]:
        if not isinstance(envelope, dict):
            raise MalformedPayload("Event envelope must be a JSON object")
        event = envelope.get("event")
        if not isinstance(event, str) or not event:
            raise MalformedPayload("Missing event name")
        if event not in self._handlers:
            raise MalformedPayload(f"Unknown event: {event}")
        data = envelope.get("data", {})
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise MalformedPayload(f"Payload of {event} must be a JSON object")
        return event, data

    async def _reject(self, connection: OutboundChannel, message: str) -> None:
        logger.warning(f"[Events] Malformed event from {connection.id}: {message}")
        await self._emit(connection, "error", {"message": message})

    async def _emit(self, connection: OutboundChannel, event: str, data: dict) -> None:
        await self.state.broadcaster.send_to(connection.id, event, data)

    # =========================================================================
    # Handlers
    # =========================================================================

    async def _on_authenticate(
        self, connection: OutboundChannel, payload: AuthenticatePayload
    ) -> None:
        # Identity is self-declared; a verification step would go here.
        user = self.state.connections.bind(payload.userId, connection.id, payload.name)
        await self._emit(connection, "authenticated", {
            "success": True,
            "userId": user.id,
            "message": f"Welcome {user.displayName}!",
        })
        logger.info(f"[Events] User authenticated: {user.displayName} ({user.id})")

    async def _on_join_room(
        self, connection: OutboundChannel, payload: JoinRoomPayload
    ) -> None:
        broadcaster = self.state.broadcaster
        async with broadcaster.room_lock(payload.roomId):
            broadcaster.subscribe(payload.roomId, connection.id)
            self.state.rooms.get_or_create(payload.roomId)
            messages = self.state.history.list(payload.roomId)
            await self._emit(connection, "previous_messages", {
                "roomId": payload.roomId,
                "messages": [m.to_wire() for m in messages],
            })
        logger.info(f"[Events] Connection {connection.id} joined room: {payload.roomId}")

    async def _on_leave_room(
        self, connection: OutboundChannel, payload: LeaveRoomPayload
    ) -> None:
        broadcaster = self.state.broadcaster
        if connection.id not in broadcaster.subscribers(payload.roomId):
            logger.debug(
                f"[Events] leave_room ignored, {connection.id} not in {payload.roomId}"
            )
            return

        async with broadcaster.room_lock(payload.roomId):
            broadcaster.unsubscribe(payload.roomId, connection.id)
        logger.info(f"[Events] Connection {connection.id} left room: {payload.roomId}")

    async def _on_send_message(
        self, connection: OutboundChannel, payload: SendMessagePayload
    ) -> None:
        sender = self.state.connections.lookup_by_connection(connection.id)
        if sender is None:
            raise PreconditionError("User not authenticated")

        max_length = self.state.settings.max_message_length
        if len(payload.text) > max_length:
            raise MalformedPayload(f"Message text exceeds {max_length} characters")

        broadcaster = self.state.broadcaster
        async with broadcaster.room_lock(payload.roomId):
            message = self.state.history.append(
                payload.roomId,
                sender.id,
                sender.displayName,
                payload.text,
                payload.correlationId,
            )
            delivered = await broadcaster.broadcast(
                payload.roomId, "new_message", message.to_wire()
            )
        logger.info(
            f"[Events] Message {message.id} from {sender.id} in {payload.roomId} "
            f"delivered to {delivered} connection(s)"
        )

    async def _on_typing(
        self, connection: OutboundChannel, payload: TypingPayload
    ) -> None:
        user = self.state.connections.lookup_by_connection(connection.id)
        if user is None:
            logger.debug(f"[Events] typing ignored from unbound connection {connection.id}")
            return

        broadcaster = self.state.broadcaster
        if not broadcaster.subscribers(payload.roomId):
            return

        async with broadcaster.room_lock(payload.roomId):
            await broadcaster.broadcast(
                payload.roomId,
                "user_typing",
                {
                    "roomId": payload.roomId,
                    "userId": user.id,
                    "userName": user.displayName,
                    "isTyping": payload.isTyping,
                },
                exclude=connection.id,
            )

    async def _on_ping(self, connection: OutboundChannel, payload: PingPayload) -> None:
        await self._emit(connection, "pong", {"serverTimestamp": utc_timestamp()})


def _describe_validation_error(event: str, error: ValidationError) -> str:
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'data'}: {err['msg']}"
        for err in error.errors()
    )
    return f"Invalid {event} payload: {problems}"
