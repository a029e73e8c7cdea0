"""Outbound delivery: per-room subscriber sets and event fan-out.

Every live connection owns an unbounded outbound queue drained by its own
writer task, so fan-out only enqueues and a slow consumer never holds up
delivery to anyone else. Delivery is best-effort: a closed or failing
recipient is skipped, nothing is retried or acknowledged.

Thread Safety:
    Designed for a single asyncio event loop. Each room has an
    ``asyncio.Lock``; callers hold it around any read-modify-broadcast
    sequence on that room (see :meth:`Broadcaster.room_lock`).
"""
import asyncio
import logging
import uuid
from collections import defaultdict
from typing import Any, Dict, List, Optional, Protocol, Set

logger = logging.getLogger(__name__)


class OutboundChannel(Protocol):
    """What the broadcaster needs from a connection."""

    id: str

    def enqueue(self, event: str, data: dict) -> bool:
        ...

    def close(self) -> None:
        ...


class ClientConnection:
    """A WebSocket plus its outbound queue and writer task.

    Frames are ``{"event": <name>, "data": {...}}`` JSON envelopes.
    """

    def __init__(self, websocket: Any, connection_id: Optional[str] = None) -> None:
        self.id = connection_id or str(uuid.uuid4())
        self._websocket = websocket
        self._outbound: asyncio.Queue = asyncio.Queue()
        self._writer: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Start flushing the outbound queue to the socket."""
        if self._writer is None:
            self._writer = asyncio.create_task(self._write_loop())

    def enqueue(self, event: str, data: dict) -> bool:
        if self._closed:
            return False
        self._outbound.put_nowait({"event": event, "data": data})
        return True

    def close(self) -> None:
        """Stop delivery. Queued but unsent events are dropped."""
        self._closed = True
        if self._writer is not None:
            self._writer.cancel()

    async def wait_closed(self) -> None:
        """Wait for the writer task to finish after :meth:`close`."""
        if self._writer is not None:
            await asyncio.gather(self._writer, return_exceptions=True)
            self._writer = None

    async def _write_loop(self) -> None:
        while True:
            envelope = await self._outbound.get()
            try:
                await self._websocket.send_json(envelope)
            except Exception as e:
                logger.debug(f"Failed to send to connection {self.id}: {e}")
                self._closed = True
                return


class Broadcaster:
    """Tracks live connections and which rooms each one is subscribed to."""

    def __init__(self) -> None:
        # connection_id -> channel
        self._connections: Dict[str, OutboundChannel] = {}

        # room_id -> set of subscribed connection ids
        self._subscribers: Dict[str, Set[str]] = {}

        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    # -------------------------------------------------------------------------
    # Connections
    # -------------------------------------------------------------------------

    def register(self, connection: OutboundChannel) -> None:
        self._connections[connection.id] = connection

    def remove_connection(self, connection_id: str) -> List[str]:
        """Forget a connection and drop it from every subscriber set.

        Runs without awaiting so it cannot interleave with a broadcast.

        Returns:
            The room ids the connection was subscribed to.
        """
        connection = self._connections.pop(connection_id, None)
        if connection is not None:
            connection.close()

        left: List[str] = []
        for room_id in list(self._subscribers):
            members = self._subscribers[room_id]
            if connection_id in members:
                members.discard(connection_id)
                left.append(room_id)
                if not members:
                    del self._subscribers[room_id]
        return left

    def connection_count(self) -> int:
        return len(self._connections)

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def room_lock(self, room_id: str) -> asyncio.Lock:
        return self._locks[room_id]

    def subscribe(self, room_id: str, connection_id: str) -> None:
        self._subscribers.setdefault(room_id, set()).add(connection_id)

    def unsubscribe(self, room_id: str, connection_id: str) -> bool:
        """Returns False if the connection was not subscribed."""
        members = self._subscribers.get(room_id)
        if not members or connection_id not in members:
            return False
        members.discard(connection_id)
        if not members:
            del self._subscribers[room_id]
        return True

    def subscribers(self, room_id: str) -> Set[str]:
        return set(self._subscribers.get(room_id, set()))

    def rooms_of(self, connection_id: str) -> List[str]:
        return [
            room_id for room_id, members in self._subscribers.items()
            if connection_id in members
        ]

    # -------------------------------------------------------------------------
    # Delivery
    # -------------------------------------------------------------------------

    async def send_to(self, connection_id: str, event: str, data: dict) -> bool:
        """Deliver one event to a single connection."""
        connection = self._connections.get(connection_id)
        if connection is None:
            return False
        return connection.enqueue(event, data)

    async def broadcast(
        self,
        room_id: str,
        event: str,
        data: dict,
        exclude: Optional[str] = None,
    ) -> int:
        """Deliver an event to every subscriber of a room.

        Args:
            room_id: Room to broadcast to.
            event: Outbound event name.
            data: JSON-serializable payload.
            exclude: Connection id to skip (e.g. the sender of a typing signal).

        Returns:
            Number of connections the event was handed to.
        """
        delivered = 0
        for connection_id in self._subscribers.get(room_id, set()).copy():
            if connection_id == exclude:
                continue
            connection = self._connections.get(connection_id)
            if connection is not None and connection.enqueue(event, data):
                delivered += 1
        return delivered
