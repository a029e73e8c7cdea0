"""Relay state: the registries owned by one running relay process.

Constructed once at application start (see ``relay.main.create_app``) and
handed to the event router. Tests build their own isolated instances.
"""
from typing import Optional

from relay.config import ChatSettings

from .broadcaster import Broadcaster
from .connections import ConnectionRegistry
from .history import MessageLog
from .rooms import RoomRegistry


class RelayState:
    """All mutable chat state for one relay process.

    Attributes:
        connections: Connection ⇄ user bindings.
        rooms: Conversation records.
        history: Per-room message log.
        broadcaster: Live connections and room subscriber sets.
        settings: Chat settings the state was built with.
    """

    def __init__(self, settings: Optional[ChatSettings] = None) -> None:
        self.settings = settings or ChatSettings()
        self.connections = ConnectionRegistry()
        self.rooms = RoomRegistry(
            prefix=self.settings.room_prefix,
            separator=self.settings.room_separator,
        )
        self.history = MessageLog()
        self.broadcaster = Broadcaster()

    def debug_info(self) -> dict:
        """Full-state dump for the debug endpoint. Read-only."""
        return {
            "totalUsers": len(self.connections),
            "totalRooms": len(self.rooms),
            "totalMessages": self.history.total(),
            "totalConnections": self.broadcaster.connection_count(),
            "users": {u.id: u.model_dump() for u in self.connections.list_users()},
            "rooms": {r.id: r.model_dump() for r in self.rooms.list_rooms()},
            "messages": {
                room_id: [m.to_wire() for m in messages]
                for room_id, messages in self.history.snapshot().items()
            },
        }
