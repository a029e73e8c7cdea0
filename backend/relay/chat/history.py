"""Append-only, in-memory message history per room."""
import logging
from typing import Dict, List, Optional

from .schemas import ChatMessage

logger = logging.getLogger(__name__)


class MessageLog:
    """Ordered message history for every room.

    Messages are never reordered or removed. Ids and timestamps are always
    assigned here; anything the client claims about either is ignored.
    """

    def __init__(self) -> None:
        # room_id -> list of messages (append-only history)
        self._messages: Dict[str, List[ChatMessage]] = {}

    def append(
        self,
        room_id: str,
        sender_id: str,
        sender_name: str,
        text: str,
        correlation_id: Optional[str] = None,
    ) -> ChatMessage:
        """Store a new message and return it."""
        message = ChatMessage(
            roomId=room_id,
            senderId=sender_id,
            senderName=sender_name,
            text=text,
            correlationId=correlation_id,
        )
        self._messages.setdefault(room_id, []).append(message)
        logger.debug(f"[History] Message {message.id} added to {room_id}")
        return message

    def list(self, room_id: str) -> List[ChatMessage]:
        """Messages for a room, oldest first. Empty for unknown rooms."""
        return list(self._messages.get(room_id, []))

    def count(self, room_id: str) -> int:
        return len(self._messages.get(room_id, []))

    def total(self) -> int:
        return sum(len(messages) for messages in self._messages.values())

    def snapshot(self) -> Dict[str, List[ChatMessage]]:
        return {room_id: list(messages) for room_id, messages in self._messages.items()}
