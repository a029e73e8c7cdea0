"""Pydantic schemas for the chat relay.

Records (``User``, ``Room``, ``ChatMessage``) use camelCase field names so
that ``model_dump()`` produces the wire shape directly. Inbound payload
models validate the ``data`` part of each client event.
"""
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictBool


def utc_timestamp() -> str:
    """Current time as an ISO-8601 UTC string (millisecond precision)."""
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def new_message_id() -> str:
    return str(uuid.uuid4())


# =============================================================================
# Records
# =============================================================================


class User(BaseModel):
    """A user identity bound to one live connection."""
    id: str = Field(..., description="Caller-supplied user ID")
    displayName: str = Field(..., description="Display name shown to peers")
    connectionId: str = Field(..., description="Connection this user is bound to")
    connectedAt: str = Field(default_factory=utc_timestamp)


class Room(BaseModel):
    """A two-party conversation."""
    id: str = Field(..., description="Room ID")
    participantIds: List[str] = Field(default_factory=list)
    createdAt: str = Field(default_factory=utc_timestamp)


class ChatMessage(BaseModel):
    """A stored chat message. Immutable once appended to the log."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_message_id)
    roomId: str
    senderId: str
    senderName: str
    text: str
    correlationId: Optional[str] = Field(
        default=None,
        description="Client token echoed back unchanged for optimistic UI",
    )
    serverTimestamp: str = Field(default_factory=utc_timestamp)

    def to_wire(self) -> dict:
        """Wire shape; ``correlationId`` is omitted when the client sent none."""
        return self.model_dump(exclude_none=True)


# =============================================================================
# Inbound payloads
# =============================================================================


class AuthenticatePayload(BaseModel):
    userId: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=255)


class JoinRoomPayload(BaseModel):
    roomId: str = Field(..., min_length=1)


class LeaveRoomPayload(BaseModel):
    roomId: str = Field(..., min_length=1)


class SendMessagePayload(BaseModel):
    roomId: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)
    # Older clients send ``tempId``.
    correlationId: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("correlationId", "tempId"),
    )


class TypingPayload(BaseModel):
    roomId: str = Field(..., min_length=1)
    isTyping: StrictBool


class PingPayload(BaseModel):
    pass
