"""Read-only listing and debug endpoints.

Endpoints:
    GET /                                 - Service status
    GET /users                            - All bound users
    GET /messages/{room_id}               - Message history of a room
    GET /rooms                            - All known rooms
    GET /rooms/between/{user_a}/{user_b}  - Conversation id for two users
    GET /debug                            - Full state dump

None of these mutate relay state; in particular looking up a room never
creates it.
"""
import logging

from fastapi import APIRouter, Request

from relay.chat.schemas import utc_timestamp
from relay.chat.state import RelayState

logger = logging.getLogger(__name__)

router = APIRouter(tags=["debug"])


def _state(request: Request) -> RelayState:
    return request.app.state.relay


@router.get("/")
async def status() -> dict:
    """Liveness banner with the current server time."""
    return {
        "status": "running",
        "message": "Chat relay is live!",
        "timestamp": utc_timestamp(),
    }


@router.get("/users")
async def list_users(request: Request) -> dict:
    """List every user currently bound to a connection."""
    users = _state(request).connections.list_users()
    return {"users": [u.model_dump() for u in users]}


@router.get("/messages/{room_id}")
async def list_messages(room_id: str, request: Request) -> dict:
    """Get the full message history for a room (empty for unknown rooms).

    Args:
        room_id: The room ID.

    Returns:
        JSON with roomId and messages, oldest first.
    """
    messages = _state(request).history.list(room_id)
    return {"roomId": room_id, "messages": [m.to_wire() for m in messages]}


@router.get("/rooms")
async def list_rooms(request: Request) -> dict:
    rooms = _state(request).rooms.list_rooms()
    return {"rooms": [r.model_dump() for r in rooms]}


@router.get("/rooms/between/{user_a}/{user_b}")
async def room_between(user_a: str, user_b: str, request: Request) -> dict:
    """Conversation id for two users; the order of the ids does not matter."""
    return {"roomId": _state(request).rooms.room_id_for(user_a, user_b)}


@router.get("/debug")
async def debug_dump(request: Request) -> dict:
    return _state(request).debug_info()
