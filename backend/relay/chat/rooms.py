"""Room registry for two-party conversations.

Room ids encode their participants: ``room_<lo>_<hi>`` where ``lo``/``hi``
are the two user ids in lexicographic order. Rooms are created lazily on
first reference and live for the lifetime of the process.
"""
import logging
from typing import Callable, Dict, List, Optional

from .schemas import Room

logger = logging.getLogger(__name__)

ParticipantDeriver = Callable[[str], List[str]]

DEFAULT_ROOM_PREFIX = "room_"
DEFAULT_ROOM_SEPARATOR = "_"


class RoomRegistry:
    """Maps room ids to :class:`Room` records."""

    def __init__(
        self,
        prefix: str = DEFAULT_ROOM_PREFIX,
        separator: str = DEFAULT_ROOM_SEPARATOR,
    ) -> None:
        self.prefix = prefix
        self.separator = separator
        self._rooms: Dict[str, Room] = {}

    def room_id_for(self, user_a: str, user_b: str) -> str:
        """Conversation id for a pair of users, independent of argument order."""
        lo, hi = sorted((user_a, user_b))
        return f"{self.prefix}{lo}{self.separator}{hi}"

    def participants_from_room_id(self, room_id: str) -> List[str]:
        """Reverse of :meth:`room_id_for`.

        User ids containing the separator split into more than two parts;
        the parts are returned as they are.
        """
        body = room_id[len(self.prefix):] if room_id.startswith(self.prefix) else room_id
        return body.split(self.separator)

    def get_or_create(
        self,
        room_id: str,
        participant_deriver: Optional[ParticipantDeriver] = None,
    ) -> Room:
        room = self._rooms.get(room_id)
        if room is not None:
            return room

        deriver = participant_deriver or self.participants_from_room_id
        participants = deriver(room_id)
        if len(participants) != 2:
            logger.warning(
                f"[Rooms] Room {room_id} derived {len(participants)} participants "
                f"{participants}; expected 2"
            )

        room = Room(id=room_id, participantIds=participants)
        self._rooms[room_id] = room
        logger.info(f"[Rooms] Room created: {room_id}")
        return room

    def get(self, room_id: str) -> Optional[Room]:
        return self._rooms.get(room_id)

    def list_rooms(self) -> List[Room]:
        return list(self._rooms.values())

    def __len__(self) -> int:
        return len(self._rooms)
