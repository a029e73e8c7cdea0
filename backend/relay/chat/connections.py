"""Connection registry: live connection id ⇄ bound user identity.

A connection is bound to at most one user, and a user id to at most one
connection. Binding a user id that is already bound elsewhere displaces the
older entry (last bind wins); the older connection keeps a stale
connection→user entry until it disconnects, and its disconnect must not
remove the newer binding.
"""
import logging
from typing import Dict, List, Optional

from .schemas import User

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Maps connection ids to users and user ids back to connections."""

    def __init__(self) -> None:
        # user_id -> User (User.connectionId is the current binding)
        self._users: Dict[str, User] = {}

        # connection_id -> user_id
        self._connection_to_user: Dict[str, str] = {}

    def bind(self, user_id: str, connection_id: str, display_name: str) -> User:
        """Bind ``user_id`` to ``connection_id``. Always succeeds.

        Re-authenticating on the same connection replaces that connection's
        previous binding. The record for ``user_id`` is overwritten.
        """
        previous_user_id = self._connection_to_user.get(connection_id)
        if previous_user_id is not None and previous_user_id != user_id:
            previous = self._users.get(previous_user_id)
            if previous is not None and previous.connectionId == connection_id:
                del self._users[previous_user_id]
                logger.info(
                    f"[Connections] Connection {connection_id} rebound from "
                    f"{previous_user_id} to {user_id}"
                )

        displaced = self._users.get(user_id)
        if displaced is not None and displaced.connectionId != connection_id:
            logger.info(
                f"[Connections] User {user_id} moved from connection "
                f"{displaced.connectionId} to {connection_id}"
            )

        user = User(id=user_id, displayName=display_name, connectionId=connection_id)
        self._users[user_id] = user
        self._connection_to_user[connection_id] = user_id
        return user

    def lookup_by_connection(self, connection_id: str) -> Optional[User]:
        user_id = self._connection_to_user.get(connection_id)
        return self._users.get(user_id) if user_id else None

    def unbind(self, connection_id: str) -> Optional[User]:
        """Remove the binding held by ``connection_id``.

        Returns:
            The removed user, or None if the connection had no binding.
        """
        user_id = self._connection_to_user.pop(connection_id, None)
        if user_id is None:
            return None

        user = self._users.get(user_id)
        if user is None:
            return None
        if user.connectionId != connection_id:
            # Stale entry: the user id has since been bound elsewhere.
            logger.debug(
                f"[Connections] Dropped stale binding of {user_id} on {connection_id}"
            )
            return None

        del self._users[user_id]
        return user

    def get(self, user_id: str) -> Optional[User]:
        return self._users.get(user_id)

    def list_users(self) -> List[User]:
        return list(self._users.values())

    def __len__(self) -> int:
        return len(self._users)
