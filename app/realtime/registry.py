# app/realtime/registry.py

"""
Process-local index of live realtime connections.

Each API process owns one ConnectionRegistry, built in the app lifespan and
shared through `app.state`. It only knows sockets attached to this process;
a multi-process deployment needs an external relay to reach the others.
"""

from typing import Dict, Set, List, Optional

from loguru import logger

from app.core.constants import VALID_ROLES


class ConnectionRegistry:

    def __init__(self):
        # role -> user_id -> socket ids
        self._by_role: Dict[str, Dict[str, Set[str]]] = {role: {} for role in VALID_ROLES}
        # socket id -> user id / role
        self._socket_user: Dict[str, str] = {}
        self._socket_role: Dict[str, str] = {}

    # ------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------
    def register(self, socket_id: str, user_id: str, role: str) -> bool:
        if not socket_id or not user_id or not role:
            logger.warning(f"Invalid socket registration: socket={socket_id} user={user_id} role={role}")
            return False

        users = self._by_role.get(role)
        if users is None:
            logger.warning(f"Invalid socket role '{role}' for socket {socket_id}")
            return False

        user_id = str(user_id)

        # Re-registering under a different identity moves the socket
        previous = self._socket_user.get(socket_id)
        if previous is not None and (previous, self._socket_role[socket_id]) != (user_id, role):
            self.unregister(socket_id)

        self._socket_user[socket_id] = user_id
        self._socket_role[socket_id] = role
        users.setdefault(user_id, set()).add(socket_id)

        logger.debug(f"Socket registered: {socket_id} (user={user_id}, role={role})")
        return True

    def unregister(self, socket_id: str) -> bool:
        user_id = self._socket_user.pop(socket_id, None)
        role = self._socket_role.pop(socket_id, None)

        if user_id is None or role is None:
            logger.warning(f"Socket {socket_id} not found in registry")
            return False

        users = self._by_role[role]
        sockets = users.get(user_id)
        if sockets is not None:
            sockets.discard(socket_id)
            if not sockets:
                del users[user_id]

        logger.debug(f"Socket unregistered: {socket_id} (user={user_id}, role={role})")
        return True

    # ------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------
    def role_for_socket(self, socket_id: str) -> Optional[str]:
        return self._socket_role.get(socket_id)

    def sockets_for_user(self, user_id: str, role: Optional[str] = None) -> List[str]:
        user_id = str(user_id)
        roles = [role] if role else list(self._by_role)
        found: List[str] = []
        for r in roles:
            users = self._by_role.get(r)
            if users and user_id in users:
                found.extend(users[user_id])
        return found

    def sockets_for_role(self, role: str) -> List[str]:
        users = self._by_role.get(role)
        if not users:
            return []
        return [sid for sockets in users.values() for sid in sockets]

    def is_connected(self, user_id: str, role: Optional[str] = None) -> bool:
        return bool(self.sockets_for_user(user_id, role))

    def is_role_connected(self, role: str) -> bool:
        return bool(self._by_role.get(role))

    def stats(self) -> dict:
        return {
            "total_sockets": len(self._socket_user),
            "users_by_role": {role: len(users) for role, users in self._by_role.items()},
            "sockets_by_role": {role: len(self.sockets_for_role(role)) for role in self._by_role},
        }

    def clear(self):
        for users in self._by_role.values():
            users.clear()
        self._socket_user.clear()
        self._socket_role.clear()
