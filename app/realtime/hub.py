# app/realtime/hub.py

"""
Room based pub/sub over FastAPI WebSockets.

Room keys: user:{id}, role:{role}, college:{id}, doubt:{id}, course:{id}, global.
Messages go out as {"event": ..., "data": ..., "timestamp": ...}.
"""

from typing import Dict, Set, Any, Optional

from fastapi import WebSocket
from loguru import logger

from app.core.helpers import utcnow
from app.realtime.registry import ConnectionRegistry

GLOBAL_ROOM = "global"


def user_room(user_id) -> str:
    return f"user:{user_id}"


def role_room(role: str) -> str:
    return f"role:{role}"


def college_room(college_id) -> str:
    return f"college:{college_id}"


def doubt_room(doubt_id) -> str:
    return f"doubt:{doubt_id}"


def course_room(course_id) -> str:
    return f"course:{course_id}"


class RealtimeHub:

    def __init__(self, registry: Optional[ConnectionRegistry] = None):
        # Dead sockets found while sending are unregistered here too
        self.registry = registry
        # socket id -> websocket
        self._sockets: Dict[str, WebSocket] = {}
        # room -> socket ids
        self._rooms: Dict[str, Set[str]] = {}
        # socket id -> rooms it joined
        self._memberships: Dict[str, Set[str]] = {}

    def attach(self, socket_id: str, websocket: WebSocket):
        self._sockets[socket_id] = websocket
        self._memberships.setdefault(socket_id, set())

    def detach(self, socket_id: str):
        """Forget a socket and drop it from every room it joined."""
        self._sockets.pop(socket_id, None)
        for room in self._memberships.pop(socket_id, set()):
            members = self._rooms.get(room)
            if members is not None:
                members.discard(socket_id)
                if not members:
                    del self._rooms[room]

    def join(self, socket_id: str, room: str):
        self._rooms.setdefault(room, set()).add(socket_id)
        self._memberships.setdefault(socket_id, set()).add(room)

    def leave(self, socket_id: str, room: str):
        members = self._rooms.get(room)
        if members is not None:
            members.discard(socket_id)
            if not members:
                del self._rooms[room]
        self._memberships.get(socket_id, set()).discard(room)

    def room_members(self, room: str) -> Set[str]:
        return set(self._rooms.get(room, ()))

    def rooms_of(self, socket_id: str) -> Set[str]:
        return set(self._memberships.get(socket_id, ()))

    async def send(self, socket_id: str, event: str, payload: Dict[str, Any]) -> bool:
        websocket = self._sockets.get(socket_id)
        if websocket is None:
            return False

        message = {
            "event": event,
            "data": payload,
            "timestamp": utcnow().isoformat(),
        }
        try:
            await websocket.send_json(message)
            return True
        except Exception as e:
            logger.error(f"Error sending '{event}' to socket {socket_id}: {e}")
            # Connection is dead, clean up
            self.detach(socket_id)
            if self.registry is not None and self.registry.role_for_socket(socket_id):
                self.registry.unregister(socket_id)
            return False

    async def emit(self, room: str, event: str, payload: Dict[str, Any]) -> int:
        """Send to every socket in the room; returns how many sends succeeded."""
        delivered = 0
        # Copy: failed sends detach sockets while we iterate
        for socket_id in list(self._rooms.get(room, ())):
            if await self.send(socket_id, event, payload):
                delivered += 1
        return delivered
