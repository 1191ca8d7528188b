# app/api/endpoints/realtime.py

import uuid

import jwt
from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from loguru import logger

from app.api.deps import AuthContext, context_from_token, get_registry
from app.core.rbac import AllowRoles
from app.models.enums import UserRole
from app.realtime.hub import GLOBAL_ROOM, RealtimeHub, college_room, course_room, doubt_room, role_room, user_room
from app.realtime.registry import ConnectionRegistry

router = APIRouter(tags=["Realtime"])

# Rooms a client may join on request
JOINABLE = {
    "doubt": doubt_room,
    "course": course_room,
}


def _strip_bearer(token: str) -> str:
    return token.split(" ", 1)[1] if token.startswith("Bearer ") else token


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket, token: str = Query(...)):
    """
    Client messages: {"action": "join"|"leave", "room": "doubt"|"course", "id": ...}
    and {"action": "ping"}.
    """
    try:
        ctx = context_from_token(_strip_bearer(token))
    except (jwt.InvalidTokenError, ValueError):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    registry: ConnectionRegistry = websocket.app.state.registry
    hub: RealtimeHub = websocket.app.state.hub

    await websocket.accept()
    socket_id = uuid.uuid4().hex
    user_id = str(ctx.user_id)

    hub.attach(socket_id, websocket)
    registry.register(socket_id, user_id, ctx.role)
    hub.join(socket_id, user_room(user_id))
    hub.join(socket_id, role_room(ctx.role))
    hub.join(socket_id, GLOBAL_ROOM)
    if ctx.college_id:
        hub.join(socket_id, college_room(ctx.college_id))

    logger.info(f"WebSocket connected: {socket_id} (user={user_id}, role={ctx.role})")
    await hub.send(socket_id, "connected", {"socket_id": socket_id, "rooms": sorted(hub.rooms_of(socket_id))})

    try:
        while True:
            message = await websocket.receive_json()
            action = message.get("action") if isinstance(message, dict) else None

            if action == "ping":
                await hub.send(socket_id, "pong", {})
            elif action in ("join", "leave") and message.get("room") in JOINABLE and message.get("id"):
                room = JOINABLE[message["room"]](message["id"])
                if action == "join":
                    hub.join(socket_id, room)
                else:
                    hub.leave(socket_id, room)
            else:
                await hub.send(socket_id, "error", {"message": "Unsupported message"})

    except WebSocketDisconnect as e:
        logger.info(f"WebSocket disconnected: {socket_id} (code={e.code})")
    except ValueError as e:
        # Non-JSON frame
        logger.warning(f"WebSocket {socket_id} sent invalid data: {e}")
    finally:
        if registry.role_for_socket(socket_id):
            registry.unregister(socket_id)
        hub.detach(socket_id)


@router.get("/api/realtime/stats", tags=["Realtime"])
async def realtime_stats(
    current_user: AuthContext = Depends(AllowRoles(UserRole.Admin)),
    registry: ConnectionRegistry = Depends(get_registry),
):
    return registry.stats()
