# app/services/notification_service.py

"""
Realtime and push fan-out.

Nothing in here raises to the caller: socket and push failures are logged
and swallowed so a decision that is already committed never fails because a
side channel is down.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.constants import AUDIENCE_BOTH, BOTH_ROLES, VALID_ROLES
from app.core.exceptions import UnavailableError
from app.core.helpers import utcnow
from app.models.enums import UserRole
from app.models.faculty import Faculty
from app.models.student import Student
from app.realtime.hub import RealtimeHub, GLOBAL_ROOM, user_room, role_room, college_room
from app.realtime.registry import ConnectionRegistry
from app.services import dashboard_service, device_service
from app.services.push_provider import PushProvider

STUDENT = UserRole.Student.value
FACULTY = UserRole.Faculty.value


@dataclass
class PushOutcome:
    attempted: int = 0
    sent: int = 0
    failed: int = 0
    pruned: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def delivered(self) -> bool:
        return self.sent > 0


class NotificationService:

    def __init__(
        self,
        registry: ConnectionRegistry,
        hub: RealtimeHub,
        provider: PushProvider,
        session_factory: Callable[[], AsyncSession],
        push_timeout: float = settings.PUSH_TIMEOUT_SECONDS,
    ):
        self.registry = registry
        self.hub = hub
        self.provider = provider
        self.session_factory = session_factory
        self.push_timeout = push_timeout

    # ------------------------------------------------------------
    # SOCKETS
    # ------------------------------------------------------------
    async def emit_to_user(self, user_id, role: str, event: str, payload: Dict[str, Any]) -> bool:
        """Emit to the user's room when they have a live socket in this process."""
        try:
            if not self.registry.is_connected(str(user_id), role):
                logger.debug(f"User {user_id} ({role}) not connected, skipping emit: {event}")
                return False
            return await self.hub.emit(user_room(user_id), event, payload) > 0
        except Exception as e:
            logger.error(f"Emit '{event}' to user {user_id} failed: {e}")
            return False

    async def emit_to_role(self, role: str, event: str, payload: Dict[str, Any]) -> int:
        if role == AUDIENCE_BOTH:
            # Callers should pass a role set; expand instead of emitting to role:both
            logger.error(f"emit_to_role called with '{AUDIENCE_BOTH}' for '{event}', expanding to student+faculty")
            return await self.emit_to_roles(BOTH_ROLES, event, payload)

        if role not in VALID_ROLES:
            logger.error(f"emit_to_role called with unknown role '{role}' for '{event}'")
            return 0

        try:
            if not self.registry.is_role_connected(role):
                return 0
            return await self.hub.emit(role_room(role), event, payload)
        except Exception as e:
            logger.error(f"Emit '{event}' to role {role} failed: {e}")
            return 0

    async def emit_to_roles(self, roles: Iterable[str], event: str, payload: Dict[str, Any]) -> int:
        delivered = 0
        for role in sorted(set(roles)):
            delivered += await self.emit_to_role(role, event, payload)
        return delivered

    async def emit_to_room(self, room: str, event: str, payload: Dict[str, Any]) -> int:
        """Any joined room, e.g. doubt:{id} or course:{id}."""
        try:
            return await self.hub.emit(room, event, payload)
        except Exception as e:
            logger.error(f"Emit '{event}' to room {room} failed: {e}")
            return 0

    async def emit_to_college(
        self,
        college_id,
        event: str,
        payload: Dict[str, Any],
        roles: Optional[Iterable[str]] = None,
    ) -> int:
        """Sockets of one college; with `roles`, only sockets registered under those roles."""
        room = college_room(college_id)
        if roles is None:
            return await self.emit_to_room(room, event, payload)

        wanted = set()
        for role in roles:
            if role == AUDIENCE_BOTH:
                wanted |= BOTH_ROLES
            elif role in VALID_ROLES:
                wanted.add(role)
            else:
                logger.error(f"emit_to_college called with unknown role '{role}' for '{event}'")

        delivered = 0
        try:
            for socket_id in self.hub.room_members(room):
                if self.registry.role_for_socket(socket_id) not in wanted:
                    continue
                if await self.hub.send(socket_id, event, payload):
                    delivered += 1
        except Exception as e:
            logger.error(f"Emit '{event}' to college {college_id} failed: {e}")
        return delivered

    async def broadcast(self, event: str, payload: Dict[str, Any]) -> int:
        return await self.emit_to_room(GLOBAL_ROOM, event, payload)

    async def emit_dashboard_update(self, user_id, role: str, update_type: str, data: Dict[str, Any]) -> bool:
        return await self.emit_to_user(user_id, role, f"dashboard:{update_type}", data)

    async def notify(self, user_id, role: str, notification: Dict[str, Any]) -> bool:
        notification = {**notification, "timestamp": utcnow().isoformat()}
        return await self.emit_to_user(user_id, role, "notification", notification)

    # ------------------------------------------------------------
    # PUSH
    # ------------------------------------------------------------
    async def _send(self, tokens: List[str], title: str, body: str, data: Dict[str, Any]):
        if len(tokens) == 1:
            single = await asyncio.wait_for(
                asyncio.to_thread(self.provider.send_one, tokens[0], title, body, data),
                timeout=self.push_timeout,
            )
            return [single]
        batch = await asyncio.wait_for(
            asyncio.to_thread(self.provider.send_batch, tokens, title, body, data),
            timeout=self.push_timeout,
        )
        return batch.results

    async def push_to_user(
        self,
        user_id,
        role: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> PushOutcome:
        outcome = PushOutcome()
        if not self.provider.enabled:
            outcome.error = "Push provider not configured"
            return outcome

        try:
            async with self.session_factory() as session:
                tokens = await device_service.list_tokens(session, str(user_id), role)
                if not tokens:
                    logger.debug(f"No device tokens for {role} {user_id}")
                    return outcome

                outcome.attempted = len(tokens)
                try:
                    results = await self._send(tokens, title, body, data or {})
                except asyncio.TimeoutError:
                    raise UnavailableError("Push provider timed out", timeout=self.push_timeout)
                except Exception as e:
                    raise UnavailableError(f"Push provider failed: {e}")

                invalid = []
                for token, res in zip(tokens, results):
                    if res.success:
                        outcome.sent += 1
                    else:
                        outcome.failed += 1
                        if res.invalid_token:
                            invalid.append(token)

                if invalid:
                    await device_service.prune_tokens(session, invalid)
                    outcome.pruned = invalid

        except UnavailableError as e:
            outcome.error = e.message
            outcome.failed = outcome.attempted
            logger.warning(f"⚠️ [NOTIFICATION] Push to {role} {user_id} unavailable: {e.message}")
        except Exception as e:
            outcome.error = str(e)
            logger.error(f"❌ [NOTIFICATION] Push to {role} {user_id} failed: {e}")

        return outcome

    # ------------------------------------------------------------
    # DOMAIN FAN-OUTS (run as background tasks)
    # ------------------------------------------------------------
    async def publish_achievement_decision(self, result) -> None:
        """Student counts, faculty stats and notifications after a decision."""
        try:
            kind = result.kind.value
            status = result.ledger_status.value

            async with self.session_factory() as session:
                faculty = await session.get(Faculty, result.faculty_id)
                student = await session.get(Student, result.student_id)
                faculty_name = faculty.fullname if faculty else str(result.faculty_id)
                student_name = student.fullname if student else str(result.student_id)

                counts = await dashboard_service.student_dashboard_counts(session, result.student_id)
                stats = await dashboard_service.get_faculty_stats(session, result.faculty_id)
                stats_data = dashboard_service.stats_payload(stats)

            await self.emit_dashboard_update(result.student_id, STUDENT, "counts", counts)
            await self.emit_dashboard_update(result.student_id, STUDENT, "approvals", {
                "item_id": str(result.item_id),
                "kind": kind,
                "description": result.description,
                "status": result.status.value,
                "remarks": result.remarks,
            })
            await self.notify(result.student_id, STUDENT, {
                "type": "achievement_verified",
                "title": f"Achievement {status.capitalize()}",
                "message": f"Your {kind} has been {status} by {faculty_name}",
                "data": {"kind": kind, "status": status, "remarks": result.remarks},
            })
            await self.emit_dashboard_update(result.faculty_id, FACULTY, "stats", stats_data)

            remark_text = f". Remarks: {result.remarks}" if result.remarks else ""
            await self.push_to_user(
                result.student_id, STUDENT,
                "Achievement Approved ✅" if status == "approved" else "Achievement Rejected ❌",
                f"Your {kind} has been {status} by {faculty_name}{remark_text}",
                {"type": "achievement_verified", "kind": kind, "status": status, "remarks": result.remarks or ""},
            )
            await self.push_to_user(
                result.faculty_id, FACULTY,
                "Action Completed ✓",
                f"You {status} {student_name}'s {kind}",
                {"type": "approval_action", "student_id": str(result.student_id), "kind": kind, "status": status},
            )
        except Exception as e:
            logger.error(f"Error emitting real-time updates for decision {result.item_id}: {e}")

    async def publish_leave_decision(self, result) -> None:
        try:
            request = result.leave_request
            status = result.status.value

            async with self.session_factory() as session:
                stats = await dashboard_service.get_faculty_stats(session, result.faculty_id)
                stats_data = dashboard_service.stats_payload(stats)

            await self.notify(request.student_id, STUDENT, {
                "type": "leave_request_update",
                "title": f"Leave Request {status.capitalize()}",
                "message": f"Your {request.leave_type.value} leave request has been {status} by {result.faculty_name}",
                "data": {"leave_request_id": str(request.id), "status": status, "remarks": result.remarks},
            })
            await self.emit_dashboard_update(result.faculty_id, FACULTY, "stats", stats_data)

            await self.push_to_user(
                request.student_id, STUDENT,
                f"Leave Request {status.capitalize()}",
                f"Your leave request ({request.start_date} to {request.end_date}) has been {status}",
                {"type": "leave_request_update", "leave_request_id": str(request.id), "status": status},
            )
        except Exception as e:
            logger.error(f"Error emitting leave decision updates: {e}")

    async def publish_announcement(
        self,
        announcement: Dict[str, Any],
        roles: Iterable[str],
        college_id: Optional[str] = None,
    ) -> None:
        """Announcement to the audience roles within the announcement's own college."""
        try:
            college_id = college_id or announcement.get("college_id")
            if not college_id:
                logger.error(f"Announcement {announcement.get('id')} has no college, not emitting")
                return
            await self.emit_to_college(college_id, "dashboard:announcements", {
                "type": "announcement_created",
                "announcement": announcement,
            }, roles=set(roles))
        except Exception as e:
            logger.error(f"Error emitting announcement {announcement.get('id')}: {e}")
