# app/services/announcement_service.py

from datetime import datetime, timezone
from typing import Iterable, List, Optional, Union
from uuid import UUID

from loguru import logger
from sqlmodel import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.constants import parse_audience
from app.core.exceptions import NotFoundError, ValidationFailed
from app.core.helpers import utcnow
from app.models.announcement import Announcement


async def create_announcement(
    session: AsyncSession,
    college_id: str,
    title: str,
    body: str,
    audience: Union[str, Iterable[str], None],
    created_by: str,
    created_by_role: str,
    expires_at: Optional[datetime] = None,
) -> Announcement:
    # "both" / "all" are resolved here; only explicit role lists are stored
    try:
        roles = parse_audience(audience)
    except ValueError as e:
        raise ValidationFailed(str(e))

    if expires_at is not None and expires_at.tzinfo is not None:
        expires_at = expires_at.astimezone(timezone.utc).replace(tzinfo=None)
    if expires_at is not None and expires_at <= utcnow():
        raise ValidationFailed("Expiry must be in the future")

    announcement = Announcement(
        college_id=college_id,
        title=title,
        body=body,
        audience=sorted(roles),
        created_by=str(created_by),
        created_by_role=created_by_role,
        expires_at=expires_at,
    )
    session.add(announcement)
    await session.commit()
    await session.refresh(announcement)

    logger.info(f"📢 Announcement '{title}' for {announcement.audience} in college {college_id}")
    return announcement


async def list_announcements(
    session: AsyncSession,
    college_id: str,
    role: Optional[str] = None,
    now: Optional[datetime] = None,
) -> List[Announcement]:
    now = now or utcnow()
    result = await session.execute(
        select(Announcement)
        .where(Announcement.college_id == college_id)
        .order_by(Announcement.created_at.desc())
    )
    # Audience is a JSON list; filtered here to stay portable across databases
    return [
        a for a in result.scalars().all()
        if (role is None or role in a.audience or a.created_by_role == role)
        and (a.expires_at is None or a.expires_at > now)
    ]


async def delete_announcement(session: AsyncSession, college_id: str, announcement_id: UUID) -> None:
    announcement = await session.get(Announcement, announcement_id)
    if not announcement or announcement.college_id != college_id:
        raise NotFoundError("Announcement not found", announcement_id=str(announcement_id))
    await session.delete(announcement)
    await session.commit()
