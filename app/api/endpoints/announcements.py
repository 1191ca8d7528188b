# app/api/endpoints/announcements.py

from typing import List
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import AuthContext, get_current_user, get_db_session, get_notifier
from app.core.rbac import AllowRoles
from app.models.enums import UserRole
from app.schemas.announcement import AnnouncementCreate, AnnouncementRead
from app.services import announcement_service
from app.services.notification_service import NotificationService

router = APIRouter(
    prefix="/api/announcements",
    tags=["Announcements"]
)


def _college(current_user: AuthContext) -> str:
    if not current_user.college_id:
        raise HTTPException(400, "College information is missing")
    return current_user.college_id


@router.get("", response_model=List[AnnouncementRead])
async def list_announcements(
    current_user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    return await announcement_service.list_announcements(session, _college(current_user), current_user.role)


@router.post("", response_model=AnnouncementRead, status_code=status.HTTP_201_CREATED)
async def create_announcement(
    data: AnnouncementCreate,
    background_tasks: BackgroundTasks,
    current_user: AuthContext = Depends(AllowRoles(UserRole.HOD, UserRole.Admin)),
    session: AsyncSession = Depends(get_db_session),
    notifier: NotificationService = Depends(get_notifier),
):
    announcement = await announcement_service.create_announcement(
        session,
        college_id=_college(current_user),
        title=data.title,
        body=data.body,
        audience=data.audience,
        created_by=current_user.user_id,
        created_by_role=current_user.role,
        expires_at=data.expires_at,
    )

    payload = AnnouncementRead.model_validate(announcement).model_dump(mode="json")
    # The creator's own role refreshes too
    roles = set(announcement.audience) | {current_user.role}
    background_tasks.add_task(notifier.publish_announcement, payload, roles, announcement.college_id)
    return announcement


@router.delete("/{announcement_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_announcement(
    announcement_id: UUID,
    current_user: AuthContext = Depends(AllowRoles(UserRole.HOD, UserRole.Admin)),
    session: AsyncSession = Depends(get_db_session),
):
    await announcement_service.delete_announcement(session, _college(current_user), announcement_id)
