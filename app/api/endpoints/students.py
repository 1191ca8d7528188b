# app/api/endpoints/students.py

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.api.deps import AuthContext, get_db_session
from app.core.rbac import AllowRoles
from app.models.achievement import Achievement
from app.models.enums import UserRole
from app.schemas.achievement import AchievementRead, AchievementSubmit
from app.schemas.leave import LeaveRequestCreate, LeaveRequestRead
from app.services import approval_service, dashboard_service, leave_service

router = APIRouter(
    prefix="/api/student",
    tags=["Student"]
)

require_student = AllowRoles(UserRole.Student)


# ------------------------------------------------------------
# ACHIEVEMENTS
# ------------------------------------------------------------
@router.post("/achievements", response_model=AchievementRead, status_code=status.HTTP_201_CREATED)
async def submit_achievement(
    data: AchievementSubmit,
    current_user: AuthContext = Depends(require_student),
    session: AsyncSession = Depends(get_db_session),
):
    # Submitting does not notify anyone; the mentor's counters are marked stale
    return await approval_service.submit_achievement(
        session, current_user.user_id, data.kind, data.payload
    )


@router.get("/achievements", response_model=List[AchievementRead])
async def list_my_achievements(
    current_user: AuthContext = Depends(require_student),
    session: AsyncSession = Depends(get_db_session),
):
    result = await session.execute(
        select(Achievement)
        .where(Achievement.student_id == current_user.user_id)
        .order_by(Achievement.kind, Achievement.position)
    )
    return result.scalars().all()


# ------------------------------------------------------------
# DASHBOARD
# ------------------------------------------------------------
@router.get("/dashboard")
async def student_dashboard(
    current_user: AuthContext = Depends(require_student),
    session: AsyncSession = Depends(get_db_session),
):
    counts = await dashboard_service.student_dashboard_counts(session, current_user.user_id)
    attendance = await dashboard_service.student_attendance(session, current_user.user_id)
    return {"counts": counts, "attendance": attendance}


# ------------------------------------------------------------
# LEAVE REQUESTS
# ------------------------------------------------------------
@router.post("/leave-requests", response_model=LeaveRequestRead, status_code=status.HTTP_201_CREATED)
async def submit_leave_request(
    data: LeaveRequestCreate,
    current_user: AuthContext = Depends(require_student),
    session: AsyncSession = Depends(get_db_session),
):
    return await leave_service.submit_leave_request(session, current_user.user_id, data)


@router.get("/leave-requests", response_model=List[LeaveRequestRead])
async def list_my_leave_requests(
    current_user: AuthContext = Depends(require_student),
    session: AsyncSession = Depends(get_db_session),
):
    return await leave_service.list_student_leave_requests(session, current_user.user_id)
