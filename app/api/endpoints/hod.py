# app/api/endpoints/hod.py

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import AuthContext, get_db_session
from app.core.rbac import AllowRoles
from app.models.administrator import Administrator
from app.models.enums import UserRole
from app.services import dashboard_service

router = APIRouter(
    prefix="/api/hod",
    tags=["HOD"]
)

require_hod = AllowRoles(UserRole.HOD, UserRole.Admin)


async def _scope(session: AsyncSession, current_user: AuthContext):
    admin = await session.get(Administrator, current_user.user_id)
    if not admin:
        raise HTTPException(404, "Administrator not found")
    return admin.college_id, admin.dept


@router.get("/department-performance")
async def department_performance(
    current_user: AuthContext = Depends(require_hod),
    session: AsyncSession = Depends(get_db_session),
):
    college_id, dept = await _scope(session, current_user)
    # College admins see every department
    if current_user.role == UserRole.Admin.value:
        dept = None
    elif not dept:
        raise HTTPException(400, "Department information is missing")
    return await dashboard_service.department_performance(session, college_id, dept)


@router.get("/section-attendance")
async def section_attendance(
    semester: Optional[int] = Query(None),
    section: Optional[str] = Query(None),
    dept: Optional[str] = Query(None),
    current_user: AuthContext = Depends(require_hod),
    session: AsyncSession = Depends(get_db_session),
):
    college_id, own_dept = await _scope(session, current_user)
    target = dept if current_user.role == UserRole.Admin.value and dept else own_dept
    if not target:
        raise HTTPException(400, "Department information is missing")
    return {
        "department": target,
        "sections": await dashboard_service.section_attendance(
            session, college_id, target, semester=semester, section=section
        ),
    }
