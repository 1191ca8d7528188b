# app/api/endpoints/faculty.py

from datetime import date as date_type
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import AuthContext, get_db_session, get_notifier
from app.core.rbac import AllowRoles
from app.models.enums import UserRole
from app.schemas.achievement import (
    BackfillResponse,
    BulkDecisionRequest,
    BulkDecisionResponse,
    DecisionRequest,
    DecisionResponse,
)
from app.schemas.leave import LeaveDecisionRequest, LeaveRequestRead
from app.services import approval_service, dashboard_service, leave_service
from app.services.notification_service import NotificationService

router = APIRouter(
    prefix="/api/faculty",
    tags=["Faculty"]
)

require_faculty = AllowRoles(UserRole.Faculty)


class AttendanceMark(BaseModel):
    student_id: UUID
    date: date_type
    period: int = Field(ge=1, le=8)
    present: bool


class AttendanceBatch(BaseModel):
    entries: List[AttendanceMark]


# ------------------------------------------------------------
# DASHBOARD
# ------------------------------------------------------------
@router.get("/dashboard")
async def faculty_dashboard(
    current_user: AuthContext = Depends(require_faculty),
    session: AsyncSession = Depends(get_db_session),
):
    stats = await dashboard_service.get_faculty_stats(session, current_user.user_id)
    return dashboard_service.stats_payload(stats)


@router.get("/pending-approvals")
async def pending_approvals(
    current_user: AuthContext = Depends(require_faculty),
    session: AsyncSession = Depends(get_db_session),
):
    return await approval_service.pending_items_for_faculty(session, current_user.user_id)


@router.get("/activities")
async def recent_activities(
    limit: int = Query(10, ge=1, le=100),
    current_user: AuthContext = Depends(require_faculty),
    session: AsyncSession = Depends(get_db_session),
):
    return await approval_service.recent_activities(session, current_user.user_id, limit)


# ------------------------------------------------------------
# ACHIEVEMENT DECISIONS
# ------------------------------------------------------------
@router.post("/students/{student_id}/decide", response_model=DecisionResponse)
async def decide_achievement(
    student_id: UUID,
    data: DecisionRequest,
    background_tasks: BackgroundTasks,
    current_user: AuthContext = Depends(require_faculty),
    session: AsyncSession = Depends(get_db_session),
    notifier: NotificationService = Depends(get_notifier),
):
    result = await approval_service.decide_achievement(
        session, current_user.user_id, student_id, data.kind, data.ref, data.decision, data.remarks
    )
    # Fan-out runs after the response is sent
    background_tasks.add_task(notifier.publish_achievement_decision, result)

    return DecisionResponse(
        item_id=result.item_id,
        student_id=result.student_id,
        kind=result.kind,
        description=result.description,
        status=result.status.value,
        remarks=result.remarks,
        decided_at=result.decided_at,
    )


@router.post("/students/{student_id}/bulk-decide", response_model=BulkDecisionResponse)
async def bulk_decide(
    student_id: UUID,
    data: BulkDecisionRequest,
    background_tasks: BackgroundTasks,
    current_user: AuthContext = Depends(require_faculty),
    session: AsyncSession = Depends(get_db_session),
    notifier: NotificationService = Depends(get_notifier),
):
    outcome = await approval_service.bulk_decide(
        session, current_user.user_id, student_id, data.kind, data.refs, data.decision, data.remarks
    )
    for result in outcome.results:
        background_tasks.add_task(notifier.publish_achievement_decision, result)

    return BulkDecisionResponse(
        requested=outcome.requested,
        processed=outcome.processed,
        skipped=outcome.skipped,
    )


@router.post("/students/{student_id}/backfill", response_model=BackfillResponse)
async def backfill_verifications(
    student_id: UUID,
    current_user: AuthContext = Depends(require_faculty),
    session: AsyncSession = Depends(get_db_session),
):
    await approval_service.load_student_for_mentor(session, student_id, current_user.user_id)
    updated = await approval_service.backfill_verifications(session, student_id, current_user.user_id)
    return BackfillResponse(updated=updated)


# ------------------------------------------------------------
# LEAVE REQUESTS
# ------------------------------------------------------------
@router.get("/leave-requests", response_model=List[LeaveRequestRead])
async def list_leave_requests(
    status: Optional[str] = Query(None),
    current_user: AuthContext = Depends(require_faculty),
    session: AsyncSession = Depends(get_db_session),
):
    return await leave_service.list_leave_requests(session, current_user.user_id, status)


@router.post("/students/{student_id}/leave-requests/{leave_request_id}/decide", response_model=LeaveRequestRead)
async def decide_leave_request(
    student_id: UUID,
    leave_request_id: UUID,
    data: LeaveDecisionRequest,
    background_tasks: BackgroundTasks,
    current_user: AuthContext = Depends(require_faculty),
    session: AsyncSession = Depends(get_db_session),
    notifier: NotificationService = Depends(get_notifier),
):
    result = await leave_service.decide_leave_request(
        session, current_user.user_id, student_id, leave_request_id, data.decision, data.remarks
    )
    background_tasks.add_task(notifier.publish_leave_decision, result)
    return result.leave_request


# ------------------------------------------------------------
# ATTENDANCE
# ------------------------------------------------------------
@router.post("/attendance")
async def record_attendance(
    data: AttendanceBatch,
    current_user: AuthContext = Depends(require_faculty),
    session: AsyncSession = Depends(get_db_session),
):
    written = await dashboard_service.record_attendance(
        session, current_user.user_id, [m.model_dump() for m in data.entries]
    )
    return {"recorded": written}
