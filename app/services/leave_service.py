# app/services/leave_service.py

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from loguru import logger
from pydantic import ValidationError
from sqlmodel import select
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationFailed
from app.core.helpers import utcnow
from app.models.enums import ApprovalStatus
from app.models.faculty import Faculty
from app.models.leave import LeaveRequest
from app.models.ledger import LeaveLedgerEntry
from app.models.student import Student
from app.schemas.leave import LeaveRequestCreate, LeaveRequestRead
from app.services import dashboard_service


@dataclass
class LeaveDecisionResult:
    # Detached snapshot, safe to read after the session rolled back
    leave_request: LeaveRequestRead
    faculty_id: UUID
    faculty_name: str
    status: ApprovalStatus
    remarks: Optional[str]
    decided_at: datetime
    ledger_written: bool = True

    @property
    def student_id(self) -> UUID:
        return self.leave_request.student_id


def _parse_decision(decision: str) -> ApprovalStatus:
    value = str(decision or "").strip().lower()
    if value in ("approved", "verified"):
        return ApprovalStatus.Approved
    if value == "rejected":
        return ApprovalStatus.Rejected
    raise ValidationFailed("Decision must be 'approved' or 'rejected'", decision=decision)


async def submit_leave_request(
    session: AsyncSession,
    student_id: UUID,
    payload: Union[LeaveRequestCreate, Dict[str, Any]],
    today: Optional[date] = None,
) -> LeaveRequest:
    if not isinstance(payload, LeaveRequestCreate):
        try:
            payload = LeaveRequestCreate.model_validate(payload or {})
        except ValidationError as e:
            raise ValidationFailed("Invalid leave request", errors=e.errors(include_url=False))

    today = today or utcnow().date()
    if payload.start_date < today:
        raise ValidationFailed("Start date cannot be in the past", start_date=str(payload.start_date))
    if payload.end_date < payload.start_date:
        raise ValidationFailed("End date must be on or after start date")

    student = await session.get(Student, student_id)
    if not student:
        raise NotFoundError("Student not found", student_id=str(student_id))

    request = LeaveRequest(
        student_id=student_id,
        leave_type=payload.leave_type,
        start_date=payload.start_date,
        end_date=payload.end_date,
        total_days=(payload.end_date - payload.start_date).days + 1,
        reason=payload.reason,
        priority=payload.priority,
        emergency_contact=payload.emergency_contact.model_dump() if payload.emergency_contact else {},
        alternate_assessment_required=payload.alternate_assessment_required,
        status=ApprovalStatus.Pending,
        submitted_at=utcnow(),
    )
    session.add(request)

    await dashboard_service.mark_dirty(session, student.mentor_id)

    await session.commit()
    await session.refresh(request)

    logger.info(f"📝 Leave request {request.id} ({request.total_days} day(s)) from {student.student_code}")
    return request


async def _record_leave_ledger(session: AsyncSession, result: LeaveDecisionResult) -> bool:
    request = result.leave_request
    try:
        session.add(LeaveLedgerEntry(
            faculty_id=result.faculty_id,
            student_id=request.student_id,
            leave_request_id=request.id,
            leave_type=request.leave_type,
            start_date=request.start_date,
            end_date=request.end_date,
            total_days=request.total_days,
            reason=request.reason,
            priority=request.priority,
            status=result.status,
            approved_on=result.decided_at,
            approval_remarks=result.remarks,
        ))
        await dashboard_service.adjust_counters(session, result.faculty_id, {
            "pending_leave_requests": -1,
            f"{result.status.value}_leave_requests": 1,
        })
        await session.commit()
        return True
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Error saving leave decision to faculty {result.faculty_id}: {e}")
        await dashboard_service.invalidate_stats(session, result.faculty_id)
        return False


async def decide_leave_request(
    session: AsyncSession,
    faculty_id: UUID,
    student_id: UUID,
    leave_request_id: UUID,
    decision: str,
    remarks: Optional[str] = None,
    now: Optional[datetime] = None,
) -> LeaveDecisionResult:
    status = _parse_decision(decision)
    now = now or utcnow()

    student = await session.get(Student, student_id)
    if not student:
        raise NotFoundError("Student not found", student_id=str(student_id))
    if student.mentor_id != faculty_id:
        raise ForbiddenError("Student not found", student_id=str(student_id))

    faculty = await session.get(Faculty, faculty_id)
    faculty_name = faculty.fullname if faculty else str(faculty_id)

    result = await session.execute(
        update(LeaveRequest)
        .where(
            LeaveRequest.id == leave_request_id,
            LeaveRequest.student_id == student_id,
            LeaveRequest.status == ApprovalStatus.Pending,
        )
        .values(
            status=status,
            reviewed_by=faculty_id,
            reviewed_by_name=faculty_name,
            reviewed_at=now,
            approval_remarks=remarks,
        )
    )

    if not result.rowcount:
        existing = (await session.execute(
            select(LeaveRequest.id).where(
                LeaveRequest.id == leave_request_id, LeaveRequest.student_id == student_id
            )
        )).scalar_one_or_none()
        await session.rollback()
        if existing:
            raise ConflictError("Leave request has already been decided", leave_request_id=str(leave_request_id))
        raise NotFoundError("Leave request not found", leave_request_id=str(leave_request_id))

    await session.commit()

    request = (await session.execute(
        select(LeaveRequest)
        .where(LeaveRequest.id == leave_request_id)
        .execution_options(populate_existing=True)
    )).scalar_one()

    outcome = LeaveDecisionResult(
        leave_request=LeaveRequestRead.model_validate(request),
        faculty_id=faculty_id,
        faculty_name=faculty_name,
        status=status,
        remarks=remarks,
        decided_at=now,
    )
    outcome.ledger_written = await _record_leave_ledger(session, outcome)

    logger.info(f"✅ Faculty {faculty_id} {status.value} leave request {leave_request_id}")
    return outcome


async def list_leave_requests(
    session: AsyncSession,
    faculty_id: UUID,
    status: Optional[str] = None,
) -> List[LeaveRequest]:
    query = (
        select(LeaveRequest)
        .join(Student, Student.id == LeaveRequest.student_id)
        .where(Student.mentor_id == faculty_id)
        .order_by(LeaveRequest.submitted_at.desc())
    )
    if status and status != "all":
        try:
            query = query.where(LeaveRequest.status == ApprovalStatus(status))
        except ValueError:
            raise ValidationFailed(f"Unknown status '{status}'")
    return list((await session.execute(query)).scalars().all())


async def list_student_leave_requests(session: AsyncSession, student_id: UUID) -> List[LeaveRequest]:
    result = await session.execute(
        select(LeaveRequest)
        .where(LeaveRequest.student_id == student_id)
        .order_by(LeaveRequest.submitted_at.desc())
    )
    return list(result.scalars().all())
