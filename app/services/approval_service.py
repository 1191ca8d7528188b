# app/services/approval_service.py

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Union
from uuid import UUID

from loguru import logger
from pydantic import ValidationError
from sqlmodel import select
from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.constants import APPROVED_COUNTER_BY_KIND, normalize_kind
from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationFailed, WorkflowError
from app.core.helpers import utcnow
from app.models.achievement import Achievement
from app.models.enums import AchievementKind, ApprovalStatus, VerificationStatus
from app.models.faculty import Faculty
from app.models.ledger import ApprovalLedgerEntry, LeaveLedgerEntry
from app.models.pending_approval import PendingApproval
from app.models.student import Student
from app.schemas.achievement import PAYLOAD_BY_KIND
from app.services import dashboard_service

ItemRef = Union[UUID, int, str]


@dataclass
class DecisionResult:
    student_id: UUID
    faculty_id: UUID
    kind: AchievementKind
    item_id: UUID
    description: str
    status: VerificationStatus
    remarks: Optional[str]
    decided_at: datetime
    image_url: Optional[str] = None
    ledger_written: bool = True

    @property
    def ledger_status(self) -> ApprovalStatus:
        if self.status == VerificationStatus.Verified:
            return ApprovalStatus.Approved
        return ApprovalStatus.Rejected


@dataclass
class BulkDecisionResult:
    requested: int
    processed: int
    skipped: int
    results: List[DecisionResult] = field(default_factory=list)


# ----------------------------------------------------------------
# HELPERS
# ----------------------------------------------------------------
def _parse_kind(kind) -> AchievementKind:
    try:
        return normalize_kind(kind)
    except ValueError:
        raise ValidationFailed(f"Unknown achievement type '{kind}'")


def _parse_decision(decision: str) -> VerificationStatus:
    value = str(decision or "").strip().lower()
    # "approved" is what older faculty clients send
    if value in ("verified", "approved"):
        return VerificationStatus.Verified
    if value == "rejected":
        return VerificationStatus.Rejected
    raise ValidationFailed("Decision must be 'verified' or 'rejected'", decision=decision)


def _as_uuid(ref: ItemRef) -> Optional[UUID]:
    if isinstance(ref, UUID):
        return ref
    if isinstance(ref, int):
        return None
    try:
        return UUID(str(ref))
    except ValueError:
        return None


def _as_position(ref: ItemRef) -> Optional[int]:
    if isinstance(ref, bool):
        return None
    if isinstance(ref, int):
        return ref
    if isinstance(ref, str) and ref.strip().isdigit():
        return int(ref.strip())
    return None


async def load_student_for_mentor(session: AsyncSession, student_id: UUID, faculty_id: UUID) -> Student:
    student = await session.get(Student, student_id)
    if not student:
        raise NotFoundError("Student not found", student_id=str(student_id))
    if student.mentor_id != faculty_id:
        # Reported as not found so other mentors' students stay invisible
        raise ForbiddenError("Student not found", student_id=str(student_id))
    return student


# ----------------------------------------------------------------
# SUBMIT
# ----------------------------------------------------------------
async def submit_achievement(
    session: AsyncSession,
    student_id: UUID,
    kind: Union[str, AchievementKind],
    payload: Dict[str, Any],
) -> Achievement:
    kind = _parse_kind(kind)

    try:
        data = PAYLOAD_BY_KIND[kind].model_validate(payload or {})
    except ValidationError as e:
        raise ValidationFailed(f"Invalid {kind.value} details", errors=e.errors(include_url=False))

    student = await session.get(Student, student_id)
    if not student:
        raise NotFoundError("Student not found", student_id=str(student_id))

    position = (await session.execute(
        select(func.count()).select_from(Achievement).where(
            Achievement.student_id == student_id, Achievement.kind == kind
        )
    )).scalar_one()

    description = data.description()
    details = data.model_dump(mode="json", exclude={"image_url"}, exclude_none=True)
    now = utcnow()

    item = Achievement(
        student_id=student_id,
        kind=kind,
        position=position,
        title=description,
        description=description,
        details=details,
        image_url=data.image_url,
        verification_status=VerificationStatus.Pending.value,
        created_at=now,
    )
    session.add(item)
    session.add(PendingApproval(
        student_id=student_id,
        kind=kind,
        description=description,
        status=ApprovalStatus.Pending,
        requested_on=now,
    ))

    await dashboard_service.mark_dirty(session, student.mentor_id)

    await session.commit()
    await session.refresh(item)

    logger.info(f"📝 Student {student.student_code} submitted {kind.value} '{description}'")
    return item


# ----------------------------------------------------------------
# DECIDE
# ----------------------------------------------------------------
async def _apply_by_id(session, student_id, kind, item_id, values) -> Optional[Achievement]:
    result = await session.execute(
        update(Achievement)
        .where(
            Achievement.id == item_id,
            Achievement.student_id == student_id,
            Achievement.kind == kind,
            Achievement.verification_status == VerificationStatus.Pending.value,
        )
        .values(**values)
    )
    if result.rowcount:
        return (await session.execute(
            select(Achievement).where(Achievement.id == item_id).execution_options(populate_existing=True)
        )).scalar_one()

    exists = (await session.execute(
        select(Achievement.id).where(
            Achievement.id == item_id,
            Achievement.student_id == student_id,
            Achievement.kind == kind,
        )
    )).scalar_one_or_none()
    if exists:
        raise ConflictError("Achievement has already been decided", item_id=str(item_id))
    return None


async def _apply_by_position(session, student_id, kind, position, values) -> Optional[Achievement]:
    # Positional addressing is best effort and limited to legacy items
    where = (
        Achievement.student_id == student_id,
        Achievement.kind == kind,
        Achievement.position == position,
        Achievement.is_legacy.is_(True),
    )
    result = await session.execute(
        update(Achievement)
        .where(*where, Achievement.verification_status == VerificationStatus.Pending.value)
        .values(**values)
    )
    item = (await session.execute(
        select(Achievement).where(*where).execution_options(populate_existing=True)
    )).scalar_one_or_none()

    if result.rowcount:
        return item
    if item is not None:
        raise ConflictError("Achievement has already been decided", position=position)
    return None


async def _close_mirror(session, item: Achievement, status: ApprovalStatus, faculty_id, remarks, now):
    """Mark the oldest pending mirror record for the same submission."""
    mirror_id = (await session.execute(
        select(PendingApproval.id)
        .where(
            PendingApproval.student_id == item.student_id,
            PendingApproval.kind == item.kind,
            PendingApproval.description == item.description,
            PendingApproval.status == ApprovalStatus.Pending,
        )
        .order_by(PendingApproval.requested_on)
        .limit(1)
    )).scalar_one_or_none()

    if mirror_id is None:
        return

    await session.execute(
        update(PendingApproval)
        .where(PendingApproval.id == mirror_id, PendingApproval.status == ApprovalStatus.Pending)
        .values(status=status, reviewed_on=now, reviewed_by=faculty_id, message=remarks)
    )


async def _record_achievement_ledger(session: AsyncSession, result: DecisionResult) -> bool:
    """
    Ledger entry plus in-place counter adjustment. The verification is already
    committed, so a failure here is logged and the cached stats are flagged
    dirty for the next read to recompute.
    """
    counter = (
        APPROVED_COUNTER_BY_KIND[result.kind]
        if result.status == VerificationStatus.Verified
        else "rejected_approvals"
    )
    try:
        session.add(ApprovalLedgerEntry(
            faculty_id=result.faculty_id,
            student_id=result.student_id,
            kind=result.kind,
            description=result.description,
            status=result.ledger_status,
            approved_on=result.decided_at,
            image_url=result.image_url,
            message=result.remarks,
        ))
        await dashboard_service.adjust_counters(
            session, result.faculty_id, {"pending_approvals": -1, counter: 1}
        )
        await session.commit()
        return True
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Error saving approval to faculty {result.faculty_id}: {e}")
        await dashboard_service.invalidate_stats(session, result.faculty_id)
        return False


async def decide_achievement(
    session: AsyncSession,
    faculty_id: UUID,
    student_id: UUID,
    kind: Union[str, AchievementKind],
    ref: ItemRef,
    decision: str,
    remarks: Optional[str] = None,
    now: Optional[datetime] = None,
) -> DecisionResult:
    kind = _parse_kind(kind)
    status = _parse_decision(decision)
    now = now or utcnow()

    await load_student_for_mentor(session, student_id, faculty_id)

    values = dict(
        verification_status=status.value,
        verified_by=faculty_id,
        verified_at=now,
        verification_remarks=remarks,
    )

    try:
        item = None
        item_id = _as_uuid(ref)
        if item_id is not None:
            item = await _apply_by_id(session, student_id, kind, item_id, values)

        if item is None:
            position = _as_position(ref)
            if position is not None:
                item = await _apply_by_position(session, student_id, kind, position, values)

        if item is None:
            raise NotFoundError("Achievement not found", ref=str(ref), kind=kind.value)
    except WorkflowError:
        await session.rollback()
        raise

    mirror_status = ApprovalStatus.Approved if status == VerificationStatus.Verified else ApprovalStatus.Rejected
    await _close_mirror(session, item, mirror_status, faculty_id, remarks, now)

    await session.commit()

    result = DecisionResult(
        student_id=student_id,
        faculty_id=faculty_id,
        kind=kind,
        item_id=item.id,
        description=item.description,
        status=status,
        remarks=remarks,
        decided_at=now,
        image_url=item.image_url,
    )
    result.ledger_written = await _record_achievement_ledger(session, result)

    logger.info(f"✅ Faculty {faculty_id} {status.value} {kind.value} '{result.description}' of student {student_id}")
    return result


async def bulk_decide(
    session: AsyncSession,
    faculty_id: UUID,
    student_id: UUID,
    kind: Union[str, AchievementKind],
    refs: Sequence[ItemRef],
    decision: str,
    remarks: Optional[str] = None,
) -> BulkDecisionResult:
    """Decide each ref on its own; refs that are missing or already decided are skipped."""
    kind = _parse_kind(kind)
    _parse_decision(decision)
    await load_student_for_mentor(session, student_id, faculty_id)

    refs = list(refs)
    results = []
    for ref in refs:
        try:
            results.append(await decide_achievement(
                session, faculty_id, student_id, kind, ref, decision, remarks
            ))
        except (NotFoundError, ConflictError) as e:
            logger.debug(f"Bulk decide skipped {ref}: {e}")

    return BulkDecisionResult(
        requested=len(refs),
        processed=len(results),
        skipped=len(refs) - len(results),
        results=results,
    )


# ----------------------------------------------------------------
# BACKFILL
# ----------------------------------------------------------------
async def backfill_verifications(
    session: AsyncSession,
    student_id: UUID,
    faculty_id: Optional[UUID] = None,
) -> int:
    """
    Copy decisions that only exist on mirror records onto the matching
    still-pending items. Running it again changes nothing.
    """
    student = await session.get(Student, student_id)
    if not student:
        raise NotFoundError("Student not found", student_id=str(student_id))

    records = (await session.execute(
        select(PendingApproval)
        .where(
            PendingApproval.student_id == student_id,
            PendingApproval.status != ApprovalStatus.Pending,
        )
        .order_by(PendingApproval.requested_on)
    )).scalars().all()

    items = (await session.execute(
        select(Achievement)
        .where(Achievement.student_id == student_id)
        .order_by(Achievement.position)
    )).scalars().all()

    # Decisions already reflected on items, per (kind, description)
    decided: Dict[tuple, int] = {}
    pending: Dict[tuple, List[Achievement]] = {}
    for item in items:
        key = (AchievementKind(item.kind), item.description)
        if item.status == VerificationStatus.Pending:
            pending.setdefault(key, []).append(item)
        else:
            decided[key] = decided.get(key, 0) + 1

    now = utcnow()
    updated = 0
    for record in records:
        key = (AchievementKind(record.kind), record.description)
        if decided.get(key, 0) > 0:
            decided[key] -= 1
            continue
        candidates = pending.get(key)
        if not candidates:
            continue

        item = candidates.pop(0)
        status = (
            VerificationStatus.Verified
            if ApprovalStatus(record.status) == ApprovalStatus.Approved
            else VerificationStatus.Rejected
        )
        result = await session.execute(
            update(Achievement)
            .where(
                Achievement.id == item.id,
                Achievement.verification_status == VerificationStatus.Pending.value,
            )
            .values(
                verification_status=status.value,
                verified_by=record.reviewed_by or faculty_id,
                verified_at=record.reviewed_on or now,
                verification_remarks=record.message,
            )
        )
        updated += result.rowcount

    await session.commit()

    if updated:
        logger.info(f"🔁 Backfilled {updated} verification(s) for student {student.student_code}")
    return updated


# ----------------------------------------------------------------
# RECENT ACTIVITY
# ----------------------------------------------------------------
def _activity_time(entry: Dict[str, Any], now: datetime) -> datetime:
    for key in ("approved_on", "reviewed_on", "timestamp", "date"):
        value = entry.get(key)
        if isinstance(value, datetime):
            return value
    return now


async def recent_activities(session: AsyncSession, faculty_id: UUID, limit: int = 10) -> List[Dict[str, Any]]:
    faculty = await session.get(Faculty, faculty_id)
    if not faculty:
        raise NotFoundError("Faculty not found", faculty_id=str(faculty_id))

    approvals = (await session.execute(
        select(ApprovalLedgerEntry, Student.fullname, Student.student_code)
        .join(Student, Student.id == ApprovalLedgerEntry.student_id)
        .where(ApprovalLedgerEntry.faculty_id == faculty_id)
        .order_by(ApprovalLedgerEntry.approved_on.desc())
        .limit(limit)
    )).all()

    leaves = (await session.execute(
        select(LeaveLedgerEntry, Student.fullname, Student.student_code)
        .join(Student, Student.id == LeaveLedgerEntry.student_id)
        .where(LeaveLedgerEntry.faculty_id == faculty_id)
        .order_by(LeaveLedgerEntry.approved_on.desc())
        .limit(limit)
    )).all()

    activities: List[Dict[str, Any]] = []
    for entry, name, code in approvals:
        activities.append({
            "type": "achievement",
            "student_id": entry.student_id,
            "student_name": name,
            "student_code": code,
            "kind": AchievementKind(entry.kind).value,
            "description": entry.description,
            "status": ApprovalStatus(entry.status).value,
            "message": entry.message,
            "approved_on": entry.approved_on,
        })
    for entry, name, code in leaves:
        activities.append({
            "type": "leave",
            "student_id": entry.student_id,
            "student_name": name,
            "student_code": code,
            "leave_request_id": entry.leave_request_id,
            "leave_type": entry.leave_type,
            "total_days": entry.total_days,
            "status": ApprovalStatus(entry.status).value,
            "message": entry.approval_remarks,
            "approved_on": entry.approved_on,
        })

    now = utcnow()
    activities.sort(key=lambda a: _activity_time(a, now), reverse=True)
    return activities[:limit]


async def pending_items_for_faculty(session: AsyncSession, faculty_id: UUID) -> List[Dict[str, Any]]:
    """Pending achievements of every mentee, oldest first."""
    rows = (await session.execute(
        select(Achievement, Student.fullname, Student.student_code)
        .join(Student, Student.id == Achievement.student_id)
        .where(
            Student.mentor_id == faculty_id,
            Achievement.verification_status == VerificationStatus.Pending.value,
        )
        .order_by(Achievement.created_at)
    )).all()

    return [
        {
            "item_id": item.id,
            "student_id": item.student_id,
            "student_name": name,
            "student_code": code,
            "kind": AchievementKind(item.kind).value,
            "position": item.position,
            "description": item.description,
            "image_url": item.image_url,
            "submitted_at": item.created_at,
        }
        for item, name, code in rows
    ]
