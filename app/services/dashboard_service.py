# app/services/dashboard_service.py

"""
Dashboard counters for students, faculty and HODs.

Faculty home-screen counts are cached in faculty_dashboard_stats. A cached
row is served while it is clean, younger than DASHBOARD_CACHE_TTL_SECONDS and
non-empty; anything else triggers a synchronous recompute that is persisted
before returning.
"""

from datetime import datetime, timedelta, date
from typing import Dict, List, Optional, Iterable, Any
from uuid import UUID

from loguru import logger
from sqlmodel import select
from sqlalchemy import func, case, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.constants import APPROVED_COUNTER_BY_KIND
from app.core.exceptions import NotFoundError, ValidationFailed
from app.core.helpers import utcnow, round_half_up, percentage
from app.models.achievement import Achievement
from app.models.attendance import AttendanceEntry
from app.models.dashboard import FacultyDashboardStats
from app.models.enums import AchievementKind, ApprovalStatus, VerificationStatus
from app.models.leave import LeaveRequest
from app.models.student import Student

# "approved" is the legacy spelling of verified
VERIFIED_STATUSES = (VerificationStatus.Verified.value, "approved")

COUNTER_FIELDS = (
    "total_students",
    "pending_approvals",
    *APPROVED_COUNTER_BY_KIND.values(),
    "rejected_approvals",
    "pending_leave_requests",
    "approved_leave_requests",
    "rejected_leave_requests",
)


def attendance_percentage(present: int, total: int) -> int:
    """present/total*100 rounded half-up (2 of 3 -> 67); 0 when total is 0."""
    return percentage(present, total)


# ----------------------------------------------------------------
# FACULTY STATS
# ----------------------------------------------------------------
async def compute_faculty_stats(session: AsyncSession, faculty_id: UUID) -> Dict[str, int]:
    """Fresh counts straight from students, achievements and leave requests."""
    mentees = select(Student.id).where(Student.mentor_id == faculty_id)

    total_students = (await session.execute(
        select(func.count()).select_from(Student).where(Student.mentor_id == faculty_id)
    )).scalar_one()

    counts: Dict[str, int] = {field: 0 for field in COUNTER_FIELDS}
    counts["total_students"] = total_students

    # Strict partition: each item is pending, verified or rejected, never two
    rows = (await session.execute(
        select(Achievement.kind, Achievement.verification_status, func.count())
        .where(Achievement.student_id.in_(mentees))
        .group_by(Achievement.kind, Achievement.verification_status)
    )).all()

    for kind, status, n in rows:
        if status == VerificationStatus.Pending.value:
            counts["pending_approvals"] += n
        elif status in VERIFIED_STATUSES:
            counts[APPROVED_COUNTER_BY_KIND[AchievementKind(kind)]] += n
        elif status == VerificationStatus.Rejected.value:
            counts["rejected_approvals"] += n

    leave_rows = (await session.execute(
        select(LeaveRequest.status, func.count())
        .where(LeaveRequest.student_id.in_(mentees))
        .group_by(LeaveRequest.status)
    )).all()

    for status, n in leave_rows:
        counts[f"{ApprovalStatus(status).value}_leave_requests"] += n

    return counts


def stats_payload(stats: FacultyDashboardStats) -> Dict[str, Any]:
    """Wire shape of the cached row; approval_rate is derived, never stored."""
    payload = {field: getattr(stats, field) for field in COUNTER_FIELDS}
    total_approved = stats.total_approved
    total_decided = total_approved + stats.rejected_approvals
    payload.update(
        total_approved=total_approved,
        total_approvals=total_decided,
        approval_rate=percentage(total_approved, total_decided),
        version=stats.version,
        last_updated=stats.last_updated.isoformat() if stats.last_updated else None,
    )
    return payload


def _is_fresh(stats: Optional[FacultyDashboardStats], now: datetime) -> bool:
    if stats is None or stats.dirty or stats.last_updated is None:
        return False
    if stats.total_students <= 0:
        return False
    return now - stats.last_updated < timedelta(seconds=settings.DASHBOARD_CACHE_TTL_SECONDS)


async def get_faculty_stats(
    session: AsyncSession,
    faculty_id: UUID,
    now: Optional[datetime] = None,
) -> FacultyDashboardStats:
    now = now or utcnow()

    stats = await session.get(FacultyDashboardStats, faculty_id)
    if _is_fresh(stats, now):
        return stats

    counts = await compute_faculty_stats(session, faculty_id)

    if stats is None:
        stats = FacultyDashboardStats(faculty_id=faculty_id)

    for field, value in counts.items():
        setattr(stats, field, value)
    stats.dirty = False
    stats.version = (stats.version or 0) + 1
    stats.last_updated = now

    session.add(stats)
    await session.commit()
    await session.refresh(stats)

    logger.debug(f"Recomputed dashboard stats for faculty {faculty_id} (v{stats.version})")
    return stats


async def mark_dirty(session: AsyncSession, faculty_id: Optional[UUID]) -> bool:
    """Flag the cached row stale; the caller commits."""
    if faculty_id is None:
        return False
    result = await session.execute(
        update(FacultyDashboardStats)
        .where(FacultyDashboardStats.faculty_id == faculty_id)
        .values(dirty=True, version=FacultyDashboardStats.version + 1)
    )
    return result.rowcount > 0


async def invalidate_stats(session: AsyncSession, faculty_id: Optional[UUID]) -> bool:
    """mark_dirty in its own transaction, for callers whose own write just failed."""
    try:
        flagged = await mark_dirty(session, faculty_id)
        await session.commit()
        return flagged
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Could not invalidate dashboard stats for faculty {faculty_id}: {e}")
        return False


async def adjust_counters(session: AsyncSession, faculty_id: UUID, deltas: Dict[str, int]) -> bool:
    """
    Apply `col = col + n` to the cached row in one UPDATE; the caller commits.
    A faculty without a cached row is left alone, the next read computes it.
    """
    unknown = set(deltas) - set(COUNTER_FIELDS)
    if unknown:
        raise ValueError(f"Unknown dashboard counters: {sorted(unknown)}")

    values = {
        field: getattr(FacultyDashboardStats, field) + delta
        for field, delta in deltas.items()
    }
    values["version"] = FacultyDashboardStats.version + 1

    result = await session.execute(
        update(FacultyDashboardStats)
        .where(FacultyDashboardStats.faculty_id == faculty_id)
        .values(**values)
    )
    return result.rowcount > 0


# ----------------------------------------------------------------
# STUDENT COUNTS
# ----------------------------------------------------------------
async def student_dashboard_counts(session: AsyncSession, student_id: UUID) -> Dict[str, Any]:
    rows = (await session.execute(
        select(Achievement.kind, Achievement.verification_status, func.count())
        .where(Achievement.student_id == student_id)
        .group_by(Achievement.kind, Achievement.verification_status)
    )).all()

    by_kind = {k.value: {"approved": 0, "pending": 0, "rejected": 0} for k in AchievementKind}
    for kind, status, n in rows:
        bucket = by_kind[AchievementKind(kind).value]
        if status in VERIFIED_STATUSES:
            bucket["approved"] += n
        elif status == VerificationStatus.Rejected.value:
            bucket["rejected"] += n
        else:
            bucket["pending"] += n

    return {
        "by_kind": by_kind,
        "approved": sum(b["approved"] for b in by_kind.values()),
        "pending": sum(b["pending"] for b in by_kind.values()),
        "rejected": sum(b["rejected"] for b in by_kind.values()),
    }


# ----------------------------------------------------------------
# ATTENDANCE
# ----------------------------------------------------------------
def _present_sum():
    return func.sum(case((AttendanceEntry.present.is_(True), 1), else_=0))


async def student_attendance(session: AsyncSession, student_id: UUID) -> Dict[str, int]:
    present, total = (await session.execute(
        select(_present_sum(), func.count()).where(AttendanceEntry.student_id == student_id)
    )).one()
    present = present or 0
    return {"present": present, "total": total, "percentage": attendance_percentage(present, total)}


async def _per_student_attendance(session: AsyncSession, student_ids) -> Dict[UUID, tuple]:
    rows = (await session.execute(
        select(AttendanceEntry.student_id, _present_sum(), func.count())
        .where(AttendanceEntry.student_id.in_(student_ids))
        .group_by(AttendanceEntry.student_id)
    )).all()
    return {sid: (present or 0, total) for sid, present, total in rows}


async def record_attendance(
    session: AsyncSession,
    faculty_id: UUID,
    entries: Iterable[Dict[str, Any]],
) -> int:
    """
    Upsert attendance marks keyed by (student, date, period).
    Only the faculty's own mentees can be marked.
    """
    entries = list(entries)
    if not entries:
        return 0

    student_ids = {UUID(str(e["student_id"])) for e in entries}
    owned = set((await session.execute(
        select(Student.id).where(Student.id.in_(student_ids), Student.mentor_id == faculty_id)
    )).scalars().all())

    missing = student_ids - owned
    if missing:
        raise NotFoundError("Student not found", student_ids=[str(m) for m in missing])

    written = 0
    for entry in entries:
        period = int(entry["period"])
        if not 1 <= period <= 8:
            raise ValidationFailed("period must be between 1 and 8", period=period)

        student_id = UUID(str(entry["student_id"]))
        day: date = entry["date"]
        present = bool(entry["present"])

        result = await session.execute(
            update(AttendanceEntry)
            .where(
                AttendanceEntry.student_id == student_id,
                AttendanceEntry.date == day,
                AttendanceEntry.period == period,
            )
            .values(present=present, marked_by=faculty_id)
        )
        if result.rowcount == 0:
            session.add(AttendanceEntry(
                student_id=student_id, date=day, period=period,
                present=present, marked_by=faculty_id,
            ))
        written += 1

    await session.commit()
    return written


# ----------------------------------------------------------------
# HOD
# ----------------------------------------------------------------
async def department_performance(
    session: AsyncSession,
    college_id: str,
    dept: Optional[str] = None,
) -> List[Dict[str, Any]]:
    query = select(Student.id, Student.dept).where(Student.college_id == college_id)
    if dept:
        query = query.where(Student.dept == dept)
    students = (await session.execute(query)).all()
    if not students:
        return []

    ids = [sid for sid, _ in students]
    attendance = await _per_student_attendance(session, ids)

    verified = (await session.execute(
        select(Achievement.student_id, Achievement.kind, func.count())
        .where(
            Achievement.student_id.in_(ids),
            Achievement.verification_status.in_(VERIFIED_STATUSES),
            Achievement.kind.in_([
                AchievementKind.Certificate, AchievementKind.Project, AchievementKind.Internship
            ]),
        )
        .group_by(Achievement.student_id, Achievement.kind)
    )).all()
    verified_by_student: Dict[UUID, Dict[str, int]] = {}
    for sid, kind, n in verified:
        verified_by_student.setdefault(sid, {})[AchievementKind(kind).value] = n

    groups: Dict[str, Dict[str, Any]] = {}
    for sid, student_dept in students:
        g = groups.setdefault(student_dept or "N/A", {
            "students": 0, "attendance_sum": 0.0,
            "certificate": 0, "project": 0, "internship": 0,
        })
        g["students"] += 1
        present, total = attendance.get(sid, (0, 0))
        # Students without any marks count as 0%
        g["attendance_sum"] += (present / total * 100) if total else 0.0
        for kind in ("certificate", "project", "internship"):
            g[kind] += verified_by_student.get(sid, {}).get(kind, 0)

    result = []
    for name, g in groups.items():
        n = g["students"]
        avg_attendance = g["attendance_sum"] / n if n else 0.0
        per_student = max(n, 1)
        score = round_half_up(
            avg_attendance * 0.4
            + g["certificate"] / per_student * 20 * 0.3
            + g["project"] / per_student * 20 * 0.2
            + g["internship"] / per_student * 20 * 0.1
        )
        result.append({
            "department": name,
            "total_students": n,
            "avg_attendance": round_half_up(avg_attendance),
            "total_certifications": g["certificate"],
            "total_projects": g["project"],
            "total_internships": g["internship"],
            "performance_score": score,
        })

    result.sort(key=lambda d: d["total_students"], reverse=True)
    return result


def attendance_band(pct: float) -> str:
    if pct >= 90:
        return "excellent"
    if pct >= 75:
        return "good"
    if pct >= 60:
        return "average"
    return "poor"


async def section_attendance(
    session: AsyncSession,
    college_id: str,
    dept: str,
    semester: Optional[int] = None,
    section: Optional[str] = None,
) -> List[Dict[str, Any]]:
    query = select(Student.id, Student.section).where(
        Student.college_id == college_id, Student.dept == dept
    )
    if semester is not None:
        query = query.where(Student.semester == semester)
    if section:
        query = query.where(Student.section == section.strip())
    students = (await session.execute(query)).all()
    if not students:
        return []

    attendance = await _per_student_attendance(session, [sid for sid, _ in students])

    sections: Dict[str, Dict[str, Any]] = {}
    for sid, student_section in students:
        s = sections.setdefault(student_section or "N/A", {
            "total_students": 0, "total_classes": 0, "total_present": 0,
            "ranges": {"excellent": 0, "good": 0, "average": 0, "poor": 0},
        })
        present, total = attendance.get(sid, (0, 0))
        s["total_students"] += 1
        s["total_classes"] += total
        s["total_present"] += present
        s["ranges"][attendance_band(present / total * 100 if total else 0)] += 1

    return [
        {
            "section": name,
            "total_students": s["total_students"],
            "avg_attendance": attendance_percentage(s["total_present"], s["total_classes"]),
            "total_classes": s["total_classes"],
            "total_present": s["total_present"],
            "attendance_ranges": s["ranges"],
        }
        for name, s in sorted(sections.items())
    ]
