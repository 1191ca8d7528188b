import uuid
from datetime import timedelta

import pytest
from sqlmodel import select
from sqlalchemy.exc import OperationalError

from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationFailed
from app.core.helpers import utcnow
from app.models.dashboard import FacultyDashboardStats
from app.models.enums import ApprovalStatus
from app.models.ledger import LeaveLedgerEntry
from app.services import dashboard_service, leave_service


def leave_payload(start, days=1, **overrides):
    payload = {
        "leave_type": "medical",
        "start_date": start.isoformat(),
        "end_date": (start + timedelta(days=days - 1)).isoformat(),
        "reason": "Fever",
    }
    payload.update(overrides)
    return payload


async def cached_stats(session, faculty_id):
    return (await session.execute(
        select(FacultyDashboardStats)
        .where(FacultyDashboardStats.faculty_id == faculty_id)
        .execution_options(populate_existing=True)
    )).scalar_one()


@pytest.mark.asyncio
async def test_submit_computes_total_days(db_session, make_faculty, make_student):
    student = await make_student(await make_faculty())
    today = utcnow().date()

    request = await leave_service.submit_leave_request(
        db_session, student.id, leave_payload(today + timedelta(days=1), days=3), today=today
    )

    assert request.total_days == 3
    assert request.status == ApprovalStatus.Pending
    assert request.priority.value == "medium"


@pytest.mark.asyncio
async def test_submit_same_day_leave_is_one_day(db_session, make_faculty, make_student):
    student = await make_student(await make_faculty())
    today = utcnow().date()

    request = await leave_service.submit_leave_request(db_session, student.id, leave_payload(today), today=today)
    assert request.total_days == 1


@pytest.mark.asyncio
async def test_submit_rejects_bad_dates(db_session, make_faculty, make_student):
    student = await make_student(await make_faculty())
    today = utcnow().date()

    with pytest.raises(ValidationFailed):
        await leave_service.submit_leave_request(
            db_session, student.id, leave_payload(today - timedelta(days=1)), today=today
        )
    with pytest.raises(ValidationFailed):
        await leave_service.submit_leave_request(
            db_session, student.id,
            leave_payload(today, end_date=(today - timedelta(days=1)).isoformat()),
            today=today,
        )
    with pytest.raises(ValidationFailed):
        await leave_service.submit_leave_request(
            db_session, student.id, leave_payload(today, leave_type="vacation"), today=today
        )
    with pytest.raises(ValidationFailed):
        await leave_service.submit_leave_request(
            db_session, student.id, leave_payload(today, reason="   "), today=today
        )


@pytest.mark.asyncio
async def test_leave_rejection_end_to_end(db_session, make_faculty, make_student):
    mentor = await make_faculty(fullname="Dr. Rao")
    student = await make_student(mentor)
    today = utcnow().date()

    request = await leave_service.submit_leave_request(
        db_session, student.id, leave_payload(today + timedelta(days=1), days=3), today=today
    )
    assert request.total_days == 3

    before = await dashboard_service.get_faculty_stats(db_session, mentor.id)
    pending_before = before.pending_leave_requests
    rejected_before = before.rejected_leave_requests

    result = await leave_service.decide_leave_request(
        db_session, mentor.id, student.id, request.id, "rejected", "insufficient notice"
    )

    assert result.status == ApprovalStatus.Rejected
    assert result.leave_request.status == ApprovalStatus.Rejected
    assert result.leave_request.reviewed_by == mentor.id
    assert result.leave_request.reviewed_by_name == "Dr. Rao"
    assert result.leave_request.approval_remarks == "insufficient notice"

    stats = await cached_stats(db_session, mentor.id)
    assert stats.rejected_leave_requests == rejected_before + 1
    assert stats.pending_leave_requests == pending_before - 1

    entry = (await db_session.execute(
        select(LeaveLedgerEntry).where(LeaveLedgerEntry.leave_request_id == request.id)
    )).scalar_one()
    assert entry.status == ApprovalStatus.Rejected
    assert entry.total_days == 3


@pytest.mark.asyncio
async def test_leave_counters_are_conserved(db_session, make_faculty, make_student):
    mentor = await make_faculty()
    students = [await make_student(mentor) for _ in range(3)]
    today = utcnow().date()

    requests = []
    for i in range(6):
        student = students[i % 3]
        requests.append(await leave_service.submit_leave_request(
            db_session, student.id, leave_payload(today + timedelta(days=i + 1)), today=today
        ))

    before = await dashboard_service.get_faculty_stats(db_session, mentor.id)
    pending = before.pending_leave_requests
    decided = before.approved_leave_requests + before.rejected_leave_requests
    assert pending == 6

    decisions = ["approved", "rejected", "approved", "approved", "rejected"]
    for request, decision in zip(requests, decisions):
        await leave_service.decide_leave_request(db_session, mentor.id, request.student_id, request.id, decision)

    stats = await cached_stats(db_session, mentor.id)
    n = len(decisions)
    assert stats.pending_leave_requests == pending - n
    assert stats.approved_leave_requests + stats.rejected_leave_requests == decided + n
    assert stats.approved_leave_requests == 3

    # A recompute agrees with the counters adjusted in place
    fresh = await dashboard_service.compute_faculty_stats(db_session, mentor.id)
    assert fresh["pending_leave_requests"] == stats.pending_leave_requests
    assert fresh["rejected_leave_requests"] == stats.rejected_leave_requests


@pytest.mark.asyncio
async def test_leave_decided_twice_is_conflict(db_session, make_faculty, make_student):
    mentor = await make_faculty()
    student = await make_student(mentor)
    today = utcnow().date()
    request = await leave_service.submit_leave_request(db_session, student.id, leave_payload(today), today=today)
    # A refused decision rolls the session back and expires loaded rows
    mentor_id, student_id, request_id = mentor.id, student.id, request.id

    await leave_service.decide_leave_request(db_session, mentor_id, student_id, request_id, "approved")
    with pytest.raises(ConflictError):
        await leave_service.decide_leave_request(db_session, mentor_id, student_id, request_id, "rejected")

    entries = (await db_session.execute(
        select(LeaveLedgerEntry).where(LeaveLedgerEntry.leave_request_id == request_id)
    )).scalars().all()
    assert len(entries) == 1


@pytest.mark.asyncio
async def test_leave_ledger_failure_keeps_decision_and_flags_stats(
    db_session, make_faculty, make_student, monkeypatch
):
    mentor = await make_faculty()
    student = await make_student(mentor)
    today = utcnow().date()
    request = await leave_service.submit_leave_request(db_session, student.id, leave_payload(today), today=today)
    mentor_id, student_id, request_id = mentor.id, student.id, request.id
    await dashboard_service.get_faculty_stats(db_session, mentor_id)

    async def broken_adjust(session, faculty_id, deltas):
        raise OperationalError("UPDATE faculty_dashboard_stats", {}, Exception("database went away"))

    monkeypatch.setattr(dashboard_service, "adjust_counters", broken_adjust)

    result = await leave_service.decide_leave_request(db_session, mentor_id, student_id, request_id, "rejected")

    assert result.ledger_written is False
    assert result.status == ApprovalStatus.Rejected
    stats = await cached_stats(db_session, mentor_id)
    assert stats.dirty is True

    entries = (await db_session.execute(
        select(LeaveLedgerEntry).where(LeaveLedgerEntry.leave_request_id == request_id)
    )).scalars().all()
    assert entries == []


@pytest.mark.asyncio
async def test_leave_decision_scoping(db_session, make_faculty, make_student):
    mentor = await make_faculty()
    other = await make_faculty()
    student = await make_student(mentor)
    today = utcnow().date()
    request = await leave_service.submit_leave_request(db_session, student.id, leave_payload(today), today=today)
    mentor_id, other_id, student_id, request_id = mentor.id, other.id, student.id, request.id

    with pytest.raises(ForbiddenError):
        await leave_service.decide_leave_request(db_session, other_id, student_id, request_id, "approved")
    with pytest.raises(NotFoundError):
        await leave_service.decide_leave_request(db_session, mentor_id, student_id, uuid.uuid4(), "approved")
    with pytest.raises(ValidationFailed):
        await leave_service.decide_leave_request(db_session, mentor_id, student_id, request_id, "pending")


@pytest.mark.asyncio
async def test_list_leave_requests_by_status(db_session, make_faculty, make_student):
    mentor = await make_faculty()
    student = await make_student(mentor)
    today = utcnow().date()
    first = await leave_service.submit_leave_request(db_session, student.id, leave_payload(today), today=today)
    await leave_service.submit_leave_request(
        db_session, student.id, leave_payload(today + timedelta(days=2)), today=today
    )
    await leave_service.decide_leave_request(db_session, mentor.id, student.id, first.id, "approved")

    assert len(await leave_service.list_leave_requests(db_session, mentor.id)) == 2
    assert len(await leave_service.list_leave_requests(db_session, mentor.id, "pending")) == 1
    assert len(await leave_service.list_leave_requests(db_session, mentor.id, "all")) == 2
    with pytest.raises(ValidationFailed):
        await leave_service.list_leave_requests(db_session, mentor.id, "archived")
