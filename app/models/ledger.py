# app/models/ledger.py

"""
Append-only decision ledgers owned by a faculty member.

Rows are inserted once per decision and never updated; dashboards and the
recent-activity feed read them instead of re-scanning every student.
"""

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import Text, Integer, Date, DateTime, ForeignKey, Uuid
from uuid import uuid4
from datetime import date, datetime
from typing import Optional
import uuid

from app.core.helpers import utcnow
from app.models.enums import AchievementKind, ApprovalStatus, LeaveType, LeavePriority, db_enum


class ApprovalLedgerEntry(SQLModel, table=True):
    __tablename__ = "approval_ledger"

    id: uuid.UUID = Field(
        default_factory=uuid4,
        sa_column=Column(Uuid(as_uuid=True), primary_key=True)
    )

    faculty_id: uuid.UUID = Field(
        sa_column=Column(Uuid(as_uuid=True), ForeignKey("faculty.id"), nullable=False, index=True)
    )
    student_id: uuid.UUID = Field(
        sa_column=Column(Uuid(as_uuid=True), ForeignKey("students.id"), nullable=False)
    )

    kind: AchievementKind = Field(
        sa_column=Column(db_enum(AchievementKind, "achievement_kind"), nullable=False)
    )
    description: str = Field(sa_column=Column(Text, nullable=False))

    status: ApprovalStatus = Field(
        sa_column=Column(db_enum(ApprovalStatus, "approval_status"), nullable=False)
    )

    approved_on: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False)
    )

    image_url: Optional[str] = Field(default=None)
    message: Optional[str] = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )


class LeaveLedgerEntry(SQLModel, table=True):
    __tablename__ = "leave_approval_ledger"

    id: uuid.UUID = Field(
        default_factory=uuid4,
        sa_column=Column(Uuid(as_uuid=True), primary_key=True)
    )

    faculty_id: uuid.UUID = Field(
        sa_column=Column(Uuid(as_uuid=True), ForeignKey("faculty.id"), nullable=False, index=True)
    )
    student_id: uuid.UUID = Field(
        sa_column=Column(Uuid(as_uuid=True), ForeignKey("students.id"), nullable=False)
    )
    leave_request_id: uuid.UUID = Field(
        sa_column=Column(Uuid(as_uuid=True), ForeignKey("leave_requests.id"), nullable=False)
    )

    leave_type: LeaveType = Field(
        sa_column=Column(db_enum(LeaveType, "leave_type"), nullable=False)
    )
    start_date: date = Field(sa_column=Column(Date, nullable=False))
    end_date: date = Field(sa_column=Column(Date, nullable=False))
    total_days: int = Field(sa_column=Column(Integer, nullable=False))
    reason: str = Field(sa_column=Column(Text, nullable=False))

    priority: LeavePriority = Field(
        sa_column=Column(db_enum(LeavePriority, "leave_priority"), nullable=False)
    )
    status: ApprovalStatus = Field(
        sa_column=Column(db_enum(ApprovalStatus, "approval_status"), nullable=False)
    )

    approved_on: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False)
    )
    approval_remarks: Optional[str] = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )
