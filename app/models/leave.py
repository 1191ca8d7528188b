# app/models/leave.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import Text, Integer, Boolean, Date, DateTime, ForeignKey, JSON, Uuid
from uuid import uuid4
from datetime import date, datetime
from typing import Optional, Dict, Any
import uuid

from app.core.helpers import utcnow
from app.models.enums import ApprovalStatus, LeaveType, LeavePriority, db_enum


class LeaveRequest(SQLModel, table=True):
    __tablename__ = "leave_requests"

    id: uuid.UUID = Field(
        default_factory=uuid4,
        sa_column=Column(Uuid(as_uuid=True), primary_key=True)
    )

    student_id: uuid.UUID = Field(
        sa_column=Column(Uuid(as_uuid=True), ForeignKey("students.id"), nullable=False, index=True)
    )

    leave_type: LeaveType = Field(
        sa_column=Column(db_enum(LeaveType, "leave_type"), nullable=False)
    )

    start_date: date = Field(sa_column=Column(Date, nullable=False))
    end_date: date = Field(sa_column=Column(Date, nullable=False))
    total_days: int = Field(sa_column=Column(Integer, nullable=False))

    reason: str = Field(sa_column=Column(Text, nullable=False))

    priority: LeavePriority = Field(
        default=LeavePriority.Medium,
        sa_column=Column(db_enum(LeavePriority, "leave_priority"), nullable=False)
    )

    # {"name": ..., "phone": ..., "relation": ...}
    emergency_contact: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))

    alternate_assessment_required: bool = Field(
        default=False, sa_column=Column(Boolean, nullable=False, default=False)
    )

    status: ApprovalStatus = Field(
        default=ApprovalStatus.Pending,
        sa_column=Column(db_enum(ApprovalStatus, "approval_status"), nullable=False, index=True)
    )

    submitted_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False)
    )
    reviewed_by: Optional[uuid.UUID] = Field(
        default=None, sa_column=Column(Uuid(as_uuid=True), nullable=True)
    )
    reviewed_by_name: Optional[str] = Field(default=None)
    reviewed_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime, nullable=True)
    )
    approval_remarks: Optional[str] = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )
