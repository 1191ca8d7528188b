# app/schemas/leave.py
from pydantic import BaseModel, StringConstraints
from typing import Optional, Dict, Any, Annotated
from uuid import UUID
from datetime import date, datetime

from app.models.enums import ApprovalStatus, LeaveType, LeavePriority
from app.schemas.achievement import Remarks


class EmergencyContact(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    relation: Optional[str] = None


class LeaveRequestCreate(BaseModel):
    leave_type: LeaveType
    start_date: date
    end_date: date
    reason: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
    priority: LeavePriority = LeavePriority.Medium
    emergency_contact: Optional[EmergencyContact] = None
    alternate_assessment_required: bool = False


class LeaveDecisionRequest(BaseModel):
    decision: str
    remarks: Optional[Remarks] = None


class LeaveRequestRead(BaseModel):
    id: UUID
    student_id: UUID
    leave_type: LeaveType
    start_date: date
    end_date: date
    total_days: int
    reason: str
    priority: LeavePriority
    emergency_contact: Optional[Dict[str, Any]] = None
    alternate_assessment_required: bool
    status: ApprovalStatus
    submitted_at: datetime
    reviewed_by: Optional[UUID] = None
    reviewed_by_name: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    approval_remarks: Optional[str] = None

    class Config:
        from_attributes = True
        extra = "ignore"
