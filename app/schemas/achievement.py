# app/schemas/achievement.py
from pydantic import BaseModel, StringConstraints
from typing import Optional, List, Dict, Any, Union, Annotated
from uuid import UUID
from datetime import date, datetime

from app.core.constants import MAX_REMARKS_LENGTH
from app.models.enums import AchievementKind


# Required text field: surrounding whitespace stripped, blank rejected
RequiredText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

# Free-text reviewer remarks
Remarks = Annotated[str, StringConstraints(strip_whitespace=True, max_length=MAX_REMARKS_LENGTH)]


# ------------------------------------------------------------
# SUBMISSION PAYLOADS (one per kind)
# ------------------------------------------------------------
class _AchievementPayload(BaseModel):
    image_url: Optional[str] = None

    class Config:
        extra = "allow"

    def description(self) -> str:
        return self.title  # type: ignore[attr-defined]


class CertificatePayload(_AchievementPayload):
    title: RequiredText
    issuer: RequiredText
    issue_date: Optional[date] = None


class WorkshopPayload(_AchievementPayload):
    title: RequiredText
    organizer: RequiredText
    held_on: Optional[date] = None


class ClubPayload(_AchievementPayload):
    name: RequiredText
    position: Optional[str] = None

    def description(self) -> str:
        return self.name


class ProjectPayload(_AchievementPayload):
    title: RequiredText
    technologies: Optional[List[str]] = None
    link: Optional[str] = None


class InternshipPayload(_AchievementPayload):
    organization: RequiredText
    role: RequiredText
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    def description(self) -> str:
        return f"{self.organization} - {self.role}"


class OtherPayload(_AchievementPayload):
    title: RequiredText


PAYLOAD_BY_KIND = {
    AchievementKind.Certificate: CertificatePayload,
    AchievementKind.Workshop: WorkshopPayload,
    AchievementKind.Club: ClubPayload,
    AchievementKind.Project: ProjectPayload,
    AchievementKind.Internship: InternshipPayload,
    AchievementKind.Other: OtherPayload,
}


# ------------------------------------------------------------
# REQUESTS
# ------------------------------------------------------------
class AchievementSubmit(BaseModel):
    kind: str
    payload: Dict[str, Any]


class DecisionRequest(BaseModel):
    kind: str
    # Item id, or the position of a legacy item
    ref: Union[UUID, int, str]
    decision: str
    remarks: Optional[Remarks] = None


class BulkDecisionRequest(BaseModel):
    kind: str
    refs: List[Union[UUID, int, str]]
    decision: str
    remarks: Optional[Remarks] = None


# ------------------------------------------------------------
# RESPONSES
# ------------------------------------------------------------
class AchievementRead(BaseModel):
    id: UUID
    student_id: UUID
    kind: AchievementKind
    position: int
    title: str
    description: str
    details: Dict[str, Any] = {}
    image_url: Optional[str] = None
    verification_status: str
    verified_by: Optional[UUID] = None
    verified_at: Optional[datetime] = None
    verification_remarks: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
        extra = "ignore"


class DecisionResponse(BaseModel):
    item_id: UUID
    student_id: UUID
    kind: AchievementKind
    description: str
    status: str
    remarks: Optional[str] = None
    decided_at: datetime


class BulkDecisionResponse(BaseModel):
    requested: int
    processed: int
    skipped: int


class BackfillResponse(BaseModel):
    updated: int
