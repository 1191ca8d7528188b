# app/models/pending_approval.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import Text, DateTime, ForeignKey, Uuid
from uuid import uuid4
from datetime import datetime
from typing import Optional
import uuid

from app.core.helpers import utcnow
from app.models.enums import AchievementKind, ApprovalStatus, db_enum


class PendingApproval(SQLModel, table=True):
    """
    Audit-style mirror of each submission. Written next to the embedded
    verification on every decision so older clients keep reading it.
    """
    __tablename__ = "pending_approvals"

    id: uuid.UUID = Field(
        default_factory=uuid4,
        sa_column=Column(Uuid(as_uuid=True), primary_key=True)
    )

    student_id: uuid.UUID = Field(
        sa_column=Column(Uuid(as_uuid=True), ForeignKey("students.id"), nullable=False, index=True)
    )

    kind: AchievementKind = Field(
        sa_column=Column(db_enum(AchievementKind, "achievement_kind"), nullable=False)
    )

    description: str = Field(sa_column=Column(Text, nullable=False))

    status: ApprovalStatus = Field(
        default=ApprovalStatus.Pending,
        sa_column=Column(db_enum(ApprovalStatus, "approval_status"), nullable=False)
    )

    requested_on: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False)
    )
    reviewed_on: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime, nullable=True)
    )
    reviewed_by: Optional[uuid.UUID] = Field(
        default=None, sa_column=Column(Uuid(as_uuid=True), nullable=True)
    )
    message: Optional[str] = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )
