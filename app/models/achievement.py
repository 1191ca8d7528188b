# app/models/achievement.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import String, Text, Integer, Boolean, DateTime, ForeignKey, JSON, Uuid, Index
from uuid import uuid4
from datetime import datetime
from typing import Optional, Dict, Any
import uuid

from app.core.constants import LEGACY_STATUS_MAP
from app.core.helpers import utcnow
from app.models.enums import AchievementKind, VerificationStatus, db_enum


class Achievement(SQLModel, table=True):
    """
    One certificate / workshop / club / project / internship / other item
    owned by a student, with its verification embedded as columns.
    """
    __tablename__ = "achievements"
    __table_args__ = (
        Index("ix_achievements_student_kind", "student_id", "kind"),
    )

    id: uuid.UUID = Field(
        default_factory=uuid4,
        sa_column=Column(Uuid(as_uuid=True), primary_key=True)
    )

    student_id: uuid.UUID = Field(
        sa_column=Column(Uuid(as_uuid=True), ForeignKey("students.id"), nullable=False)
    )

    kind: AchievementKind = Field(
        sa_column=Column(db_enum(AchievementKind, "achievement_kind"), nullable=False)
    )

    # Ordinal within (student, kind); only addressable when is_legacy is set
    position: int = Field(sa_column=Column(Integer, nullable=False))
    is_legacy: bool = Field(
        default=False, sa_column=Column(Boolean, nullable=False, default=False)
    )

    title: str = Field(sa_column=Column(String, nullable=False))

    # Text the pending-approval mirror and the ledger are matched on
    description: str = Field(sa_column=Column(Text, nullable=False))

    # Kind specific fields (issuer, organizer, role, technologies, ...)
    details: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))

    image_url: Optional[str] = Field(default=None)

    # Plain string so imported rows carrying "approved" still load
    verification_status: str = Field(
        default=VerificationStatus.Pending.value,
        sa_column=Column(String(16), nullable=False, index=True)
    )
    verified_by: Optional[uuid.UUID] = Field(
        default=None, sa_column=Column(Uuid(as_uuid=True), nullable=True)
    )
    verified_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime, nullable=True)
    )
    verification_remarks: Optional[str] = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )

    created_at: datetime = Field(default_factory=utcnow)

    @property
    def status(self) -> VerificationStatus:
        value = LEGACY_STATUS_MAP.get(self.verification_status, self.verification_status)
        return VerificationStatus(value)
