# app/models/attendance.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import Integer, Boolean, Date, ForeignKey, UniqueConstraint, CheckConstraint, Uuid
from uuid import uuid4
from datetime import date as date_type
from typing import Optional
import uuid


class AttendanceEntry(SQLModel, table=True):
    __tablename__ = "attendance_entries"
    __table_args__ = (
        UniqueConstraint("student_id", "date", "period", name="uq_attendance_student_date_period"),
        CheckConstraint("period >= 1 AND period <= 8", name="ck_attendance_period_range"),
    )

    id: uuid.UUID = Field(
        default_factory=uuid4,
        sa_column=Column(Uuid(as_uuid=True), primary_key=True)
    )

    student_id: uuid.UUID = Field(
        sa_column=Column(Uuid(as_uuid=True), ForeignKey("students.id"), nullable=False, index=True)
    )

    date: date_type = Field(sa_column=Column(Date, nullable=False))
    period: int = Field(sa_column=Column(Integer, nullable=False))
    present: bool = Field(sa_column=Column(Boolean, nullable=False))

    marked_by: Optional[uuid.UUID] = Field(
        default=None, sa_column=Column(Uuid(as_uuid=True), ForeignKey("faculty.id"), nullable=True)
    )
