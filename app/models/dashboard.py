# app/models/dashboard.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import Integer, Boolean, DateTime, ForeignKey, Uuid
from datetime import datetime
from typing import Optional
import uuid


class FacultyDashboardStats(SQLModel, table=True):
    """
    Cached home-screen counters, one row per faculty.

    Decisions adjust the counters in place with `col = col + n`; submissions
    only flip `dirty` so the next read recomputes. `version` increases on every
    write.
    """
    __tablename__ = "faculty_dashboard_stats"

    faculty_id: uuid.UUID = Field(
        sa_column=Column(Uuid(as_uuid=True), ForeignKey("faculty.id"), primary_key=True)
    )

    total_students: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    pending_approvals: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))

    approved_certifications: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    approved_workshops: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    approved_clubs: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    approved_projects: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    approved_internships: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    approved_others: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    rejected_approvals: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))

    pending_leave_requests: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    approved_leave_requests: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    rejected_leave_requests: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))

    dirty: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    version: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    last_updated: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime, nullable=True)
    )

    @property
    def total_approved(self) -> int:
        return (
            self.approved_certifications + self.approved_workshops + self.approved_clubs
            + self.approved_projects + self.approved_internships + self.approved_others
        )
