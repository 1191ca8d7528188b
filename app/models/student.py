# app/models/student.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import String, Integer, ForeignKey, Uuid
from uuid import uuid4
from datetime import date, datetime
from typing import Optional
import uuid

from app.core.helpers import utcnow


class Student(SQLModel, table=True):
    __tablename__ = "students"

    id: uuid.UUID = Field(
        default_factory=uuid4,
        sa_column=Column(Uuid(as_uuid=True), primary_key=True)
    )

    # Domain id printed on the ID card (e.g. "CSE21A014")
    student_code: str = Field(
        sa_column=Column(String, nullable=False, unique=True)
    )

    fullname: str = Field(
        sa_column=Column(String, nullable=False)
    )

    username: str = Field(
        sa_column=Column(String, nullable=False, unique=True)
    )

    email: str = Field(
        sa_column=Column(String, nullable=False, unique=True, index=True)
    )

    password_hash: str = Field(nullable=False)

    mobile: Optional[str] = Field(
        default=None, sa_column=Column(String, nullable=True)
    )

    college_id: str = Field(
        sa_column=Column(String, nullable=False, index=True)
    )
    dept: Optional[str] = Field(
        default=None, sa_column=Column(String, nullable=True)
    )
    section: Optional[str] = Field(
        default=None, sa_column=Column(String, nullable=True)
    )
    semester: Optional[int] = Field(
        default=None, sa_column=Column(Integer, nullable=True)
    )

    # Assigned mentor; the only faculty allowed to decide this student's items
    mentor_id: Optional[uuid.UUID] = Field(
        default=None,
        sa_column=Column(Uuid(as_uuid=True), ForeignKey("faculty.id"), nullable=True, index=True)
    )

    date_of_join: Optional[date] = Field(default=None)

    created_at: datetime = Field(default_factory=utcnow)
