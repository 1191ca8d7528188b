# app/models/faculty.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import String, Uuid
from uuid import uuid4
from datetime import date, datetime
from typing import Optional
import uuid

from app.core.helpers import utcnow


class Faculty(SQLModel, table=True):
    __tablename__ = "faculty"

    id: uuid.UUID = Field(
        default_factory=uuid4,
        sa_column=Column(Uuid(as_uuid=True), primary_key=True)
    )

    faculty_code: str = Field(
        sa_column=Column(String, nullable=False, unique=True)
    )

    fullname: str = Field(nullable=False)

    username: str = Field(
        sa_column=Column(String, nullable=False, unique=True)
    )

    email: str = Field(
        sa_column=Column(String, nullable=False, unique=True, index=True)
    )

    password_hash: str = Field(nullable=False)

    college_id: str = Field(
        sa_column=Column(String, nullable=False, index=True)
    )
    dept: Optional[str] = Field(default=None)
    designation: Optional[str] = Field(default=None)
    mobile: Optional[str] = Field(default=None)

    date_of_join: Optional[date] = Field(default=None)
    last_login: Optional[datetime] = Field(default=None)

    created_at: datetime = Field(default_factory=utcnow)
