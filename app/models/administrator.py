# app/models/administrator.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import String, Uuid
from uuid import uuid4
from datetime import datetime
from typing import Optional
import uuid

from app.core.helpers import utcnow
from app.models.enums import UserRole, db_enum


class Administrator(SQLModel, table=True):
    """HOD and college admin accounts."""
    __tablename__ = "administrators"

    id: uuid.UUID = Field(
        default_factory=uuid4,
        sa_column=Column(Uuid(as_uuid=True), primary_key=True)
    )

    admin_code: str = Field(
        sa_column=Column(String, nullable=False, unique=True)
    )

    fullname: str = Field(nullable=False)

    email: str = Field(
        sa_column=Column(String, nullable=False, unique=True, index=True)
    )

    password_hash: str = Field(nullable=False)

    college_id: str = Field(
        sa_column=Column(String, nullable=False, index=True)
    )
    dept: Optional[str] = Field(default=None)

    # Only hod / admin are stored here
    role: UserRole = Field(
        default=UserRole.HOD,
        sa_column=Column(db_enum(UserRole, "admin_role"), nullable=False)
    )

    created_at: datetime = Field(default_factory=utcnow)
