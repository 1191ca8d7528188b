# app/models/announcement.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import String, Text, JSON, Uuid
from uuid import uuid4
from datetime import datetime
from typing import List, Optional
import uuid

from app.core.helpers import utcnow


class Announcement(SQLModel, table=True):
    __tablename__ = "announcements"

    id: uuid.UUID = Field(
        default_factory=uuid4,
        sa_column=Column(Uuid(as_uuid=True), primary_key=True)
    )

    college_id: str = Field(sa_column=Column(String, nullable=False, index=True))

    title: str = Field(sa_column=Column(String, nullable=False))
    body: str = Field(sa_column=Column(Text, nullable=False))

    # Explicit role list, e.g. ["faculty", "student"]
    audience: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    created_by: str = Field(nullable=False)
    created_by_role: str = Field(nullable=False)

    expires_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
