# app/models/dead_letter.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import String, Text, Integer, DateTime, JSON, Uuid
from uuid import uuid4
from datetime import datetime
from typing import Dict, Any
import uuid

from app.core.helpers import utcnow


class DeadLetterJob(SQLModel, table=True):
    """Queue job abandoned after its last retry."""
    __tablename__ = "dead_letter_jobs"

    id: uuid.UUID = Field(
        default_factory=uuid4,
        sa_column=Column(Uuid(as_uuid=True), primary_key=True)
    )

    job_id: str = Field(sa_column=Column(String, nullable=False, index=True))
    job_name: str = Field(sa_column=Column(String, nullable=False))

    # Never contains the plaintext password
    payload: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))

    error: str = Field(sa_column=Column(Text, nullable=False))
    attempts: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))

    failed_at: datetime = Field(
        default_factory=utcnow, sa_column=Column(DateTime, nullable=False)
    )
