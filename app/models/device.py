# app/models/device.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import String, Text, DateTime, UniqueConstraint, Uuid
from uuid import uuid4
from datetime import datetime
from typing import Optional
import uuid

from app.core.helpers import utcnow


class DeviceToken(SQLModel, table=True):
    """Push token of one device of one (user, role); the token is replaced in place."""
    __tablename__ = "device_tokens"
    __table_args__ = (
        UniqueConstraint("user_id", "role", "device_id", name="uq_device_tokens_user_role_device"),
    )

    id: uuid.UUID = Field(
        default_factory=uuid4,
        sa_column=Column(Uuid(as_uuid=True), primary_key=True)
    )

    user_id: str = Field(sa_column=Column(String, nullable=False, index=True))
    role: str = Field(sa_column=Column(String(16), nullable=False))
    device_id: str = Field(sa_column=Column(String, nullable=False))

    token: str = Field(sa_column=Column(Text, nullable=False))
    device_name: Optional[str] = Field(default=None)

    last_used: datetime = Field(
        default_factory=utcnow, sa_column=Column(DateTime, nullable=False)
    )
    created_at: datetime = Field(
        default_factory=utcnow, sa_column=Column(DateTime, nullable=False)
    )
