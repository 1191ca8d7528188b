# app/schemas/announcement.py
from pydantic import BaseModel, StringConstraints
from typing import Optional, List, Union, Annotated
from uuid import UUID
from datetime import datetime


class AnnouncementCreate(BaseModel):
    title: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
    body: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
    # "student", "faculty", "hod", "both", "all", or a list of those
    audience: Optional[Union[str, List[str]]] = None
    expires_at: Optional[datetime] = None


class AnnouncementRead(BaseModel):
    id: UUID
    college_id: str
    title: str
    body: str
    audience: List[str]
    created_by: str
    created_by_role: str
    expires_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
        extra = "ignore"
