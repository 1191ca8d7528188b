# app/schemas/registration.py
from pydantic import BaseModel, EmailStr, field_validator, ValidationInfo
from typing import Optional
from datetime import date


class _Registration(BaseModel):
    fullname: str
    email: EmailStr
    college_id: str
    dept: Optional[str] = None
    mobile: Optional[str] = None

    password: str
    confirm_password: Optional[str] = None

    @field_validator("password")
    def password_length(cls, v):
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters")
        return v

    @field_validator("confirm_password")
    def passwords_match(cls, v, info: ValidationInfo):
        password = info.data.get("password")
        if v is None:
            return password
        if password and v != password:
            raise ValueError("Passwords do not match")
        return v


class StudentRegistration(_Registration):
    student_code: str
    username: str
    section: Optional[str] = None
    semester: Optional[int] = None
    mentor_code: Optional[str] = None
    date_of_join: Optional[date] = None


class FacultyRegistration(_Registration):
    faculty_code: str
    username: str
    designation: Optional[str] = None
    date_of_join: Optional[date] = None


class AdminRegistration(_Registration):
    admin_code: str
    role: str = "hod"

    @field_validator("role")
    def admin_tier_role(cls, v):
        v = v.strip().lower()
        if v not in ("hod", "admin"):
            raise ValueError("role must be 'hod' or 'admin'")
        return v


class RegistrationAccepted(BaseModel):
    job_id: str
    status: str = "accepted"
    duplicate: bool = False
