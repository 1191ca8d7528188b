from enum import Enum

from sqlalchemy import Enum as PGEnum


class UserRole(str, Enum):
    Student = "student"
    Faculty = "faculty"
    HOD = "hod"
    Admin = "admin"


class AchievementKind(str, Enum):
    Certificate = "certificate"
    Workshop = "workshop"
    Club = "club"
    Project = "project"
    Internship = "internship"
    Other = "other"


class VerificationStatus(str, Enum):
    Pending = "pending"
    Verified = "verified"
    Rejected = "rejected"


class ApprovalStatus(str, Enum):
    # Used by the pending-approval mirror, the ledgers and leave requests
    Pending = "pending"
    Approved = "approved"
    Rejected = "rejected"


class LeaveType(str, Enum):
    Medical = "medical"
    Personal = "personal"
    Emergency = "emergency"
    Family = "family"
    Academic = "academic"
    Other = "other"


class LeavePriority(str, Enum):
    Low = "low"
    Medium = "medium"
    High = "high"
    Urgent = "urgent"


def db_enum(enum_cls, name: str):
    """Enum column type that stores member values ("pending") instead of names."""
    return PGEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        validate_strings=True,
    )
