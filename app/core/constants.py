# app/core/constants.py

from typing import Iterable, FrozenSet

from app.models.enums import UserRole, AchievementKind, VerificationStatus

# ==========================================================
# ROLES
# ==========================================================
VALID_ROLES: FrozenSet[str] = frozenset(r.value for r in UserRole)

# Legacy audience sentinel sent by older clients
AUDIENCE_BOTH = "both"
BOTH_ROLES: FrozenSet[str] = frozenset({UserRole.Student.value, UserRole.Faculty.value})

# hod/admin credentials are hashed with the higher admin cost factor
ADMIN_TIER_ROLES: FrozenSet[str] = frozenset({UserRole.HOD.value, UserRole.Admin.value})


def parse_audience(audience: str | Iterable[str] | None) -> FrozenSet[str]:
    """
    Turn a client supplied audience into an explicit role set.

    - None / "all"   -> student, faculty, hod
    - "both"         -> student, faculty
    - "faculty"      -> faculty
    - ["hod", ...]   -> as given
    Raises ValueError on unknown roles.
    """
    if audience is None or audience == "all":
        return frozenset({UserRole.Student.value, UserRole.Faculty.value, UserRole.HOD.value})

    items = [audience] if isinstance(audience, str) else list(audience)

    roles = set()
    for item in items:
        value = str(item).strip().lower()
        if value == AUDIENCE_BOTH:
            roles |= BOTH_ROLES
        elif value in VALID_ROLES:
            roles.add(value)
        else:
            raise ValueError(f"Unknown audience role '{item}'")

    if not roles:
        raise ValueError("Audience must contain at least one role")
    return frozenset(roles)


# ==========================================================
# ACHIEVEMENTS
# ==========================================================
# Stored legacy statuses are folded into the canonical verification status
LEGACY_STATUS_MAP = {
    "approved": VerificationStatus.Verified.value,
    "verified": VerificationStatus.Verified.value,
    "rejected": VerificationStatus.Rejected.value,
    "pending": VerificationStatus.Pending.value,
}

# Reviewer remarks ride along in push data, which FCM caps at 4KB
MAX_REMARKS_LENGTH = 500

# Faculty stats column that counts approved items of each kind
APPROVED_COUNTER_BY_KIND = {
    AchievementKind.Certificate: "approved_certifications",
    AchievementKind.Workshop: "approved_workshops",
    AchievementKind.Club: "approved_clubs",
    AchievementKind.Project: "approved_projects",
    AchievementKind.Internship: "approved_internships",
    AchievementKind.Other: "approved_others",
}

# Older clients send plural / alternative names
KIND_ALIASES = {
    "certification": AchievementKind.Certificate,
    "certifications": AchievementKind.Certificate,
    "workshops": AchievementKind.Workshop,
    "clubsjoined": AchievementKind.Club,
    "clubs": AchievementKind.Club,
    "projects": AchievementKind.Project,
    "internships": AchievementKind.Internship,
    "others": AchievementKind.Other,
}


def normalize_kind(kind: str | AchievementKind) -> AchievementKind:
    if isinstance(kind, AchievementKind):
        return kind
    value = str(kind).strip().lower()
    if value in KIND_ALIASES:
        return KIND_ALIASES[value]
    return AchievementKind(value)
