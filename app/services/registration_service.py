# app/services/registration_service.py

"""
Account creation behind the registration queue.

Hash then insert. A unique-key violation means another job (or an earlier
attempt of this one) already created the account and is not an error; any
other database failure, including the driver failing to connect at all, is
raised as RetryableError for the broker to retry.
"""

import asyncio
from typing import Any, Dict, Tuple, Type

from loguru import logger
from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel, select

from app.core.config import settings
from app.core.constants import ADMIN_TIER_ROLES
from app.core.exceptions import RetryableError, ValidationFailed
from app.core.security import hash_password
from app.models.administrator import Administrator
from app.models.enums import UserRole
from app.models.faculty import Faculty
from app.models.student import Student
from app.schemas.registration import AdminRegistration, FacultyRegistration, StudentRegistration

STUDENT_JOB = "student-register"
FACULTY_JOB = "faculty-register"
ADMIN_JOB = "admin-register"

JOB_SCHEMAS: Dict[str, Type[BaseModel]] = {
    STUDENT_JOB: StudentRegistration,
    FACULTY_JOB: FacultyRegistration,
    ADMIN_JOB: AdminRegistration,
}

CREATED = "created"
DUPLICATE = "duplicate"


def validate_payload(job_name: str, payload: Dict[str, Any]) -> BaseModel:
    schema = JOB_SCHEMAS.get(job_name)
    if schema is None:
        raise ValidationFailed(f"Unknown registration job '{job_name}'")
    try:
        return schema.model_validate(payload)
    except ValidationError as e:
        raise ValidationFailed("Invalid registration payload", errors=e.errors(include_url=False))


def rounds_for(job_name: str, data: BaseModel) -> int:
    role = getattr(data, "role", None)
    if job_name == ADMIN_JOB or role in ADMIN_TIER_ROLES:
        return settings.ADMIN_BCRYPT_ROUNDS
    return settings.BCRYPT_ROUNDS


async def _mentor_id(session: AsyncSession, mentor_code):
    if not mentor_code:
        return None
    result = await session.execute(select(Faculty.id).where(Faculty.faculty_code == mentor_code))
    return result.scalar_one_or_none()


async def _build_record(session: AsyncSession, job_name: str, data: BaseModel, password_hash: str) -> SQLModel:
    common = dict(
        fullname=data.fullname,
        email=str(data.email).lower(),
        password_hash=password_hash,
        college_id=data.college_id,
        dept=data.dept,
    )
    if job_name == STUDENT_JOB:
        return Student(
            **common,
            student_code=data.student_code,
            username=data.username,
            mobile=data.mobile,
            section=data.section,
            semester=data.semester,
            mentor_id=await _mentor_id(session, data.mentor_code),
            date_of_join=data.date_of_join,
        )
    if job_name == FACULTY_JOB:
        return Faculty(
            **common,
            faculty_code=data.faculty_code,
            username=data.username,
            mobile=data.mobile,
            designation=data.designation,
            date_of_join=data.date_of_join,
        )
    return Administrator(
        **common,
        admin_code=data.admin_code,
        role=UserRole(data.role),
    )


async def process_registration(
    session: AsyncSession,
    job_name: str,
    payload: Dict[str, Any],
    job_id: str = "-",
) -> Tuple[str, str]:
    """Returns (outcome, natural key) with outcome "created" or "duplicate"."""
    data = validate_payload(job_name, payload)
    password_hash = hash_password(data.password, rounds=rounds_for(job_name, data))

    try:
        record = await _build_record(session, job_name, data, password_hash)
        session.add(record)
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        logger.warning(f"Duplicate registration for job {job_id} - skipping insert ({e.orig})")
        return DUPLICATE, str(data.email)
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Registration job {job_id} failed, will retry: {e}")
        raise RetryableError(f"Database error: {e}", job_id=job_id)
    except (OSError, asyncio.TimeoutError) as e:
        # asyncpg connect failures reach us unwrapped
        logger.error(f"Registration job {job_id} could not reach the database, will retry: {e!r}")
        raise RetryableError(f"Database unreachable: {e!r}", job_id=job_id)

    logger.info(f"✅ Registration job {job_id} created {job_name} account {data.email}")
    return CREATED, str(data.email)
