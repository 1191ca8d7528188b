# app/api/endpoints/registration.py

from fastapi import APIRouter, Depends, Request, status

from app.api.deps import get_registration_queue
from app.core.rate_limiter import limiter, REGISTRATION_LIMIT
from app.queue.registration import RegistrationQueue
from app.schemas.registration import (
    AdminRegistration,
    FacultyRegistration,
    RegistrationAccepted,
    StudentRegistration,
)
from app.services.registration_service import ADMIN_JOB, FACULTY_JOB, STUDENT_JOB

router = APIRouter(
    prefix="/api/register",
    tags=["Registration"]
)


async def _accept(queue: RegistrationQueue, job_name: str, data) -> RegistrationAccepted:
    # Password travels to the worker in the job payload and is hashed there
    result = await queue.enqueue(job_name, data.model_dump(mode="json"))
    return RegistrationAccepted(job_id=result.job_id, duplicate=result.duplicate)


@router.post("/student", response_model=RegistrationAccepted, status_code=status.HTTP_202_ACCEPTED)
@limiter.limit(REGISTRATION_LIMIT)
async def register_student(
    request: Request,
    data: StudentRegistration,
    queue: RegistrationQueue = Depends(get_registration_queue),
):
    return await _accept(queue, STUDENT_JOB, data)


@router.post("/faculty", response_model=RegistrationAccepted, status_code=status.HTTP_202_ACCEPTED)
@limiter.limit(REGISTRATION_LIMIT)
async def register_faculty(
    request: Request,
    data: FacultyRegistration,
    queue: RegistrationQueue = Depends(get_registration_queue),
):
    return await _accept(queue, FACULTY_JOB, data)


@router.post("/admin", response_model=RegistrationAccepted, status_code=status.HTTP_202_ACCEPTED)
@limiter.limit(REGISTRATION_LIMIT)
async def register_admin(
    request: Request,
    data: AdminRegistration,
    queue: RegistrationQueue = Depends(get_registration_queue),
):
    return await _accept(queue, ADMIN_JOB, data)
