# app/queue/registration.py

"""
Producer side of the registration queue.

A job id is derived from the registrant's natural key, so repeated
submissions of the same registration collapse onto one job.
"""

import asyncio
import hashlib
from dataclasses import dataclass
from typing import Any, Dict, Optional

from loguru import logger

from app.core.config import settings
from app.core.exceptions import UnavailableError, ValidationFailed

DEDUPE_PREFIX = "registration:job:"


def natural_key(payload: Dict[str, Any]) -> str:
    """email, else domain id (student/faculty/admin code), else username."""
    email = (payload.get("email") or "").strip().lower()
    if email:
        return f"email:{email}"
    for field in ("student_code", "faculty_code", "admin_code"):
        value = (payload.get(field) or "").strip()
        if value:
            return f"{field}:{value}"
    username = (payload.get("username") or "").strip().lower()
    if username:
        return f"username:{username}"
    raise ValidationFailed("Registration needs an email, domain id or username")


def job_id_for(job_name: str, payload: Dict[str, Any]) -> str:
    digest = hashlib.sha1(natural_key(payload).encode("utf-8")).hexdigest()
    return f"{job_name}:{digest}"


@dataclass
class EnqueueResult:
    job_id: str
    accepted: bool = True
    duplicate: bool = False


class RegistrationQueue:

    def __init__(self, redis, task=None, dedupe_ttl: Optional[int] = None):
        self.redis = redis
        self._task = task
        self.dedupe_ttl = dedupe_ttl or settings.REGISTRATION_DEDUPE_TTL_SECONDS

    @property
    def task(self):
        if self._task is None:
            from app.queue.worker import process_registration_job
            self._task = process_registration_job
        return self._task

    async def enqueue(self, job_name: str, payload: Dict[str, Any]) -> EnqueueResult:
        job_id = job_id_for(job_name, payload)
        key = DEDUPE_PREFIX + job_id

        try:
            first = await self.redis.set(key, "1", nx=True, ex=self.dedupe_ttl)
        except Exception as e:
            raise UnavailableError(f"Registration queue unavailable: {e}")

        if not first:
            logger.info(f"Registration job {job_id} already queued")
            return EnqueueResult(job_id=job_id, duplicate=True)

        try:
            # kombu publishing is blocking
            await asyncio.to_thread(
                self.task.apply_async,
                args=[job_name, payload],
                task_id=job_id,
            )
        except Exception as e:
            await self.redis.delete(key)
            raise UnavailableError(f"Registration queue unavailable: {e}")

        logger.info(f"📥 Queued {job_name} job {job_id}")
        return EnqueueResult(job_id=job_id)
