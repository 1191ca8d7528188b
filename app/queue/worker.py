# app/queue/worker.py

"""
Consumer side of the registration queue.

    celery -A app.queue.worker worker --loglevel=info
"""

import asyncio
import sys
from typing import Any, Dict

from celery import Task
from loguru import logger

from app.core.config import settings
from app.core.database import AsyncSessionLocal
from app.core.exceptions import RetryableError
from app.models.dead_letter import DeadLetterJob
from app.queue.celery_app import celery_app
from app.services import device_service, registration_service

# Same sink as the API process
logger.remove()
logger.add(
    sys.stdout,
    colorize=True,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
    level="INFO",
)

SECRET_FIELDS = ("password", "confirm_password")


def scrub(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in (payload or {}).items() if k not in SECRET_FIELDS}


async def _run_registration(job_id: str, job_name: str, payload: Dict[str, Any]) -> str:
    async with AsyncSessionLocal() as session:
        outcome, _ = await registration_service.process_registration(session, job_name, payload, job_id=job_id)
        return outcome


async def _dead_letter(job_id: str, job_name: str, payload: Dict[str, Any], error: str, attempts: int):
    async with AsyncSessionLocal() as session:
        session.add(DeadLetterJob(
            job_id=job_id,
            job_name=job_name,
            payload=scrub(payload),
            error=error,
            attempts=attempts,
        ))
        await session.commit()


class RegistrationTask(Task):
    """Retries RetryableError with exponential backoff, then dead-letters the job."""

    autoretry_for = (RetryableError,)
    max_retries = settings.REGISTRATION_MAX_ATTEMPTS - 1
    retry_backoff = settings.REGISTRATION_BACKOFF_SECONDS
    retry_backoff_max = 60
    retry_jitter = False

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        job_name, payload = args[0], args[1]
        attempts = self.request.retries + 1
        logger.error(f"❌ Registration job {task_id} failed after {attempts} attempt(s): {exc}")
        try:
            asyncio.run(_dead_letter(task_id, job_name, payload, str(exc), attempts))
        except Exception as e:
            logger.error(f"Could not dead-letter job {task_id}: {e}")


@celery_app.task(bind=True, base=RegistrationTask, name="registration.process")
def process_registration_job(self, job_name: str, payload: Dict[str, Any]) -> str:
    logger.info(f"Processing {job_name} job {self.request.id} (attempt {self.request.retries + 1})")
    return asyncio.run(_run_registration(self.request.id, job_name, payload))


async def _cleanup_devices(days: int) -> int:
    async with AsyncSessionLocal() as session:
        return await device_service.cleanup_stale_devices(session, days=days)


@celery_app.task(name="devices.cleanup_stale")
def cleanup_stale_devices_job(days: int = settings.STALE_DEVICE_DAYS) -> int:
    removed = asyncio.run(_cleanup_devices(days))
    logger.info(f"🧹 Removed {removed} stale device token(s)")
    return removed
