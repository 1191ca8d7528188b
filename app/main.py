# app/main.py

import sys
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.core.config import settings
from app.core.database import AsyncSessionLocal, init_db, test_connection
from app.core.exceptions import WorkflowError
from app.core.rate_limiter import limiter
from app.queue.registration import RegistrationQueue
from app.realtime.hub import RealtimeHub
from app.realtime.registry import ConnectionRegistry
from app.services.notification_service import NotificationService
from app.services.push_provider import build_push_provider

# Routers
from app.api.endpoints import (
    students as students_router,
    faculty as faculty_router,
    hod as hod_router,
    announcements as announcements_router,
    devices as devices_router,
    registration as registration_router,
    realtime as realtime_router,
)

# ------------------------------------------------------------
# LOGURU CONFIGURATION
# ------------------------------------------------------------
logger.remove()
logger.add(
    sys.stdout,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
           "<level>{level}</level> | "
           "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
           "<level>{message}</level>",
    colorize=True,
    backtrace=True,
    diagnose=settings.ENV != "prod",
)


# ------------------------------------------------------------
# LIFESPAN
# ------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Starting Campus Backend...")

    # 1) Database
    try:
        await test_connection()
        await init_db()
        logger.success("Database tables ready.")
    except Exception:
        logger.exception("Database initialisation failed.")

    # 2) Realtime + push, one instance per process
    registry = ConnectionRegistry()
    hub = RealtimeHub(registry)
    provider = build_push_provider()
    app.state.registry = registry
    app.state.hub = hub
    app.state.notifier = NotificationService(registry, hub, provider, AsyncSessionLocal)

    # 3) Registration queue
    redis = aioredis.from_url(settings.REDIS_URL or settings.CELERY_BROKER_URL, decode_responses=True)
    app.state.registration_queue = RegistrationQueue(redis)

    logger.success("Backend startup completed successfully.\n")
    try:
        yield
    finally:
        registry.clear()
        await redis.aclose()
        logger.info("Backend shut down.")


# ------------------------------------------------------------
# FASTAPI APP INIT
# ------------------------------------------------------------
app = FastAPI(
    title="Campus Backend",
    version="1.0.0",
    description="Achievement and leave approvals with realtime dashboards.",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# ------------------------------------------------------------
# CORS CONFIGURATION
# ------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.FRONTEND_URL,
        "http://localhost:5173",
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "*"],
)

# ------------------------------------------------------------
# REGISTER ROUTERS
# ------------------------------------------------------------
app.include_router(students_router.router)
app.include_router(faculty_router.router)
app.include_router(hod_router.router)
app.include_router(announcements_router.router)
app.include_router(devices_router.router)
app.include_router(registration_router.router)
app.include_router(realtime_router.router)


# ------------------------------------------------------------
# ROOT HEALTH CHECK
# ------------------------------------------------------------
@app.get("/", tags=["System"])
async def root():
    return {
        "status": "ok",
        "service": "Campus Backend",
        "version": app.version,
        "realtime": app.state.registry.stats() if hasattr(app.state, "registry") else None,
    }
