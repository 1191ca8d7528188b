import os
import uuid

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# ------------------------------------------------------------------
# FORCE TESTING MODE
# This must be done BEFORE importing app.main so settings, the DB engine
# and the rate limiter all see the test configuration.
# ------------------------------------------------------------------
os.environ["TESTING"] = "true"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_campus.db"
os.environ.setdefault("SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")
os.environ.pop("REDIS_URL", None)
os.environ.pop("FIREBASE_SERVICE_ACCOUNT", None)
os.environ.pop("FIREBASE_CREDENTIALS_FILE", None)

from sqlmodel import SQLModel

from app.main import app
from app.core.database import AsyncSessionLocal, engine, load_models
from app.models.enums import UserRole
from app.models.faculty import Faculty
from app.models.student import Student
from app.models.administrator import Administrator
from app.queue.registration import RegistrationQueue
from app.realtime.hub import RealtimeHub, user_room, role_room, college_room, GLOBAL_ROOM
from app.realtime.registry import ConnectionRegistry
from app.services.notification_service import NotificationService
from tests.support import FakePushProvider, FakeRedis, FakeTask, FakeWebSocket, random_str


# ------------------------------------------------------------------
# Database
# ------------------------------------------------------------------
@pytest_asyncio.fixture
async def db_session():
    load_models()
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
        await conn.run_sync(SQLModel.metadata.create_all)

    async with AsyncSessionLocal() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)


@pytest_asyncio.fixture
async def make_faculty(db_session):
    async def _make(college_id="GBU", dept="CSE", **kwargs) -> Faculty:
        code = random_str("FAC")
        faculty = Faculty(
            faculty_code=code,
            fullname=kwargs.pop("fullname", "Dr. Mentor"),
            username=code,
            email=f"{code}@college.edu",
            password_hash="x",
            college_id=college_id,
            dept=dept,
            **kwargs,
        )
        db_session.add(faculty)
        await db_session.commit()
        await db_session.refresh(faculty)
        return faculty
    return _make


@pytest_asyncio.fixture
async def make_student(db_session):
    async def _make(mentor=None, college_id="GBU", dept="CSE", section="A", semester=3, **kwargs) -> Student:
        code = random_str("STU")
        student = Student(
            student_code=code,
            fullname=kwargs.pop("fullname", "Test Student"),
            username=code,
            email=f"{code}@college.edu",
            password_hash="x",
            college_id=college_id,
            dept=dept,
            section=section,
            semester=semester,
            mentor_id=mentor.id if mentor else None,
            **kwargs,
        )
        db_session.add(student)
        await db_session.commit()
        await db_session.refresh(student)
        return student
    return _make


@pytest_asyncio.fixture
async def make_admin(db_session):
    async def _make(role=UserRole.HOD, college_id="GBU", dept="CSE") -> Administrator:
        code = random_str("ADM")
        admin = Administrator(
            admin_code=code,
            fullname="Head Of Dept",
            email=f"{code}@college.edu",
            password_hash="x",
            college_id=college_id,
            dept=dept,
            role=role,
        )
        db_session.add(admin)
        await db_session.commit()
        await db_session.refresh(admin)
        return admin
    return _make


# ------------------------------------------------------------------
# Realtime / push / queue
# ------------------------------------------------------------------
@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def hub(registry):
    return RealtimeHub(registry)


@pytest.fixture
def push_provider():
    return FakePushProvider()


@pytest.fixture
def notifier(registry, hub, push_provider):
    return NotificationService(registry, hub, push_provider, AsyncSessionLocal, push_timeout=2)


@pytest.fixture
def connect(registry, hub):
    """Open a fake socket for (user, role) and join the standard rooms."""
    def _connect(user_id, role, fail=False, college_id="GBU") -> FakeWebSocket:
        socket = FakeWebSocket(fail=fail)
        socket_id = uuid.uuid4().hex
        hub.attach(socket_id, socket)
        registry.register(socket_id, str(user_id), role)
        hub.join(socket_id, user_room(user_id))
        hub.join(socket_id, role_room(role))
        hub.join(socket_id, GLOBAL_ROOM)
        if college_id:
            hub.join(socket_id, college_room(college_id))
        socket.socket_id = socket_id
        return socket
    return _connect


@pytest.fixture
def fake_task():
    return FakeTask()


@pytest.fixture
def registration_queue(fake_task):
    return RegistrationQueue(FakeRedis(), task=fake_task)


# ------------------------------------------------------------------
# HTTP
# ------------------------------------------------------------------
@pytest_asyncio.fixture
async def client(db_session, registry, hub, notifier, registration_queue):
    """
    ASGITransport does not run the lifespan, so the process-wide services
    are put on app.state here.
    """
    app.state.registry = registry
    app.state.hub = hub
    app.state.notifier = notifier
    app.state.registration_queue = registration_queue

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac
