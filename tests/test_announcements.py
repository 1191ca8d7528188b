import uuid
from datetime import timedelta

import pytest

from app.core.constants import parse_audience
from app.core.exceptions import NotFoundError, ValidationFailed
from app.core.helpers import utcnow
from app.services import announcement_service

from tests.support import auth_headers


def test_parse_audience():
    assert parse_audience(None) == {"student", "faculty", "hod"}
    assert parse_audience("all") == {"student", "faculty", "hod"}
    assert parse_audience("both") == {"student", "faculty"}
    assert parse_audience("Faculty") == {"faculty"}
    assert parse_audience(["hod", "both"]) == {"hod", "student", "faculty"}

    with pytest.raises(ValueError):
        parse_audience("parents")
    with pytest.raises(ValueError):
        parse_audience([])


@pytest.mark.asyncio
async def test_both_is_stored_as_explicit_roles(db_session):
    announcement = await announcement_service.create_announcement(
        db_session, "GBU", "Holiday", "Campus closed", "both", uuid.uuid4(), "hod"
    )
    assert announcement.audience == ["faculty", "student"]


@pytest.mark.asyncio
async def test_list_filters_by_role_college_and_expiry(db_session):
    creator = uuid.uuid4()
    await announcement_service.create_announcement(db_session, "GBU", "Students", "b", "student", creator, "hod")
    await announcement_service.create_announcement(db_session, "GBU", "Faculty", "b", "faculty", creator, "hod")
    await announcement_service.create_announcement(db_session, "OTHER", "Elsewhere", "b", "all", creator, "admin")
    await announcement_service.create_announcement(
        db_session, "GBU", "Short", "b", "student", creator, "hod", expires_at=utcnow() + timedelta(hours=1)
    )

    titles = {a.title for a in await announcement_service.list_announcements(db_session, "GBU", "student")}
    assert titles == {"Students", "Short"}

    later = utcnow() + timedelta(hours=2)
    titles = {a.title for a in await announcement_service.list_announcements(db_session, "GBU", "student", now=later)}
    assert titles == {"Students"}

    # Creators always see their own announcements
    titles = {a.title for a in await announcement_service.list_announcements(db_session, "GBU", "hod")}
    assert titles == {"Students", "Faculty", "Short"}


@pytest.mark.asyncio
async def test_create_validation(db_session):
    with pytest.raises(ValidationFailed):
        await announcement_service.create_announcement(db_session, "GBU", "t", "b", "aliens", uuid.uuid4(), "hod")
    with pytest.raises(ValidationFailed):
        await announcement_service.create_announcement(
            db_session, "GBU", "t", "b", "all", uuid.uuid4(), "hod", expires_at=utcnow() - timedelta(minutes=1)
        )


@pytest.mark.asyncio
async def test_delete_is_scoped_to_college(db_session):
    announcement = await announcement_service.create_announcement(
        db_session, "GBU", "t", "b", "all", uuid.uuid4(), "admin"
    )
    with pytest.raises(NotFoundError):
        await announcement_service.delete_announcement(db_session, "OTHER", announcement.id)

    await announcement_service.delete_announcement(db_session, "GBU", announcement.id)
    assert await announcement_service.list_announcements(db_session, "GBU") == []


@pytest.mark.asyncio
async def test_announcement_endpoint_fans_out_to_audience_and_creator(client, connect):
    hod_id = uuid.uuid4()
    hod_socket = connect(hod_id, "hod")
    student_socket = connect(uuid.uuid4(), "student")
    faculty_socket = connect(uuid.uuid4(), "faculty")
    admin_socket = connect(uuid.uuid4(), "admin")

    res = await client.post(
        "/api/announcements",
        json={"title": "Exam schedule", "body": "Starts Monday", "audience": "both"},
        headers=auth_headers(hod_id, "hod"),
    )
    assert res.status_code == 201
    assert sorted(res.json()["audience"]) == ["faculty", "student"]

    for socket in (hod_socket, student_socket, faculty_socket):
        assert socket.events() == ["dashboard:announcements"]
    assert admin_socket.sent == []

    res = await client.get("/api/announcements", headers=auth_headers(uuid.uuid4(), "student"))
    assert [a["title"] for a in res.json()] == ["Exam schedule"]


@pytest.mark.asyncio
async def test_students_cannot_create_announcements(client):
    res = await client.post(
        "/api/announcements",
        json={"title": "x", "body": "y"},
        headers=auth_headers(uuid.uuid4(), "student"),
    )
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_unknown_audience_is_422(client):
    res = await client.post(
        "/api/announcements",
        json={"title": "x", "body": "y", "audience": ["martians"]},
        headers=auth_headers(uuid.uuid4(), "admin"),
    )
    assert res.status_code == 422
