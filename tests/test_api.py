import uuid
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app.core.helpers import utcnow
from app.main import app
from app.models.enums import UserRole
from app.realtime.hub import RealtimeHub
from app.realtime.registry import ConnectionRegistry

from tests.support import auth_headers


# ------------------------------------------------------------------
# System
# ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_root_health(client):
    res = await client.get("/")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_bad_token_is_401(client):
    res = await client.get("/api/student/dashboard", headers={"Authorization": "Bearer not-a-jwt"})
    assert res.status_code == 401


@pytest.mark.asyncio
async def test_wrong_role_is_403(client):
    res = await client.get("/api/faculty/dashboard", headers=auth_headers(uuid.uuid4(), "student"))
    assert res.status_code == 403


# ------------------------------------------------------------------
# Achievements
# ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_submit_and_decide_over_http(client, make_faculty, make_student, connect):
    mentor = await make_faculty()
    student = await make_student(mentor)
    s_headers = auth_headers(student.id, "student")
    f_headers = auth_headers(mentor.id, "faculty")

    res = await client.post(
        "/api/student/achievements",
        json={"kind": "certificate", "payload": {"title": "AWS Cert", "issuer": "Amazon"}},
        headers=s_headers,
    )
    assert res.status_code == 201
    item = res.json()
    assert item["verification_status"] == "pending"

    res = await client.get("/api/faculty/pending-approvals", headers=f_headers)
    assert [p["item_id"] for p in res.json()] == [item["id"]]

    student_socket = connect(student.id, "student")
    faculty_socket = connect(mentor.id, "faculty")

    res = await client.post(
        f"/api/faculty/students/{student.id}/decide",
        json={"kind": "certificate", "ref": item["id"], "decision": "verified", "remarks": "good job"},
        headers=f_headers,
    )
    assert res.status_code == 200
    assert res.json()["status"] == "verified"

    # Background fan-out has run by the time the response is returned
    assert "dashboard:counts" in student_socket.events()
    assert "dashboard:approvals" in student_socket.events()
    assert "notification" in student_socket.events()
    stats_events = [m for m in faculty_socket.sent if m["event"] == "dashboard:stats"]
    assert stats_events[-1]["data"]["approved_certifications"] == 1
    assert stats_events[-1]["data"]["pending_approvals"] == 0

    res = await client.post(
        f"/api/faculty/students/{student.id}/decide",
        json={"kind": "certificate", "ref": item["id"], "decision": "rejected"},
        headers=f_headers,
    )
    assert res.status_code == 409

    res = await client.get("/api/student/dashboard", headers=s_headers)
    assert res.json()["counts"]["approved"] == 1

    res = await client.get("/api/faculty/activities", headers=f_headers)
    assert res.json()[0]["description"] == "AWS Cert"


@pytest.mark.asyncio
async def test_submit_validation_is_422(client, make_student):
    student = await make_student()
    res = await client.post(
        "/api/student/achievements",
        json={"kind": "certificate", "payload": {"title": "Missing issuer"}},
        headers=auth_headers(student.id, "student"),
    )
    assert res.status_code == 422


@pytest.mark.asyncio
async def test_overlong_remarks_are_422(client, make_faculty, make_student):
    mentor = await make_faculty()
    student = await make_student(mentor)

    res = await client.post(
        f"/api/faculty/students/{student.id}/decide",
        json={"kind": "other", "ref": str(uuid.uuid4()), "decision": "verified", "remarks": "x" * 5000},
        headers=auth_headers(mentor.id, "faculty"),
    )
    assert res.status_code == 422


@pytest.mark.asyncio
async def test_other_mentor_gets_404(client, make_faculty, make_student):
    student = await make_student(await make_faculty())
    stranger = await make_faculty()

    res = await client.post(
        f"/api/faculty/students/{student.id}/decide",
        json={"kind": "other", "ref": str(uuid.uuid4()), "decision": "verified"},
        headers=auth_headers(stranger.id, "faculty"),
    )
    assert res.status_code == 404

    res = await client.post(
        f"/api/faculty/students/{student.id}/backfill",
        headers=auth_headers(stranger.id, "faculty"),
    )
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_bulk_decide_over_http(client, make_faculty, make_student):
    mentor = await make_faculty()
    student = await make_student(mentor)
    s_headers = auth_headers(student.id, "student")
    ids = []
    for title in ("One", "Two"):
        res = await client.post(
            "/api/student/achievements",
            json={"kind": "other", "payload": {"title": title}},
            headers=s_headers,
        )
        ids.append(res.json()["id"])

    res = await client.post(
        f"/api/faculty/students/{student.id}/bulk-decide",
        json={"kind": "other", "refs": ids + [str(uuid.uuid4())], "decision": "rejected"},
        headers=auth_headers(mentor.id, "faculty"),
    )
    assert res.status_code == 200
    assert res.json() == {"requested": 3, "processed": 2, "skipped": 1}

    res = await client.post(
        f"/api/faculty/students/{student.id}/backfill",
        headers=auth_headers(mentor.id, "faculty"),
    )
    assert res.json() == {"updated": 0}


# ------------------------------------------------------------------
# Leave
# ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_leave_flow_over_http(client, make_faculty, make_student, connect):
    mentor = await make_faculty()
    student = await make_student(mentor)
    start = utcnow().date() + timedelta(days=1)

    res = await client.post(
        "/api/student/leave-requests",
        json={
            "leave_type": "family",
            "start_date": start.isoformat(),
            "end_date": (start + timedelta(days=2)).isoformat(),
            "reason": "Wedding",
            "emergency_contact": {"name": "Parent", "phone": "9999999999"},
        },
        headers=auth_headers(student.id, "student"),
    )
    assert res.status_code == 201
    leave = res.json()
    assert leave["total_days"] == 3

    student_socket = connect(student.id, "student")

    res = await client.post(
        f"/api/faculty/students/{student.id}/leave-requests/{leave['id']}/decide",
        json={"decision": "rejected", "remarks": "insufficient notice"},
        headers=auth_headers(mentor.id, "faculty"),
    )
    assert res.status_code == 200
    assert res.json()["status"] == "rejected"
    assert res.json()["reviewed_by"] == str(mentor.id)

    notifications = [m for m in student_socket.sent if m["event"] == "notification"]
    assert notifications[0]["data"]["type"] == "leave_request_update"

    res = await client.get("/api/faculty/leave-requests?status=rejected", headers=auth_headers(mentor.id, "faculty"))
    assert [r["id"] for r in res.json()] == [leave["id"]]

    res = await client.get("/api/student/leave-requests", headers=auth_headers(student.id, "student"))
    assert res.json()[0]["approval_remarks"] == "insufficient notice"


@pytest.mark.asyncio
async def test_leave_in_the_past_is_422(client, make_student):
    student = await make_student()
    yesterday = utcnow().date() - timedelta(days=1)
    res = await client.post(
        "/api/student/leave-requests",
        json={
            "leave_type": "medical",
            "start_date": yesterday.isoformat(),
            "end_date": yesterday.isoformat(),
            "reason": "Fever",
        },
        headers=auth_headers(student.id, "student"),
    )
    assert res.status_code == 422


# ------------------------------------------------------------------
# Attendance + HOD
# ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_attendance_and_hod_views(client, make_faculty, make_student, make_admin):
    mentor = await make_faculty()
    student = await make_student(mentor, section="B")
    hod = await make_admin(UserRole.HOD)

    res = await client.post(
        "/api/faculty/attendance",
        json={"entries": [
            {"student_id": str(student.id), "date": "2024-03-01", "period": 1, "present": True},
            {"student_id": str(student.id), "date": "2024-03-01", "period": 2, "present": True},
            {"student_id": str(student.id), "date": "2024-03-01", "period": 3, "present": False},
        ]},
        headers=auth_headers(mentor.id, "faculty"),
    )
    assert res.json() == {"recorded": 3}

    res = await client.get("/api/student/dashboard", headers=auth_headers(student.id, "student"))
    assert res.json()["attendance"]["percentage"] == 67

    hod_headers = auth_headers(hod.id, "hod")
    res = await client.get("/api/hod/department-performance", headers=hod_headers)
    assert res.json()[0]["department"] == "CSE"
    assert res.json()[0]["avg_attendance"] == 67

    res = await client.get("/api/hod/section-attendance", headers=hod_headers)
    body = res.json()
    assert body["department"] == "CSE"
    assert body["sections"][0]["section"] == "B"
    assert body["sections"][0]["attendance_ranges"]["average"] == 1


@pytest.mark.asyncio
async def test_attendance_period_out_of_range(client, make_faculty, make_student):
    mentor = await make_faculty()
    student = await make_student(mentor)
    res = await client.post(
        "/api/faculty/attendance",
        json={"entries": [{"student_id": str(student.id), "date": "2024-03-01", "period": 9, "present": True}]},
        headers=auth_headers(mentor.id, "faculty"),
    )
    assert res.status_code == 422


@pytest.mark.asyncio
async def test_realtime_stats_admin_only(client, connect):
    connect(uuid.uuid4(), "student")

    res = await client.get("/api/realtime/stats", headers=auth_headers(uuid.uuid4(), "admin"))
    assert res.json()["total_sockets"] == 1

    res = await client.get("/api/realtime/stats", headers=auth_headers(uuid.uuid4(), "faculty"))
    assert res.status_code == 403


# ------------------------------------------------------------------
# WebSocket
# ------------------------------------------------------------------
def test_websocket_registers_and_cleans_up():
    registry = ConnectionRegistry()
    hub = RealtimeHub(registry)
    app.state.registry = registry
    app.state.hub = hub

    user_id = uuid.uuid4()
    token = auth_headers(user_id, "faculty")["Authorization"].split(" ", 1)[1]

    client = TestClient(app)
    with client.websocket_connect(f"/ws?token={token}") as ws:
        hello = ws.receive_json()
        assert hello["event"] == "connected"
        assert f"user:{user_id}" in hello["data"]["rooms"]
        assert "role:faculty" in hello["data"]["rooms"]
        assert "college:GBU" in hello["data"]["rooms"]
        assert registry.is_connected(str(user_id), "faculty")

        ws.send_json({"action": "join", "room": "doubt", "id": "d-1"})
        ws.send_json({"action": "ping"})
        assert ws.receive_json()["event"] == "pong"
        assert hub.room_members("doubt:d-1")

        ws.send_json({"action": "dance"})
        assert ws.receive_json()["event"] == "error"

    assert not registry.is_connected(str(user_id))
    assert hub.room_members("doubt:d-1") == set()


def test_websocket_rejects_bad_token():
    app.state.registry = ConnectionRegistry()
    app.state.hub = RealtimeHub()

    client = TestClient(app)
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws?token=garbage") as ws:
            ws.receive_json()
