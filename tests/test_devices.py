import uuid
from datetime import timedelta

import pytest
from sqlmodel import select

from app.core.exceptions import ValidationFailed
from app.core.helpers import utcnow
from app.models.device import DeviceToken
from app.services import device_service

from tests.support import auth_headers


@pytest.mark.asyncio
async def test_same_device_id_keeps_one_row_with_latest_token(db_session):
    user_id = str(uuid.uuid4())

    await device_service.register_device(db_session, user_id, "student", "pixel-7", "token-1")
    device = await device_service.register_device(db_session, user_id, "student", "pixel-7", "token-2")

    rows = (await db_session.execute(
        select(DeviceToken).where(DeviceToken.user_id == user_id, DeviceToken.device_id == "pixel-7")
    )).scalars().all()

    assert len(rows) == 1
    assert device.token == "token-2"
    assert rows[0].token == "token-2"


@pytest.mark.asyncio
async def test_device_rows_are_scoped_by_role(db_session):
    user_id = str(uuid.uuid4())
    await device_service.register_device(db_session, user_id, "faculty", "d1", "tok-f")
    await device_service.register_device(db_session, user_id, "hod", "d1", "tok-h")

    assert await device_service.list_tokens(db_session, user_id, "faculty") == ["tok-f"]
    assert await device_service.list_tokens(db_session, user_id, "hod") == ["tok-h"]


@pytest.mark.asyncio
async def test_register_device_validation(db_session):
    with pytest.raises(ValidationFailed):
        await device_service.register_device(db_session, "u1", "student", "d1", "   ")
    with pytest.raises(ValidationFailed):
        await device_service.register_device(db_session, "u1", "both", "d1", "tok")
    with pytest.raises(ValidationFailed):
        await device_service.register_device(db_session, "u1", "student", "", "tok")


@pytest.mark.asyncio
async def test_list_tokens_dedupes(db_session):
    user_id = str(uuid.uuid4())
    await device_service.register_device(db_session, user_id, "student", "phone", "same")
    await device_service.register_device(db_session, user_id, "student", "tablet", "same")

    assert await device_service.list_tokens(db_session, user_id, "student") == ["same"]


@pytest.mark.asyncio
async def test_remove_device_and_remove_all(db_session):
    user_id = str(uuid.uuid4())
    for device_id in ("a", "b", "c"):
        await device_service.register_device(db_session, user_id, "student", device_id, f"tok-{device_id}")

    assert await device_service.remove_device(db_session, user_id, "student", "a") is True
    assert await device_service.remove_device(db_session, user_id, "student", "a") is False
    assert await device_service.remove_all_devices(db_session, user_id, "student") == 2
    assert await device_service.list_devices(db_session, user_id, "student") == []


@pytest.mark.asyncio
async def test_cleanup_stale_devices(db_session):
    user_id = str(uuid.uuid4())
    await device_service.register_device(db_session, user_id, "student", "old", "tok-old")
    await device_service.register_device(db_session, user_id, "student", "new", "tok-new")

    old = (await db_session.execute(select(DeviceToken).where(DeviceToken.device_id == "old"))).scalar_one()
    old.last_used = utcnow() - timedelta(days=120)
    db_session.add(old)
    await db_session.commit()

    assert await device_service.cleanup_stale_devices(db_session, days=90) == 1
    assert await device_service.list_tokens(db_session, user_id, "student") == ["tok-new"]


def test_device_name_from_user_agent():
    assert device_service.device_name_from_user_agent(None) == "Unknown Device"
    assert device_service.device_name_from_user_agent("") == "Unknown Device"


@pytest.mark.asyncio
async def test_device_endpoints(client):
    user_id = uuid.uuid4()
    headers = auth_headers(user_id, "student")

    res = await client.post("/api/devices", json={"device_id": "web", "token": "t1"}, headers=headers)
    assert res.status_code == 200
    res = await client.post("/api/devices", json={"device_id": "web", "token": "t2"}, headers=headers)
    assert res.status_code == 200

    res = await client.get("/api/devices", headers=headers)
    assert [d["device_id"] for d in res.json()] == ["web"]

    res = await client.delete("/api/devices/web", headers=headers)
    assert res.json() == {"removed": 1}
    res = await client.delete("/api/devices/web", headers=headers)
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_device_endpoints_require_token(client):
    res = await client.get("/api/devices")
    assert res.status_code in (401, 403)
