# app/api/endpoints/devices.py

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import AuthContext, get_current_user, get_db_session
from app.services import device_service

router = APIRouter(
    prefix="/api/devices",
    tags=["Devices"]
)


class DeviceRegister(BaseModel):
    device_id: str
    token: str
    device_name: Optional[str] = None


class DeviceRead(BaseModel):
    device_id: str
    device_name: Optional[str] = None
    last_used: datetime
    created_at: datetime

    class Config:
        from_attributes = True
        extra = "ignore"


@router.post("", response_model=DeviceRead)
async def register_device(
    data: DeviceRegister,
    request: Request,
    current_user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    name = data.device_name or device_service.device_name_from_user_agent(request.headers.get("user-agent"))
    return await device_service.register_device(
        session, current_user.user_id, current_user.role, data.device_id, data.token, name
    )


@router.get("", response_model=List[DeviceRead])
async def list_devices(
    current_user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    return await device_service.list_devices(session, current_user.user_id, current_user.role)


@router.delete("/{device_id}")
async def remove_device(
    device_id: str,
    current_user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    if not await device_service.remove_device(session, current_user.user_id, current_user.role, device_id):
        raise HTTPException(404, "Device not found")
    return {"removed": 1}


@router.delete("")
async def remove_all_devices(
    current_user: AuthContext = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    removed = await device_service.remove_all_devices(session, current_user.user_id, current_user.role)
    return {"removed": removed}
