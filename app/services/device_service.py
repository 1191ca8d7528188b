# app/services/device_service.py

import re
from datetime import timedelta
from typing import List, Optional, Iterable

from loguru import logger
from sqlmodel import select
from sqlalchemy import update, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.constants import VALID_ROLES
from app.core.exceptions import ValidationFailed
from app.core.helpers import utcnow
from app.models.device import DeviceToken


def device_name_from_user_agent(user_agent: Optional[str]) -> str:
    """Rough device label shown in the "your devices" list."""
    ua = user_agent or ""
    if "Android" in ua:
        match = re.search(r"Android\s+([^;)]+)", ua)
        return f"Android {match.group(1)}" if match else "Android Mobile"
    if "iPhone" in ua:
        match = re.search(r"iPhone OS\s+([_\d]+)", ua)
        return f"iPhone iOS {match.group(1).replace('_', '.')}" if match else "iPhone"
    if "Mobile" in ua:
        return "Mobile Device"
    if "Windows" in ua:
        return "Windows PC"
    if "Mac" in ua:
        return "Mac"
    if "Linux" in ua:
        return "Linux PC"
    return "Unknown Device"


async def register_device(
    session: AsyncSession,
    user_id: str,
    role: str,
    device_id: str,
    token: str,
    device_name: Optional[str] = None,
) -> DeviceToken:
    """
    Upsert the push token of one device. A second registration for the same
    device id replaces the token instead of adding another row.
    """
    if not user_id or not device_id or not token or not token.strip():
        raise ValidationFailed("user_id, device_id and token are required")
    if role not in VALID_ROLES:
        raise ValidationFailed(f"Unknown role '{role}'")

    user_id = str(user_id)
    now = utcnow()

    async def _update() -> int:
        values = {"token": token, "last_used": now}
        if device_name:
            values["device_name"] = device_name
        result = await session.execute(
            update(DeviceToken)
            .where(
                DeviceToken.user_id == user_id,
                DeviceToken.role == role,
                DeviceToken.device_id == device_id,
            )
            .values(**values)
        )
        return result.rowcount

    if await _update() == 0:
        session.add(DeviceToken(
            user_id=user_id,
            role=role,
            device_id=device_id,
            token=token,
            device_name=device_name or "Unknown Device",
            last_used=now,
            created_at=now,
        ))
        try:
            await session.commit()
            logger.info(f"✅ [FCM] Added new device {device_id} for {role} {user_id}")
        except IntegrityError:
            # Concurrent registration of the same device inserted first
            await session.rollback()
            await _update()
            await session.commit()
    else:
        await session.commit()
        logger.info(f"🔄 [FCM] Updated token for device {device_id}")

    result = await session.execute(
        select(DeviceToken).where(
            DeviceToken.user_id == user_id,
            DeviceToken.role == role,
            DeviceToken.device_id == device_id,
        )
    )
    return result.scalar_one()


async def remove_device(session: AsyncSession, user_id: str, role: str, device_id: str) -> bool:
    result = await session.execute(
        delete(DeviceToken).where(
            DeviceToken.user_id == str(user_id),
            DeviceToken.role == role,
            DeviceToken.device_id == device_id,
        )
    )
    await session.commit()
    return result.rowcount > 0


async def remove_all_devices(session: AsyncSession, user_id: str, role: str) -> int:
    # Logout from every device
    result = await session.execute(
        delete(DeviceToken).where(DeviceToken.user_id == str(user_id), DeviceToken.role == role)
    )
    await session.commit()
    return result.rowcount


async def list_devices(session: AsyncSession, user_id: str, role: str) -> List[DeviceToken]:
    result = await session.execute(
        select(DeviceToken)
        .where(DeviceToken.user_id == str(user_id), DeviceToken.role == role)
        .order_by(DeviceToken.last_used.desc())
    )
    return list(result.scalars().all())


async def list_tokens(session: AsyncSession, user_id: str, role: str) -> List[str]:
    """Non-blank tokens of every device, deduplicated."""
    result = await session.execute(
        select(DeviceToken.token).where(DeviceToken.user_id == str(user_id), DeviceToken.role == role)
    )
    tokens = []
    for token in result.scalars().all():
        if token and token.strip() and token not in tokens:
            tokens.append(token)
    return tokens


async def prune_tokens(session: AsyncSession, tokens: Iterable[str]) -> int:
    """Delete rows holding tokens the provider reported as invalid."""
    tokens = [t for t in tokens if t]
    if not tokens:
        return 0
    result = await session.execute(delete(DeviceToken).where(DeviceToken.token.in_(tokens)))
    await session.commit()
    if result.rowcount:
        logger.info(f"🗑️ [FCM] Removed {result.rowcount} invalid token(s)")
    return result.rowcount


async def cleanup_stale_devices(session: AsyncSession, days: int = 90) -> int:
    cutoff = utcnow() - timedelta(days=days)
    result = await session.execute(delete(DeviceToken).where(DeviceToken.last_used < cutoff))
    await session.commit()
    return result.rowcount
