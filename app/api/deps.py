# app/api/deps.py

from dataclasses import dataclass
from typing import AsyncGenerator, Optional
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.constants import VALID_ROLES
from app.core.security import decode_token
from app.core.database import get_session
from app.queue.registration import RegistrationQueue
from app.realtime.registry import ConnectionRegistry
from app.services.notification_service import NotificationService


# ------------------------------------------------------------
# HTTP Bearer Authentication
# ------------------------------------------------------------
bearer_scheme = HTTPBearer(auto_error=True)


@dataclass
class AuthContext:
    """Caller identity carried in the access token."""
    user_id: UUID
    role: str
    college_id: Optional[str] = None


# ------------------------------------------------------------
# DB Session
# ------------------------------------------------------------
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    async for session in get_session():
        yield session


# ------------------------------------------------------------
# Token -> AuthContext
# ------------------------------------------------------------
def context_from_token(token: str) -> AuthContext:
    """Raises jwt.InvalidTokenError / ValueError on a bad token."""
    payload = decode_token(token)

    user_id = payload.get("id")
    role = str(payload.get("role") or "").strip().lower()

    if not user_id or role not in VALID_ROLES:
        raise ValueError("Invalid token payload")

    return AuthContext(user_id=UUID(str(user_id)), role=role, college_id=payload.get("college_id"))


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> AuthContext:
    try:
        return context_from_token(credentials.credentials)
    except (jwt.InvalidTokenError, ValueError):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Could not validate credentials")


# ------------------------------------------------------------
# Process-wide services built in the app lifespan
# ------------------------------------------------------------
def get_notifier(request: Request) -> NotificationService:
    return request.app.state.notifier


def get_registry(request: Request) -> ConnectionRegistry:
    return request.app.state.registry


def get_registration_queue(request: Request) -> RegistrationQueue:
    return request.app.state.registration_queue
