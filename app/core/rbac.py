# app/core/rbac.py

from fastapi import Depends, HTTPException, status
from app.api.deps import AuthContext, get_current_user
from app.models.enums import UserRole


def AllowRoles(*allowed_roles):
    """
    Flexible RBAC:
    - Accepts UserRole values or raw strings
    - Case-insensitive
    """

    def normalize(role) -> str:
        if isinstance(role, UserRole):
            return role.value.lower().strip()
        return str(role).lower().strip()

    normalized_allowed = {normalize(r) for r in allowed_roles}

    async def role_checker(current_user: AuthContext = Depends(get_current_user)):
        if current_user.role not in normalized_allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied for role '{current_user.role}'"
            )
        return current_user

    return role_checker
