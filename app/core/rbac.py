from fastapi import Depends, HTTPException, Request, status
from typing import Iterable

from app.services.auth_service import get_current_user
from app.services.activity_logger import log_access_denied


def require_role(required_roles: Iterable[str]):
    roles = {r.lower() for r in required_roles}

    async def dependency(request: Request, user_info: dict = Depends(get_current_user)) -> dict:
        user = (user_info or {}).get("user") or {}

        if not user:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Not authenticated",
            )

        role = (user.get("role") or "").lower()
        if role in roles:
            return user_info

        await log_access_denied(user.get("id"), f"Role '{role}' not in {sorted(roles)}", request)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient role",
        )

    return dependency


def require_staff():
    """Admins and employees may operate automations"""
    return require_role({"admin", "employee"})
