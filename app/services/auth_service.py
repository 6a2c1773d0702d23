"""Supabase authentication service for verifying access tokens and loading user profiles."""
from typing import Dict, Any
import logging

from jose import jwt, JWTError
from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.config import settings
from app.services.database import db_service

logger = logging.getLogger(__name__)

security = HTTPBearer()


class SupabaseAuthService:
    """Service for Supabase token verification and profile lookup."""

    def __init__(self, jwt_secret: str = None):
        self.jwt_secret = jwt_secret if jwt_secret is not None else settings.SUPABASE_JWT_SECRET
        self.algorithms = ["HS256"]
        self.audience = "authenticated"

    def verify_token(self, token: str) -> Dict[str, Any]:
        """Verify a Supabase access token and return its claims."""
        if not self.jwt_secret:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token verification is not configured"
            )
        try:
            return jwt.decode(
                token,
                self.jwt_secret,
                algorithms=self.algorithms,
                audience=self.audience
            )
        except JWTError as e:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Token validation failed: {str(e)}"
            )

    async def get_user(self, claims: Dict[str, Any]) -> Dict[str, Any]:
        """Load the profile behind a verified token."""
        user_id = claims.get("sub")
        if not user_id:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has no subject"
            )

        profile = await db_service.get_profile(user_id)
        if not profile:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Profile not found"
            )

        if not profile.get("is_active", True) or (
            profile.get("activation_required") and not profile.get("activated_at")
        ):
            logger.info(f"Rejected inactive profile {user_id}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Account is not active"
            )

        return {
            "user": {
                "id": profile.get("id", user_id),
                "email": profile.get("email") or claims.get("email"),
                "name": profile.get("full_name"),
                "role": (profile.get("user_type") or "customer").lower(),
            }
        }


auth_service = SupabaseAuthService()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> Dict[str, Any]:
    """Dependency to get the current authenticated user."""
    claims = auth_service.verify_token(credentials.credentials)
    return await auth_service.get_user(claims)
