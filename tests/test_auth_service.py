"""Tests for Supabase token verification, profile lookup and role checks."""
import time

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from jose import jwt
from unittest.mock import AsyncMock, MagicMock, patch

from app.core.config import settings
from app.main import app
from app.services.auth_service import SupabaseAuthService

SECRET = "test-jwt-secret"


def make_token(secret=SECRET, **claims):
    payload = {
        "sub": "00000000-0000-0000-0000-000000000001",
        "aud": "authenticated",
        "exp": int(time.time()) + 3600,
        **claims,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def service():
    return SupabaseAuthService(jwt_secret=SECRET)


@pytest.fixture
def db(mock_admin_profile):
    mock = MagicMock()
    mock.get_profile = AsyncMock(return_value=mock_admin_profile)
    with patch("app.services.auth_service.db_service", mock):
        yield mock


class TestVerifyToken:
    """Tests for SupabaseAuthService.verify_token()."""

    @pytest.mark.unit
    def test_valid_token(self, service):
        claims = service.verify_token(make_token(email="admin@example.com"))

        assert claims["sub"] == "00000000-0000-0000-0000-000000000001"
        assert claims["email"] == "admin@example.com"

    @pytest.mark.unit
    def test_wrong_secret(self, service):
        with pytest.raises(HTTPException) as exc_info:
            service.verify_token(make_token(secret="other-secret"))

        assert exc_info.value.status_code == 401

    @pytest.mark.unit
    def test_wrong_audience(self, service):
        with pytest.raises(HTTPException) as exc_info:
            service.verify_token(make_token(aud="anon"))

        assert exc_info.value.status_code == 401

    @pytest.mark.unit
    def test_expired_token(self, service):
        with pytest.raises(HTTPException) as exc_info:
            service.verify_token(make_token(exp=int(time.time()) - 60))

        assert exc_info.value.status_code == 401

    @pytest.mark.unit
    def test_missing_secret(self):
        with pytest.raises(HTTPException) as exc_info:
            SupabaseAuthService(jwt_secret="").verify_token(make_token())

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Token verification is not configured"


class TestGetUser:
    """Tests for SupabaseAuthService.get_user()."""

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_active_profile(self, service, db):
        user_info = await service.get_user({"sub": "00000000-0000-0000-0000-000000000001"})

        assert user_info == {
            "user": {
                "id": "00000000-0000-0000-0000-000000000001",
                "email": "admin@example.com",
                "name": "Admin User",
                "role": "admin",
            }
        }

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_role_is_lowercased(self, service, db, mock_admin_profile):
        db.get_profile.return_value = {**mock_admin_profile, "user_type": "Employee"}

        user_info = await service.get_user({"sub": "x"})

        assert user_info["user"]["role"] == "employee"

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_missing_subject(self, service, db):
        with pytest.raises(HTTPException) as exc_info:
            await service.get_user({})

        assert exc_info.value.status_code == 401
        db.get_profile.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.unit
    async def test_missing_profile(self, service, db):
        db.get_profile.return_value = None

        with pytest.raises(HTTPException) as exc_info:
            await service.get_user({"sub": "ghost"})

        assert exc_info.value.status_code == 403
        assert exc_info.value.detail == "Profile not found"

    @pytest.mark.asyncio
    @pytest.mark.unit
    @pytest.mark.parametrize("overrides", [
        {"is_active": False},
        {"activation_required": True, "activated_at": None},
    ])
    async def test_inactive_profile(self, service, db, mock_admin_profile, overrides):
        db.get_profile.return_value = {**mock_admin_profile, **overrides}

        with pytest.raises(HTTPException) as exc_info:
            await service.get_user({"sub": "x"})

        assert exc_info.value.status_code == 403
        assert exc_info.value.detail == "Account is not active"


class TestBearerFlow:
    """The real dependency chain, without overrides."""

    @pytest.mark.api
    def test_missing_header_is_rejected(self):
        app.dependency_overrides.clear()
        with TestClient(app) as client:
            response = client.get(f"{settings.API_V1_PREFIX}/automation/workflows")

        assert response.status_code in (401, 403)

    @pytest.mark.api
    def test_customer_token_is_forbidden(self, mock_customer_profile, mock_db_service):
        app.dependency_overrides.clear()
        mock_db_service.get_profile.return_value = mock_customer_profile

        with patch("app.services.auth_service.auth_service", SupabaseAuthService(jwt_secret=SECRET)), \
                patch("app.services.auth_service.db_service", mock_db_service), \
                patch("app.services.activity_logger.db_service", mock_db_service):
            with TestClient(app) as client:
                response = client.get(
                    f"{settings.API_V1_PREFIX}/automation/workflows",
                    headers={"Authorization": f"Bearer {make_token()}"},
                )

        assert response.status_code == 403
        assert response.json()["detail"] == "Insufficient role"
        row = mock_db_service.create_activity_log.await_args.args[0]
        assert row["action"] == "ACCESS_DENIED"
        assert row["user_id"] == mock_customer_profile["id"]
