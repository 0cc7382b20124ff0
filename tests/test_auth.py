"""Tests for gateway token verification and the auth dependencies."""
import uuid
import pytest
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import patch, MagicMock

from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt

from redplad.auth import (
    authenticate_websocket,
    decode_token,
    get_current_user,
    require_admin,
    require_verified_profile,
)
from redplad.errors import AuthenticationError, PermissionDeniedError
from tests.conftest import make_profile

SECRET = "unit-test-secret"


@pytest.fixture(autouse=True)
def auth_settings():
    settings = SimpleNamespace(
        AUTH_JWT_SECRET=SECRET,
        AUTH_JWT_ALGORITHM="HS256",
        AUTH_JWT_AUDIENCE="authenticated",
        admin_emails_list=["root@redplad.test"],
    )
    with patch("redplad.auth.get_settings", return_value=settings):
        yield settings


def _token(sub=None, secret=SECRET, aud="authenticated", expires_in=3600, **extra):
    now = datetime.now(timezone.utc)
    claims = {
        "sub": sub if sub is not None else str(uuid.uuid4()),
        "aud": aud,
        "iat": now,
        "exp": now + timedelta(seconds=expires_in),
    }
    claims.update(extra)
    return jwt.encode(claims, secret, algorithm="HS256")


class TestDecodeToken:
    """Tests for JWT verification."""

    def test_valid_token(self):
        user_id = uuid.uuid4()
        user = decode_token(_token(sub=str(user_id), email="Ada@Example.com"))
        assert user.id == user_id
        assert user.email == "ada@example.com"
        assert user.role == "authenticated"

    def test_wrong_secret(self):
        with pytest.raises(AuthenticationError) as exc_info:
            decode_token(_token(secret="someone-else"))
        assert exc_info.value.code == "INVALID_TOKEN"
        assert exc_info.value.status_code == 401

    def test_expired(self):
        with pytest.raises(AuthenticationError):
            decode_token(_token(expires_in=-60))

    def test_wrong_audience(self):
        with pytest.raises(AuthenticationError):
            decode_token(_token(aud="other-service"))

    def test_non_uuid_subject(self):
        with pytest.raises(AuthenticationError) as exc_info:
            decode_token(_token(sub="not-a-uuid"))
        assert exc_info.value.code == "INVALID_TOKEN"

    def test_malformed(self):
        with pytest.raises(AuthenticationError):
            decode_token("abc.def")


class TestDependencies:
    """Tests for the FastAPI auth dependencies."""

    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        with pytest.raises(AuthenticationError) as exc_info:
            await get_current_user(None)
        assert exc_info.value.code == "MISSING_TOKEN"
        assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}

    @pytest.mark.asyncio
    async def test_bearer_credentials(self):
        user_id = uuid.uuid4()
        creds = HTTPAuthorizationCredentials(scheme="Bearer", credentials=_token(sub=str(user_id)))
        user = await get_current_user(creds)
        assert user.id == user_id

    @pytest.mark.asyncio
    async def test_unverified_profile_blocked(self):
        with pytest.raises(PermissionDeniedError) as exc_info:
            await require_verified_profile(make_profile(is_verified=False))
        assert exc_info.value.code == "VERIFICATION_REQUIRED"

    @pytest.mark.asyncio
    async def test_admin_by_flag_or_email(self):
        flagged = make_profile(is_admin=True)
        user = SimpleNamespace(id=flagged.id, email="someone@example.com")
        assert await require_admin(user, flagged) is flagged

        listed = make_profile()
        user = SimpleNamespace(id=listed.id, email="root@redplad.test")
        assert await require_admin(user, listed) is listed

    @pytest.mark.asyncio
    async def test_non_admin_rejected(self):
        profile = make_profile()
        user = SimpleNamespace(id=profile.id, email="member@example.com")
        with pytest.raises(PermissionDeniedError) as exc_info:
            await require_admin(user, profile)
        assert exc_info.value.code == "ADMIN_REQUIRED"

    def test_websocket_token_from_query(self):
        user_id = uuid.uuid4()
        ws = MagicMock()
        ws.query_params = {"token": _token(sub=str(user_id))}
        assert authenticate_websocket(ws).id == user_id

        ws.query_params = {}
        with pytest.raises(AuthenticationError):
            authenticate_websocket(ws)
