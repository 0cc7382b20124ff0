"""
ReDPlAD — Bearer-token authentication

Identity is issued by the hosted auth gateway; this module only verifies the
gateway's signed JWTs and resolves the caller's Profile.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

import structlog
from fastapi import Depends, WebSocket
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from redplad.config import get_settings
from redplad.database import get_db
from redplad.errors import AuthenticationError, NotFoundError, PermissionDeniedError
from redplad.models.profile import Profile

logger = structlog.get_logger("redplad.auth")

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthenticatedUser:
    id: uuid.UUID
    email: str
    role: str = "authenticated"


def decode_token(token: str) -> AuthenticatedUser:
    """Verify a gateway token and return the identity it carries.

    Raises ``AuthenticationError`` (401 ``INVALID_TOKEN``) for bad signatures,
    expired tokens, wrong audience or a missing/non-UUID subject.
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.AUTH_JWT_SECRET,
            algorithms=[settings.AUTH_JWT_ALGORITHM],
            audience=settings.AUTH_JWT_AUDIENCE,
        )
    except JWTError as exc:
        logger.info("token_rejected", reason=str(exc))
        raise AuthenticationError("Invalid or expired token", "INVALID_TOKEN") from exc

    subject = payload.get("sub")
    try:
        user_id = uuid.UUID(str(subject))
    except ValueError as exc:
        raise AuthenticationError("Invalid token subject", "INVALID_TOKEN") from exc

    return AuthenticatedUser(
        id=user_id,
        email=(payload.get("email") or "").lower(),
        role=payload.get("role") or "authenticated",
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> AuthenticatedUser:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Access token required", "MISSING_TOKEN")
    user = decode_token(credentials.credentials)
    structlog.contextvars.bind_contextvars(user_id=str(user.id))
    return user


async def get_current_profile(
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Profile:
    stmt = select(Profile).where(Profile.id == user.id)
    result = await db.execute(stmt)
    profile = result.scalar_one_or_none()

    if profile is None:
        raise NotFoundError(
            "Profile not found. Please complete your profile first.",
            "PROFILE_NOT_FOUND",
        )
    if not profile.is_active:
        raise PermissionDeniedError("Account has been deactivated", "ACCOUNT_DEACTIVATED")
    return profile


async def require_verified_profile(
    profile: Profile = Depends(get_current_profile),
) -> Profile:
    if not profile.is_verified:
        raise PermissionDeniedError(
            "Profile verification required for this action",
            "VERIFICATION_REQUIRED",
        )
    return profile


async def require_admin(
    user: AuthenticatedUser = Depends(get_current_user),
    profile: Profile = Depends(get_current_profile),
) -> Profile:
    settings = get_settings()
    if profile.is_admin or user.email in settings.admin_emails_list:
        return profile
    logger.warning("admin_access_denied", user_id=str(user.id))
    raise PermissionDeniedError("Admin access required", "ADMIN_REQUIRED")


def authenticate_websocket(websocket: WebSocket) -> AuthenticatedUser:
    """Authenticate a socket from its ``token`` query parameter."""
    token = websocket.query_params.get("token")
    if not token:
        raise AuthenticationError("Access token required", "MISSING_TOKEN")
    return decode_token(token)
