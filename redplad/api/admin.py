"""
ReDPlAD — Admin API

Platform statistics, member moderation and verification document review.
Every route requires an admin caller.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from redplad.auth import require_admin
from redplad.database import get_db
from redplad.errors import NotFoundError
from redplad.models.activity import VerificationDocument
from redplad.models.match import Match, Message
from redplad.models.profile import Profile
from redplad.schemas.admin import (
    AdminStats,
    AdminUserItem,
    AdminUserListResponse,
    UserStatusUpdate,
    VerificationDocumentResponse,
    VerificationReview,
    VerificationReviewResponse,
)
from redplad.schemas.common import Pagination
from redplad.services.activity_service import record_activity
from redplad.services.verification_service import document_response, review_document

logger = structlog.get_logger("redplad.api.admin")

router = APIRouter()

ACTIVE_WINDOW = timedelta(days=30)
USER_STATUSES = ("active", "inactive", "verified")


async def _count(db: AsyncSession, model, *filters) -> int:
    stmt = select(func.count()).select_from(model).where(*filters)
    return (await db.execute(stmt)).scalar_one()


# ──────────────────────────────────────────────────────────────────────────────
# GET /stats
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/stats", response_model=AdminStats, summary="Platform statistics")
async def get_stats(
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> AdminStats:
    active_since = datetime.now(timezone.utc) - ACTIVE_WINDOW
    return AdminStats(
        total_users=await _count(db, Profile),
        active_users=await _count(
            db,
            Profile,
            Profile.is_active.is_(True),
            Profile.last_active_at >= active_since,
        ),
        verified_users=await _count(db, Profile, Profile.is_verified.is_(True)),
        mutual_matches=await _count(db, Match, Match.is_mutual_match.is_(True)),
        total_messages=await _count(db, Message),
        pending_verifications=await _count(
            db, VerificationDocument, VerificationDocument.verification_status == "pending"
        ),
    )


# ──────────────────────────────────────────────────────────────────────────────
# Members
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/users", response_model=AdminUserListResponse, summary="Search members")
async def list_users(
    search: Optional[str] = Query(None, max_length=100),
    user_status: Optional[str] = Query(
        None, alias="status", pattern="^(" + "|".join(USER_STATUSES) + ")$"
    ),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> AdminUserListResponse:
    filters = []
    if search:
        pattern = f"%{search.strip()}%"
        filters.append(
            or_(
                Profile.first_name.ilike(pattern),
                Profile.last_name.ilike(pattern),
                Profile.email.ilike(pattern),
            )
        )
    if user_status == "active":
        filters.append(Profile.is_active.is_(True))
    elif user_status == "inactive":
        filters.append(Profile.is_active.is_(False))
    elif user_status == "verified":
        filters.append(Profile.is_verified.is_(True))

    total = await _count(db, Profile, *filters)
    stmt = (
        select(Profile)
        .where(*filters)
        .order_by(Profile.created_at.desc())
        .limit(limit)
        .offset((page - 1) * limit)
    )
    users = (await db.execute(stmt)).scalars().all()
    return AdminUserListResponse(users=list(users), pagination=Pagination.build(page, limit, total))


@router.put("/users/{user_id}/status", response_model=AdminUserItem, summary="Activate or deactivate")
async def update_user_status(
    user_id: uuid.UUID,
    payload: UserStatusUpdate,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> Profile:
    """Soft (de)activation; profiles are never deleted here."""
    target = (
        await db.execute(select(Profile).where(Profile.id == user_id))
    ).scalar_one_or_none()
    if target is None:
        raise NotFoundError("User not found", "USER_NOT_FOUND")

    target.is_active = payload.is_active
    await record_activity(
        db,
        admin.id,
        "user_activated" if payload.is_active else "user_deactivated",
        target_user_id=user_id,
        metadata={"reason": payload.reason} if payload.reason else None,
    )
    await db.flush()

    logger.info(
        "user_status_updated",
        admin_id=str(admin.id),
        user_id=str(user_id),
        is_active=payload.is_active,
    )
    return target


# ──────────────────────────────────────────────────────────────────────────────
# Verification review
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/verifications/pending",
    response_model=list[VerificationDocumentResponse],
    summary="Documents awaiting review",
)
async def pending_verifications(
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> list[VerificationDocumentResponse]:
    stmt = (
        select(VerificationDocument)
        .where(VerificationDocument.verification_status == "pending")
        .order_by(VerificationDocument.created_at.asc())
    )
    documents = (await db.execute(stmt)).scalars().all()
    return [document_response(document) for document in documents]


@router.put(
    "/verifications/{document_id}/review",
    response_model=VerificationReviewResponse,
    summary="Approve or reject a document",
)
async def review_verification(
    document_id: uuid.UUID,
    payload: VerificationReview,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> VerificationReviewResponse:
    outcome = await review_document(admin.id, document_id, payload.status, payload.notes, db)
    return VerificationReviewResponse(
        message=f"Document {payload.status}",
        document=document_response(outcome.document),
        profile_verified=outcome.profile_verified,
    )
