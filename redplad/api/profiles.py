"""
ReDPlAD — Profiles API

Own-profile management (profile, cultural background, personality,
preferences), browsing other members and the own engagement dashboard
(stats and recent activity).
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from redplad.auth import AuthenticatedUser, get_current_profile, get_current_user
from redplad.database import get_db
from redplad.errors import (
    BadRequestError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
)
from redplad.models.profile import (
    CulturalBackground,
    PersonalityAssessment,
    Profile,
    UserPreferences,
)
from redplad.schemas.common import Pagination
from redplad.schemas.profile import (
    ActivityListResponse,
    CulturalBackgroundIn,
    PersonalityIn,
    PreferencesIn,
    ProfileCreate,
    ProfileListResponse,
    ProfileResponse,
    ProfileStats,
    ProfileStatsResponse,
    ProfileUpdate,
    PublicProfileResponse,
)
from redplad.services.activity_service import (
    profile_stats,
    recent_activities,
    record_activity,
)
from redplad.services.matching_service import birth_date_bounds

logger = structlog.get_logger("redplad.api.profiles")

router = APIRouter()


async def _reload(db: AsyncSession, profile_id: uuid.UUID) -> Profile:
    """Re-select a profile so nested one-to-one records are freshly loaded."""
    stmt = (
        select(Profile)
        .where(Profile.id == profile_id)
        .execution_options(populate_existing=True)
    )
    return (await db.execute(stmt)).scalar_one()


# ──────────────────────────────────────────────────────────────────────────────
# POST /me — Create the caller's profile
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/me",
    response_model=ProfileResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create the caller's profile",
)
async def create_profile(
    payload: ProfileCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Profile:
    log = logger.bind(user_id=str(user.id))
    log.info("create_profile_start")

    existing = (
        await db.execute(select(Profile.id).where(Profile.id == user.id))
    ).scalar_one_or_none()
    if existing is not None:
        raise ConflictError("Profile already exists", "PROFILE_EXISTS")
    if not user.email:
        raise BadRequestError("Access token carries no email address", "EMAIL_REQUIRED")

    profile = Profile(id=user.id, email=user.email, **payload.model_dump())
    db.add(profile)
    await db.flush()

    log.info("create_profile_complete")
    return await _reload(db, user.id)


# ──────────────────────────────────────────────────────────────────────────────
# GET /me, PUT /me
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/me", response_model=ProfileResponse, summary="Get own profile")
async def get_own_profile(profile: Profile = Depends(get_current_profile)) -> Profile:
    return profile


@router.put("/me", response_model=ProfileResponse, summary="Update own profile")
async def update_own_profile(
    payload: ProfileUpdate,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
) -> Profile:
    """Apply only the fields present in the request body."""
    update_data = payload.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(profile, field, value)
    profile.last_active_at = datetime.now(timezone.utc)

    await db.flush()
    logger.info(
        "update_profile_complete",
        user_id=str(profile.id),
        updated_fields=list(update_data.keys()),
    )
    return await _reload(db, profile.id)


# ──────────────────────────────────────────────────────────────────────────────
# Nested one-to-one records
# ──────────────────────────────────────────────────────────────────────────────

@router.put(
    "/me/cultural-background",
    response_model=ProfileResponse,
    summary="Create or replace own cultural background",
)
async def upsert_cultural_background(
    payload: CulturalBackgroundIn,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
) -> Profile:
    data = payload.model_dump()
    if profile.cultural_background is None:
        db.add(CulturalBackground(user_id=profile.id, **data))
    else:
        for field, value in data.items():
            setattr(profile.cultural_background, field, value)
    await db.flush()
    logger.info("cultural_background_saved", user_id=str(profile.id))
    return await _reload(db, profile.id)


@router.put(
    "/me/personality",
    response_model=ProfileResponse,
    summary="Create or replace own personality assessment",
)
async def upsert_personality(
    payload: PersonalityIn,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
) -> Profile:
    data = payload.model_dump()
    assessment = profile.personality_assessment
    if assessment is None:
        db.add(PersonalityAssessment(user_id=profile.id, **data))
    else:
        for field, value in data.items():
            setattr(assessment, field, value)
        assessment.completed_at = datetime.now(timezone.utc)
    await db.flush()
    logger.info("personality_saved", user_id=str(profile.id))
    return await _reload(db, profile.id)


@router.put(
    "/me/preferences",
    response_model=ProfileResponse,
    summary="Create or replace own match preferences",
)
async def upsert_preferences(
    payload: PreferencesIn,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
) -> Profile:
    data = payload.model_dump()
    if profile.preferences is None:
        db.add(UserPreferences(user_id=profile.id, **data))
    else:
        for field, value in data.items():
            setattr(profile.preferences, field, value)
    await db.flush()
    logger.info("preferences_saved", user_id=str(profile.id))
    return await _reload(db, profile.id)


# ──────────────────────────────────────────────────────────────────────────────
# GET / — Browse members
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/", response_model=ProfileListResponse, summary="Browse active members")
async def list_profiles(
    tribe: Optional[str] = Query(None, max_length=100),
    location_country: Optional[str] = Query(None, max_length=100),
    age_min: Optional[int] = Query(None, ge=18, le=100),
    age_max: Optional[int] = Query(None, ge=18, le=100),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
) -> ProfileListResponse:
    filters = [Profile.is_active.is_(True), Profile.id != profile.id]
    if location_country:
        filters.append(func.lower(Profile.location_country) == location_country.strip().lower())
    if tribe:
        filters.append(
            Profile.cultural_background.has(
                func.lower(CulturalBackground.primary_tribe) == tribe.strip().lower()
            )
        )
    born_after, born_on_or_before = birth_date_bounds(age_min, age_max, date.today())
    if born_after is not None:
        filters.append(Profile.date_of_birth > born_after)
    if born_on_or_before is not None:
        filters.append(Profile.date_of_birth <= born_on_or_before)

    total = (
        await db.execute(select(func.count()).select_from(Profile).where(*filters))
    ).scalar_one()
    stmt = (
        select(Profile)
        .where(*filters)
        .order_by(Profile.last_active_at.desc().nulls_last())
        .limit(limit)
        .offset((page - 1) * limit)
    )
    profiles = (await db.execute(stmt)).scalars().all()

    return ProfileListResponse(
        profiles=list(profiles),
        pagination=Pagination.build(page, limit, total),
    )


# ──────────────────────────────────────────────────────────────────────────────
# GET /{profile_id}/stats, GET /{profile_id}/activities — own dashboard
# ──────────────────────────────────────────────────────────────────────────────

def _require_self(profile_id: uuid.UUID, profile: Profile, what: str) -> None:
    if profile_id != profile.id:
        raise PermissionDeniedError(
            f"You can only view your own {what}", "UNAUTHORIZED_ACCESS"
        )


@router.get(
    "/{profile_id}/stats",
    response_model=ProfileStatsResponse,
    summary="Own engagement statistics",
)
async def get_profile_stats(
    profile_id: uuid.UUID,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
) -> ProfileStatsResponse:
    _require_self(profile_id, profile, "stats")
    stats = await profile_stats(db, profile.id)
    return ProfileStatsResponse(stats=ProfileStats(**stats))


@router.get(
    "/{profile_id}/activities",
    response_model=ActivityListResponse,
    summary="Own recent activity",
)
async def get_profile_activities(
    profile_id: uuid.UUID,
    limit: int = Query(10, ge=1, le=50),
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
) -> ActivityListResponse:
    _require_self(profile_id, profile, "activities")
    activities = await recent_activities(db, profile.id, limit=limit)
    return ActivityListResponse(activities=activities)


# ──────────────────────────────────────────────────────────────────────────────
# GET /{profile_id} — View a member
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/{profile_id}",
    response_model=PublicProfileResponse,
    summary="View another member's profile",
)
async def get_profile(
    profile_id: uuid.UUID,
    viewer: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
) -> Profile:
    stmt = select(Profile).where(Profile.id == profile_id, Profile.is_active.is_(True))
    target = (await db.execute(stmt)).scalar_one_or_none()
    if target is None:
        raise NotFoundError("Profile not found", "PROFILE_NOT_FOUND")

    if target.id != viewer.id:
        await record_activity(db, viewer.id, "profile_view", target_user_id=target.id)
    return target
