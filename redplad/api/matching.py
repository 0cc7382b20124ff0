"""
ReDPlAD — Matching API

Discovery feed, scored suggestions, pairwise compatibility, like / pass /
super_like actions and the caller's match list.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from redplad.auth import get_current_profile, require_verified_profile
from redplad.database import get_db
from redplad.errors import NotFoundError
from redplad.models.profile import Profile
from redplad.schemas.common import Pagination
from redplad.schemas.match import (
    CompatibilityResponse,
    DiscoveryCandidate,
    DiscoveryResponse,
    MatchActionRequest,
    MatchActionResponse,
    MatchListResponse,
)
from redplad.services.chat_relay import ChatRelay, get_chat_relay
from redplad.services.matching_service import MATCH_STATUSES, MatchingService, ScoredCandidate

logger = structlog.get_logger("redplad.api.matching")

router = APIRouter()


def get_matching_service(relay: ChatRelay = Depends(get_chat_relay)) -> MatchingService:
    return MatchingService(relay=relay)


def _candidates(scored: list[ScoredCandidate]) -> list[DiscoveryCandidate]:
    return [
        DiscoveryCandidate(
            profile=s.profile,
            compatibility=s.scores.as_dict(),
            match_id=s.match_id,
        )
        for s in scored
    ]


# ──────────────────────────────────────────────────────────────────────────────
# GET /discover — Threshold-filtered discovery (persists pending matches)
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/discover", response_model=DiscoveryResponse, summary="Discover compatible members")
async def discover(
    limit: int = Query(10, ge=1, le=50),
    profile: Profile = Depends(require_verified_profile),
    service: MatchingService = Depends(get_matching_service),
    db: AsyncSession = Depends(get_db),
) -> DiscoveryResponse:
    """Score a candidate pool, keep those above the compatibility threshold
    and record a pending match row for each one returned."""
    scored = await service.discover(profile, db, limit=limit)
    return DiscoveryResponse(matches=_candidates(scored), total=len(scored))


@router.get(
    "/suggestions",
    response_model=DiscoveryResponse,
    summary="Best-scored members without recording matches",
)
async def suggestions(
    limit: int = Query(10, ge=1, le=50),
    profile: Profile = Depends(get_current_profile),
    service: MatchingService = Depends(get_matching_service),
    db: AsyncSession = Depends(get_db),
) -> DiscoveryResponse:
    scored = await service.suggest(profile, db, limit=limit)
    return DiscoveryResponse(matches=_candidates(scored), total=len(scored))


@router.get(
    "/compatibility/{user_id}",
    response_model=CompatibilityResponse,
    summary="Compatibility between the caller and one member",
)
async def compatibility(
    user_id: uuid.UUID,
    profile: Profile = Depends(get_current_profile),
    service: MatchingService = Depends(get_matching_service),
    db: AsyncSession = Depends(get_db),
) -> CompatibilityResponse:
    stmt = select(Profile).where(Profile.id == user_id, Profile.is_active.is_(True))
    target = (await db.execute(stmt)).scalar_one_or_none()
    if target is None:
        raise NotFoundError("User not found", "USER_NOT_FOUND")

    scores = service.score_pair(profile, target)
    logger.info(
        "compatibility_scored",
        user_id=str(profile.id),
        target_user_id=str(user_id),
        overall=scores.overall,
    )
    return CompatibilityResponse(user_id=user_id, compatibility=scores.as_dict())


# ──────────────────────────────────────────────────────────────────────────────
# POST /action — like / pass / super_like
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/action", response_model=MatchActionResponse, summary="Act on a member")
async def match_action(
    payload: MatchActionRequest,
    profile: Profile = Depends(require_verified_profile),
    service: MatchingService = Depends(get_matching_service),
    db: AsyncSession = Depends(get_db),
) -> MatchActionResponse:
    result = await service.record_action(profile, payload.target_user_id, payload.action, db)
    message = "It's a match!" if result.is_new_match else "Action recorded"
    return MatchActionResponse(
        message=message,
        match=result.match,
        is_new_match=result.is_new_match,
        conversation_id=result.conversation.id if result.conversation else None,
    )


# ──────────────────────────────────────────────────────────────────────────────
# GET /matches — Caller's matches
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/matches", response_model=MatchListResponse, summary="List own matches")
async def list_matches(
    status: str = Query("all", pattern="^(" + "|".join(MATCH_STATUSES) + ")$"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    profile: Profile = Depends(get_current_profile),
    service: MatchingService = Depends(get_matching_service),
    db: AsyncSession = Depends(get_db),
) -> MatchListResponse:
    items, total = await service.list_matches(
        profile.id, db, status=status, page=page, limit=limit
    )
    return MatchListResponse(matches=items, pagination=Pagination.build(page, limit, total))
