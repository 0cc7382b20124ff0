"""
ReDPlAD — Community API

Member directory, peer endorsements and cultural events with RSVPs.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from redplad.auth import get_current_profile
from redplad.database import get_db
from redplad.models.community import (
    ENDORSEMENT_TYPES,
    EVENT_TYPES,
    CulturalEvent,
    Endorsement,
)
from redplad.models.profile import CulturalBackground, Profile
from redplad.schemas.common import Pagination
from redplad.schemas.community import (
    AttendeeItem,
    AttendingEventItem,
    AttendRequest,
    AttendResponse,
    EndorsementCreate,
    EndorsementListResponse,
    EndorsementResponse,
    EventCreate,
    EventDetailItem,
    EventDetailResponse,
    EventListResponse,
    EventResponse,
    MemberItem,
    MemberListResponse,
    MyEventsResponse,
)
from redplad.schemas.profile import ProfileSummary
from redplad.services import community_service

logger = structlog.get_logger("redplad.api.community")

router = APIRouter()


# ──────────────────────────────────────────────────────────────────────────────
# GET /members — Directory with endorsement counts
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/members", response_model=MemberListResponse, summary="Community members")
async def list_members(
    tribe: Optional[str] = Query(None, max_length=100),
    location: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
) -> MemberListResponse:
    filters = [Profile.is_active.is_(True)]
    if tribe:
        filters.append(func.lower(CulturalBackground.primary_tribe) == tribe.strip().lower())
    if location:
        filters.append(Profile.location_city.ilike(f"%{location.strip()}%"))

    endorsement_counts = (
        select(Endorsement.endorsed_id, func.count().label("endorsement_count"))
        .group_by(Endorsement.endorsed_id)
        .subquery()
    )

    base = (
        select(
            Profile,
            CulturalBackground.primary_tribe,
            func.coalesce(endorsement_counts.c.endorsement_count, 0),
        )
        .outerjoin(CulturalBackground, CulturalBackground.user_id == Profile.id)
        .outerjoin(endorsement_counts, endorsement_counts.c.endorsed_id == Profile.id)
        .where(*filters)
    )
    total = (
        await db.execute(select(func.count()).select_from(base.subquery()))
    ).scalar_one()

    rows = (
        await db.execute(
            base.order_by(Profile.last_active_at.desc().nulls_last())
            .limit(limit)
            .offset((page - 1) * limit)
        )
    ).all()

    members = [
        MemberItem(
            **ProfileSummary.model_validate(member).model_dump(),
            primary_tribe=primary_tribe,
            endorsement_count=count,
        )
        for member, primary_tribe, count in rows
    ]
    return MemberListResponse(members=members, pagination=Pagination.build(page, limit, total))


# ──────────────────────────────────────────────────────────────────────────────
# Endorsements
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/endorsements", response_model=EndorsementListResponse, summary="List endorsements")
async def list_endorsements(
    endorsement_type: Optional[str] = Query(
        None, alias="type", pattern="^(" + "|".join(ENDORSEMENT_TYPES) + ")$"
    ),
    user_id: Optional[uuid.UUID] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
) -> EndorsementListResponse:
    filters = []
    if endorsement_type:
        filters.append(Endorsement.endorsement_type == endorsement_type)
    if user_id:
        filters.append(Endorsement.endorsed_id == user_id)

    total = (
        await db.execute(select(func.count()).select_from(Endorsement).where(*filters))
    ).scalar_one()
    stmt = (
        select(Endorsement)
        .where(*filters)
        .order_by(Endorsement.created_at.desc())
        .limit(limit)
        .offset((page - 1) * limit)
    )
    endorsements = (await db.execute(stmt)).scalars().all()
    return EndorsementListResponse(
        endorsements=list(endorsements), pagination=Pagination.build(page, limit, total)
    )


@router.post(
    "/endorsements",
    response_model=EndorsementResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Endorse another member",
)
async def create_endorsement(
    payload: EndorsementCreate,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
) -> Endorsement:
    return await community_service.create_endorsement(
        profile.id, payload.endorsed_id, payload.endorsement_type, payload.message, db
    )


# ──────────────────────────────────────────────────────────────────────────────
# Events
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/events", response_model=EventListResponse, summary="List cultural events")
async def list_events(
    event_type: Optional[str] = Query(
        None, alias="type", pattern="^(" + "|".join(EVENT_TYPES) + ")$"
    ),
    upcoming: bool = Query(True),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
) -> EventListResponse:
    filters = [
        or_(CulturalEvent.is_public.is_(True), CulturalEvent.organizer_id == profile.id)
    ]
    if event_type:
        filters.append(CulturalEvent.event_type == event_type)
    if upcoming:
        filters.append(CulturalEvent.event_date > func.now())

    total = (
        await db.execute(select(func.count()).select_from(CulturalEvent).where(*filters))
    ).scalar_one()
    stmt = (
        select(CulturalEvent)
        .where(*filters)
        .order_by(CulturalEvent.event_date.asc())
        .limit(limit)
        .offset((page - 1) * limit)
    )
    events = (await db.execute(stmt)).scalars().all()
    return EventListResponse(events=list(events), pagination=Pagination.build(page, limit, total))


@router.post(
    "/events",
    response_model=EventResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a cultural event",
)
async def create_event(
    payload: EventCreate,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
) -> CulturalEvent:
    event = CulturalEvent(organizer_id=profile.id, **payload.model_dump())
    db.add(event)
    await db.flush()
    await db.refresh(event, attribute_names=["organizer", "created_at", "current_attendees"])

    logger.info(
        "event_created",
        user_id=str(profile.id),
        event_id=str(event.id),
        event_type=event.event_type,
    )
    return event


@router.get("/events/my-events", response_model=MyEventsResponse, summary="Own events")
async def list_my_events(
    kind: str = Query(
        "all", alias="type", pattern="^(" + "|".join(community_service.MY_EVENT_KINDS) + ")$"
    ),
    upcoming: bool = Query(True),
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
) -> MyEventsResponse:
    mine = await community_service.my_events(profile.id, db, kind=kind, upcoming=upcoming)
    attending = [
        AttendingEventItem(
            **EventResponse.model_validate(row.event).model_dump(),
            user_attendance=row.attendance_status,
            registered_at=row.registered_at,
        )
        for row in mine.attending
    ]
    return MyEventsResponse(
        organized_events=mine.organized,
        attending_events=attending,
        total_organized=len(mine.organized),
        total_attending=len(attending),
    )


@router.get("/events/{event_id}", response_model=EventDetailResponse, summary="Event details")
async def get_event(
    event_id: uuid.UUID,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
) -> EventDetailResponse:
    detail = await community_service.event_detail(profile.id, event_id, db)
    return EventDetailResponse(
        event=EventDetailItem(
            **EventResponse.model_validate(detail.event).model_dump(),
            attendees=[AttendeeItem.model_validate(a) for a in detail.attendees],
            user_attendance=detail.user_attendance,
            attendee_count=detail.attendee_count,
        )
    )


@router.post(
    "/events/{event_id}/attend",
    response_model=AttendResponse,
    summary="RSVP to an event",
)
async def attend_event(
    event_id: uuid.UUID,
    payload: AttendRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
) -> AttendResponse:
    event = await community_service.set_attendance(
        profile.id, event_id, payload.attendance_status, db
    )
    return AttendResponse(
        message="Attendance updated",
        event_id=event_id,
        attendance_status=payload.attendance_status,
        current_attendees=event.current_attendees,
    )
