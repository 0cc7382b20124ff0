"""
ReDPlAD — Endorsements and cultural event RSVPs

``current_attendees`` on an event counts ``going`` RSVPs only, so a status
change moves it by the difference between the old and new status.  Private
events are visible to their organizer alone; for everyone else they behave
as if they did not exist.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from redplad.errors import BadRequestError, ConflictError, NotFoundError
from redplad.models.community import CulturalEvent, Endorsement, EventAttendee
from redplad.models.profile import Profile
from redplad.services.activity_service import record_activity

logger = structlog.get_logger("redplad.community_service")

ATTENDING_STATUSES = ("going", "maybe")
MY_EVENT_KINDS = ("organized", "attending", "all")


def attendance_delta(previous: str | None, new: str) -> int:
    """Change to ``current_attendees`` when an RSVP moves from ``previous``."""
    return int(new == "going") - int(previous == "going")


def visible_to(event: CulturalEvent, user_id: uuid.UUID) -> bool:
    return event.is_public or event.organizer_id == user_id


# ── Endorsements ──────────────────────────────────────────────────────────────

async def create_endorsement(
    endorser_id: uuid.UUID,
    endorsed_id: uuid.UUID,
    endorsement_type: str,
    message: str,
    db: AsyncSession,
) -> Endorsement:
    log = logger.bind(user_id=str(endorser_id), endorsed_id=str(endorsed_id))

    if endorsed_id == endorser_id:
        raise BadRequestError("You cannot endorse yourself", "SELF_ENDORSEMENT")

    endorsed = (
        await db.execute(
            select(Profile.id).where(Profile.id == endorsed_id, Profile.is_active.is_(True))
        )
    ).scalar_one_or_none()
    if endorsed is None:
        raise NotFoundError("User not found", "USER_NOT_FOUND")

    existing = (
        await db.execute(
            select(Endorsement.id).where(
                Endorsement.endorser_id == endorser_id,
                Endorsement.endorsed_id == endorsed_id,
                Endorsement.endorsement_type == endorsement_type,
            )
        )
    ).scalar_one_or_none()
    if existing is not None:
        raise ConflictError(
            "You have already given this endorsement", "DUPLICATE_ENDORSEMENT"
        )

    endorsement = Endorsement(
        endorser_id=endorser_id,
        endorsed_id=endorsed_id,
        endorsement_type=endorsement_type,
        message=message,
    )
    db.add(endorsement)
    await record_activity(
        db,
        endorser_id,
        "endorsement",
        target_user_id=endorsed_id,
        metadata={"endorsement_type": endorsement_type},
    )
    await db.flush()
    await db.refresh(endorsement, attribute_names=["endorser", "created_at", "is_verified"])

    log.info("endorsement_created", endorsement_type=endorsement_type)
    return endorsement


# ── Events ────────────────────────────────────────────────────────────────────

async def _visible_event(
    user_id: uuid.UUID, event_id: uuid.UUID, db: AsyncSession, for_update: bool = False
) -> CulturalEvent:
    stmt = select(CulturalEvent).where(CulturalEvent.id == event_id)
    if for_update:
        stmt = stmt.with_for_update()
    event = (await db.execute(stmt)).scalar_one_or_none()
    if event is None or not visible_to(event, user_id):
        raise NotFoundError("Event not found", "EVENT_NOT_FOUND")
    return event


async def set_attendance(
    user_id: uuid.UUID,
    event_id: uuid.UUID,
    attendance_status: str,
    db: AsyncSession,
    now: datetime | None = None,
) -> CulturalEvent:
    """Create or change the caller's RSVP.

    The event row is locked so concurrent RSVPs cannot overfill it.
    """
    log = logger.bind(user_id=str(user_id), event_id=str(event_id))
    now = now or datetime.now(timezone.utc)

    event = await _visible_event(user_id, event_id, db, for_update=True)
    if event.event_date <= now:
        raise BadRequestError("This event has already taken place", "EVENT_PAST")

    attendee = (
        await db.execute(
            select(EventAttendee).where(
                EventAttendee.event_id == event_id, EventAttendee.user_id == user_id
            )
        )
    ).scalar_one_or_none()

    previous = attendee.attendance_status if attendee is not None else None
    delta = attendance_delta(previous, attendance_status)
    if delta > 0 and event.is_full:
        raise ConflictError("This event is full", "EVENT_FULL")

    if attendee is None:
        db.add(
            EventAttendee(
                event_id=event_id,
                user_id=user_id,
                attendance_status=attendance_status,
            )
        )
    else:
        attendee.attendance_status = attendance_status

    event.current_attendees = max(0, event.current_attendees + delta)
    await record_activity(
        db,
        user_id,
        "event_join",
        target_event_id=event_id,
        metadata={"attendance_status": attendance_status},
    )
    await db.flush()

    log.info("event_attendance_updated", status=attendance_status, delta=delta)
    return event


@dataclass
class EventDetail:
    event: CulturalEvent
    attendees: list[EventAttendee] = field(default_factory=list)
    user_attendance: str | None = None

    @property
    def attendee_count(self) -> int:
        return sum(1 for a in self.attendees if a.attendance_status == "going")


async def event_detail(
    user_id: uuid.UUID, event_id: uuid.UUID, db: AsyncSession
) -> EventDetail:
    event = await _visible_event(user_id, event_id, db)
    attendees = list(
        (
            await db.execute(
                select(EventAttendee)
                .where(EventAttendee.event_id == event_id)
                .order_by(EventAttendee.registered_at.asc())
            )
        )
        .scalars()
        .all()
    )
    own = next((a for a in attendees if a.user_id == user_id), None)
    return EventDetail(
        event=event,
        attendees=attendees,
        user_attendance=own.attendance_status if own is not None else None,
    )


@dataclass
class MyEvents:
    organized: list[CulturalEvent] = field(default_factory=list)
    attending: list[EventAttendee] = field(default_factory=list)


async def my_events(
    user_id: uuid.UUID,
    db: AsyncSession,
    kind: str = "all",
    upcoming: bool = True,
    now: datetime | None = None,
) -> MyEvents:
    """Events the member organizes and events they RSVP'd going or maybe to."""
    if kind not in MY_EVENT_KINDS:
        raise BadRequestError(f"Unsupported event listing: {kind}", "INVALID_TYPE")
    now = now or datetime.now(timezone.utc)
    result = MyEvents()

    if kind in ("organized", "all"):
        stmt = select(CulturalEvent).where(CulturalEvent.organizer_id == user_id)
        if upcoming:
            stmt = stmt.where(CulturalEvent.event_date >= now)
        stmt = stmt.order_by(CulturalEvent.event_date.asc())
        result.organized = list((await db.execute(stmt)).scalars().all())

    if kind in ("attending", "all"):
        stmt = (
            select(EventAttendee)
            .join(CulturalEvent, CulturalEvent.id == EventAttendee.event_id)
            .where(
                EventAttendee.user_id == user_id,
                EventAttendee.attendance_status.in_(ATTENDING_STATUSES),
            )
        )
        if upcoming:
            stmt = stmt.where(CulturalEvent.event_date >= now)
        stmt = stmt.order_by(CulturalEvent.event_date.asc())
        result.attending = list((await db.execute(stmt)).scalars().all())

    return result
