"""
ReDPlAD — Community models (endorsements, cultural events, RSVPs).
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY, UUID as PgUUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from redplad.database import Base

ENDORSEMENT_TYPES = ("cultural_knowledge", "character", "family_values", "community_service")
EVENT_TYPES = ("cultural", "social", "educational", "religious")
ATTENDANCE_STATUSES = ("going", "maybe", "not_going")


class Endorsement(Base):
    __tablename__ = "endorsements"
    __table_args__ = (
        UniqueConstraint(
            "endorser_id", "endorsed_id", "endorsement_type", name="uq_endorsement"
        ),
        CheckConstraint(
            "endorsement_type IN ('cultural_knowledge', 'character', "
            "'family_values', 'community_service')",
            name="ck_endorsement_type",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    endorser_id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    endorsed_id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    endorsement_type: Mapped[str] = mapped_column(String, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_verified: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    verified_by: Mapped[uuid.UUID | None] = mapped_column(
        PgUUID(as_uuid=True), ForeignKey("profiles.id"), nullable=True
    )
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    endorser: Mapped["Profile"] = relationship(
        "Profile", foreign_keys=[endorser_id], lazy="selectin"
    )
    endorsed: Mapped["Profile"] = relationship(
        "Profile", foreign_keys=[endorsed_id], lazy="selectin"
    )

    def __repr__(self) -> str:
        return (
            f"<Endorsement {self.endorser_id} -> {self.endorsed_id} "
            f"type={self.endorsement_type!r}>"
        )


class CulturalEvent(Base):
    __tablename__ = "cultural_events"
    __table_args__ = (
        CheckConstraint(
            "event_type IN ('cultural', 'social', 'educational', 'religious')",
            name="ck_event_type",
        ),
        CheckConstraint("current_attendees >= 0", name="ck_event_attendees_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    organizer_id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    event_type: Mapped[str] = mapped_column(String, nullable=False)
    event_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    location_name: Mapped[str] = mapped_column(String, nullable=False)
    location_address: Mapped[str | None] = mapped_column(String, nullable=True)
    max_attendees: Mapped[int | None] = mapped_column(Integer, nullable=True)
    current_attendees: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )
    is_public: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="true", nullable=False
    )
    target_tribes: Mapped[list[str]] = mapped_column(
        ARRAY(String), default=list, server_default="{}", nullable=False
    )
    image_url: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )

    organizer: Mapped["Profile"] = relationship("Profile", lazy="selectin")

    @property
    def is_full(self) -> bool:
        return self.max_attendees is not None and self.current_attendees >= self.max_attendees

    def __repr__(self) -> str:
        return f"<CulturalEvent {self.title!r} on {self.event_date}>"


class EventAttendee(Base):
    __tablename__ = "event_attendees"
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_event_attendee"),
        CheckConstraint(
            "attendance_status IN ('going', 'maybe', 'not_going')",
            name="ck_attendance_status",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    event_id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True),
        ForeignKey("cultural_events.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    attendance_status: Mapped[str] = mapped_column(
        String, default="going", server_default="going", nullable=False
    )
    registered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    event: Mapped["CulturalEvent"] = relationship("CulturalEvent", lazy="selectin")
    attendee: Mapped["Profile"] = relationship("Profile", lazy="selectin")

    def __repr__(self) -> str:
        return f"<EventAttendee event={self.event_id} user={self.user_id} {self.attendance_status}>"
