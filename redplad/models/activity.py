"""
ReDPlAD — UserActivity audit trail and VerificationDocument models.
"""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID as PgUUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from redplad.database import Base

ACTIVITY_TYPES = (
    "profile_view",
    "like",
    "pass",
    "super_like",
    "message_sent",
    "event_join",
    "quiz_complete",
    "endorsement",
    "user_activated",
    "user_deactivated",
)

DOCUMENT_TYPES = ("government_id", "profile_photo", "video_selfie")
REQUIRED_DOCUMENT_TYPES = frozenset({"government_id", "profile_photo"})
VERIFICATION_STATUSES = ("pending", "approved", "rejected")


class UserActivity(Base):
    __tablename__ = "user_activities"

    id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    activity_type: Mapped[str] = mapped_column(String, nullable=False)
    target_user_id: Mapped[uuid.UUID | None] = mapped_column(
        PgUUID(as_uuid=True), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )
    target_event_id: Mapped[uuid.UUID | None] = mapped_column(
        PgUUID(as_uuid=True),
        ForeignKey("cultural_events.id", ondelete="SET NULL"),
        nullable=True,
    )
    metadata_: Mapped[dict | None] = mapped_column(
        "metadata", JSONB, nullable=True, comment="Extra context (column name: metadata)"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    target_user: Mapped["Profile"] = relationship(
        "Profile", foreign_keys=[target_user_id], lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<UserActivity {self.activity_type!r} user={self.user_id}>"


class VerificationDocument(Base):
    __tablename__ = "verification_documents"
    __table_args__ = (
        CheckConstraint(
            "document_type IN ('government_id', 'profile_photo', 'video_selfie')",
            name="ck_document_type",
        ),
        CheckConstraint(
            "verification_status IN ('pending', 'approved', 'rejected')",
            name="ck_verification_status",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    document_type: Mapped[str] = mapped_column(String, nullable=False)
    storage_path: Mapped[str] = mapped_column(String, nullable=False)
    verification_status: Mapped[str] = mapped_column(
        String, default="pending", server_default="pending", nullable=False, index=True
    )
    verified_by: Mapped[uuid.UUID | None] = mapped_column(
        PgUUID(as_uuid=True), ForeignKey("profiles.id"), nullable=True
    )
    verification_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    owner: Mapped["Profile"] = relationship(
        "Profile", foreign_keys=[user_id], lazy="selectin"
    )

    def __repr__(self) -> str:
        return (
            f"<VerificationDocument {self.document_type!r} user={self.user_id} "
            f"status={self.verification_status!r}>"
        )
