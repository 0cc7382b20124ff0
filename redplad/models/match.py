"""
ReDPlAD — Match, Conversation and Message models.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID as PgUUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from redplad.database import Base

MATCH_ACTIONS = ("like", "pass", "super_like", "pending")
POSITIVE_ACTIONS = frozenset({"like", "super_like"})
MESSAGE_TYPES = ("text", "image", "voice", "video", "translation")


class Match(Base):
    """Pairwise record of two members' actions and compatibility.

    At most one row exists per unordered pair: the ordered pair is unique and
    a functional index over ``least``/``greatest`` rejects the mirror row.
    """

    __tablename__ = "matches"
    __table_args__ = (
        UniqueConstraint("user1_id", "user2_id", name="uq_match_pair"),
        CheckConstraint(
            "user1_action IN ('like', 'pass', 'super_like', 'pending')",
            name="ck_match_user1_action",
        ),
        CheckConstraint(
            "user2_action IN ('like', 'pass', 'super_like', 'pending')",
            name="ck_match_user2_action",
        ),
        CheckConstraint("user1_id <> user2_id", name="ck_match_distinct_users"),
        Index(
            "uq_match_unordered_pair",
            text("least(user1_id, user2_id)"),
            text("greatest(user1_id, user2_id)"),
            unique=True,
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user1_id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    user2_id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    compatibility_score: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    cultural_compatibility: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    personality_compatibility: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    location_compatibility: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    user1_action: Mapped[str] = mapped_column(
        String, default="pending", server_default="pending", nullable=False
    )
    user2_action: Mapped[str] = mapped_column(
        String, default="pending", server_default="pending", nullable=False
    )
    is_mutual_match: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False, index=True
    )
    matched_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )

    # ── Relationships ──────────────────────────────────────────────
    user1: Mapped["Profile"] = relationship(
        "Profile", foreign_keys=[user1_id], lazy="selectin"
    )
    user2: Mapped["Profile"] = relationship(
        "Profile", foreign_keys=[user2_id], lazy="selectin"
    )

    def side_of(self, user_id: uuid.UUID) -> int:
        """Return 1 or 2 for the column pair that belongs to ``user_id``."""
        if self.user1_id == user_id:
            return 1
        if self.user2_id == user_id:
            return 2
        raise ValueError(f"user {user_id} is not part of match {self.id}")

    def action_of(self, user_id: uuid.UUID) -> str:
        return self.user1_action if self.side_of(user_id) == 1 else self.user2_action

    def other_user_id(self, user_id: uuid.UUID) -> uuid.UUID:
        return self.user2_id if self.side_of(user_id) == 1 else self.user1_id

    def __repr__(self) -> str:
        return (
            f"<Match {self.user1_id} <-> {self.user2_id} "
            f"{self.user1_action}/{self.user2_action}>"
        )


class Conversation(Base):
    __tablename__ = "conversations"

    id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    match_id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True),
        ForeignKey("matches.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    user1_id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    user2_id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    last_message_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    user1_unread_count: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )
    user2_unread_count: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="true", nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )

    user1: Mapped["Profile"] = relationship(
        "Profile", foreign_keys=[user1_id], lazy="selectin"
    )
    user2: Mapped["Profile"] = relationship(
        "Profile", foreign_keys=[user2_id], lazy="selectin"
    )

    def has_participant(self, user_id: uuid.UUID) -> bool:
        return user_id in (self.user1_id, self.user2_id)

    def __repr__(self) -> str:
        return f"<Conversation {self.id} match={self.match_id}>"


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        CheckConstraint(
            "message_type IN ('text', 'image', 'voice', 'video', 'translation')",
            name="ck_message_type",
        ),
        Index("ix_messages_conversation_created", "conversation_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    conversation_id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    message_type: Mapped[str] = mapped_column(
        String, default="text", server_default="text", nullable=False
    )
    original_language: Mapped[str | None] = mapped_column(String, nullable=True)
    translated_content: Mapped[dict | None] = mapped_column(
        JSONB, nullable=True, comment='{"en": "Hello", "fr": "Bonjour"}'
    )
    is_read: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    sender: Mapped["Profile"] = relationship("Profile", lazy="selectin")
    conversation: Mapped["Conversation"] = relationship("Conversation", lazy="selectin")

    def __repr__(self) -> str:
        return f"<Message {self.id} conv={self.conversation_id} type={self.message_type!r}>"
