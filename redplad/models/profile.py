"""
ReDPlAD — Profile, CulturalBackground, PersonalityAssessment and
UserPreferences models.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID as PgUUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from redplad.database import Base

GENDERS = ("male", "female", "non-binary", "other")

BIG_FIVE_TRAITS = (
    "openness_score",
    "conscientiousness_score",
    "extraversion_score",
    "agreeableness_score",
    "neuroticism_score",
)


class Profile(Base):
    """A member of the platform.

    The primary key is the identity issued by the auth gateway, so a profile
    row is created once per authenticated user and never hard-deleted here.
    """

    __tablename__ = "profiles"
    __table_args__ = (
        CheckConstraint(
            "gender IN ('male', 'female', 'non-binary', 'other')",
            name="ck_profiles_gender",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(PgUUID(as_uuid=True), primary_key=True)
    email: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False)
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    gender: Mapped[str] = mapped_column(String, nullable=False)
    location_city: Mapped[str] = mapped_column(String, nullable=False)
    location_country: Mapped[str] = mapped_column(String, nullable=False)
    occupation: Mapped[str | None] = mapped_column(String, nullable=True)
    education_level: Mapped[str | None] = mapped_column(String, nullable=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    profile_photo_url: Mapped[str | None] = mapped_column(String, nullable=True)
    is_verified: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="true", nullable=False
    )
    is_admin: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    last_active_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )

    # ── Relationships ──────────────────────────────────────────────
    cultural_background: Mapped["CulturalBackground | None"] = relationship(
        "CulturalBackground",
        back_populates="profile",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    personality_assessment: Mapped["PersonalityAssessment | None"] = relationship(
        "PersonalityAssessment",
        back_populates="profile",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    preferences: Mapped["UserPreferences | None"] = relationship(
        "UserPreferences",
        back_populates="profile",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<Profile {self.email!r} id={self.id}>"


class CulturalBackground(Base):
    __tablename__ = "cultural_backgrounds"
    __table_args__ = (
        CheckConstraint(
            "religious_importance BETWEEN 1 AND 5", name="ck_cultural_religious_importance"
        ),
        CheckConstraint(
            "traditional_values_importance BETWEEN 1 AND 5",
            name="ck_cultural_traditional_values",
        ),
        CheckConstraint(
            "family_involvement_preference BETWEEN 1 AND 5",
            name="ck_cultural_family_involvement",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    primary_tribe: Mapped[str] = mapped_column(String, nullable=False, index=True)
    secondary_tribes: Mapped[list[str] | None] = mapped_column(ARRAY(String), nullable=True)
    birth_country: Mapped[str] = mapped_column(String, nullable=False)
    languages_spoken: Mapped[list[str]] = mapped_column(
        ARRAY(String), nullable=False, server_default="{}"
    )
    language_fluency: Mapped[dict | None] = mapped_column(
        JSONB, nullable=True, comment='{"english": 5, "yoruba": 4}'
    )
    religion: Mapped[str | None] = mapped_column(String, nullable=True)
    religious_importance: Mapped[int | None] = mapped_column(Integer, nullable=True)
    traditional_values_importance: Mapped[int | None] = mapped_column(Integer, nullable=True)
    family_involvement_preference: Mapped[int | None] = mapped_column(Integer, nullable=True)
    cultural_practices: Mapped[dict | None] = mapped_column(
        JSONB, nullable=True, comment="Free-form practice name -> detail map"
    )
    dietary_restrictions: Mapped[list[str] | None] = mapped_column(
        ARRAY(String), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )

    profile: Mapped["Profile"] = relationship("Profile", back_populates="cultural_background")

    def __repr__(self) -> str:
        return f"<CulturalBackground user={self.user_id} tribe={self.primary_tribe!r}>"


class PersonalityAssessment(Base):
    """Big-Five trait scores, each in [0, 5] when present."""

    __tablename__ = "personality_assessments"
    __table_args__ = tuple(
        CheckConstraint(f"{trait} BETWEEN 0 AND 5", name=f"ck_personality_{trait}")
        for trait in BIG_FIVE_TRAITS
    )

    id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    openness_score: Mapped[Decimal | None] = mapped_column(Numeric(3, 2), nullable=True)
    conscientiousness_score: Mapped[Decimal | None] = mapped_column(Numeric(3, 2), nullable=True)
    extraversion_score: Mapped[Decimal | None] = mapped_column(Numeric(3, 2), nullable=True)
    agreeableness_score: Mapped[Decimal | None] = mapped_column(Numeric(3, 2), nullable=True)
    neuroticism_score: Mapped[Decimal | None] = mapped_column(Numeric(3, 2), nullable=True)
    assessment_version: Mapped[str] = mapped_column(
        String, default="v1.0", server_default="v1.0", nullable=False
    )
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    profile: Mapped["Profile"] = relationship("Profile", back_populates="personality_assessment")

    def __repr__(self) -> str:
        return f"<PersonalityAssessment user={self.user_id} v={self.assessment_version!r}>"


class UserPreferences(Base):
    __tablename__ = "user_preferences"

    id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    age_min: Mapped[int] = mapped_column(Integer, default=18, server_default="18", nullable=False)
    age_max: Mapped[int] = mapped_column(Integer, default=65, server_default="65", nullable=False)
    max_distance_km: Mapped[int] = mapped_column(
        Integer, default=100, server_default="100", nullable=False
    )
    preferred_genders: Mapped[list[str]] = mapped_column(
        ARRAY(String), default=list, server_default="{}", nullable=False
    )
    preferred_tribes: Mapped[list[str]] = mapped_column(
        ARRAY(String), default=list, server_default="{}", nullable=False
    )
    preferred_religions: Mapped[list[str]] = mapped_column(
        ARRAY(String), default=list, server_default="{}", nullable=False
    )
    education_importance: Mapped[int] = mapped_column(
        Integer, default=3, server_default="3", nullable=False
    )
    location_flexibility: Mapped[int] = mapped_column(
        Integer, default=3, server_default="3", nullable=False
    )
    cultural_similarity_importance: Mapped[int] = mapped_column(
        Integer, default=4, server_default="4", nullable=False
    )
    family_involvement_required: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )

    profile: Mapped["Profile"] = relationship("Profile", back_populates="preferences")

    def __repr__(self) -> str:
        return f"<UserPreferences user={self.user_id} ages={self.age_min}-{self.age_max}>"
