from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator
from uuid import UUID
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal, Optional

from redplad.schemas.common import Pagination

Gender = Literal["male", "female", "non-binary", "other"]


class CulturalBackgroundIn(BaseModel):
    primary_tribe: str = Field(min_length=1, max_length=100)
    secondary_tribes: list[str] = []
    birth_country: str = Field(min_length=1, max_length=100)
    languages_spoken: list[str] = Field(min_length=1)
    language_fluency: Optional[dict[str, int]] = None
    religion: Optional[str] = Field(None, max_length=100)
    religious_importance: Optional[int] = Field(None, ge=1, le=5)
    traditional_values_importance: Optional[int] = Field(None, ge=1, le=5)
    family_involvement_preference: Optional[int] = Field(None, ge=1, le=5)
    cultural_practices: Optional[dict[str, Any]] = None
    dietary_restrictions: list[str] = []

    @field_validator("language_fluency")
    @classmethod
    def validate_fluency(cls, v: Optional[dict[str, int]]) -> Optional[dict[str, int]]:
        if v is None:
            return v
        for language, level in v.items():
            if not 1 <= level <= 5:
                raise ValueError(f"Fluency for {language} must be between 1 and 5")
        return v


class CulturalBackgroundResponse(CulturalBackgroundIn):
    id: UUID
    secondary_tribes: Optional[list[str]] = None
    languages_spoken: list[str] = []
    dietary_restrictions: Optional[list[str]] = None

    model_config = {"from_attributes": True}


class PersonalityIn(BaseModel):
    openness_score: Optional[Decimal] = Field(None, ge=0, le=5, decimal_places=2)
    conscientiousness_score: Optional[Decimal] = Field(None, ge=0, le=5, decimal_places=2)
    extraversion_score: Optional[Decimal] = Field(None, ge=0, le=5, decimal_places=2)
    agreeableness_score: Optional[Decimal] = Field(None, ge=0, le=5, decimal_places=2)
    neuroticism_score: Optional[Decimal] = Field(None, ge=0, le=5, decimal_places=2)
    assessment_version: str = "v1.0"


class PersonalityResponse(PersonalityIn):
    id: UUID
    completed_at: datetime

    model_config = {"from_attributes": True}


class PreferencesIn(BaseModel):
    age_min: int = Field(18, ge=18, le=100)
    age_max: int = Field(65, ge=18, le=100)
    max_distance_km: int = Field(100, ge=1, le=20000)
    preferred_genders: list[Gender] = []
    preferred_tribes: list[str] = []
    preferred_religions: list[str] = []
    education_importance: int = Field(3, ge=1, le=5)
    location_flexibility: int = Field(3, ge=1, le=5)
    cultural_similarity_importance: int = Field(4, ge=1, le=5)
    family_involvement_required: bool = False

    @model_validator(mode="after")
    def check_age_range(self) -> "PreferencesIn":
        if self.age_min > self.age_max:
            raise ValueError("age_min must not exceed age_max")
        return self


class PreferencesResponse(PreferencesIn):
    id: UUID

    model_config = {"from_attributes": True}


class ProfileCreate(BaseModel):
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    date_of_birth: date
    gender: Gender
    location_city: str = Field(min_length=1, max_length=100)
    location_country: str = Field(min_length=1, max_length=100)
    occupation: Optional[str] = Field(None, max_length=100)
    education_level: Optional[str] = Field(None, max_length=100)
    bio: Optional[str] = Field(None, max_length=1000)

    @field_validator("date_of_birth")
    @classmethod
    def validate_adult(cls, v: date) -> date:
        today = date.today()
        age = today.year - v.year - ((today.month, today.day) < (v.month, v.day))
        if age < 18:
            raise ValueError("Members must be at least 18 years old")
        if age > 120:
            raise ValueError("Date of birth is not plausible")
        return v


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    gender: Optional[Gender] = None
    location_city: Optional[str] = Field(None, min_length=1, max_length=100)
    location_country: Optional[str] = Field(None, min_length=1, max_length=100)
    occupation: Optional[str] = Field(None, max_length=100)
    education_level: Optional[str] = Field(None, max_length=100)
    bio: Optional[str] = Field(None, max_length=1000)


class ProfileSummary(BaseModel):
    id: UUID
    first_name: str
    last_name: str
    date_of_birth: date
    gender: str
    location_city: str
    location_country: str
    occupation: Optional[str] = None
    bio: Optional[str] = None
    profile_photo_url: Optional[str] = None
    is_verified: bool

    model_config = {"from_attributes": True}


class ProfileResponse(ProfileSummary):
    email: str
    education_level: Optional[str] = None
    is_active: bool
    is_admin: bool
    last_active_at: Optional[datetime] = None
    created_at: datetime
    cultural_background: Optional[CulturalBackgroundResponse] = None
    personality_assessment: Optional[PersonalityResponse] = None
    preferences: Optional[PreferencesResponse] = None


class PublicProfileResponse(ProfileSummary):
    cultural_background: Optional[CulturalBackgroundResponse] = None
    personality_assessment: Optional[PersonalityResponse] = None


class ProfileListResponse(BaseModel):
    profiles: list[ProfileSummary]
    pagination: Pagination


class ProfileStats(BaseModel):
    profile_views: int
    likes_received: int
    matches: int
    messages: int
    endorsements: int


class ProfileStatsResponse(BaseModel):
    stats: ProfileStats


class ActivityTargetUser(BaseModel):
    id: UUID
    first_name: str
    last_name: str
    profile_photo_url: Optional[str] = None

    model_config = {"from_attributes": True}


class ActivityItem(BaseModel):
    id: UUID
    activity_type: str
    target_user_id: Optional[UUID] = None
    target_event_id: Optional[UUID] = None
    metadata: Optional[dict[str, Any]] = Field(
        None, validation_alias=AliasChoices("metadata_", "metadata")
    )
    created_at: datetime
    target_user: Optional[ActivityTargetUser] = None

    model_config = {"from_attributes": True}


class ActivityListResponse(BaseModel):
    activities: list[ActivityItem]
