from pydantic import AliasChoices, BaseModel, Field, field_validator
from uuid import UUID
from datetime import datetime, timezone
from typing import Literal, Optional

from redplad.schemas.common import Pagination
from redplad.schemas.profile import ProfileSummary

EndorsementType = Literal["cultural_knowledge", "character", "family_values", "community_service"]
EventType = Literal["cultural", "social", "educational", "religious"]
AttendanceStatus = Literal["going", "maybe", "not_going"]


class MemberItem(ProfileSummary):
    primary_tribe: Optional[str] = None
    endorsement_count: int = 0


class MemberListResponse(BaseModel):
    members: list[MemberItem]
    pagination: Pagination


class EndorsementCreate(BaseModel):
    endorsed_id: UUID
    endorsement_type: EndorsementType
    message: str = Field(min_length=10, max_length=500)


class EndorsementResponse(BaseModel):
    id: UUID
    endorser_id: UUID
    endorsed_id: UUID
    endorsement_type: str
    message: str
    is_verified: bool
    created_at: datetime
    endorser: Optional[ProfileSummary] = None

    model_config = {"from_attributes": True}


class EndorsementListResponse(BaseModel):
    endorsements: list[EndorsementResponse]
    pagination: Pagination


class EventCreate(BaseModel):
    title: str = Field(min_length=3, max_length=200)
    description: str = Field(min_length=10, max_length=2000)
    event_type: EventType
    event_date: datetime
    location_name: str = Field(min_length=1, max_length=200)
    location_address: Optional[str] = Field(None, max_length=500)
    max_attendees: Optional[int] = Field(None, ge=1, le=10000)
    is_public: bool = True
    target_tribes: list[str] = []
    image_url: Optional[str] = None

    @field_validator("event_date")
    @classmethod
    def validate_future(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            v = v.replace(tzinfo=timezone.utc)
        if v <= datetime.now(timezone.utc):
            raise ValueError("Event date must be in the future")
        return v


class EventResponse(BaseModel):
    id: UUID
    organizer_id: UUID
    title: str
    description: str
    event_type: str
    event_date: datetime
    location_name: str
    location_address: Optional[str] = None
    max_attendees: Optional[int] = None
    current_attendees: int
    is_public: bool
    target_tribes: list[str] = []
    image_url: Optional[str] = None
    created_at: datetime
    organizer: Optional[ProfileSummary] = None

    model_config = {"from_attributes": True}


class EventListResponse(BaseModel):
    events: list[EventResponse]
    pagination: Pagination


class AttendRequest(BaseModel):
    attendance_status: AttendanceStatus = "going"


class AttendResponse(BaseModel):
    message: str
    event_id: UUID
    attendance_status: str
    current_attendees: int


class AttendeeItem(BaseModel):
    id: UUID
    attendance_status: str
    registered_at: datetime
    user: ProfileSummary = Field(validation_alias=AliasChoices("attendee", "user"))

    model_config = {"from_attributes": True}


class EventDetailItem(EventResponse):
    attendees: list[AttendeeItem] = []
    user_attendance: Optional[AttendanceStatus] = None
    attendee_count: int = 0


class EventDetailResponse(BaseModel):
    event: EventDetailItem


class AttendingEventItem(EventResponse):
    user_attendance: AttendanceStatus
    registered_at: datetime


class MyEventsResponse(BaseModel):
    organized_events: list[EventResponse]
    attending_events: list[AttendingEventItem]
    total_organized: int
    total_attending: int
