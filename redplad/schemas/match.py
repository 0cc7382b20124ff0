from pydantic import BaseModel
from uuid import UUID
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from redplad.schemas.common import Pagination
from redplad.schemas.profile import PublicProfileResponse


class CompatibilityBreakdown(BaseModel):
    cultural: int
    personality: int
    location: int
    age: int
    overall: int


class DiscoveryCandidate(BaseModel):
    profile: PublicProfileResponse
    compatibility: CompatibilityBreakdown
    match_id: Optional[UUID] = None


class DiscoveryResponse(BaseModel):
    matches: list[DiscoveryCandidate]
    total: int


class CompatibilityResponse(BaseModel):
    user_id: UUID
    compatibility: CompatibilityBreakdown


class MatchActionRequest(BaseModel):
    target_user_id: UUID
    action: Literal["like", "pass", "super_like"]


class MatchResponse(BaseModel):
    id: UUID
    user1_id: UUID
    user2_id: UUID
    compatibility_score: Decimal
    cultural_compatibility: Decimal
    personality_compatibility: Decimal
    location_compatibility: Decimal
    user1_action: str
    user2_action: str
    is_mutual_match: bool
    matched_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class MatchActionResponse(BaseModel):
    message: str
    match: MatchResponse
    is_new_match: bool
    conversation_id: Optional[UUID] = None


class MatchListItem(BaseModel):
    id: UUID
    compatibility_score: Decimal
    cultural_compatibility: Decimal
    personality_compatibility: Decimal
    location_compatibility: Decimal
    user_action: str
    other_user_action: str
    is_mutual_match: bool
    matched_at: Optional[datetime] = None
    created_at: datetime
    other_user: PublicProfileResponse


class MatchListResponse(BaseModel):
    matches: list[MatchListItem]
    pagination: Pagination
