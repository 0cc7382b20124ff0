from pydantic import BaseModel, Field
from uuid import UUID
from datetime import datetime
from typing import Literal, Optional

from redplad.schemas.common import Pagination


class AdminStats(BaseModel):
    total_users: int
    active_users: int
    verified_users: int
    mutual_matches: int
    total_messages: int
    pending_verifications: int


class AdminUserItem(BaseModel):
    id: UUID
    email: str
    first_name: str
    last_name: str
    is_active: bool
    is_verified: bool
    is_admin: bool
    last_active_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AdminUserListResponse(BaseModel):
    users: list[AdminUserItem]
    pagination: Pagination


class UserStatusUpdate(BaseModel):
    is_active: bool
    reason: Optional[str] = Field(None, max_length=500)


class VerificationReview(BaseModel):
    status: Literal["approved", "rejected"]
    notes: Optional[str] = Field(None, max_length=500)


class VerificationDocumentResponse(BaseModel):
    """``file_url`` is a signed URL that expires after DOCUMENT_URL_EXPIRY_MINUTES."""

    id: UUID
    user_id: UUID
    document_type: str
    file_url: str
    verification_status: str
    verification_notes: Optional[str] = None
    verified_by: Optional[UUID] = None
    verified_at: Optional[datetime] = None
    created_at: datetime


class VerificationReviewResponse(BaseModel):
    message: str
    document: VerificationDocumentResponse
    profile_verified: bool


class UploadResponse(BaseModel):
    message: str
    url: str
