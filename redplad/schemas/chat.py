from pydantic import BaseModel, Field
from uuid import UUID
from datetime import datetime
from typing import Literal, Optional

from redplad.schemas.common import Pagination
from redplad.schemas.profile import ProfileSummary

MessageType = Literal["text", "image", "voice", "video", "translation"]


class ConversationItem(BaseModel):
    id: UUID
    match_id: UUID
    last_message_at: datetime
    is_active: bool
    created_at: datetime
    other_user: ProfileSummary
    unread_count: int


class ConversationListResponse(BaseModel):
    conversations: list[ConversationItem]
    pagination: Pagination


class MessageSender(BaseModel):
    id: UUID
    first_name: str
    last_name: str
    profile_photo_url: Optional[str] = None

    model_config = {"from_attributes": True}


class MessageCreate(BaseModel):
    content: str = Field(min_length=1, max_length=1000)
    message_type: MessageType = "text"
    original_language: Optional[str] = Field(None, max_length=10)
    translated_content: Optional[dict[str, str]] = None


class MessageResponse(BaseModel):
    id: UUID
    conversation_id: UUID
    sender_id: UUID
    content: str
    message_type: str
    original_language: Optional[str] = None
    translated_content: Optional[dict[str, str]] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime
    sender: Optional[MessageSender] = None

    model_config = {"from_attributes": True}


class MessageListResponse(BaseModel):
    messages: list[MessageResponse]
    pagination: Pagination


class SendMessageResponse(BaseModel):
    message: str
    data: MessageResponse


class TypingRequest(BaseModel):
    is_typing: bool = True
