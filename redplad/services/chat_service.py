"""
ReDPlAD — Conversations and messages between matched members.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from redplad.database import after_commit
from redplad.errors import (
    BadRequestError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
)
from redplad.models.match import Conversation, Message
from redplad.services.activity_service import record_activity
from redplad.services.chat_relay import ChatRelay

logger = structlog.get_logger("redplad.chat_service")


def message_payload(message: Message) -> dict[str, Any]:
    """JSON-ready event body for a stored message."""
    sender = message.sender
    return {
        "id": message.id,
        "conversation_id": message.conversation_id,
        "sender_id": message.sender_id,
        "content": message.content,
        "message_type": message.message_type,
        "original_language": message.original_language,
        "translated_content": message.translated_content,
        "is_read": message.is_read,
        "created_at": message.created_at,
        "sender": {
            "id": sender.id,
            "first_name": sender.first_name,
            "last_name": sender.last_name,
            "profile_photo_url": sender.profile_photo_url,
        }
        if sender is not None
        else None,
    }


class ChatService:
    def __init__(self, relay: ChatRelay | None = None) -> None:
        self.relay = relay

    # ── Conversations ─────────────────────────────────────────────────────

    async def list_conversations(
        self, user_id: uuid.UUID, db: AsyncSession, page: int = 1, limit: int = 20
    ) -> tuple[list[dict[str, Any]], int]:
        filters = (
            or_(Conversation.user1_id == user_id, Conversation.user2_id == user_id),
            Conversation.is_active.is_(True),
        )
        total = (
            await db.execute(select(func.count()).select_from(Conversation).where(*filters))
        ).scalar_one()

        stmt = (
            select(Conversation)
            .where(*filters)
            .order_by(Conversation.last_message_at.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        conversations = (await db.execute(stmt)).scalars().all()

        items = []
        for conv in conversations:
            is_user1 = conv.user1_id == user_id
            items.append(
                {
                    "id": conv.id,
                    "match_id": conv.match_id,
                    "last_message_at": conv.last_message_at,
                    "is_active": conv.is_active,
                    "created_at": conv.created_at,
                    "other_user": conv.user2 if is_user1 else conv.user1,
                    "unread_count": conv.user1_unread_count
                    if is_user1
                    else conv.user2_unread_count,
                }
            )
        return items, total

    async def get_conversation_for(
        self, user_id: uuid.UUID, conversation_id: uuid.UUID, db: AsyncSession
    ) -> Conversation:
        conversation = (
            await db.execute(select(Conversation).where(Conversation.id == conversation_id))
        ).scalar_one_or_none()
        if conversation is None:
            raise NotFoundError("Conversation not found", "CONVERSATION_NOT_FOUND")
        if not conversation.has_participant(user_id):
            raise PermissionDeniedError("Access denied to this conversation", "ACCESS_DENIED")
        return conversation

    # ── Messages ──────────────────────────────────────────────────────────

    async def list_messages(
        self,
        user_id: uuid.UUID,
        conversation_id: uuid.UUID,
        db: AsyncSession,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[Message], int]:
        """Newest page of messages, returned oldest first.

        Marks the other member's unread messages as read and resets the
        caller's unread counter.
        """
        log = logger.bind(user_id=str(user_id), conversation_id=str(conversation_id))
        conversation = await self.get_conversation_for(user_id, conversation_id, db)

        total = (
            await db.execute(
                select(func.count())
                .select_from(Message)
                .where(Message.conversation_id == conversation_id)
            )
        ).scalar_one()

        stmt = (
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        messages = list((await db.execute(stmt)).scalars().all())
        messages.reverse()

        read_result = await db.execute(
            update(Message)
            .where(
                Message.conversation_id == conversation_id,
                Message.sender_id != user_id,
                Message.is_read.is_(False),
            )
            .values(is_read=True, read_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session="fetch")
        )
        marked = read_result.rowcount or 0

        if conversation.user1_id == user_id:
            conversation.user1_unread_count = 0
        else:
            conversation.user2_unread_count = 0
        await db.flush()

        if marked and self.relay is not None:
            relay = self.relay

            async def _broadcast_read() -> None:
                try:
                    await relay.messages_read(conversation_id, user_id, marked)
                except Exception as exc:
                    log.warning("messages_read_broadcast_failed", error=str(exc))

            after_commit(db, _broadcast_read)

        log.info("messages_listed", returned=len(messages), marked_read=marked)
        return messages, total

    async def send_message(
        self,
        user_id: uuid.UUID,
        conversation_id: uuid.UUID,
        db: AsyncSession,
        content: str,
        message_type: str = "text",
        original_language: str | None = None,
        translated_content: dict[str, str] | None = None,
    ) -> Message:
        log = logger.bind(user_id=str(user_id), conversation_id=str(conversation_id))
        conversation = await self.get_conversation_for(user_id, conversation_id, db)
        if not conversation.is_active:
            raise ConflictError("This conversation is no longer active", "CONVERSATION_INACTIVE")

        message = Message(
            conversation_id=conversation_id,
            sender_id=user_id,
            content=content,
            message_type=message_type,
            original_language=original_language,
            translated_content=translated_content,
        )
        db.add(message)

        is_user1 = conversation.user1_id == user_id
        recipient_id = conversation.user2_id if is_user1 else conversation.user1_id
        counter = (
            Conversation.user2_unread_count if is_user1 else Conversation.user1_unread_count
        )
        await db.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values({counter: counter + 1, Conversation.last_message_at: func.now()})
            .execution_options(synchronize_session="fetch")
        )

        await record_activity(
            db,
            user_id,
            "message_sent",
            target_user_id=recipient_id,
            metadata={"conversation_id": str(conversation_id), "message_type": message_type},
        )
        await db.flush()
        await db.refresh(message, attribute_names=["sender", "created_at"])

        if self.relay is not None:
            relay = self.relay
            payload = message_payload(message)

            async def _broadcast_message() -> None:
                try:
                    await relay.new_message(conversation_id, payload)
                except Exception as exc:
                    log.warning("new_message_broadcast_failed", error=str(exc))

            after_commit(db, _broadcast_message)

        log.info("message_sent", message_id=str(message.id), message_type=message_type)
        return message

    async def _load_message(self, message_id: uuid.UUID, db: AsyncSession) -> Message:
        message = (
            await db.execute(select(Message).where(Message.id == message_id))
        ).scalar_one_or_none()
        if message is None:
            raise NotFoundError("Message not found", "MESSAGE_NOT_FOUND")
        return message

    async def mark_read(
        self, user_id: uuid.UUID, message_id: uuid.UUID, db: AsyncSession
    ) -> Message:
        message = await self._load_message(message_id, db)
        if message.sender_id == user_id:
            raise BadRequestError("Cannot mark own message as read", "INVALID_OPERATION")
        if not message.conversation.has_participant(user_id):
            raise PermissionDeniedError("Access denied", "ACCESS_DENIED")

        if not message.is_read:
            message.is_read = True
            message.read_at = datetime.now(timezone.utc)
            await db.flush()
        return message

    async def delete_message(
        self, user_id: uuid.UUID, message_id: uuid.UUID, db: AsyncSession
    ) -> None:
        message = await self._load_message(message_id, db)
        if message.sender_id != user_id:
            raise PermissionDeniedError("Only the sender can delete a message", "ACCESS_DENIED")

        conversation_id = message.conversation_id
        await db.execute(delete(Message).where(Message.id == message_id))
        logger.info(
            "message_deleted",
            user_id=str(user_id),
            message_id=str(message_id),
        )

        if self.relay is not None:
            relay = self.relay

            async def _broadcast_delete() -> None:
                try:
                    await relay.message_deleted(conversation_id, message_id)
                except Exception as exc:
                    logger.warning("message_deleted_broadcast_failed", error=str(exc))

            after_commit(db, _broadcast_delete)

    async def typing(
        self,
        user_id: uuid.UUID,
        conversation_id: uuid.UUID,
        is_typing: bool,
        db: AsyncSession,
    ) -> None:
        await self.get_conversation_for(user_id, conversation_id, db)
        if self.relay is not None:
            await self.relay.typing(conversation_id, user_id, is_typing)
