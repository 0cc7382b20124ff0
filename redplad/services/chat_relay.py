"""
ReDPlAD — Realtime relay over Redis pub/sub

The API process publishes JSON events; WebSocket handlers subscribe and fan
them out to connected clients.  Two channel families exist:

  conversation:{conversation_id}   new_message, message_deleted,
                                   messages_read, typing
  user:{user_id}                   new_match, plus anything addressed to a
                                   single member regardless of open room

Events are not persisted.  Typing indicators are fire-and-forget.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Any

import redis.asyncio as aioredis
import structlog

from redplad.config import get_settings

logger = structlog.get_logger("redplad.chat_relay")

# ---------------------------------------------------------------------------
# Shared client lifecycle (driven by the application lifespan)
# ---------------------------------------------------------------------------

_redis_client: aioredis.Redis | None = None


async def connect_redis() -> aioredis.Redis:
    global _redis_client
    settings = get_settings()
    _redis_client = aioredis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_connect_timeout=5,
    )
    # Verify connectivity
    await _redis_client.ping()
    logger.info("redis_connected")
    return _redis_client


async def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("redis_closed")


def get_redis() -> aioredis.Redis | None:
    """Return the shared Redis client, or ``None`` before startup."""
    return _redis_client


def conversation_channel(conversation_id: uuid.UUID | str) -> str:
    return f"conversation:{conversation_id}"


def user_channel(user_id: uuid.UUID | str) -> str:
    return f"user:{user_id}"


def decode_event(raw: dict[str, Any] | None) -> dict[str, Any] | None:
    """Turn a raw pub/sub frame into an event dict; ``None`` for control frames."""
    if not raw or raw.get("type") != "message":
        return None
    try:
        event = json.loads(raw["data"])
    except (TypeError, ValueError):
        logger.warning("relay_message_undecodable", channel=raw.get("channel"))
        return None
    event["channel"] = raw.get("channel")
    return event


def _json_default(value: Any) -> str:
    if isinstance(value, (uuid.UUID,)):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


class ChatRelay:
    """Publish and subscribe helper bound to one Redis client."""

    def __init__(self, redis: aioredis.Redis | None) -> None:
        self.redis = redis

    async def publish(self, channel: str, event: str, payload: dict[str, Any]) -> int:
        """Publish ``{"event", "data", "sent_at"}`` to ``channel``.

        Returns the number of receivers Redis reports.  Raises
        ``RuntimeError`` if the relay was never connected.
        """
        if self.redis is None:
            raise RuntimeError("Redis client not initialised")
        message = json.dumps(
            {
                "event": event,
                "data": payload,
                "sent_at": datetime.now(timezone.utc).isoformat(),
            },
            default=_json_default,
        )
        receivers = await self.redis.publish(channel, message)
        logger.debug("relay_published", channel=channel, relay_event=event, receivers=receivers)
        return receivers

    # ── Conversation events ──────────────────────────────────────────

    async def new_message(self, conversation_id: uuid.UUID, message: dict[str, Any]) -> None:
        await self.publish(conversation_channel(conversation_id), "new_message", message)

    async def message_deleted(self, conversation_id: uuid.UUID, message_id: uuid.UUID) -> None:
        await self.publish(
            conversation_channel(conversation_id),
            "message_deleted",
            {"message_id": message_id},
        )

    async def messages_read(
        self, conversation_id: uuid.UUID, reader_id: uuid.UUID, count: int
    ) -> None:
        await self.publish(
            conversation_channel(conversation_id),
            "messages_read",
            {"conversation_id": conversation_id, "reader_id": reader_id, "count": count},
        )

    async def typing(
        self, conversation_id: uuid.UUID, user_id: uuid.UUID, is_typing: bool
    ) -> None:
        """Broadcast a typing indicator; failures are logged, never raised."""
        try:
            await self.publish(
                conversation_channel(conversation_id),
                "typing",
                {"user_id": user_id, "is_typing": is_typing},
            )
        except Exception as exc:
            logger.warning(
                "typing_broadcast_failed",
                conversation_id=str(conversation_id),
                error=str(exc),
            )

    # ── User events ──────────────────────────────────────────────────

    async def new_match(
        self,
        match_id: uuid.UUID,
        conversation_id: uuid.UUID | None,
        user_ids: tuple[uuid.UUID, uuid.UUID],
    ) -> None:
        for user_id in user_ids:
            other = user_ids[1] if user_id == user_ids[0] else user_ids[0]
            await self.publish(
                user_channel(user_id),
                "new_match",
                {
                    "match_id": match_id,
                    "conversation_id": conversation_id,
                    "other_user_id": other,
                },
            )

    # ── Subscription ─────────────────────────────────────────────────

    async def open_pubsub(self, *channels: str) -> aioredis.client.PubSub:
        """Return a PubSub already subscribed to ``channels``.

        The caller owns it and must ``aclose()`` it.  More channels can be
        joined or left later with ``subscribe``/``unsubscribe``.
        """
        if self.redis is None:
            raise RuntimeError("Redis client not initialised")
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(*channels)
        return pubsub

    async def next_event(
        self, pubsub: aioredis.client.PubSub, timeout: float = 1.0
    ) -> dict[str, Any] | None:
        raw = await pubsub.get_message(ignore_subscribe_messages=True, timeout=timeout)
        return decode_event(raw)


def get_chat_relay() -> ChatRelay:
    """FastAPI dependency returning a relay bound to the shared client."""
    return ChatRelay(get_redis())
