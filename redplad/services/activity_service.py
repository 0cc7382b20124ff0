"""
ReDPlAD — member activity trail and own-profile statistics.
"""

from __future__ import annotations

import uuid
from typing import Any

import structlog
from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from redplad.models.activity import ACTIVITY_TYPES, UserActivity
from redplad.models.community import Endorsement
from redplad.models.match import POSITIVE_ACTIONS, Conversation, Match, Message

logger = structlog.get_logger("redplad.activity_service")


async def record_activity(
    db: AsyncSession,
    user_id: uuid.UUID,
    activity_type: str,
    target_user_id: uuid.UUID | None = None,
    target_event_id: uuid.UUID | None = None,
    metadata: dict[str, Any] | None = None,
) -> UserActivity:
    """Add a ``UserActivity`` row to the current transaction."""
    if activity_type not in ACTIVITY_TYPES:
        raise ValueError(f"Unknown activity type: {activity_type!r}")

    activity = UserActivity(
        user_id=user_id,
        activity_type=activity_type,
        target_user_id=target_user_id,
        target_event_id=target_event_id,
        metadata_=metadata,
    )
    db.add(activity)
    logger.debug(
        "activity_recorded",
        user_id=str(user_id),
        activity_type=activity_type,
    )
    return activity


# ── Own-profile statistics and feed ─────────────────────────────────────────

async def _count(db: AsyncSession, stmt) -> int:
    return (await db.execute(stmt)).scalar_one() or 0


async def profile_stats(db: AsyncSession, user_id: uuid.UUID) -> dict[str, int]:
    """Engagement counters shown on a member's own dashboard.

    ``likes_received`` counts pairs where the other side liked or
    super-liked; ``messages`` is sent plus received in the member's
    conversations.
    """
    involves_user = or_(Conversation.user1_id == user_id, Conversation.user2_id == user_id)

    profile_views = await _count(
        db,
        select(func.count())
        .select_from(UserActivity)
        .where(
            UserActivity.target_user_id == user_id,
            UserActivity.activity_type == "profile_view",
        ),
    )
    likes_received = await _count(
        db,
        select(func.count())
        .select_from(Match)
        .where(
            or_(
                and_(Match.user1_id == user_id, Match.user2_action.in_(POSITIVE_ACTIONS)),
                and_(Match.user2_id == user_id, Match.user1_action.in_(POSITIVE_ACTIONS)),
            )
        ),
    )
    matches = await _count(
        db,
        select(func.count())
        .select_from(Match)
        .where(
            or_(Match.user1_id == user_id, Match.user2_id == user_id),
            Match.is_mutual_match.is_(True),
        ),
    )
    endorsements = await _count(
        db,
        select(func.count()).select_from(Endorsement).where(Endorsement.endorsed_id == user_id),
    )
    messages_sent = await _count(
        db,
        select(func.count()).select_from(Message).where(Message.sender_id == user_id),
    )
    messages_received = await _count(
        db,
        select(func.count())
        .select_from(Message)
        .join(Conversation, Message.conversation_id == Conversation.id)
        .where(involves_user, Message.sender_id != user_id),
    )

    return {
        "profile_views": profile_views,
        "likes_received": likes_received,
        "matches": matches,
        "messages": messages_sent + messages_received,
        "endorsements": endorsements,
    }


async def recent_activities(
    db: AsyncSession, user_id: uuid.UUID, limit: int = 10
) -> list[UserActivity]:
    """Newest first; ``target_user`` is loaded with each row."""
    stmt = (
        select(UserActivity)
        .where(UserActivity.user_id == user_id)
        .order_by(UserActivity.created_at.desc())
        .limit(limit)
    )
    return list((await db.execute(stmt)).scalars().all())
