"""
ReDPlAD — Discovery, suggestions and match-action reconciliation

Discovery pipeline for a requester R:
  1. Exclude R and every member already paired with R in ``matches``.
  2. Fetch active, verified candidates filtered by R's preferences
     (genders, age range expressed as birth-date bounds), pool size
     ``limit × DISCOVERY_POOL_MULTIPLIER``.
  3. Score every candidate with the CompatibilityScorer.
  4. Keep ``overall ≥ MIN_COMPATIBILITY_SCORE``, sort descending, truncate.
  5. Upsert one pending Match row per survivor (R as user1).

Suggestions run the same scoring over a ``limit × 2`` pool without the
threshold and without persisting anything.

Match actions move each side from ``pending`` to like / pass / super_like.
When both sides are positive the match becomes mutual: ``matched_at`` is
set, a single Conversation is opened and both members are notified over
the relay.  Mutual matches are frozen: repeating the same action is a
no-op, any other action is rejected with 409 ``MATCH_LOCKED``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any

import structlog
from sqlalchemy import and_, func, or_, select, union
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from redplad.config import get_settings
from redplad.database import after_commit
from redplad.errors import BadRequestError, ConflictError, NotFoundError
from redplad.models.match import POSITIVE_ACTIONS, Conversation, Match
from redplad.models.profile import Profile
from redplad.services.activity_service import record_activity
from redplad.services.chat_relay import ChatRelay
from redplad.services.compatibility_service import (
    CompatibilityScorer,
    CompatibilityScores,
)

logger = structlog.get_logger("redplad.matching_service")

# ──────────────────────────────────────────────────────────────────────────────
# Constants
# ──────────────────────────────────────────────────────────────────────────────

SUBMITTABLE_ACTIONS = frozenset({"like", "pass", "super_like"})
SUGGESTION_POOL_MULTIPLIER = 2

OUTCOME_UNCHANGED = "unchanged"
OUTCOME_UPDATED = "updated"
OUTCOME_MUTUAL = "mutual"

MATCH_STATUSES = ("all", "mutual", "pending")


@dataclass
class ScoredCandidate:
    profile: Profile
    scores: CompatibilityScores
    match_id: uuid.UUID | None = None


@dataclass
class ActionResult:
    match: Match
    outcome: str
    conversation: Conversation | None = None

    @property
    def is_new_match(self) -> bool:
        return self.outcome == OUTCOME_MUTUAL


# ──────────────────────────────────────────────────────────────────────────────
# Pure helpers
# ──────────────────────────────────────────────────────────────────────────────

def years_ago(today: date, years: int) -> date:
    """``today`` shifted back ``years`` years; 29 Feb falls back to 28 Feb."""
    try:
        return today.replace(year=today.year - years)
    except ValueError:
        return today.replace(year=today.year - years, day=28)


def birth_date_bounds(
    age_min: int | None, age_max: int | None, today: date
) -> tuple[date | None, date | None]:
    """Return ``(born_after, born_on_or_before)`` for an inclusive age range.

    A member is at least ``age_min`` when born on or before
    ``today - age_min years`` and at most ``age_max`` when born strictly after
    ``today - (age_max + 1) years``.
    """
    born_after = years_ago(today, age_max + 1) if age_max else None
    born_on_or_before = years_ago(today, age_min) if age_min else None
    return born_after, born_on_or_before


def is_mutual(action1: str, action2: str) -> bool:
    return action1 in POSITIVE_ACTIONS and action2 in POSITIVE_ACTIONS


def reconcile_action(
    match: Match,
    actor_id: uuid.UUID,
    action: str,
    now: datetime | None = None,
) -> str:
    """Apply ``action`` by ``actor_id`` to ``match`` in memory.

    Returns one of ``unchanged``, ``updated`` or ``mutual`` (the transition
    into a mutual match).  Raises ``ConflictError`` when the match is already
    mutual and the action differs from the recorded one.
    """
    if action not in SUBMITTABLE_ACTIONS:
        raise BadRequestError(f"Unsupported action: {action}", "INVALID_ACTION")

    side = match.side_of(actor_id)
    current = match.user1_action if side == 1 else match.user2_action

    if match.is_mutual_match:
        if current == action:
            return OUTCOME_UNCHANGED
        raise ConflictError(
            "This match is already mutual and can no longer be changed",
            "MATCH_LOCKED",
        )

    if current == action:
        return OUTCOME_UNCHANGED

    if side == 1:
        match.user1_action = action
    else:
        match.user2_action = action

    if is_mutual(match.user1_action, match.user2_action):
        match.is_mutual_match = True
        match.matched_at = now or datetime.now(timezone.utc)
        return OUTCOME_MUTUAL
    return OUTCOME_UPDATED


def _pair_clause(user_a: uuid.UUID, user_b: uuid.UUID):
    return or_(
        and_(Match.user1_id == user_a, Match.user2_id == user_b),
        and_(Match.user1_id == user_b, Match.user2_id == user_a),
    )


# ──────────────────────────────────────────────────────────────────────────────
# Service
# ──────────────────────────────────────────────────────────────────────────────

class MatchingService:
    """Discovery and match-state service.

    Dependencies are injected at construction so that the service can be
    tested with mocks.
    """

    def __init__(
        self,
        scorer: CompatibilityScorer | None = None,
        relay: ChatRelay | None = None,
    ) -> None:
        self.scorer = scorer or CompatibilityScorer()
        self.relay = relay

        settings = get_settings()
        self.min_score: int = settings.MIN_COMPATIBILITY_SCORE
        self.pool_multiplier: int = settings.DISCOVERY_POOL_MULTIPLIER

    # ── Discovery ─────────────────────────────────────────────────────────

    async def discover(
        self, requester: Profile, db: AsyncSession, limit: int = 10
    ) -> list[ScoredCandidate]:
        log = logger.bind(user_id=str(requester.id), limit=limit)
        log.info("discover_start")

        pool = await self._candidate_pool(requester, db, limit * self.pool_multiplier)
        scored = [ScoredCandidate(c, self.scorer.score(requester, c)) for c in pool]

        above = [s for s in scored if s.scores.overall >= self.min_score]
        above.sort(key=lambda s: s.scores.overall, reverse=True)
        kept = above[:limit]

        for candidate in kept:
            candidate.match_id = await self._upsert_pending_match(
                db, requester.id, candidate
            )

        log.info(
            "discover_complete",
            pool_size=len(pool),
            above_threshold=len(above),
            returned=len(kept),
        )
        return kept

    async def suggest(
        self, requester: Profile, db: AsyncSession, limit: int = 10
    ) -> list[ScoredCandidate]:
        pool = await self._candidate_pool(
            requester, db, limit * SUGGESTION_POOL_MULTIPLIER
        )
        scored = [ScoredCandidate(c, self.scorer.score(requester, c)) for c in pool]
        scored.sort(key=lambda s: s.scores.overall, reverse=True)
        logger.info(
            "suggestions_built",
            user_id=str(requester.id),
            pool_size=len(pool),
            returned=min(limit, len(scored)),
        )
        return scored[:limit]

    def score_pair(self, requester: Profile, target: Profile) -> CompatibilityScores:
        return self.scorer.score(requester, target)

    async def _candidate_pool(
        self, requester: Profile, db: AsyncSession, pool_size: int
    ) -> list[Profile]:
        paired = union(
            select(Match.user2_id).where(Match.user1_id == requester.id),
            select(Match.user1_id).where(Match.user2_id == requester.id),
        )

        stmt = select(Profile).where(
            Profile.id != requester.id,
            Profile.id.not_in(paired),
            Profile.is_active.is_(True),
            Profile.is_verified.is_(True),
        )

        prefs = requester.preferences
        if prefs is not None:
            if prefs.preferred_genders:
                stmt = stmt.where(Profile.gender.in_(prefs.preferred_genders))
            born_after, born_on_or_before = birth_date_bounds(
                prefs.age_min, prefs.age_max, date.today()
            )
            if born_after is not None:
                stmt = stmt.where(Profile.date_of_birth > born_after)
            if born_on_or_before is not None:
                stmt = stmt.where(Profile.date_of_birth <= born_on_or_before)

        stmt = stmt.order_by(Profile.last_active_at.desc().nulls_last()).limit(pool_size)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def _upsert_pending_match(
        self, db: AsyncSession, requester_id: uuid.UUID, candidate: ScoredCandidate
    ) -> uuid.UUID | None:
        scores = candidate.scores
        values = {
            "compatibility_score": scores.overall,
            "cultural_compatibility": scores.cultural,
            "personality_compatibility": scores.personality,
            "location_compatibility": scores.location,
        }
        stmt = (
            pg_insert(Match)
            .values(
                id=uuid.uuid4(),
                user1_id=requester_id,
                user2_id=candidate.profile.id,
                user1_action="pending",
                user2_action="pending",
                **values,
            )
            .on_conflict_do_update(index_elements=["user1_id", "user2_id"], set_=values)
            .returning(Match.id)
        )
        try:
            async with db.begin_nested():
                result = await db.execute(stmt)
                return result.scalar_one()
        except IntegrityError:
            # The mirror row was written concurrently; it already records the pair.
            logger.warning(
                "discover_mirror_match_exists",
                user_id=str(requester_id),
                candidate_id=str(candidate.profile.id),
            )
            return None

    # ── Actions ───────────────────────────────────────────────────────────

    async def record_action(
        self,
        actor: Profile,
        target_user_id: uuid.UUID,
        action: str,
        db: AsyncSession,
    ) -> ActionResult:
        log = logger.bind(
            user_id=str(actor.id), target_user_id=str(target_user_id), action=action
        )
        log.info("match_action_start")

        if target_user_id == actor.id:
            raise BadRequestError("You cannot act on your own profile", "SELF_ACTION")
        if action not in SUBMITTABLE_ACTIONS:
            raise BadRequestError(f"Unsupported action: {action}", "INVALID_ACTION")

        target = (
            await db.execute(select(Profile).where(Profile.id == target_user_id))
        ).scalar_one_or_none()
        if target is None or not target.is_active:
            raise NotFoundError("Target user not found", "USER_NOT_FOUND")

        match = await self._lock_pair(db, actor.id, target_user_id)
        if match is None:
            match = await self._create_pair(db, actor, target)

        outcome = reconcile_action(match, actor.id, action)
        await db.flush()

        conversation = None
        if outcome == OUTCOME_MUTUAL:
            conversation = await self._open_conversation(db, match)
            self._queue_new_match(db, match, conversation)

        if outcome != OUTCOME_UNCHANGED:
            await record_activity(db, actor.id, action, target_user_id=target_user_id)

        log.info(
            "match_action_complete",
            match_id=str(match.id),
            outcome=outcome,
            is_mutual=match.is_mutual_match,
        )
        return ActionResult(match=match, outcome=outcome, conversation=conversation)

    async def _lock_pair(
        self, db: AsyncSession, user_a: uuid.UUID, user_b: uuid.UUID
    ) -> Match | None:
        stmt = select(Match).where(_pair_clause(user_a, user_b)).with_for_update()
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def _create_pair(self, db: AsyncSession, actor: Profile, target: Profile) -> Match:
        scores = self.scorer.score(actor, target)
        match = Match(
            user1_id=actor.id,
            user2_id=target.id,
            compatibility_score=scores.overall,
            cultural_compatibility=scores.cultural,
            personality_compatibility=scores.personality,
            location_compatibility=scores.location,
            user1_action="pending",
            user2_action="pending",
            is_mutual_match=False,
        )
        try:
            async with db.begin_nested():
                db.add(match)
                await db.flush()
            return match
        except IntegrityError:
            logger.info(
                "match_insert_race_lost",
                user_id=str(actor.id),
                target_user_id=str(target.id),
            )
            winner = await self._lock_pair(db, actor.id, target.id)
            if winner is None:
                raise
            return winner

    async def _open_conversation(self, db: AsyncSession, match: Match) -> Conversation:
        existing = (
            await db.execute(select(Conversation).where(Conversation.match_id == match.id))
        ).scalar_one_or_none()
        if existing is not None:
            return existing

        conversation = Conversation(
            match_id=match.id,
            user1_id=match.user1_id,
            user2_id=match.user2_id,
        )
        db.add(conversation)
        await db.flush()
        logger.info(
            "conversation_opened",
            match_id=str(match.id),
            conversation_id=str(conversation.id),
        )
        return conversation

    def _queue_new_match(
        self, db: AsyncSession, match: Match, conversation: Conversation
    ) -> None:
        if self.relay is None:
            return
        relay = self.relay
        match_id, conversation_id = match.id, conversation.id
        members = (match.user1_id, match.user2_id)

        async def _notify() -> None:
            try:
                await relay.new_match(match_id, conversation_id, members)
            except Exception as exc:
                logger.warning(
                    "new_match_notification_failed",
                    match_id=str(match_id),
                    error=str(exc),
                )

        after_commit(db, _notify)

    # ── Listing ───────────────────────────────────────────────────────────

    async def list_matches(
        self,
        user_id: uuid.UUID,
        db: AsyncSession,
        status: str = "all",
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[dict[str, Any]], int]:
        """Matches involving ``user_id`` seen from that member's side.

        Returns ``(items, total)``.
        """
        filters = [or_(Match.user1_id == user_id, Match.user2_id == user_id)]
        if status == "mutual":
            filters.append(Match.is_mutual_match.is_(True))
        elif status == "pending":
            filters.append(Match.is_mutual_match.is_(False))

        total = (
            await db.execute(select(func.count()).select_from(Match).where(*filters))
        ).scalar_one()

        stmt = (
            select(Match)
            .where(*filters)
            .order_by(Match.created_at.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        matches = (await db.execute(stmt)).scalars().all()

        return [self.perspective(m, user_id) for m in matches], total

    @staticmethod
    def perspective(match: Match, user_id: uuid.UUID) -> dict[str, Any]:
        side = match.side_of(user_id)
        return {
            "id": match.id,
            "compatibility_score": match.compatibility_score,
            "cultural_compatibility": match.cultural_compatibility,
            "personality_compatibility": match.personality_compatibility,
            "location_compatibility": match.location_compatibility,
            "user_action": match.user1_action if side == 1 else match.user2_action,
            "other_user_action": match.user2_action if side == 1 else match.user1_action,
            "is_mutual_match": match.is_mutual_match,
            "matched_at": match.matched_at,
            "created_at": match.created_at,
            "other_user": match.user2 if side == 1 else match.user1,
        }
