"""Initial schema — all 14 ReDPlAD tables.

Revision ID: 001_initial
Revises:
Create Date: 2025-01-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True)


def _profile_fk(name: str, nullable: bool = False, **kwargs) -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=nullable,
        **kwargs,
    )


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        nullable=False,
    )


def _updated_at() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True)


def upgrade() -> None:
    # ── 1. profiles ─────────────────────────────────────────────────
    op.create_table(
        "profiles",
        _id(),
        sa.Column("email", sa.String, unique=True, index=True, nullable=False),
        sa.Column("first_name", sa.String, nullable=False),
        sa.Column("last_name", sa.String, nullable=False),
        sa.Column("date_of_birth", sa.Date, nullable=False, index=True),
        sa.Column("gender", sa.String, nullable=False),
        sa.Column("location_city", sa.String, nullable=False),
        sa.Column("location_country", sa.String, nullable=False),
        sa.Column("occupation", sa.String, nullable=True),
        sa.Column("education_level", sa.String, nullable=True),
        sa.Column("bio", sa.Text, nullable=True),
        sa.Column("profile_photo_url", sa.String, nullable=True),
        sa.Column("is_verified", sa.Boolean, server_default="false", nullable=False),
        sa.Column("is_active", sa.Boolean, server_default="true", nullable=False),
        sa.Column("is_admin", sa.Boolean, server_default="false", nullable=False),
        sa.Column(
            "last_active_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=True,
        ),
        _created_at(),
        _updated_at(),
        sa.CheckConstraint(
            "gender IN ('male', 'female', 'non-binary', 'other')",
            name="ck_profiles_gender",
        ),
    )

    # ── 2. cultural_backgrounds ─────────────────────────────────────
    op.create_table(
        "cultural_backgrounds",
        _id(),
        _profile_fk("user_id", unique=True),
        sa.Column("primary_tribe", sa.String, nullable=False, index=True),
        sa.Column("secondary_tribes", postgresql.ARRAY(sa.String), nullable=True),
        sa.Column("birth_country", sa.String, nullable=False),
        sa.Column(
            "languages_spoken",
            postgresql.ARRAY(sa.String),
            server_default="{}",
            nullable=False,
        ),
        sa.Column(
            "language_fluency",
            postgresql.JSONB,
            nullable=True,
            comment='{"english": 5, "yoruba": 4}',
        ),
        sa.Column("religion", sa.String, nullable=True),
        sa.Column("religious_importance", sa.Integer, nullable=True),
        sa.Column("traditional_values_importance", sa.Integer, nullable=True),
        sa.Column("family_involvement_preference", sa.Integer, nullable=True),
        sa.Column("cultural_practices", postgresql.JSONB, nullable=True),
        sa.Column("dietary_restrictions", postgresql.ARRAY(sa.String), nullable=True),
        _created_at(),
        _updated_at(),
        sa.CheckConstraint(
            "religious_importance BETWEEN 1 AND 5", name="ck_cultural_religious_importance"
        ),
        sa.CheckConstraint(
            "traditional_values_importance BETWEEN 1 AND 5",
            name="ck_cultural_traditional_values",
        ),
        sa.CheckConstraint(
            "family_involvement_preference BETWEEN 1 AND 5",
            name="ck_cultural_family_involvement",
        ),
    )

    # ── 3. personality_assessments ──────────────────────────────────
    traits = (
        "openness_score",
        "conscientiousness_score",
        "extraversion_score",
        "agreeableness_score",
        "neuroticism_score",
    )
    op.create_table(
        "personality_assessments",
        _id(),
        _profile_fk("user_id", unique=True),
        *[sa.Column(trait, sa.Numeric(3, 2), nullable=True) for trait in traits],
        sa.Column("assessment_version", sa.String, server_default="v1.0", nullable=False),
        sa.Column(
            "completed_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        *[
            sa.CheckConstraint(f"{trait} BETWEEN 0 AND 5", name=f"ck_personality_{trait}")
            for trait in traits
        ],
    )

    # ── 4. user_preferences ─────────────────────────────────────────
    op.create_table(
        "user_preferences",
        _id(),
        _profile_fk("user_id", unique=True),
        sa.Column("age_min", sa.Integer, server_default="18", nullable=False),
        sa.Column("age_max", sa.Integer, server_default="65", nullable=False),
        sa.Column("max_distance_km", sa.Integer, server_default="100", nullable=False),
        sa.Column(
            "preferred_genders", postgresql.ARRAY(sa.String), server_default="{}", nullable=False
        ),
        sa.Column(
            "preferred_tribes", postgresql.ARRAY(sa.String), server_default="{}", nullable=False
        ),
        sa.Column(
            "preferred_religions", postgresql.ARRAY(sa.String), server_default="{}", nullable=False
        ),
        sa.Column("education_importance", sa.Integer, server_default="3", nullable=False),
        sa.Column("location_flexibility", sa.Integer, server_default="3", nullable=False),
        sa.Column(
            "cultural_similarity_importance", sa.Integer, server_default="4", nullable=False
        ),
        sa.Column(
            "family_involvement_required", sa.Boolean, server_default="false", nullable=False
        ),
        _created_at(),
        _updated_at(),
    )

    # ── 5. matches ──────────────────────────────────────────────────
    op.create_table(
        "matches",
        _id(),
        _profile_fk("user1_id"),
        _profile_fk("user2_id"),
        sa.Column("compatibility_score", sa.Numeric(5, 2), nullable=False),
        sa.Column("cultural_compatibility", sa.Numeric(5, 2), nullable=False),
        sa.Column("personality_compatibility", sa.Numeric(5, 2), nullable=False),
        sa.Column("location_compatibility", sa.Numeric(5, 2), nullable=False),
        sa.Column("user1_action", sa.String, server_default="pending", nullable=False),
        sa.Column("user2_action", sa.String, server_default="pending", nullable=False),
        sa.Column(
            "is_mutual_match", sa.Boolean, server_default="false", nullable=False, index=True
        ),
        sa.Column("matched_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint("user1_id", "user2_id", name="uq_match_pair"),
        sa.CheckConstraint(
            "user1_action IN ('like', 'pass', 'super_like', 'pending')",
            name="ck_match_user1_action",
        ),
        sa.CheckConstraint(
            "user2_action IN ('like', 'pass', 'super_like', 'pending')",
            name="ck_match_user2_action",
        ),
        sa.CheckConstraint("user1_id <> user2_id", name="ck_match_distinct_users"),
    )
    # One row per unordered pair.
    op.execute(
        "CREATE UNIQUE INDEX uq_match_unordered_pair "
        "ON matches (least(user1_id, user2_id), greatest(user1_id, user2_id))"
    )

    # ── 6. conversations ────────────────────────────────────────────
    op.create_table(
        "conversations",
        _id(),
        sa.Column(
            "match_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("matches.id", ondelete="CASCADE"),
            unique=True,
            nullable=False,
        ),
        _profile_fk("user1_id"),
        _profile_fk("user2_id"),
        sa.Column(
            "last_message_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("user1_unread_count", sa.Integer, server_default="0", nullable=False),
        sa.Column("user2_unread_count", sa.Integer, server_default="0", nullable=False),
        sa.Column("is_active", sa.Boolean, server_default="true", nullable=False),
        _created_at(),
        _updated_at(),
    )

    # ── 7. messages ─────────────────────────────────────────────────
    op.create_table(
        "messages",
        _id(),
        sa.Column(
            "conversation_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("conversations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _profile_fk("sender_id"),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("message_type", sa.String, server_default="text", nullable=False),
        sa.Column("original_language", sa.String, nullable=True),
        sa.Column("translated_content", postgresql.JSONB, nullable=True),
        sa.Column("is_read", sa.Boolean, server_default="false", nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.CheckConstraint(
            "message_type IN ('text', 'image', 'voice', 'video', 'translation')",
            name="ck_message_type",
        ),
    )
    op.create_index(
        "ix_messages_conversation_created",
        "messages",
        ["conversation_id", "created_at"],
    )

    # ── 8. endorsements ─────────────────────────────────────────────
    op.create_table(
        "endorsements",
        _id(),
        _profile_fk("endorser_id"),
        _profile_fk("endorsed_id", index=True),
        sa.Column("endorsement_type", sa.String, nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("is_verified", sa.Boolean, server_default="false", nullable=False),
        sa.Column(
            "verified_by",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("profiles.id"),
            nullable=True,
        ),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.UniqueConstraint(
            "endorser_id", "endorsed_id", "endorsement_type", name="uq_endorsement"
        ),
        sa.CheckConstraint(
            "endorsement_type IN ('cultural_knowledge', 'character', "
            "'family_values', 'community_service')",
            name="ck_endorsement_type",
        ),
    )

    # ── 9. cultural_events ──────────────────────────────────────────
    op.create_table(
        "cultural_events",
        _id(),
        _profile_fk("organizer_id"),
        sa.Column("title", sa.String, nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("event_type", sa.String, nullable=False),
        sa.Column("event_date", sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column("location_name", sa.String, nullable=False),
        sa.Column("location_address", sa.String, nullable=True),
        sa.Column("max_attendees", sa.Integer, nullable=True),
        sa.Column("current_attendees", sa.Integer, server_default="0", nullable=False),
        sa.Column("is_public", sa.Boolean, server_default="true", nullable=False),
        sa.Column(
            "target_tribes", postgresql.ARRAY(sa.String), server_default="{}", nullable=False
        ),
        sa.Column("image_url", sa.String, nullable=True),
        _created_at(),
        _updated_at(),
        sa.CheckConstraint(
            "event_type IN ('cultural', 'social', 'educational', 'religious')",
            name="ck_event_type",
        ),
        sa.CheckConstraint("current_attendees >= 0", name="ck_event_attendees_non_negative"),
    )

    # ── 10. event_attendees ─────────────────────────────────────────
    op.create_table(
        "event_attendees",
        _id(),
        sa.Column(
            "event_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("cultural_events.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _profile_fk("user_id"),
        sa.Column("attendance_status", sa.String, server_default="going", nullable=False),
        sa.Column(
            "registered_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("event_id", "user_id", name="uq_event_attendee"),
        sa.CheckConstraint(
            "attendance_status IN ('going', 'maybe', 'not_going')",
            name="ck_attendance_status",
        ),
    )

    # ── 11. quiz_questions (reference table) ────────────────────────
    op.create_table(
        "quiz_questions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("question_number", sa.Integer, unique=True, nullable=False),
        sa.Column("question_text", sa.Text, nullable=False),
        sa.Column(
            "options",
            postgresql.JSONB,
            nullable=False,
            comment="Ordered list of answer strings",
        ),
        sa.Column(
            "correct_option",
            sa.Integer,
            nullable=False,
            comment="Index into options; never exposed",
        ),
        sa.Column("category", sa.String, nullable=False),
        sa.Column("difficulty", sa.String, server_default="medium", nullable=False),
        sa.Column("is_active", sa.Boolean, server_default="true", nullable=False),
    )

    # ── 12. cultural_quiz_results ───────────────────────────────────
    op.create_table(
        "cultural_quiz_results",
        _id(),
        _profile_fk("user_id", index=True),
        sa.Column("quiz_version", sa.String, server_default="v1.0", nullable=False),
        sa.Column("total_questions", sa.Integer, nullable=False),
        sa.Column("correct_answers", sa.Integer, nullable=False),
        sa.Column("score_percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("category_scores", postgresql.JSONB, nullable=True),
        sa.Column("time_taken_seconds", sa.Integer, nullable=True),
        sa.Column("passed", sa.Boolean, nullable=False),
        sa.Column(
            "completed_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        _created_at(),
    )

    # ── 13. verification_documents ──────────────────────────────────
    op.create_table(
        "verification_documents",
        _id(),
        _profile_fk("user_id", index=True),
        sa.Column("document_type", sa.String, nullable=False),
        sa.Column("storage_path", sa.String, nullable=False),
        sa.Column(
            "verification_status",
            sa.String,
            server_default="pending",
            nullable=False,
            index=True,
        ),
        sa.Column(
            "verified_by",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("profiles.id"),
            nullable=True,
        ),
        sa.Column("verification_notes", sa.Text, nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.CheckConstraint(
            "document_type IN ('government_id', 'profile_photo', 'video_selfie')",
            name="ck_document_type",
        ),
        sa.CheckConstraint(
            "verification_status IN ('pending', 'approved', 'rejected')",
            name="ck_verification_status",
        ),
    )

    # ── 14. user_activities ─────────────────────────────────────────
    op.create_table(
        "user_activities",
        _id(),
        _profile_fk("user_id", index=True),
        sa.Column("activity_type", sa.String, nullable=False),
        sa.Column(
            "target_user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("profiles.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "target_event_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("cultural_events.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("metadata", postgresql.JSONB, nullable=True),
        _created_at(),
    )


def downgrade() -> None:
    # Drop in reverse order (children / dependents first).
    op.drop_table("user_activities")
    op.drop_table("verification_documents")
    op.drop_table("cultural_quiz_results")
    op.drop_table("quiz_questions")
    op.drop_table("event_attendees")
    op.drop_table("cultural_events")
    op.drop_table("endorsements")

    op.drop_index("ix_messages_conversation_created", table_name="messages")
    op.drop_table("messages")
    op.drop_table("conversations")

    op.execute("DROP INDEX IF EXISTS uq_match_unordered_pair")
    op.drop_table("matches")

    op.drop_table("user_preferences")
    op.drop_table("personality_assessments")
    op.drop_table("cultural_backgrounds")
    op.drop_table("profiles")
