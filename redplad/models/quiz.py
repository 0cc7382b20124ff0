"""
ReDPlAD — Cultural quiz models (reference questions + submitted results).
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID as PgUUID
from sqlalchemy.orm import Mapped, mapped_column

from redplad.database import Base


class QuizQuestion(Base):
    """Reference table holding the cultural verification quiz."""

    __tablename__ = "quiz_questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    question_number: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    options: Mapped[list] = mapped_column(
        JSONB, nullable=False, comment="Ordered list of answer strings"
    )
    correct_option: Mapped[int] = mapped_column(
        Integer, nullable=False, comment="Index into options; never exposed"
    )
    category: Mapped[str] = mapped_column(String, nullable=False)
    difficulty: Mapped[str] = mapped_column(
        String, default="medium", server_default="medium", nullable=False
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="true", nullable=False
    )

    def __repr__(self) -> str:
        return f"<QuizQuestion #{self.question_number} category={self.category!r}>"


class CulturalQuizResult(Base):
    __tablename__ = "cultural_quiz_results"

    id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    quiz_version: Mapped[str] = mapped_column(
        String, default="v1.0", server_default="v1.0", nullable=False
    )
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False)
    correct_answers: Mapped[int] = mapped_column(Integer, nullable=False)
    score_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    category_scores: Mapped[dict | None] = mapped_column(
        JSONB, nullable=True, comment='{"Philosophy & Values": 100.0}'
    )
    time_taken_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    passed: Mapped[bool] = mapped_column(Boolean, nullable=False)
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<CulturalQuizResult user={self.user_id} "
            f"score={self.score_percentage} passed={self.passed}>"
        )
