"""
ReDPlAD — Cultural verification quiz

Answers are graded on the server against ``quiz_questions``.  A member who
scores at least ``QUIZ_PASS_PERCENTAGE`` is marked verified; a member whose
latest result already passed cannot submit again.
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from redplad.config import get_settings
from redplad.errors import BadRequestError, ConflictError
from redplad.models.profile import Profile
from redplad.models.quiz import CulturalQuizResult, QuizQuestion
from redplad.services.activity_service import record_activity

logger = structlog.get_logger("redplad.quiz_service")

_TWO_PLACES = Decimal("0.01")


def _percentage(correct: int, total: int) -> Decimal:
    if total <= 0:
        return Decimal("0.00")
    return (Decimal(correct) * 100 / Decimal(total)).quantize(_TWO_PLACES, ROUND_HALF_UP)


@dataclass
class QuizGrade:
    total_questions: int
    correct_answers: int
    score_percentage: Decimal
    category_scores: dict[str, float] = field(default_factory=dict)


def grade_answers(
    questions: Sequence[QuizQuestion], answers: dict[int, int]
) -> QuizGrade:
    """Grade ``answers`` (question number -> option index).

    Every active question counts toward the total; unanswered questions
    count as wrong.
    """
    correct = 0
    per_category: dict[str, list[int]] = defaultdict(lambda: [0, 0])

    for question in questions:
        bucket = per_category[question.category]
        bucket[1] += 1
        if answers.get(question.question_number) == question.correct_option:
            correct += 1
            bucket[0] += 1

    category_scores = {
        category: float(_percentage(right, total))
        for category, (right, total) in per_category.items()
    }
    return QuizGrade(
        total_questions=len(questions),
        correct_answers=correct,
        score_percentage=_percentage(correct, len(questions)),
        category_scores=category_scores,
    )


class QuizService:
    def __init__(self) -> None:
        settings = get_settings()
        self.pass_percentage = Decimal(str(settings.QUIZ_PASS_PERCENTAGE))

    async def active_questions(self, db: AsyncSession) -> list[QuizQuestion]:
        stmt = (
            select(QuizQuestion)
            .where(QuizQuestion.is_active.is_(True))
            .order_by(QuizQuestion.question_number)
        )
        return list((await db.execute(stmt)).scalars().all())

    async def latest_result(
        self, user_id: uuid.UUID, db: AsyncSession
    ) -> CulturalQuizResult | None:
        stmt = (
            select(CulturalQuizResult)
            .where(CulturalQuizResult.user_id == user_id)
            .order_by(CulturalQuizResult.created_at.desc())
            .limit(1)
        )
        return (await db.execute(stmt)).scalar_one_or_none()

    async def submit(
        self,
        profile: Profile,
        answers: dict[int, int],
        db: AsyncSession,
        quiz_version: str = "v1.0",
        time_taken_seconds: int | None = None,
    ) -> CulturalQuizResult:
        log = logger.bind(user_id=str(profile.id), quiz_version=quiz_version)

        if not answers:
            raise BadRequestError("At least one answer is required", "NO_ANSWERS")

        previous = await self.latest_result(profile.id, db)
        if previous is not None and previous.passed:
            log.info("quiz_already_passed")
            raise ConflictError(
                "You have already passed the cultural quiz",
                "ALREADY_PASSED",
                {"previous_score": float(previous.score_percentage)},
            )

        questions = await self.active_questions(db)
        if not questions:
            raise BadRequestError("No quiz questions are available", "QUIZ_UNAVAILABLE")

        grade = grade_answers(questions, answers)
        passed = grade.score_percentage >= self.pass_percentage

        result = CulturalQuizResult(
            user_id=profile.id,
            quiz_version=quiz_version,
            total_questions=grade.total_questions,
            correct_answers=grade.correct_answers,
            score_percentage=grade.score_percentage,
            category_scores=grade.category_scores,
            time_taken_seconds=time_taken_seconds,
            passed=passed,
        )
        db.add(result)

        if passed:
            profile.is_verified = True
            await record_activity(
                db,
                profile.id,
                "quiz_complete",
                metadata={
                    "score_percentage": float(grade.score_percentage),
                    "passed": True,
                    "quiz_version": quiz_version,
                },
            )

        await db.flush()
        log.info(
            "quiz_submitted",
            score_percentage=float(grade.score_percentage),
            passed=passed,
        )
        return result
