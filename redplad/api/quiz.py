"""
ReDPlAD — Cultural quiz API
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from redplad.auth import get_current_profile
from redplad.database import get_db
from redplad.models.profile import Profile
from redplad.models.quiz import CulturalQuizResult
from redplad.schemas.quiz import (
    QuizHistoryResponse,
    QuizQuestionOut,
    QuizQuestionsResponse,
    QuizSubmission,
    QuizSubmitResponse,
)
from redplad.services.quiz_service import QuizService

logger = structlog.get_logger("redplad.api.quiz")

router = APIRouter()


# ──────────────────────────────────────────────────────────────────────────────
# GET /questions — Active questions without their answers
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/questions", response_model=QuizQuestionsResponse, summary="Quiz questions")
async def get_questions(
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
) -> QuizQuestionsResponse:
    questions = await QuizService().active_questions(db)
    items = [
        QuizQuestionOut(
            id=q.question_number,
            question=q.question_text,
            options=list(q.options),
            category=q.category,
            difficulty=q.difficulty,
        )
        for q in questions
    ]
    return QuizQuestionsResponse(questions=items, total=len(items))


# ──────────────────────────────────────────────────────────────────────────────
# POST /submit — Grade on the server and record the attempt
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/submit",
    response_model=QuizSubmitResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit quiz answers",
)
async def submit_quiz(
    payload: QuizSubmission,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
) -> QuizSubmitResponse:
    result = await QuizService().submit(
        profile,
        payload.answers,
        db,
        quiz_version=payload.quiz_version,
        time_taken_seconds=payload.time_taken_seconds,
    )
    message = (
        "Congratulations! You passed the cultural quiz"
        if result.passed
        else "Quiz completed. You can retake it to improve your score"
    )
    return QuizSubmitResponse(message=message, quiz_result=result, passed=result.passed)


# ──────────────────────────────────────────────────────────────────────────────
# GET /results — Own attempts, newest first
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/results", response_model=QuizHistoryResponse, summary="Own quiz results")
async def get_results(
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db),
) -> QuizHistoryResponse:
    stmt = (
        select(CulturalQuizResult)
        .where(CulturalQuizResult.user_id == profile.id)
        .order_by(CulturalQuizResult.created_at.desc())
    )
    results = list((await db.execute(stmt)).scalars().all())
    return QuizHistoryResponse(
        results=results,
        latest=results[0] if results else None,
        has_passed=any(r.passed for r in results),
    )
