from pydantic import BaseModel, Field
from uuid import UUID
from datetime import datetime
from decimal import Decimal
from typing import Optional


class QuizQuestionOut(BaseModel):
    id: int
    question: str
    options: list[str]
    category: str
    difficulty: str


class QuizQuestionsResponse(BaseModel):
    questions: list[QuizQuestionOut]
    total: int


class QuizSubmission(BaseModel):
    answers: dict[int, int] = Field(description="question id -> chosen option index")
    quiz_version: str = Field("v1.0", max_length=20)
    time_taken_seconds: Optional[int] = Field(None, ge=0, le=24 * 3600)


class QuizResultResponse(BaseModel):
    id: UUID
    quiz_version: str
    total_questions: int
    correct_answers: int
    score_percentage: Decimal
    category_scores: Optional[dict[str, float]] = None
    time_taken_seconds: Optional[int] = None
    passed: bool
    completed_at: datetime

    model_config = {"from_attributes": True}


class QuizSubmitResponse(BaseModel):
    message: str
    quiz_result: QuizResultResponse
    passed: bool


class QuizHistoryResponse(BaseModel):
    results: list[QuizResultResponse]
    latest: Optional[QuizResultResponse] = None
    has_passed: bool
