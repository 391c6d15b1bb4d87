from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.schemas.quiz import QuizAttempt, QuizSummary
from app.schemas.user import UserPublic


class _Camel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QuizScore(_Camel):
    quiz_id: str
    name: str
    score: int
    attempts: int


class StatsResponse(_Camel):
    items: list[QuizScore]
    average: int
    total_attempts: int


class AttemptListResponse(_Camel):
    items: list[QuizAttempt]


class OverviewResponse(_Camel):
    user: UserPublic
    view: str  # admin|dashboard
    ai_enabled: bool
    quizzes: list[QuizSummary]
    attempts: list[QuizAttempt]
