from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.schemas.quiz import Quiz, QuizDraft
from app.services.assistant import GeneratedQuestion


class _Camel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AdminQuizListResponse(_Camel):
    items: list[Quiz]
    categories: list[str]


class GenerateQuestionsRequest(_Camel):
    topic: str = Field(min_length=1, max_length=300)
    count: int = Field(default=5, ge=1, le=20)
    draft: QuizDraft | None = None


class GenerateQuestionsResponse(_Camel):
    questions: list[GeneratedQuestion]
    fallback: bool
    reason: str | None = None
    draft: QuizDraft | None = None


class RuntimeAiResponse(_Camel):
    enabled: bool
    configured: bool


class RuntimeAiUpdateRequest(_Camel):
    enabled: bool
