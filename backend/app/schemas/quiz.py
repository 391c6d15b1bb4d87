from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class RecordModel(BaseModel):
    """Stored records and API payloads use camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Question(RecordModel):
    id: str
    text: str
    options: list[str]
    correct_answer: int

    @model_validator(mode="after")
    def _correct_answer_in_range(self) -> "Question":
        if not (0 <= self.correct_answer < len(self.options)):
            raise ValueError("correctAnswer must index one of the options")
        return self


class Quiz(RecordModel):
    id: str
    title: str
    description: str = ""
    category: str = ""
    questions: list[Question] = Field(default_factory=list)
    duration: int
    created_at: datetime


class QuizAttempt(RecordModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    quiz_id: str
    student_id: str
    score: int
    total_questions: int
    completed_at: datetime
    answers: list[int]


class QuizSummary(RecordModel):
    id: str
    title: str
    description: str
    category: str
    duration: int
    question_count: int
    created_at: datetime

    @classmethod
    def of(cls, quiz: Quiz) -> "QuizSummary":
        return cls(
            id=quiz.id,
            title=quiz.title,
            description=quiz.description,
            category=quiz.category,
            duration=quiz.duration,
            question_count=len(quiz.questions),
            created_at=quiz.created_at,
        )


class QuestionDraft(RecordModel):
    id: str | None = None
    text: str = ""
    options: list[str] = Field(default_factory=lambda: ["", "", "", ""])
    correct_answer: int = 0


class QuizDraft(RecordModel):
    title: str = ""
    description: str = ""
    category: str | None = None
    duration: int | None = None
    questions: list[QuestionDraft] = Field(default_factory=list)


class PlayerQuestionView(RecordModel):
    id: str
    text: str
    options: list[str]


class PlayerStateResponse(RecordModel):
    quiz_id: str
    title: str
    phase: str
    question_index: int
    total_questions: int
    question: PlayerQuestionView | None = None
    option_states: list[str] = Field(default_factory=list)
    chosen_option: int | None = None
    last_correct: bool | None = None
    time_left: int
    clock: str
    urgent: bool
    progress: int
    can_advance: bool
    can_submit: bool
    revision: int
    expired: bool = False
    attempt: QuizAttempt | None = None
    saved: bool = False


class SelectOptionRequest(RecordModel):
    option: int


class ExplainRequest(RecordModel):
    question_index: int | None = None


class ExplainResponse(RecordModel):
    question_index: int
    text: str | None
    fallback: bool
    reason: str | None = None
    stale: bool = False
