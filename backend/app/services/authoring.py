from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Iterable

from app.schemas.quiz import Question, QuestionDraft, Quiz, QuizDraft

CATEGORIES = ["Computer Science", "Mathematics", "Engineering", "Soft Skills", "General Awareness"]
DEFAULT_DURATION_MINUTES = 15
OPTIONS_PER_QUESTION = 4


class QuizValidationError(ValueError):
    def __init__(self, problems: list[str]):
        super().__init__("; ".join(problems))
        self.problems = problems


def _stamp() -> int:
    return int(time.time() * 1000)


class QuizBuilder:
    """Editable quiz draft that only yields a ``Quiz`` once it is complete."""

    def __init__(self, quiz: Quiz | None = None):
        if quiz is not None:
            self.quiz_id: str | None = quiz.id
            self.created_at = quiz.created_at
            self.title = quiz.title
            self.description = quiz.description
            self.category = quiz.category
            self.duration = int(quiz.duration)
            self.questions = [
                QuestionDraft(id=q.id, text=q.text, options=list(q.options), correct_answer=q.correct_answer)
                for q in quiz.questions
            ]
        else:
            self.quiz_id = None
            self.created_at = datetime.now(timezone.utc)
            self.title = ""
            self.description = ""
            self.category = CATEGORIES[0]
            self.duration = DEFAULT_DURATION_MINUTES
            self.questions = []
            self.add_question()

    @classmethod
    def from_draft(cls, draft: QuizDraft, *, existing: Quiz | None = None) -> "QuizBuilder":
        builder = cls(existing)
        builder.title = draft.title
        builder.description = draft.description
        if draft.category is not None:
            builder.category = draft.category
        if draft.duration is not None:
            builder.duration = int(draft.duration)
        builder.questions = []
        for q in draft.questions:
            builder.questions.append(
                QuestionDraft(
                    id=q.id or builder._next_question_id(str(_stamp())),
                    text=q.text,
                    options=list(q.options),
                    correct_answer=q.correct_answer,
                )
            )
        return builder

    def _next_question_id(self, base: str) -> str:
        taken = {q.id for q in self.questions}
        if base not in taken:
            return base
        n = 2
        while f"{base}_{n}" in taken:
            n += 1
        return f"{base}_{n}"

    def add_question(self) -> QuestionDraft:
        question = QuestionDraft(
            id=self._next_question_id(str(_stamp())),
            text="",
            options=[""] * OPTIONS_PER_QUESTION,
            correct_answer=0,
        )
        self.questions.append(question)
        return question

    def remove_question(self, index: int) -> None:
        del self.questions[index]

    def set_question_text(self, index: int, text: str) -> None:
        self.questions[index].text = text

    def set_correct_answer(self, index: int, option_index: int) -> None:
        self.questions[index].correct_answer = int(option_index)

    def set_option(self, index: int, option_index: int, text: str) -> None:
        options = list(self.questions[index].options)
        options[option_index] = text
        self.questions[index].options = options

    def append_generated(self, generated: Iterable[object]) -> list[QuestionDraft]:
        """Add AI-suggested questions (objects with text/options/correct_answer)."""
        stamp = _stamp()
        added: list[QuestionDraft] = []
        for i, q in enumerate(generated):
            draft = QuestionDraft(
                id=self._next_question_id(f"ai_{stamp}_{i}"),
                text=str(getattr(q, "text", "") or ""),
                options=[str(o) for o in (getattr(q, "options", None) or [])],
                correct_answer=int(getattr(q, "correct_answer", 0) or 0),
            )
            self.questions.append(draft)
            added.append(draft)
        return added

    def problems(self) -> list[str]:
        out: list[str] = []
        if not self.title.strip():
            out.append("title is required")
        if not str(self.category or "").strip():
            out.append("category is required")
        if int(self.duration) <= 0:
            out.append("duration must be a positive number of minutes")
        if not self.questions:
            out.append("add at least one question")

        seen: set[str] = set()
        for n, q in enumerate(self.questions, start=1):
            if q.id in seen:
                out.append(f"question {n}: duplicate id {q.id}")
            seen.add(str(q.id))
            if not q.text.strip():
                out.append(f"question {n}: text is required")
            if len(q.options) != OPTIONS_PER_QUESTION:
                out.append(f"question {n}: exactly {OPTIONS_PER_QUESTION} options are required")
            elif any(not str(o).strip() for o in q.options):
                out.append(f"question {n}: options must not be blank")
            if not (0 <= int(q.correct_answer) < len(q.options)):
                out.append(f"question {n}: correct answer must point at an option")
        return out

    def build(self) -> Quiz:
        problems = self.problems()
        if problems:
            raise QuizValidationError(problems)
        return Quiz(
            id=self.quiz_id or f"q_{_stamp()}",
            title=self.title.strip(),
            description=self.description,
            category=self.category,
            duration=int(self.duration),
            created_at=self.created_at,
            questions=[
                Question(id=str(q.id), text=q.text, options=list(q.options), correct_answer=int(q.correct_answer))
                for q in self.questions
            ],
        )
