"""Timed question stepper for one quiz play-through.

The player walks a student through the quiz's fixed question list:
``in_progress`` -> ``answer_shown`` -> next question or ``submitted``.
Time is counted in whole-second ticks from a budget of ``duration * 60``;
when it runs out the player submits from whatever phase it is in and
unanswered positions stay ``-1``. Exactly one attempt is produced.
"""

from __future__ import annotations

import enum
import math
import time
import uuid
from datetime import datetime, timezone
from typing import Any

from app.schemas.quiz import Question, Quiz, QuizAttempt

UNANSWERED = -1
URGENT_BELOW_SECONDS = 60


class PlayerPhase(str, enum.Enum):
    in_progress = "in_progress"
    answer_shown = "answer_shown"
    submitted = "submitted"


class OptionState(str, enum.Enum):
    unselected = "unselected"
    selected_pending = "selected-pending"
    correct = "correct"
    incorrect = "incorrect"
    other_after_reveal = "other-after-reveal"


class PlayerError(Exception):
    pass


class InvalidTransition(PlayerError):
    pass


class InvalidOption(PlayerError):
    pass


def score_answers(quiz: Quiz, answers: list[int]) -> int:
    return sum(
        1
        for i, question in enumerate(quiz.questions)
        if i < len(answers) and answers[i] == question.correct_answer
    )


def format_clock(seconds: int) -> str:
    m, s = divmod(max(0, int(seconds)), 60)
    return f"{m}:{s:02d}"


def _utc(ts: float) -> datetime:
    return datetime.fromtimestamp(float(ts), tz=timezone.utc)


class QuizPlayer:
    def __init__(
        self,
        quiz: Quiz,
        student_id: str,
        *,
        started_at: float,
        feedback_delay_seconds: float = 1.2,
    ) -> None:
        self.quiz = quiz
        self.student_id = student_id
        self.started_at = float(started_at)
        self.feedback_delay_seconds = float(feedback_delay_seconds)

        self.phase = PlayerPhase.in_progress
        self.question_index = 0
        self.answers: list[int] = [UNANSWERED] * len(quiz.questions)
        self.time_left = max(0, int(quiz.duration) * 60)
        self.ticks_applied = 0
        self.answered_at: float | None = None
        self.last_correct: bool | None = None
        self.revision = 0
        self.expired = False
        self.attempt: QuizAttempt | None = None

    @classmethod
    def start(
        cls,
        quiz: Quiz,
        student_id: str,
        *,
        now: float | None = None,
        feedback_delay_seconds: float = 1.2,
    ) -> "QuizPlayer":
        ts = time.time() if now is None else float(now)
        player = cls(quiz, student_id, started_at=ts, feedback_delay_seconds=feedback_delay_seconds)
        if player.time_left <= 0:
            player._finish(now=ts, expired=True)
        elif not quiz.questions:
            player._finish(now=ts, expired=False)
        return player

    @property
    def total_questions(self) -> int:
        return len(self.quiz.questions)

    @property
    def is_submitted(self) -> bool:
        return self.phase == PlayerPhase.submitted

    @property
    def is_final_question(self) -> bool:
        return self.question_index >= self.total_questions - 1

    @property
    def current_question(self) -> Question | None:
        if self.is_submitted or not self.quiz.questions:
            return None
        return self.quiz.questions[self.question_index]

    @property
    def can_advance(self) -> bool:
        return self.phase == PlayerPhase.answer_shown and not self.is_final_question

    @property
    def can_submit(self) -> bool:
        return self.phase == PlayerPhase.answer_shown and self.is_final_question

    @property
    def progress_percent(self) -> int:
        if not self.total_questions:
            return 0
        # Half-up rounding, the way the progress bar is drawn.
        return int(math.floor((self.question_index + 1) / self.total_questions * 100 + 0.5))

    @property
    def is_urgent(self) -> bool:
        return not self.is_submitted and self.time_left < URGENT_BELOW_SECONDS

    def option_states(self) -> list[OptionState]:
        question = self.current_question
        if question is None:
            return []
        chosen = self.answers[self.question_index]
        out: list[OptionState] = []
        for i in range(len(question.options)):
            if self.phase == PlayerPhase.answer_shown:
                if i == question.correct_answer:
                    out.append(OptionState.correct)
                elif i == chosen:
                    out.append(OptionState.incorrect)
                else:
                    out.append(OptionState.other_after_reveal)
            elif chosen != UNANSWERED and i == chosen:
                out.append(OptionState.selected_pending)
            else:
                out.append(OptionState.unselected)
        return out

    def select_option(self, idx: int, *, now: float | None = None) -> bool:
        """Record an answer for the current question.

        Returns False when feedback is already shown (repeated clicks are ignored).
        """
        if self.is_submitted:
            raise InvalidTransition("quiz already submitted")
        if self.phase == PlayerPhase.answer_shown:
            return False

        question = self.current_question
        if question is None:
            raise InvalidTransition("quiz has no questions")
        if not isinstance(idx, int) or not (0 <= idx < len(question.options)):
            raise InvalidOption(f"option {idx!r} is out of range")

        self.answers[self.question_index] = idx
        self.last_correct = idx == question.correct_answer
        self.answered_at = time.time() if now is None else float(now)
        self.phase = PlayerPhase.answer_shown
        self.revision += 1
        return True

    def advance(self) -> None:
        if self.phase != PlayerPhase.answer_shown:
            raise InvalidTransition("answer the current question first")
        if self.is_final_question:
            raise InvalidTransition("last question: submit instead")
        self.question_index += 1
        self.phase = PlayerPhase.in_progress
        self.answered_at = None
        self.last_correct = None
        self.revision += 1

    def submit(self, *, now: float | None = None) -> QuizAttempt:
        if self.is_submitted:
            raise InvalidTransition("quiz already submitted")
        if not self.can_submit:
            raise InvalidTransition("answer the last question before submitting")
        return self._finish(now=time.time() if now is None else float(now), expired=False)

    def tick(self, *, now: float | None = None) -> QuizAttempt | None:
        """One second of wall-clock time. Returns the attempt if time ran out."""
        if self.is_submitted:
            return None
        if self.time_left > 0:
            self.time_left -= 1
            self.ticks_applied += 1
        if self.time_left <= 0:
            ts = (self.started_at + self.ticks_applied) if now is None else float(now)
            return self._finish(now=ts, expired=True)
        return None

    def sync(self, now: float) -> None:
        """Catch up with the wall clock: fire the feedback auto-advance and due ticks."""
        if self.is_submitted:
            return

        if (
            self.can_advance
            and self.answered_at is not None
            and float(now) - self.answered_at >= self.feedback_delay_seconds
        ):
            self.advance()

        due = int(float(now) - self.started_at) - self.ticks_applied
        if due <= 0:
            return
        steps = min(due, self.time_left)
        self.time_left -= steps
        self.ticks_applied += steps
        if self.time_left <= 0:
            self._finish(now=self.started_at + self.ticks_applied, expired=True)

    def _finish(self, *, now: float, expired: bool) -> QuizAttempt:
        self.phase = PlayerPhase.submitted
        self.answered_at = None
        self.last_correct = None
        self.expired = bool(expired)
        self.revision += 1
        self.attempt = QuizAttempt(
            id=f"att_{uuid.uuid4().hex}",
            quiz_id=self.quiz.id,
            student_id=self.student_id,
            score=score_answers(self.quiz, self.answers),
            total_questions=self.total_questions,
            completed_at=_utc(now),
            answers=list(self.answers),
        )
        return self.attempt

    def to_dict(self) -> dict[str, Any]:
        return {
            "quiz": self.quiz.model_dump(mode="json", by_alias=True),
            "student_id": self.student_id,
            "started_at": self.started_at,
            "feedback_delay_seconds": self.feedback_delay_seconds,
            "phase": self.phase.value,
            "question_index": self.question_index,
            "answers": list(self.answers),
            "time_left": self.time_left,
            "ticks_applied": self.ticks_applied,
            "answered_at": self.answered_at,
            "last_correct": self.last_correct,
            "revision": self.revision,
            "expired": self.expired,
            "attempt": self.attempt.model_dump(mode="json", by_alias=True) if self.attempt else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QuizPlayer":
        quiz = Quiz.model_validate(data["quiz"])
        player = cls(
            quiz,
            str(data["student_id"]),
            started_at=float(data["started_at"]),
            feedback_delay_seconds=float(data.get("feedback_delay_seconds", 1.2)),
        )
        player.phase = PlayerPhase(data["phase"])
        player.question_index = int(data["question_index"])
        player.answers = [int(a) for a in data["answers"]]
        player.time_left = int(data["time_left"])
        player.ticks_applied = int(data["ticks_applied"])
        player.answered_at = data.get("answered_at")
        player.last_correct = data.get("last_correct")
        player.revision = int(data.get("revision", 0))
        player.expired = bool(data.get("expired", False))
        raw_attempt = data.get("attempt")
        player.attempt = QuizAttempt.model_validate(raw_attempt) if raw_attempt else None
        return player
