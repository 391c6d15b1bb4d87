from __future__ import annotations

from datetime import datetime, timezone

from app.schemas.me import QuizScore, StatsResponse
from app.schemas.quiz import Question, Quiz, QuizAttempt
from app.services.store import RecordStore


# Fixed when the module loads so the samples keep a stable createdAt.
SAMPLES_CREATED_AT = datetime.now(timezone.utc)


def sample_quizzes() -> list[Quiz]:
    """Starter catalog shown while the store holds no quizzes."""
    return [
        Quiz(
            id="q1",
            title="Data Structures V.1",
            description="Structural foundations of computer science. Arrays, Lists, and Stacks.",
            category="Computer Science",
            duration=10,
            created_at=SAMPLES_CREATED_AT,
            questions=[
                Question(
                    id="q1_1",
                    text="Which data structure follows the LIFO principle?",
                    options=["Queue", "Stack", "Tree", "Graph"],
                    correct_answer=1,
                ),
                Question(
                    id="q1_2",
                    text="What is the time complexity of searching an element in a Hash Map (average case)?",
                    options=["O(1)", "O(n)", "O(log n)", "O(n^2)"],
                    correct_answer=0,
                ),
            ],
        ),
        Quiz(
            id="q2",
            title="Python Core",
            description="Advanced assessment for core Python syntax and type management.",
            category="Programming",
            duration=15,
            created_at=SAMPLES_CREATED_AT,
            questions=[
                Question(
                    id="q2_1",
                    text="Which of the following is an immutable data type in Python?",
                    options=["List", "Dictionary", "Set", "Tuple"],
                    correct_answer=3,
                ),
            ],
        ),
    ]


def load_catalog(store: RecordStore) -> list[Quiz]:
    quizzes = store.get_quizzes()
    return quizzes if quizzes else sample_quizzes()


def find_quiz(store: RecordStore, quiz_id: str) -> Quiz | None:
    for quiz in load_catalog(store):
        if quiz.id == quiz_id:
            return quiz
    return None


def _round_half_up(x: float) -> int:
    return int(x + 0.5) if x >= 0 else -int(-x + 0.5)


def compute_stats(quizzes: list[Quiz], attempts: list[QuizAttempt], student_id: str) -> StatsResponse:
    mine = [a for a in attempts if a.student_id == student_id]
    items: list[QuizScore] = []
    for quiz in quizzes:
        graded = [a for a in mine if a.quiz_id == quiz.id and a.total_questions > 0]
        if not graded:
            continue
        best = max(a.score / a.total_questions * 100 for a in graded)
        score = _round_half_up(best)
        if score <= 0:
            continue
        items.append(
            QuizScore(
                quiz_id=quiz.id,
                name=quiz.title[:10],
                score=score,
                attempts=len([a for a in mine if a.quiz_id == quiz.id]),
            )
        )
    average = _round_half_up(sum(i.score for i in items) / len(items)) if items else 0
    return StatsResponse(items=items, average=average, total_attempts=len(mine))
