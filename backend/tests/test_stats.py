from datetime import datetime, timezone

from app.schemas.quiz import QuizAttempt
from app.services.catalog import compute_stats, sample_quizzes

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


def _attempt(n: int, quiz_id: str, score: int, total: int, student_id: str = "s1") -> QuizAttempt:
    return QuizAttempt(
        id=f"att_{n}",
        quiz_id=quiz_id,
        student_id=student_id,
        score=score,
        total_questions=total,
        completed_at=NOW,
        answers=[0] * total,
    )


def test_best_score_per_quiz_and_average():
    attempts = [
        _attempt(1, "q1", 1, 2),
        _attempt(2, "q1", 2, 2),
        _attempt(3, "q2", 1, 3),
        _attempt(4, "q2", 3, 3, student_id="someone-else"),
    ]

    stats = compute_stats(sample_quizzes(), attempts, "s1")

    assert [(i.quiz_id, i.name, i.score, i.attempts) for i in stats.items] == [
        ("q1", "Data Struc", 100, 2),
        ("q2", "Python Cor", 33, 1),
    ]
    assert stats.average == 67
    assert stats.total_attempts == 3


def test_zero_best_is_left_out():
    stats = compute_stats(sample_quizzes(), [_attempt(1, "q1", 0, 2)], "s1")

    assert stats.items == []
    assert stats.average == 0
    assert stats.total_attempts == 1


def test_stats_endpoint(client, student_headers):
    client.post("/quizzes/q2/start", headers=student_headers)
    client.post("/quizzes/q2/select", json={"option": 3}, headers=student_headers)
    client.post("/quizzes/q2/submit", headers=student_headers)

    body = client.get("/me/stats", headers=student_headers).json()

    assert body["average"] == 100
    assert body["totalAttempts"] == 1
    assert body["items"][0]["quizId"] == "q2"


def test_overview_for_student(client, student_headers, student):
    body = client.get("/me/overview", headers=student_headers).json()

    assert body["view"] == "dashboard"
    assert body["user"]["id"] == student["user"]["id"]
    assert [q["id"] for q in body["quizzes"]] == ["q1", "q2"]
    assert body["attempts"] == []


def test_sample_catalog_keeps_created_at(client, student_headers):
    first = [q["createdAt"] for q in client.get("/quizzes", headers=student_headers).json()]
    second = [q["createdAt"] for q in client.get("/quizzes", headers=student_headers).json()]

    assert first == second
    assert sample_quizzes()[0].created_at == sample_quizzes()[1].created_at
