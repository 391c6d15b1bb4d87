import app.services.assistant as assistant_mod


def _draft(title="Linear Algebra", **extra):
    body = {
        "title": title,
        "description": "Vectors and matrices",
        "category": "Mathematics",
        "duration": 12,
        "questions": [
            {"text": "det(I) = ?", "options": ["0", "1", "-1", "2"], "correctAnswer": 1},
        ],
    }
    body.update(extra)
    return body


def test_students_are_kept_out(client, student_headers):
    r = client.get("/admin/quizzes", headers=student_headers)
    assert r.status_code == 403
    assert r.json()["error_code"] == "forbidden"


def test_create_update_delete_quiz(client, admin_headers, student_headers):
    r = client.post("/admin/quizzes", json=_draft(), headers=admin_headers)
    assert r.status_code == 200, r.text
    quiz = r.json()
    assert quiz["id"].startswith("q_")
    assert quiz["questions"][0]["id"]

    # Once faculty publish a quiz the sample catalog is no longer shown.
    ids = [q["id"] for q in client.get("/quizzes", headers=student_headers).json()]
    assert ids == [quiz["id"]]

    r = client.put(f"/admin/quizzes/{quiz['id']}", json=_draft(title="Linear Algebra II"), headers=admin_headers)
    assert r.status_code == 200
    updated = r.json()
    assert updated["id"] == quiz["id"]
    assert updated["title"] == "Linear Algebra II"
    assert updated["createdAt"] == quiz["createdAt"]

    listing = client.get("/admin/quizzes", headers=admin_headers).json()
    assert [q["title"] for q in listing["items"]] == ["Linear Algebra II"]
    assert "Mathematics" in listing["categories"]

    assert client.delete(f"/admin/quizzes/{quiz['id']}", headers=admin_headers).json() == {"ok": True}
    assert client.delete(f"/admin/quizzes/{quiz['id']}", headers=admin_headers).status_code == 404


def test_incomplete_quiz_is_rejected(client, admin_headers):
    r = client.post("/admin/quizzes", json=_draft(title=" ", questions=[]), headers=admin_headers)

    assert r.status_code == 422
    body = r.json()
    assert body["error_code"] == "invalid_quiz"
    assert "title is required" in body["error_message"]
    assert "add at least one question" in body["error_message"]


def test_update_unknown_quiz(client, admin_headers):
    r = client.put("/admin/quizzes/q_missing", json=_draft(), headers=admin_headers)
    assert r.status_code == 404


def test_generate_questions_fallback_appends_to_draft(client, admin_headers):
    r = client.post(
        "/admin/quizzes/generate-questions",
        json={"topic": "Recursion", "count": 3, "draft": _draft()},
        headers=admin_headers,
    )

    assert r.status_code == 200
    body = r.json()
    assert body["fallback"] is True
    assert body["questions"][0]["text"] == "Sample question about Recursion? (AI Generator Offline)"
    assert len(body["draft"]["questions"]) == 2
    assert body["draft"]["questions"][1]["id"].startswith("ai_")


def test_runtime_ai_toggle(client, admin_headers, monkeypatch):
    r = client.post("/admin/runtime/ai", json={"enabled": False}, headers=admin_headers)
    assert r.json()["enabled"] is False

    # Even with a working key, a disabled assistant answers with the fallback.
    monkeypatch.setattr(assistant_mod.settings, "gemini_api_key", "test-key-0123456789")
    r = client.post("/assistant/chat", json={"message": "hi"}, headers=admin_headers)
    assert r.json()["reason"] == "disabled"
    assert r.json()["reply"] == assistant_mod.CHAT_UNCONFIGURED

    r = client.get("/admin/runtime/ai", headers=admin_headers)
    assert r.json() == {"enabled": False, "configured": True}

    client.post("/admin/runtime/ai", json={"enabled": True}, headers=admin_headers)
    overview = client.get("/me/overview", headers=admin_headers).json()
    assert overview["aiEnabled"] is True
    assert overview["view"] == "admin"


def test_admin_sees_all_attempts(client, admin_headers, student_headers):
    client.post("/quizzes/q2/start", headers=student_headers)
    client.post("/quizzes/q2/select", json={"option": 0}, headers=student_headers)
    client.post("/quizzes/q2/submit", headers=student_headers)

    items = client.get("/admin/attempts", headers=admin_headers).json()["items"]
    assert len(items) == 1
    assert items[0]["score"] == 0
