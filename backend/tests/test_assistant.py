import json

import httpx

import app.services.assistant as assistant_mod
from app.services.assistant import (
    CHAT_EMPTY,
    CHAT_FAILED,
    CHAT_UNCONFIGURED,
    EXPLAIN_FAILED,
    EXPLAIN_UNCONFIGURED,
    Assistant,
    ChatTurn,
    ai_enabled,
)

KEY = "test-key-0123456789"


class _Resp:
    def __init__(self, status_code: int, data):
        self.status_code = status_code
        self._data = data

    def raise_for_status(self):
        if self.status_code >= 400:
            request = httpx.Request("POST", "https://gemini.test")
            raise httpx.HTTPStatusError("error", request=request, response=httpx.Response(self.status_code))

    def json(self):
        return self._data


def _reply(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def _client_returning(resp: _Resp, calls: list | None = None):
    class _Client:
        def __init__(self, *args, **kwargs):
            pass

        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc, tb):
            return False

        def post(self, url, json=None, headers=None):
            if calls is not None:
                calls.append({"url": url, "json": json, "headers": headers})
            return resp

        def get(self, url, headers=None):
            return resp

    return _Client


def _client_raising(exc: Exception):
    class _Client:
        def __init__(self, *args, **kwargs):
            pass

        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc, tb):
            return False

        def post(self, *args, **kwargs):
            raise exc

        def get(self, *args, **kwargs):
            raise exc

    return _Client


def test_unconfigured_key_uses_fallback_text():
    for key in (None, "", "undefined", "short"):
        result = Assistant(enabled=True, api_key=key).chat("hello")
        assert result.fallback is True
        assert result.reason == "unconfigured"
        assert result.value == CHAT_UNCONFIGURED


def test_disabled_assistant_never_calls_out(monkeypatch):
    monkeypatch.setattr(assistant_mod.httpx, "Client", _client_raising(AssertionError("no network")))

    result = Assistant(enabled=False, api_key=KEY).explain_wrong_answer("Q", ["a", "b"], 0, 1)

    assert result.fallback is True
    assert result.reason == "disabled"
    assert result.value == EXPLAIN_UNCONFIGURED


def test_chat_success(monkeypatch):
    calls: list = []
    monkeypatch.setattr(assistant_mod.httpx, "Client", _client_returning(_Resp(200, _reply(" Stacks are LIFO. ")), calls))

    history = [ChatTurn(role="user", content="hi"), ChatTurn(role="assistant", content="Hello!")]
    result = Assistant(enabled=True, api_key=KEY, chat_model="gemini-test").chat("What is a stack?", history)

    assert result.fallback is False
    assert result.reason is None
    assert result.value == "Stacks are LIFO."
    assert calls[0]["url"].endswith("/models/gemini-test:generateContent")
    assert calls[0]["headers"]["x-goog-api-key"] == KEY
    assert [c["role"] for c in calls[0]["json"]["contents"]] == ["user", "model", "user"]


def test_chat_timeout_falls_back(monkeypatch):
    monkeypatch.setattr(assistant_mod.httpx, "Client", _client_raising(httpx.ReadTimeout("slow")))

    result = Assistant(enabled=True, api_key=KEY).chat("hello")

    assert result.fallback is True
    assert result.reason == "request_failed"
    assert result.value == CHAT_FAILED


def test_chat_http_error_falls_back(monkeypatch):
    monkeypatch.setattr(assistant_mod.httpx, "Client", _client_returning(_Resp(500, {})))

    result = Assistant(enabled=True, api_key=KEY).chat("hello")

    assert result.value == CHAT_FAILED


def test_empty_reply_uses_empty_text(monkeypatch):
    monkeypatch.setattr(assistant_mod.httpx, "Client", _client_returning(_Resp(200, {"candidates": []})))

    result = Assistant(enabled=True, api_key=KEY).chat("hello")

    assert result.reason == "empty"
    assert result.value == CHAT_EMPTY


def test_explain_failure_is_literal_fallback(monkeypatch):
    monkeypatch.setattr(assistant_mod.httpx, "Client", _client_raising(httpx.ConnectError("down")))

    result = Assistant(enabled=True, api_key=KEY).explain_wrong_answer("LIFO?", ["Queue", "Stack"], 1, 0)

    assert result.value == EXPLAIN_FAILED


def test_generate_questions_keeps_only_usable(monkeypatch):
    payload = [
        {"text": "Good one?", "options": ["a", "b", "c", "d"], "correctAnswer": 3},
        {"text": "Three options?", "options": ["a", "b", "c"], "correctAnswer": 0},
        {"text": "Out of range?", "options": ["a", "b", "c", "d"], "correctAnswer": 4},
        {"options": ["a", "b", "c", "d"]},
    ]
    monkeypatch.setattr(
        assistant_mod.httpx, "Client", _client_returning(_Resp(200, _reply("```json\n" + json.dumps(payload) + "\n```")))
    )

    result = Assistant(enabled=True, api_key=KEY).generate_questions("Graphs", 5)

    assert result.fallback is False
    assert [q.text for q in result.value] == ["Good one?"]
    assert result.value[0].correct_answer == 3


def test_generate_questions_bad_json_returns_sample(monkeypatch):
    monkeypatch.setattr(assistant_mod.httpx, "Client", _client_returning(_Resp(200, _reply("not json at all"))))

    result = Assistant(enabled=True, api_key=KEY).generate_questions("Graphs")

    assert result.fallback is True
    assert result.reason == "invalid_response"
    assert len(result.value) == 1
    assert result.value[0].text == "Sample question about Graphs? (AI Generator Offline)"
    assert result.value[0].options == ["Option A", "Option B", "Option C", "Option D"]
    assert result.value[0].correct_answer == 0


def test_generate_questions_caps_count(monkeypatch):
    payload = [{"text": f"Q{i}?", "options": ["a", "b", "c", "d"], "correctAnswer": 0} for i in range(6)]
    monkeypatch.setattr(assistant_mod.httpx, "Client", _client_returning(_Resp(200, _reply(json.dumps(payload)))))

    result = Assistant(enabled=True, api_key=KEY).generate_questions("Sets", 2)

    assert len(result.value) == 2


def test_healthcheck_reports_status(monkeypatch):
    assert Assistant(enabled=False, api_key=KEY).healthcheck() == (False, "disabled")
    assert Assistant(enabled=True, api_key="").healthcheck() == (False, "missing_key")

    monkeypatch.setattr(assistant_mod.httpx, "Client", _client_returning(_Resp(200, {})))
    assert Assistant(enabled=True, api_key=KEY).healthcheck() == (True, None)

    monkeypatch.setattr(assistant_mod.httpx, "Client", _client_returning(_Resp(403, {})))
    assert Assistant(enabled=True, api_key=KEY).healthcheck() == (False, "http_403")


def test_runtime_toggle_overrides_setting(mem_redis):
    assert ai_enabled() is True

    mem_redis.hset("runtime:ai", "enabled", "false")
    assert ai_enabled() is False

    mem_redis.hset("runtime:ai", "enabled", "true")
    assert ai_enabled() is True


def test_blank_chat_message_is_rejected(client, student_headers, monkeypatch):
    monkeypatch.setattr(assistant_mod.httpx, "Client", _client_raising(AssertionError("no network")))

    r = client.post("/assistant/chat", json={"message": "   "}, headers=student_headers)

    assert r.status_code == 422
    assert r.json()["error_code"] == "validation_error"


def test_chat_message_is_stripped(client, student_headers):
    r = client.post("/assistant/chat", json={"message": "  hello  "}, headers=student_headers)

    assert r.status_code == 200
    assert r.json()["reply"] == CHAT_UNCONFIGURED
