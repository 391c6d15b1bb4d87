from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Union

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from app.core.config import settings
from app.core.redis_client import read_runtime_hash

logger = logging.getLogger("au_assess.assistant")

RUNTIME_KEY = "runtime:ai"

CHAT_UNCONFIGURED = (
    "AI Assistant is currently in 'Option Only' mode. "
    "Functional connectivity has been removed as per developer request."
)
CHAT_FAILED = "The AI service is currently paused for maintenance."
CHAT_EMPTY = "No response."

EXPLAIN_UNCONFIGURED = (
    "Academic Tip: Review the core principles of this module in your textbook. "
    "AI-powered detailed explanations are currently disabled."
)
EXPLAIN_FAILED = "Detailed AI explanation is offline."
EXPLAIN_EMPTY = "Consult faculty for details."


@dataclass(frozen=True)
class Ok:
    value: Any
    fallback = False
    reason = None


@dataclass(frozen=True)
class Fallback:
    value: Any
    reason: str
    fallback = True


AssistantResult = Union[Ok, Fallback]


class GeneratedQuestion(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    text: str
    options: list[str]
    correct_answer: int


class ChatTurn(BaseModel):
    role: str  # user|assistant
    content: str


def sample_questions(topic: str) -> list[GeneratedQuestion]:
    return [
        GeneratedQuestion(
            text=f"Sample question about {topic}? (AI Generator Offline)",
            options=["Option A", "Option B", "Option C", "Option D"],
            correct_answer=0,
        )
    ]


def _truthy(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def ai_enabled() -> bool:
    """Faculty toggle stored at runtime in Redis; falls back to AI_ENABLED."""
    raw = read_runtime_hash(RUNTIME_KEY).get("enabled")
    if raw is None or not raw.strip():
        return bool(settings.ai_enabled)
    return _truthy(raw)


def _extract_json(text: str) -> Any | None:
    if not text:
        return None
    s = text.strip()
    try:
        return json.loads(s)
    except ValueError:
        pass
    m = re.search(r"(\[[\s\S]*\]|\{[\s\S]*\})", s)
    if not m:
        return None
    try:
        return json.loads(m.group(0))
    except ValueError:
        return None


def _is_usable(q: GeneratedQuestion) -> bool:
    if not q.text.strip():
        return False
    if len(q.options) != 4 or any(not str(o).strip() for o in q.options):
        return False
    return 0 <= q.correct_answer < len(q.options)


class AssistantUnavailable(Exception):
    pass


class Assistant:
    """Generative-text helper with fixed fallbacks.

    Every operation goes through ``run``: it never raises, it returns ``Ok`` with
    the generated value or ``Fallback`` with the canned value and a reason
    (``disabled``, ``unconfigured``, ``request_failed``, ``empty``, ``invalid_response``).
    """

    def __init__(
        self,
        *,
        enabled: bool | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        chat_model: str | None = None,
        generate_model: str | None = None,
    ) -> None:
        self.enabled = bool(settings.ai_enabled) if enabled is None else bool(enabled)
        self.api_key = (api_key if api_key is not None else settings.gemini_api_key) or ""
        self.base_url = (base_url or settings.gemini_base_url or "").rstrip("/")
        self.chat_model = chat_model or settings.gemini_chat_model
        self.generate_model = generate_model or settings.gemini_generate_model

    def is_configured(self) -> bool:
        key = str(self.api_key or "").strip()
        return bool(key) and key != "undefined" and len(key) > 10

    def _timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            connect=float(settings.gemini_timeout_connect),
            read=float(settings.gemini_timeout_read),
            write=float(settings.gemini_timeout_write),
            pool=3.0,
        )

    def _generate(
        self,
        *,
        model: str,
        contents: list[dict[str, Any]],
        system_instruction: str | None = None,
        response_schema: dict[str, Any] | None = None,
    ) -> str:
        payload: dict[str, Any] = {
            "contents": contents,
            "generationConfig": {"temperature": float(settings.gemini_temperature)},
        }
        if system_instruction:
            payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        if response_schema is not None:
            payload["generationConfig"]["responseMimeType"] = "application/json"
            payload["generationConfig"]["responseSchema"] = response_schema

        url = f"{self.base_url}/models/{model}:generateContent"
        try:
            with httpx.Client(timeout=self._timeout()) as client:
                r = client.post(url, json=payload, headers={"x-goog-api-key": str(self.api_key)})
                r.raise_for_status()
                data = r.json()
        except Exception as e:
            raise AssistantUnavailable(f"{type(e).__name__}: {e}") from e

        try:
            parts = data["candidates"][0]["content"]["parts"]
            return "".join(str(p.get("text") or "") for p in parts if isinstance(p, dict)).strip()
        except (KeyError, IndexError, TypeError):
            return ""

    def run(
        self,
        call: Callable[[], Any],
        *,
        unconfigured: Any,
        failed: Any,
        empty: Any = None,
        operation: str = "generate",
    ) -> AssistantResult:
        if not self.enabled:
            return Fallback(unconfigured, "disabled")
        if not self.is_configured():
            return Fallback(unconfigured, "unconfigured")
        try:
            value = call()
        except AssistantUnavailable as e:
            logger.warning("assistant %s failed (fallback): %s", operation, e)
            return Fallback(failed, "request_failed")
        except (ValueError, ValidationError) as e:
            logger.warning("assistant %s returned unusable output (fallback): %s", operation, e)
            return Fallback(failed, "invalid_response")
        if value is None or value == "" or value == []:
            return Fallback(empty if empty is not None else failed, "empty")
        return Ok(value)

    def chat(self, message: str, history: list[ChatTurn] | None = None) -> AssistantResult:
        contents: list[dict[str, Any]] = []
        for turn in history or []:
            role = "model" if turn.role == "assistant" else "user"
            if turn.content.strip():
                contents.append({"role": role, "parts": [{"text": turn.content}]})
        contents.append({"role": "user", "parts": [{"text": message}]})

        return self.run(
            lambda: self._generate(
                model=self.chat_model,
                contents=contents,
                system_instruction="You are a concise academic tutor for university students.",
            ),
            unconfigured=CHAT_UNCONFIGURED,
            failed=CHAT_FAILED,
            empty=CHAT_EMPTY,
            operation="chat",
        )

    def explain_wrong_answer(
        self,
        question_text: str,
        options: list[str],
        correct_idx: int,
        student_idx: int,
    ) -> AssistantResult:
        correct = options[correct_idx] if 0 <= correct_idx < len(options) else ""
        chosen = options[student_idx] if 0 <= student_idx < len(options) else "(no answer)"
        prompt = f"Question: {question_text}\nCorrect: {correct}\nStudent chose: {chosen}"

        return self.run(
            lambda: self._generate(
                model=self.chat_model,
                contents=[{"role": "user", "parts": [{"text": prompt}]}],
                system_instruction="Explain the answer briefly.",
            ),
            unconfigured=EXPLAIN_UNCONFIGURED,
            failed=EXPLAIN_FAILED,
            empty=EXPLAIN_EMPTY,
            operation="explain",
        )

    def generate_questions(self, topic: str, count: int = 5) -> AssistantResult:
        schema = {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "text": {"type": "STRING"},
                    "options": {"type": "ARRAY", "items": {"type": "STRING"}},
                    "correctAnswer": {"type": "INTEGER"},
                },
                "required": ["text", "options", "correctAnswer"],
            },
        }
        want = max(1, int(count))

        def _call() -> list[GeneratedQuestion]:
            raw = self._generate(
                model=self.generate_model,
                contents=[
                    {
                        "role": "user",
                        "parts": [
                            {
                                "text": (
                                    f"Generate {want} multiple-choice questions about {topic}. "
                                    "Each question has exactly 4 options and correctAnswer is the 0-based index."
                                )
                            }
                        ],
                    }
                ],
                response_schema=schema,
            )
            obj = _extract_json(raw)
            if isinstance(obj, dict):
                obj = obj.get("questions")
            if not isinstance(obj, list):
                raise ValueError("expected a JSON array of questions")
            out: list[GeneratedQuestion] = []
            for item in obj:
                try:
                    q = GeneratedQuestion.model_validate(item)
                except ValidationError:
                    continue
                if _is_usable(q):
                    out.append(q)
                if len(out) >= want:
                    break
            if not out:
                raise ValueError("no usable questions in response")
            return out

        fallback = sample_questions(topic)
        return self.run(_call, unconfigured=fallback, failed=fallback, operation="generate_questions")

    def healthcheck(self) -> tuple[bool, str | None]:
        if not self.enabled:
            return False, "disabled"
        if not self.is_configured():
            return False, "missing_key"
        url = f"{self.base_url}/models"
        try:
            timeout = httpx.Timeout(connect=2.0, read=2.5, write=2.0, pool=2.0)
            with httpx.Client(timeout=timeout) as client:
                r = client.get(url, headers={"x-goog-api-key": str(self.api_key)})
                if r.status_code >= 400:
                    return False, f"http_{r.status_code}"
            return True, None
        except Exception as e:
            return False, f"unreachable:{type(e).__name__}"


def get_assistant() -> Assistant:
    return Assistant(enabled=ai_enabled())
