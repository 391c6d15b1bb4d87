from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from app.core.redis_client import get_redis
from app.core.security import require_roles
from app.models.user import UserRole
from app.schemas.admin import (
    AdminQuizListResponse,
    GenerateQuestionsRequest,
    GenerateQuestionsResponse,
    RuntimeAiResponse,
    RuntimeAiUpdateRequest,
)
from app.schemas.me import AttemptListResponse
from app.schemas.quiz import Quiz, QuizDraft
from app.schemas.user import UserRecord
from app.services.assistant import RUNTIME_KEY, Assistant, ai_enabled, get_assistant
from app.services.authoring import CATEGORIES, QuizBuilder, QuizValidationError
from app.services.store import RecordKind, RecordStore, StoreError, get_store

router = APIRouter(prefix="/admin", tags=["admin"])

logger = logging.getLogger("au_assess.admin")


def _store_failed(message: str) -> HTTPException:
    return HTTPException(status_code=503, detail={"error_code": "store_unavailable", "error_message": message})


def _build(builder: QuizBuilder) -> Quiz:
    try:
        return builder.build()
    except QuizValidationError as e:
        raise HTTPException(
            status_code=422,
            detail={"error_code": "invalid_quiz", "error_message": str(e)},
        ) from e


@router.get("/quizzes", response_model=AdminQuizListResponse)
def list_quizzes(
    store: RecordStore = Depends(get_store),
    _: UserRecord = Depends(require_roles(UserRole.admin)),
):
    try:
        items = store.get_quizzes()
    except StoreError as e:
        raise _store_failed("Error loading curriculum.") from e
    return AdminQuizListResponse(items=items, categories=list(CATEGORIES))


@router.get("/quizzes/{quiz_id}", response_model=Quiz)
def get_quiz(
    quiz_id: str,
    store: RecordStore = Depends(get_store),
    _: UserRecord = Depends(require_roles(UserRole.admin)),
):
    quiz = store.get(RecordKind.quizzes, quiz_id)
    if quiz is None:
        raise HTTPException(status_code=404, detail="quiz not found")
    return quiz


@router.post("/quizzes", response_model=Quiz)
def create_quiz(
    body: QuizDraft,
    store: RecordStore = Depends(get_store),
    current: UserRecord = Depends(require_roles(UserRole.admin)),
):
    quiz = _build(QuizBuilder.from_draft(body))
    try:
        store.save_quiz(quiz)
    except StoreError as e:
        raise _store_failed("Error saving curriculum.") from e
    logger.info("quiz created id=%s by=%s questions=%s", quiz.id, current.id, len(quiz.questions))
    return quiz


@router.put("/quizzes/{quiz_id}", response_model=Quiz)
def update_quiz(
    quiz_id: str,
    body: QuizDraft,
    store: RecordStore = Depends(get_store),
    current: UserRecord = Depends(require_roles(UserRole.admin)),
):
    existing = store.get(RecordKind.quizzes, quiz_id)
    if existing is None:
        raise HTTPException(status_code=404, detail="quiz not found")

    quiz = _build(QuizBuilder.from_draft(body, existing=existing))
    try:
        store.save_quiz(quiz)
    except StoreError as e:
        raise _store_failed("Error saving curriculum.") from e
    logger.info("quiz updated id=%s by=%s", quiz.id, current.id)
    return quiz


@router.delete("/quizzes/{quiz_id}")
def delete_quiz(
    quiz_id: str,
    store: RecordStore = Depends(get_store),
    current: UserRecord = Depends(require_roles(UserRole.admin)),
):
    try:
        deleted = store.delete_quiz(quiz_id)
    except StoreError as e:
        raise _store_failed("Error deleting quiz.") from e
    if not deleted:
        raise HTTPException(status_code=404, detail="quiz not found")
    logger.info("quiz deleted id=%s by=%s", quiz_id, current.id)
    return {"ok": True}


@router.post("/quizzes/generate-questions", response_model=GenerateQuestionsResponse)
def generate_questions(
    body: GenerateQuestionsRequest,
    assistant: Assistant = Depends(get_assistant),
    _: UserRecord = Depends(require_roles(UserRole.admin)),
):
    result = assistant.generate_questions(body.topic.strip(), body.count)

    draft = None
    if body.draft is not None:
        builder = QuizBuilder.from_draft(body.draft)
        builder.append_generated(result.value)
        draft = QuizDraft(
            title=builder.title,
            description=builder.description,
            category=builder.category,
            duration=builder.duration,
            questions=builder.questions,
        )

    return GenerateQuestionsResponse(
        questions=result.value,
        fallback=result.fallback,
        reason=result.reason,
        draft=draft,
    )


@router.get("/attempts", response_model=AttemptListResponse)
def list_attempts(
    store: RecordStore = Depends(get_store),
    _: UserRecord = Depends(require_roles(UserRole.admin)),
):
    try:
        return AttemptListResponse(items=store.get_attempts())
    except StoreError as e:
        raise _store_failed("Error loading attempts.") from e


@router.get("/runtime/ai", response_model=RuntimeAiResponse)
def get_runtime_ai(
    assistant: Assistant = Depends(get_assistant),
    _: UserRecord = Depends(require_roles(UserRole.admin)),
):
    return RuntimeAiResponse(enabled=assistant.enabled, configured=assistant.is_configured())


@router.post("/runtime/ai", response_model=RuntimeAiResponse)
def set_runtime_ai(
    body: RuntimeAiUpdateRequest,
    current: UserRecord = Depends(require_roles(UserRole.admin)),
):
    try:
        get_redis().hset(RUNTIME_KEY, "enabled", "true" if body.enabled else "false")
    except Exception as e:
        raise HTTPException(status_code=503, detail="runtime settings unavailable") from e
    logger.info("ai toggled enabled=%s by=%s", body.enabled, current.id)
    return RuntimeAiResponse(enabled=ai_enabled(), configured=Assistant().is_configured())
