from __future__ import annotations

import json
import logging
import time

from fastapi import APIRouter, Depends, HTTPException

from app.core.config import settings
from app.core.rate_limit import rate_limit
from app.core.redis_client import get_redis
from app.models.user import UserRole
from app.schemas.quiz import (
    ExplainRequest,
    ExplainResponse,
    PlayerQuestionView,
    PlayerStateResponse,
    QuizSummary,
    SelectOptionRequest,
)
from app.services.assistant import Assistant, get_assistant
from app.services.authoring import CATEGORIES
from app.services.catalog import find_quiz
from app.services.quiz_player import (
    UNANSWERED,
    InvalidOption,
    InvalidTransition,
    QuizPlayer,
    format_clock,
)
from app.services.session import SessionContext, get_session_context
from app.services.store import StoreError

router = APIRouter(prefix="/quizzes", tags=["quizzes"])

logger = logging.getLogger("au_assess.quizzes")


def _session_key(user_id: str, quiz_id: str) -> str:
    return f"quiz_session:{user_id}:{quiz_id}"


def _session_ttl(player: QuizPlayer) -> int:
    budget = max(0, int(player.quiz.duration) * 60)
    return max(60, budget + int(settings.quiz_session_grace_seconds))


def _load_session(user_id: str, quiz_id: str) -> QuizPlayer | None:
    raw = get_redis().get(_session_key(user_id, quiz_id))
    if raw is None:
        return None
    try:
        data = json.loads(raw)
        return QuizPlayer.from_dict(data["player"])
    except (ValueError, KeyError, TypeError):
        # Corrupted session: treat as absent so the student can start over.
        logger.warning("dropping unreadable quiz session user=%s quiz=%s", user_id, quiz_id)
        get_redis().delete(_session_key(user_id, quiz_id))
        return None


def _save_session(player: QuizPlayer) -> None:
    payload = {"player": player.to_dict()}
    get_redis().set(
        _session_key(player.student_id, player.quiz.id),
        json.dumps(payload),
        ex=_session_ttl(player),
    )


def _require_session(ctx: SessionContext, quiz_id: str) -> QuizPlayer:
    loaded = _load_session(ctx.user.id, quiz_id)
    if loaded is None:
        raise HTTPException(status_code=404, detail="no active quiz session")
    return loaded


def _view(player: QuizPlayer, *, saved: bool = False) -> PlayerStateResponse:
    question = player.current_question
    chosen = None
    if question is not None:
        picked = player.answers[player.question_index]
        chosen = picked if picked != UNANSWERED else None
    return PlayerStateResponse(
        quiz_id=player.quiz.id,
        title=player.quiz.title,
        phase=player.phase.value,
        question_index=player.question_index,
        total_questions=player.total_questions,
        question=(
            PlayerQuestionView(id=question.id, text=question.text, options=list(question.options))
            if question is not None
            else None
        ),
        option_states=[s.value for s in player.option_states()],
        chosen_option=chosen,
        last_correct=player.last_correct,
        time_left=player.time_left,
        clock=format_clock(player.time_left),
        urgent=player.is_urgent,
        progress=player.progress_percent,
        can_advance=player.can_advance,
        can_submit=player.can_submit,
        revision=player.revision,
        expired=player.expired,
        attempt=player.attempt,
        saved=saved,
    )


def _settle(ctx: SessionContext, player: QuizPlayer) -> PlayerStateResponse:
    """Persist the player; once submitted, write the attempt and close the session."""
    if player.attempt is None:
        _save_session(player)
        return _view(player)

    try:
        ctx.store.save_attempt(player.attempt)
    except StoreError as e:
        logger.warning("attempt save failed attempt=%s err=%s", player.attempt.id, e)
        _save_session(player)
        raise HTTPException(
            status_code=503,
            detail={
                "error_code": "attempt_save_failed",
                "error_message": "Database error saving results.",
            },
        ) from e

    get_redis().delete(_session_key(player.student_id, player.quiz.id))
    logger.info(
        "attempt saved attempt=%s quiz=%s student=%s score=%s/%s expired=%s",
        player.attempt.id,
        player.quiz.id,
        player.student_id,
        player.attempt.score,
        player.attempt.total_questions,
        player.expired,
    )
    return _view(player, saved=True)


def _invalid(e: Exception, *, status_code: int, code: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"error_code": code, "error_message": str(e)})


@router.get("", response_model=list[QuizSummary])
def list_quizzes(ctx: SessionContext = Depends(get_session_context)):
    try:
        return [QuizSummary.of(q) for q in ctx.catalog()]
    except StoreError as e:
        raise HTTPException(status_code=503, detail="quiz catalog unavailable") from e


@router.get("/categories", response_model=list[str])
def list_categories():
    return list(CATEGORIES)


@router.get("/{quiz_id}", response_model=QuizSummary)
def get_quiz(quiz_id: str, ctx: SessionContext = Depends(get_session_context)):
    quiz = find_quiz(ctx.store, quiz_id)
    if quiz is None:
        raise HTTPException(status_code=404, detail="quiz not found")
    return QuizSummary.of(quiz)


@router.post("/{quiz_id}/start", response_model=PlayerStateResponse)
def start_quiz(
    quiz_id: str,
    ctx: SessionContext = Depends(get_session_context),
    _: object = rate_limit(key_prefix="quiz_start", limit=30, window_seconds=60),
):
    if ctx.user.role != UserRole.student:
        raise HTTPException(status_code=403, detail="only students take quizzes")

    quiz = find_quiz(ctx.store, quiz_id)
    if quiz is None:
        raise HTTPException(status_code=404, detail="quiz not found")

    # Reuse a running session so the timer is not restarted.
    existing = _load_session(ctx.user.id, quiz.id)
    if existing is not None:
        player = existing
        player.sync(time.time())
        return _settle(ctx, player)

    player = QuizPlayer.start(
        quiz,
        ctx.user.id,
        now=time.time(),
        feedback_delay_seconds=float(settings.quiz_feedback_delay_seconds),
    )
    logger.info("quiz started quiz=%s student=%s questions=%s", quiz.id, ctx.user.id, player.total_questions)
    return _settle(ctx, player)


@router.get("/{quiz_id}/session", response_model=PlayerStateResponse)
def get_session(quiz_id: str, ctx: SessionContext = Depends(get_session_context)):
    player = _require_session(ctx, quiz_id)
    player.sync(time.time())
    return _settle(ctx, player)


@router.post("/{quiz_id}/select", response_model=PlayerStateResponse)
def select_option(
    quiz_id: str,
    body: SelectOptionRequest,
    ctx: SessionContext = Depends(get_session_context),
):
    player = _require_session(ctx, quiz_id)
    now = time.time()
    player.sync(now)
    if not player.is_submitted:
        try:
            player.select_option(body.option, now=now)
        except InvalidOption as e:
            raise _invalid(e, status_code=400, code="invalid_option") from e
        except InvalidTransition as e:
            raise _invalid(e, status_code=409, code="invalid_transition") from e
    return _settle(ctx, player)


@router.post("/{quiz_id}/advance", response_model=PlayerStateResponse)
def advance(quiz_id: str, ctx: SessionContext = Depends(get_session_context)):
    player = _require_session(ctx, quiz_id)
    revision = player.revision
    player.sync(time.time())
    # The feedback pause may already have moved on by itself.
    if not player.is_submitted and player.revision == revision:
        try:
            player.advance()
        except InvalidTransition as e:
            raise _invalid(e, status_code=409, code="invalid_transition") from e
    return _settle(ctx, player)


@router.post("/{quiz_id}/submit", response_model=PlayerStateResponse)
def submit_quiz(
    quiz_id: str,
    ctx: SessionContext = Depends(get_session_context),
    _: object = rate_limit(key_prefix="quiz_submit", limit=20, window_seconds=60),
):
    player = _require_session(ctx, quiz_id)
    now = time.time()
    player.sync(now)
    if not player.is_submitted:
        try:
            player.submit(now=now)
        except InvalidTransition as e:
            raise _invalid(e, status_code=409, code="invalid_transition") from e
    return _settle(ctx, player)


@router.post("/{quiz_id}/save", response_model=PlayerStateResponse)
def retry_save(quiz_id: str, ctx: SessionContext = Depends(get_session_context)):
    player = _require_session(ctx, quiz_id)
    if player.attempt is None:
        raise HTTPException(
            status_code=409,
            detail={"error_code": "not_submitted", "error_message": "quiz has not been submitted yet"},
        )
    return _settle(ctx, player)


@router.post("/{quiz_id}/explain", response_model=ExplainResponse)
def explain_answer(
    quiz_id: str,
    body: ExplainRequest,
    ctx: SessionContext = Depends(get_session_context),
    assistant: Assistant = Depends(get_assistant),
    _: object = rate_limit(key_prefix="quiz_explain", limit=30, window_seconds=60),
):
    player = _require_session(ctx, quiz_id)
    before = player.revision
    player.sync(time.time())
    if player.revision != before:
        _settle(ctx, player)

    index = player.question_index if body.question_index is None else int(body.question_index)
    if not (0 <= index < player.total_questions):
        raise HTTPException(status_code=400, detail="question index out of range")
    chosen = player.answers[index]
    if chosen == UNANSWERED:
        raise HTTPException(status_code=409, detail="question has not been answered")

    question = player.quiz.questions[index]
    # Only wrong answers are explained.
    if chosen == question.correct_answer:
        return ExplainResponse(question_index=index, text=None, fallback=False, reason="answered_correctly")

    revision = player.revision
    result = assistant.explain_wrong_answer(question.text, list(question.options), question.correct_answer, chosen)

    # Discard the reply if the student moved on while it was being generated,
    # including a feedback pause that ran out during the call.
    current = _load_session(ctx.user.id, quiz_id)
    if current is not None:
        current.sync(time.time())
        if current.revision != revision:
            _settle(ctx, current)
    if current is None or current.revision != revision:
        return ExplainResponse(question_index=index, text=None, fallback=result.fallback, reason=result.reason, stale=True)

    return ExplainResponse(question_index=index, text=str(result.value), fallback=result.fallback, reason=result.reason)


@router.delete("/{quiz_id}/session")
def cancel_session(quiz_id: str, ctx: SessionContext = Depends(get_session_context)):
    deleted = get_redis().delete(_session_key(ctx.user.id, quiz_id))
    return {"ok": True, "cancelled": bool(deleted)}
