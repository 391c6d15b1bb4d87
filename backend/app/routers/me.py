from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from app.schemas.me import AttemptListResponse, OverviewResponse, StatsResponse
from app.schemas.quiz import QuizSummary
from app.schemas.user import UserPublic
from app.services.catalog import compute_stats
from app.services.session import SessionContext, get_session_context
from app.services.store import StoreError

router = APIRouter(prefix="/me", tags=["me"])

logger = logging.getLogger("au_assess.me")


def _unavailable(e: StoreError) -> HTTPException:
    logger.warning("store read failed: %s", e)
    return HTTPException(status_code=503, detail="DB Sync Failure")


@router.get("/overview", response_model=OverviewResponse)
def my_overview(ctx: SessionContext = Depends(get_session_context)):
    # Everything the client needs right after sign-in.
    try:
        quizzes = ctx.catalog()
        attempts = ctx.visible_attempts()
    except StoreError as e:
        raise _unavailable(e) from e
    return OverviewResponse(
        user=UserPublic.of(ctx.user),
        view=ctx.landing_view,
        ai_enabled=ctx.ai_enabled,
        quizzes=[QuizSummary.of(q) for q in quizzes],
        attempts=attempts,
    )


@router.get("/attempts", response_model=AttemptListResponse)
def my_attempts(ctx: SessionContext = Depends(get_session_context)):
    try:
        items = ctx.store.get_attempts(ctx.user.id)
    except StoreError as e:
        raise _unavailable(e) from e
    items.sort(key=lambda a: a.completed_at, reverse=True)
    return AttemptListResponse(items=items)


@router.get("/stats", response_model=StatsResponse)
def my_stats(ctx: SessionContext = Depends(get_session_context)):
    try:
        quizzes = ctx.catalog()
        attempts = ctx.store.get_attempts(ctx.user.id)
    except StoreError as e:
        raise _unavailable(e) from e
    return compute_stats(quizzes, attempts, ctx.user.id)
