from __future__ import annotations

from fastapi import APIRouter, Depends

from app.core.rate_limit import rate_limit
from app.core.security import get_current_user
from app.schemas.assistant import ChatRequest, ChatResponse
from app.schemas.user import UserRecord
from app.services.assistant import Assistant, get_assistant

router = APIRouter(prefix="/assistant", tags=["assistant"])


@router.post("/chat", response_model=ChatResponse)
def chat(
    body: ChatRequest,
    _user: UserRecord = Depends(get_current_user),
    assistant: Assistant = Depends(get_assistant),
    _: object = rate_limit(key_prefix="assistant_chat", limit=30, window_seconds=60),
):
    result = assistant.chat(body.message, body.history[-20:])
    return ChatResponse(reply=str(result.value), fallback=result.fallback, reason=result.reason)
