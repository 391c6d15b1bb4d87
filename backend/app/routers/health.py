from fastapi import APIRouter, HTTPException

from app.core.config import resolved_storage_backend
from app.core.redis_client import get_redis
from app.services.assistant import get_assistant
from app.services.store import RecordKind, StoreError, open_store

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/health/live")
def live():
    return {"status": "live"}


@router.get("/health/ready")
def ready():
    try:
        store = open_store()
        try:
            store.get(RecordKind.quizzes, "__ready__")
        finally:
            store.close()
    except StoreError as e:
        raise HTTPException(status_code=503, detail="store not ready") from e

    try:
        r = get_redis()
        r.ping()
    except Exception as e:
        raise HTTPException(status_code=503, detail="redis not ready") from e

    return {"status": "ready", "storage": resolved_storage_backend()}


@router.get("/health/ai")
def ai():
    assistant = get_assistant()
    ok, reason = assistant.healthcheck()
    return {
        "ok": ok,
        "enabled": assistant.enabled,
        "configured": assistant.is_configured(),
        "reason": reason,
        "chat_model": assistant.chat_model,
        "generate_model": assistant.generate_model,
    }
