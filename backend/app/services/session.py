from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends

from app.core.security import get_current_user
from app.models.user import UserRole
from app.schemas.quiz import Quiz, QuizAttempt
from app.schemas.user import UserRecord
from app.services.assistant import ai_enabled
from app.services.catalog import load_catalog
from app.services.store import RecordStore, get_store


@dataclass
class SessionContext:
    """Per-request view of who is signed in and what they can see."""

    user: UserRecord
    store: RecordStore
    ai_enabled: bool

    @property
    def is_admin(self) -> bool:
        return self.user.role == UserRole.admin

    @property
    def landing_view(self) -> str:
        return "admin" if self.is_admin else "dashboard"

    def catalog(self) -> list[Quiz]:
        return load_catalog(self.store)

    def visible_attempts(self) -> list[QuizAttempt]:
        return self.store.get_attempts(None if self.is_admin else self.user.id)


def get_session_context(
    user: UserRecord = Depends(get_current_user),
    store: RecordStore = Depends(get_store),
) -> SessionContext:
    return SessionContext(user=user, store=store, ai_enabled=ai_enabled())
