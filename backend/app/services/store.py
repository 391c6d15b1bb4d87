from __future__ import annotations

import enum
import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterator

from pydantic import BaseModel, ValidationError
from sqlalchemy import asc, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import resolved_storage_backend, settings
from app.db import session as session_module
from app.models.attempt import QuizAttempt as QuizAttemptRow
from app.models.quiz import Quiz as QuizRow
from app.models.user import User as UserRow
from app.schemas.quiz import Quiz, QuizAttempt
from app.schemas.user import UserRecord

logger = logging.getLogger("au_assess.store")


class RecordKind(str, enum.Enum):
    users = "users"
    quizzes = "quizzes"
    attempts = "attempts"


RECORD_TYPES: dict[RecordKind, type[BaseModel]] = {
    RecordKind.users: UserRecord,
    RecordKind.quizzes: Quiz,
    RecordKind.attempts: QuizAttempt,
}


class StoreError(RuntimeError):
    pass


class DuplicateUserError(StoreError):
    pass


class RecordStore(ABC):
    """Key-based access to users, quizzes and attempts.

    Backends implement ``list``/``get``/``upsert``/``delete``; ``find`` and the
    domain helpers are shared. Writes are last-write-wins by record id.
    """

    @abstractmethod
    def list(self, kind: RecordKind) -> list[Any]:
        raise NotImplementedError

    @abstractmethod
    def get(self, kind: RecordKind, key: str) -> Any | None:
        raise NotImplementedError

    @abstractmethod
    def upsert(self, kind: RecordKind, record: BaseModel) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, kind: RecordKind, key: str) -> bool:
        raise NotImplementedError

    def find(self, kind: RecordKind, predicate: Callable[[Any], bool]) -> list[Any]:
        return [r for r in self.list(kind) if predicate(r)]

    def close(self) -> None:
        return None

    def get_quizzes(self) -> list[Quiz]:
        return self.list(RecordKind.quizzes)

    def save_quiz(self, quiz: Quiz) -> None:
        self.upsert(RecordKind.quizzes, quiz)

    def delete_quiz(self, quiz_id: str) -> bool:
        return self.delete(RecordKind.quizzes, quiz_id)

    def get_attempts(self, student_id: str | None = None) -> list[QuizAttempt]:
        if student_id is None:
            return self.list(RecordKind.attempts)
        return self.find(RecordKind.attempts, lambda a: a.student_id == student_id)

    def save_attempt(self, attempt: QuizAttempt) -> None:
        self.upsert(RecordKind.attempts, attempt)

    def find_user(self, username_or_email: str) -> UserRecord | None:
        needle = str(username_or_email or "").strip()
        if not needle:
            return None
        found = self.find(RecordKind.users, lambda u: u.username == needle or u.email == needle)
        return found[0] if found else None

    def register_user(self, user: UserRecord) -> None:
        if self.find_user(user.username) is not None or self.find_user(user.email) is not None:
            raise DuplicateUserError("username or email already registered")
        self.upsert(RecordKind.users, user)


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; stored values are always UTC.
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _check_record(kind: RecordKind, record: BaseModel) -> None:
    expected = RECORD_TYPES[kind]
    if not isinstance(record, expected):
        raise TypeError(f"{kind.value} store expects {expected.__name__}, got {type(record).__name__}")


class SqlRecordStore(RecordStore):
    def __init__(self, db: Session):
        self.db = db

    _ROWS = {
        RecordKind.users: UserRow,
        RecordKind.quizzes: QuizRow,
        RecordKind.attempts: QuizAttemptRow,
    }

    @staticmethod
    def _to_record(kind: RecordKind, row: Any) -> Any:
        if kind == RecordKind.users:
            return UserRecord(
                id=row.id,
                username=row.username,
                name=row.name,
                email=row.email,
                role=row.role,
                password_hash=row.password_hash,
            )
        if kind == RecordKind.quizzes:
            return Quiz(
                id=row.id,
                title=row.title,
                description=row.description or "",
                category=row.category or "",
                questions=list(row.questions or []),
                duration=int(row.duration),
                created_at=_aware(row.created_at),
            )
        return QuizAttempt(
            id=row.id,
            quiz_id=row.quiz_id,
            student_id=row.student_id,
            score=int(row.score),
            total_questions=int(row.total_questions),
            completed_at=_aware(row.completed_at),
            answers=[int(a) for a in (row.answers or [])],
        )

    @staticmethod
    def _to_row(kind: RecordKind, record: Any) -> Any:
        if kind == RecordKind.users:
            return UserRow(
                id=record.id,
                username=record.username,
                name=record.name,
                email=record.email,
                role=record.role,
                password_hash=record.password_hash,
            )
        if kind == RecordKind.quizzes:
            return QuizRow(
                id=record.id,
                title=record.title,
                description=record.description,
                category=record.category,
                duration=int(record.duration),
                questions=[q.model_dump(mode="json", by_alias=True) for q in record.questions],
                created_at=record.created_at,
            )
        return QuizAttemptRow(
            id=record.id,
            quiz_id=record.quiz_id,
            student_id=record.student_id,
            score=int(record.score),
            total_questions=int(record.total_questions),
            completed_at=record.completed_at,
            answers=list(record.answers),
        )

    def _order_column(self, kind: RecordKind):
        row = self._ROWS[kind]
        if kind == RecordKind.attempts:
            return row.completed_at
        return row.created_at

    def list(self, kind: RecordKind) -> list[Any]:
        row = self._ROWS[kind]
        try:
            rows = self.db.scalars(select(row).order_by(asc(self._order_column(kind)), asc(row.id))).all()
        except SQLAlchemyError as e:
            raise StoreError(f"failed to list {kind.value}") from e
        return [self._to_record(kind, r) for r in rows]

    def get(self, kind: RecordKind, key: str) -> Any | None:
        try:
            row = self.db.get(self._ROWS[kind], str(key))
        except SQLAlchemyError as e:
            raise StoreError(f"failed to read {kind.value}") from e
        return self._to_record(kind, row) if row is not None else None

    def get_attempts(self, student_id: str | None = None) -> list[QuizAttempt]:
        if student_id is None:
            return self.list(RecordKind.attempts)
        try:
            rows = self.db.scalars(
                select(QuizAttemptRow)
                .where(QuizAttemptRow.student_id == student_id)
                .order_by(QuizAttemptRow.completed_at.asc(), QuizAttemptRow.id.asc())
            ).all()
        except SQLAlchemyError as e:
            raise StoreError("failed to list attempts") from e
        return [self._to_record(RecordKind.attempts, r) for r in rows]

    def find_user(self, username_or_email: str) -> UserRecord | None:
        needle = str(username_or_email or "").strip()
        if not needle:
            return None
        try:
            row = self.db.scalar(
                select(UserRow).where(or_(UserRow.username == needle, UserRow.email == needle)).limit(1)
            )
        except SQLAlchemyError as e:
            raise StoreError("failed to look up user") from e
        return self._to_record(RecordKind.users, row) if row is not None else None

    def upsert(self, kind: RecordKind, record: BaseModel) -> None:
        _check_record(kind, record)
        try:
            self.db.merge(self._to_row(kind, record))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"failed to write {kind.value}") from e

    def delete(self, kind: RecordKind, key: str) -> bool:
        try:
            row = self.db.get(self._ROWS[kind], str(key))
            if row is None:
                return False
            self.db.delete(row)
            self.db.commit()
            return True
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"failed to delete {kind.value}") from e

    def close(self) -> None:
        self.db.close()


_local_locks: dict[str, threading.Lock] = {}
_local_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    with _local_locks_guard:
        return _local_locks.setdefault(str(path.resolve()), threading.Lock())


class LocalRecordStore(RecordStore):
    """Fallback store: one JSON array per record kind in a local directory."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _path(self, kind: RecordKind) -> Path:
        return self.root / f"au_{kind.value}.json"

    def _read_raw(self, kind: RecordKind) -> list[dict]:
        path = self._path(kind)
        if not path.exists():
            return []
        try:
            data = json.loads(path.read_text(encoding="utf-8") or "[]")
        except (OSError, ValueError) as e:
            raise StoreError(f"failed to read {path.name}") from e
        if not isinstance(data, list):
            raise StoreError(f"{path.name} does not hold a JSON array")
        return [item for item in data if isinstance(item, dict)]

    def _write_raw(self, kind: RecordKind, items: list[dict]) -> None:
        path = self._path(kind)
        tmp = path.with_suffix(".json.tmp")
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(items, ensure_ascii=False, indent=2), encoding="utf-8")
            os.replace(tmp, path)
        except OSError as e:
            raise StoreError(f"failed to write {path.name}") from e

    def _parse(self, kind: RecordKind, item: dict) -> Any | None:
        try:
            return RECORD_TYPES[kind].model_validate(item)
        except ValidationError:
            logger.warning("skipping malformed %s record id=%s", kind.value, item.get("id"))
            return None

    def list(self, kind: RecordKind) -> list[Any]:
        with _lock_for(self._path(kind)):
            items = self._read_raw(kind)
        parsed = [r for r in (self._parse(kind, item) for item in items) if r is not None]
        if kind == RecordKind.quizzes:
            parsed.sort(key=lambda r: (r.created_at, r.id))
        elif kind == RecordKind.attempts:
            parsed.sort(key=lambda r: (r.completed_at, r.id))
        return parsed

    def get(self, kind: RecordKind, key: str) -> Any | None:
        for record in self.list(kind):
            if record.id == str(key):
                return record
        return None

    def upsert(self, kind: RecordKind, record: BaseModel) -> None:
        _check_record(kind, record)
        payload = record.model_dump(mode="json", by_alias=True)
        with _lock_for(self._path(kind)):
            items = self._read_raw(kind)
            for i, item in enumerate(items):
                if item.get("id") == payload["id"]:
                    items[i] = payload
                    break
            else:
                items.append(payload)
            self._write_raw(kind, items)

    def delete(self, kind: RecordKind, key: str) -> bool:
        with _lock_for(self._path(kind)):
            items = self._read_raw(kind)
            kept = [item for item in items if item.get("id") != str(key)]
            if len(kept) == len(items):
                return False
            self._write_raw(kind, kept)
        return True


def open_store() -> RecordStore:
    if resolved_storage_backend() == "sql":
        return SqlRecordStore(session_module.SessionLocal())
    return LocalRecordStore(settings.local_store_dir)


def get_store() -> Iterator[RecordStore]:
    store = open_store()
    try:
        yield store
    finally:
        store.close()
