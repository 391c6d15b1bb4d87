import sys
from pathlib import Path
import uuid
import time

import pytest
from fastapi.testclient import TestClient

backend_dir = Path(__file__).resolve().parents[1]
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.db.base import Base
from app.db import session as session_module
from app.main import create_app

# Import models so that they are registered in Base.metadata before create_all.
from app.models.user import User  # noqa: F401
from app.models.quiz import Quiz  # noqa: F401
from app.models.attempt import QuizAttempt  # noqa: F401


class _MemoryRedis:
    def __init__(self):
        self._data: dict[str, tuple[object, float | None]] = {}

    def ping(self):
        return True

    def flushall(self):
        self._data.clear()

    def _now(self) -> float:
        return time.time()

    def _get_entry(self, key: str):
        v = self._data.get(key)
        if not v:
            return None
        value, exp = v
        if exp is not None and exp <= self._now():
            self._data.pop(key, None)
            return None
        return value, exp

    def get(self, key: str):
        entry = self._get_entry(key)
        return entry[0] if entry else None

    def set(self, key: str, value: str, ex: int | None = None):
        exp = (self._now() + int(ex)) if ex else None
        self._data[key] = (value, exp)
        return True

    def delete(self, key: str):
        return 1 if self._data.pop(key, None) is not None else 0

    def incr(self, key: str):
        cur = self.get(key)
        n = int(cur or 0) + 1
        _, exp = self._data.get(key, ("", None))
        self._data[key] = (str(n), exp)
        return n

    def expire(self, key: str, seconds: int):
        entry = self._get_entry(key)
        if not entry:
            return False
        value, _ = entry
        self._data[key] = (value, self._now() + int(seconds))
        return True

    def ttl(self, key: str):
        entry = self._get_entry(key)
        if not entry:
            return -2
        _, exp = entry
        if exp is None:
            return -1
        return max(0, int(exp - self._now()))

    def hset(self, name: str, key: str, value: str):
        entry = self._get_entry(name)
        h = dict(entry[0]) if entry else {}
        h[key] = str(value)
        self._data[name] = (h, None)
        return 1

    def hget(self, name: str, key: str):
        entry = self._get_entry(name)
        return entry[0].get(key) if entry else None

    def hgetall(self, name: str):
        entry = self._get_entry(name)
        return dict(entry[0]) if entry else {}


# Configure test DB (SQLite in-memory) at import time so every store opened
# through app.db.session.SessionLocal gets the patched version.
_engine = create_engine(
    "sqlite+pysqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
Base.metadata.create_all(bind=_engine)
session_module.engine = _engine
session_module.SessionLocal = session_module.sessionmaker(autocommit=False, autoflush=False, bind=_engine)

settings.storage_backend = "sql"
settings.rate_limit_enabled = False
settings.ai_enabled = True
settings.gemini_api_key = None
# Tests drive advance explicitly.
settings.quiz_feedback_delay_seconds = 600.0


# Stub Redis at import time (rate limiting, quiz sessions, runtime AI toggle).
_mem_redis = _MemoryRedis()
import app.core.redis_client as redis_client_module

redis_client_module.get_redis = lambda: _mem_redis

import app.core.rate_limit as rate_limit_module
rate_limit_module.get_redis = lambda: _mem_redis

import app.routers.quizzes as quizzes_router_module
quizzes_router_module.get_redis = lambda: _mem_redis

import app.routers.health as health_router_module
health_router_module.get_redis = lambda: _mem_redis

import app.routers.admin as admin_router_module
admin_router_module.get_redis = lambda: _mem_redis


@pytest.fixture(autouse=True)
def _clean_state():
    _mem_redis.flushall()
    with session_module.SessionLocal() as db:
        for table in reversed(Base.metadata.sorted_tables):
            db.execute(table.delete())
        db.commit()
    yield


@pytest.fixture()
def mem_redis():
    return _mem_redis


@pytest.fixture(scope="session")
def client():
    app = create_app()
    return TestClient(app)


@pytest.fixture()
def db():
    with session_module.SessionLocal() as session:
        yield session


def register(client, *, role: str = "STUDENT", password: str = "testpass123", faculty_code: str | None = None):
    username = f"test_{uuid.uuid4().hex[:8]}"
    body = {
        "name": username.title(),
        "username": username,
        "email": f"{username}@aus.edu",
        "password": password,
        "role": role,
    }
    if faculty_code is not None:
        body["faculty_code"] = faculty_code
    r = client.post("/auth/register", json=body)
    assert r.status_code == 200, r.text
    return r.json()


@pytest.fixture()
def student(client):
    return register(client)


@pytest.fixture()
def student_headers(student):
    return {"Authorization": f"Bearer {student['access_token']}"}


@pytest.fixture()
def admin_headers(client):
    data = register(client, role="ADMIN", faculty_code="AUS_FACULTY")
    return {"Authorization": f"Bearer {data['access_token']}"}
