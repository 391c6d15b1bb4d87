from __future__ import annotations

import redis

from app.core.config import settings


def get_redis() -> redis.Redis:
    return redis.Redis.from_url(settings.redis_url, decode_responses=True)


def read_runtime_hash(name: str) -> dict[str, str]:
    """Runtime overrides stored as a Redis hash; empty when Redis is unavailable."""
    out: dict[str, str] = {}
    try:
        raw = get_redis().hgetall(name) or {}
    except Exception:
        return out
    for k, v in raw.items():
        kk = k.decode("utf-8") if isinstance(k, (bytes, bytearray)) else str(k)
        vv = v.decode("utf-8") if isinstance(v, (bytes, bytearray)) else str(v)
        out[kk] = vv
    return out
