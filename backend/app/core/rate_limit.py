from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request

from app.core.config import settings
from app.core.redis_client import get_redis

logger = logging.getLogger("au_assess.rate_limit")


@dataclass(frozen=True)
class RateLimit:
    key: str
    limit: int
    window_seconds: int


def client_ip(request: Request) -> str:
    if bool(settings.trust_proxy_headers):
        xri = str(request.headers.get("x-real-ip") or "").strip()
        if xri:
            return xri
        xff = str(request.headers.get("x-forwarded-for") or "")
        ip = xff.split(",")[0].strip()
        if ip:
            return ip
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def rate_limit(*, key_prefix: str, limit: int, window_seconds: int):
    """Fixed-window counter per client IP; Redis outages fail open."""

    async def _dep(request: Request) -> RateLimit:
        key = f"rl:{key_prefix}:{request.method}:{request.url.path}:{client_ip(request)}"
        info = RateLimit(key=key, limit=int(limit), window_seconds=int(window_seconds))
        if not bool(settings.rate_limit_enabled):
            return info

        r = get_redis()
        try:
            current = r.incr(key)
            if current == 1:
                r.expire(key, int(window_seconds))
        except Exception as e:
            logger.warning("rate limit skipped key=%s err=%s", key, type(e).__name__)
            return info

        if int(current) > int(limit):
            ttl = r.ttl(key)
            retry_after = int(ttl) if ttl and ttl > 0 else int(window_seconds)
            raise HTTPException(
                status_code=429,
                detail="rate limit exceeded",
                headers={"Retry-After": str(retry_after)},
            )
        return info

    return Depends(_dep)
