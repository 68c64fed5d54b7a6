"""Per-client request budgets for the public, unpaid endpoints.

Each scope ("availability", "proof") has its own limit and window, read from
the ``Settings`` the route was handed. Hits are kept in a ``HitStore``:
redis when configured, with process memory as the fallback when redis is
unreachable.
"""

import bisect
import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from uuid import uuid4

import redis
from fastapi import HTTPException, Request, status

from app.core.config import Settings, settings

logger = logging.getLogger(__name__)

RATE_LIMITED_DETAIL = "Too many requests. Please try again later."


@dataclass(frozen=True)
class RateLimitRule:
    limit: int
    window_seconds: int


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after: int = 0


def rate_limit_rules(config: Settings) -> dict[str, RateLimitRule]:
    return {
        "availability": RateLimitRule(
            limit=config.availability_max_requests,
            window_seconds=config.availability_rate_limit_window_seconds,
        ),
        "proof": RateLimitRule(
            limit=config.proof_max_requests,
            window_seconds=config.proof_rate_limit_window_seconds,
        ),
    }


def _seconds_until_free(oldest_hit: float, window_seconds: int, now: float) -> int:
    return max(1, int(oldest_hit + window_seconds - now))


class HitStore(ABC):
    @abstractmethod
    def hit(self, key: str, rule: RateLimitRule) -> RateLimitDecision:
        """Record one hit for ``key`` unless that would exceed ``rule``."""
        raise NotImplementedError

    @abstractmethod
    def reset(self) -> None:
        raise NotImplementedError


class MemoryHitStore(HitStore):
    def __init__(self) -> None:
        self._hits: dict[str, list[float]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str, rule: RateLimitRule) -> RateLimitDecision:
        now = time.time()
        with self._lock:
            stamps = self._hits.setdefault(key, [])
            del stamps[: bisect.bisect_right(stamps, now - rule.window_seconds)]
            if len(stamps) >= rule.limit:
                oldest = stamps[0] if stamps else now
                return RateLimitDecision(False, 0, _seconds_until_free(oldest, rule.window_seconds, now))
            stamps.append(now)
            return RateLimitDecision(True, rule.limit - len(stamps))

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


class RedisHitStore(HitStore):
    """Hits as members of a sorted set scored by their timestamp.

    The hit is added optimistically inside one MULTI/EXEC and withdrawn again
    when it pushed the key over the limit.
    """

    def __init__(self, client: redis.Redis, prefix: str = "pwyc:rl") -> None:
        self._client = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisHitStore":
        return cls(redis.Redis.from_url(redis_url, socket_connect_timeout=0.2, socket_timeout=0.2))

    def hit(self, key: str, rule: RateLimitRule) -> RateLimitDecision:
        redis_key = f"{self._prefix}:{key}"
        now = time.time()
        member = f"{now:.6f}:{uuid4().hex}"
        with self._client.pipeline() as pipe:
            pipe.zremrangebyscore(redis_key, "-inf", now - rule.window_seconds)
            pipe.zadd(redis_key, {member: now})
            pipe.zcard(redis_key)
            pipe.zrange(redis_key, 0, 0, withscores=True)
            pipe.expire(redis_key, rule.window_seconds + 1)
            _, _, hit_count, oldest, _ = pipe.execute()

        if hit_count <= rule.limit:
            return RateLimitDecision(True, rule.limit - hit_count)

        self._client.zrem(redis_key, member)
        oldest_hit = oldest[0][1] if oldest else now
        return RateLimitDecision(False, 0, _seconds_until_free(oldest_hit, rule.window_seconds, now))

    def reset(self) -> None:
        keys = list(self._client.scan_iter(match=f"{self._prefix}:*"))
        if keys:
            self._client.delete(*keys)


class FallbackHitStore(HitStore):
    def __init__(self, primary: HitStore, fallback: HitStore) -> None:
        self._primary = primary
        self._fallback = fallback

    def hit(self, key: str, rule: RateLimitRule) -> RateLimitDecision:
        try:
            return self._primary.hit(key, rule)
        except redis.RedisError as exc:
            logger.warning("rate_limit_store_unavailable key=%s reason=%s", key, exc)
            return self._fallback.hit(key, rule)

    def reset(self) -> None:
        try:
            self._primary.reset()
        except redis.RedisError as exc:
            logger.warning("rate_limit_store_reset_failed reason=%s", exc)
        self._fallback.reset()


def build_hit_store(config: Settings) -> HitStore:
    memory = MemoryHitStore()
    if config.rate_limit_backend.strip().lower() != "redis":
        return memory
    return FallbackHitStore(primary=RedisHitStore.from_url(config.rate_limit_redis_url), fallback=memory)


rate_limit_store: HitStore = build_hit_store(settings)


def enforce_rate_limit(scope: str, request: Request, config: Settings) -> None:
    """Count one hit for the caller's IP under ``scope``; 429 once its budget is spent."""
    rule = rate_limit_rules(config)[scope]
    client_ip = request.client.host if request.client else "unknown"
    decision = rate_limit_store.hit(f"{scope}:{client_ip}", rule)
    if not decision.allowed:
        logger.info("rate_limited scope=%s client_ip=%s retry_after=%s", scope, client_ip, decision.retry_after)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=RATE_LIMITED_DETAIL,
            headers={"Retry-After": str(decision.retry_after)},
        )
