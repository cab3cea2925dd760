"""
Global rate limiter for the language-model calls.

Every worker process shares one Redis key per resource ("scoring",
"synthesis"), so the budget holds across all reports at once.  The
reservation is a Lua script evaluated on Redis server time; callers
sleep cooperatively for the returned delay or raise so the task layer
can retry later.

When Redis is unreachable the limiter degrades to a per-process
reservation and switches back once the connection returns.
"""
import logging
import random
import threading
import time
from dataclasses import dataclass
from typing import Dict, Optional

from ..config import settings

logger = logging.getLogger(__name__)


class RateLimitTimeoutError(Exception):
    """Raised when the reserved slot is further away than the caller will wait."""

    def __init__(self, key: str, wait_s: float, timeout_s: float):
        super().__init__(
            f"Rate limit wait for '{key}' would be {wait_s:.1f}s, "
            f"exceeding timeout of {timeout_s:.1f}s"
        )
        self.key = key
        self.wait_s = wait_s


@dataclass(frozen=True)
class RateBudget:
    """A named resource and the minimum spacing between its calls."""

    key: str
    min_interval_s: float


def scoring_budget() -> RateBudget:
    return RateBudget("scoring", settings.evaluation_min_interval_s)


def synthesis_budget() -> RateBudget:
    return RateBudget("synthesis", settings.synthesis_min_interval_s)


# KEYS[1] = rate limit key, ARGV[1] = min interval in seconds.
# Returns the seconds the caller must wait before its reserved slot.
_LUA_RESERVE_SLOT = """
local t = redis.call('TIME')
local now = tonumber(t[1]) + tonumber(t[2]) / 1000000

local next_allowed = tonumber(redis.call('GET', KEYS[1]) or 0)
local interval = tonumber(ARGV[1])

if now >= next_allowed then
    redis.call('SET', KEYS[1], tostring(now + interval), 'EX', math.ceil(interval * 2 + 10))
    return '0'
end

local new_next = next_allowed + interval
redis.call('SET', KEYS[1], tostring(new_next), 'EX', math.ceil(new_next - now + interval * 2))
return tostring(next_allowed - now)
"""


class RedisRateLimiter:
    """Spacing-based limiter shared by all Celery workers."""

    def __init__(self, jitter_ms: int = 50, redis_retry_interval: float = 30.0):
        """
        Args:
            jitter_ms: Upper bound of random jitter added to every sleep so
                       workers released together do not collide again.
            redis_retry_interval: Seconds between reconnection attempts while
                                  running on the local fallback.
        """
        self._jitter_ms = jitter_ms
        self._redis_retry_interval = redis_retry_interval

        self._fallback_lock = threading.Lock()
        self._next_allowed: Dict[str, float] = {}
        self._using_fallback = False
        self._last_redis_retry = 0.0

    def _get_redis_client(self):
        try:
            from .redis_pool import get_redis_client
            client = get_redis_client()
            if client:
                client.ping()
                return client
        except Exception as e:
            logger.debug("Rate limiter: Redis unavailable: %s", e)
        return None

    def _reserve_redis(self, key: str, min_interval_s: float) -> Optional[float]:
        """Reserve a slot in Redis; None means Redis could not be used."""
        if self._using_fallback:
            now = time.monotonic()
            if now - self._last_redis_retry < self._redis_retry_interval:
                return None
            self._last_redis_retry = now

        client = self._get_redis_client()
        if client is None:
            if not self._using_fallback:
                logger.warning(
                    "Rate limiter: Redis unavailable, '%s' budget is now per-process", key
                )
                self._using_fallback = True
                self._last_redis_retry = time.monotonic()
            return None

        try:
            result = client.eval(_LUA_RESERVE_SLOT, 1, f"ratelimit:{key}", str(min_interval_s))
        except Exception as e:
            logger.warning(f"Rate limiter: Redis error, falling back to in-process: {e}")
            self._using_fallback = True
            self._last_redis_retry = time.monotonic()
            return None

        if self._using_fallback:
            self._using_fallback = False
            logger.info("Rate limiter: Redis connection restored")

        if isinstance(result, bytes):
            result = result.decode()
        return float(result)

    def _reserve_local(self, key: str, min_interval_s: float) -> float:
        with self._fallback_lock:
            now = time.monotonic()
            next_allowed = self._next_allowed.get(key, 0.0)
            if now >= next_allowed:
                self._next_allowed[key] = now + min_interval_s
                return 0.0
            self._next_allowed[key] = next_allowed + min_interval_s
            return next_allowed - now

    def wait(self, key: str, min_interval_s: float, timeout_s: float = 120.0) -> float:
        """
        Block until the reserved slot for ``key`` arrives.

        Returns:
            Seconds actually slept.

        Raises:
            RateLimitTimeoutError: If the slot is further away than ``timeout_s``.
        """
        wait_time = self._reserve_redis(key, min_interval_s)
        backend = "redis"
        if wait_time is None:
            wait_time = self._reserve_local(key, min_interval_s)
            backend = "local"

        if wait_time > timeout_s:
            raise RateLimitTimeoutError(key, wait_time, timeout_s)

        if wait_time <= 0:
            logger.debug("Rate limit: key=%s waited=0.000s backend=%s", key, backend)
            return 0.0

        total_wait = wait_time + random.uniform(0, self._jitter_ms / 1000.0)
        logger.debug("Rate limit: key=%s waited=%.3fs backend=%s", key, total_wait, backend)
        time.sleep(total_wait)
        return total_wait

    def acquire(self, budget: RateBudget, timeout_s: Optional[float] = None) -> float:
        """Wait for one call's worth of ``budget``."""
        if timeout_s is None:
            timeout_s = settings.rate_limit_timeout_seconds
        return self.wait(budget.key, budget.min_interval_s, timeout_s)


# Module-level singleton
rate_limiter = RedisRateLimiter()
