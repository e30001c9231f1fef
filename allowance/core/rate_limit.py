"""Rate limiting.

``limiter`` is the shared per-IP slowapi limiter. It uses Redis-backed
storage when Redis is available so counters survive process restarts and
work across multiple instances, and falls back to in-memory storage
(development / test environments).

``login_attempts`` throttles sign-in per email address on the same storage:
after ``LOGIN_MAX_ATTEMPTS`` failures inside a moving window of
``LOGIN_ATTEMPT_WINDOW_MINUTES`` further attempts are refused without
checking credentials.
"""

import logging

import redis as sync_redis
from limits import RateLimitItemPerSecond
from limits.storage import Storage, storage_from_string
from limits.strategies import MovingWindowRateLimiter
from slowapi import Limiter
from slowapi.util import get_remote_address

from allowance.config import settings

logger = logging.getLogger(__name__)


def _redis_available() -> bool:
    try:
        client = sync_redis.from_url(settings.REDIS_URL, socket_connect_timeout=1)
        client.ping()
        client.close()
        return True
    except Exception:
        return False


if _redis_available():
    logger.info("Rate limiter: Redis storage (%s)", settings.REDIS_URL)
    STORAGE_URI = settings.REDIS_URL
else:
    logger.warning("Rate limiter: Redis unavailable, using in-memory storage")
    STORAGE_URI = "memory://"

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["100/minute"],
    storage_uri=STORAGE_URI,
)


class LoginAttemptTracker:
    """Moving-window counter of failed sign-ins keyed by email address."""

    def __init__(self, storage: Storage, max_attempts: int = 5, window_seconds: int = 15 * 60) -> None:
        self.storage = storage
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._item = RateLimitItemPerSecond(max_attempts, window_seconds, namespace="LOGIN")
        self._strategy = MovingWindowRateLimiter(storage)

    @staticmethod
    def _key(email: str) -> str:
        return email.strip().lower()

    def is_blocked(self, email: str) -> bool:
        return not self._strategy.test(self._item, self._key(email))

    def failure_count(self, email: str) -> int:
        stats = self._strategy.get_window_stats(self._item, self._key(email))
        return self.max_attempts - stats.remaining

    def record_failure(self, email: str) -> None:
        key = self._key(email)
        self._strategy.hit(self._item, key)
        if self.is_blocked(key):
            logger.warning("Sign-in locked for %s after %d failed attempts", key, self.max_attempts)

    def reset(self, email: str) -> None:
        self._strategy.clear(self._item, self._key(email))

    def clear(self) -> None:
        self.storage.reset()


login_attempts = LoginAttemptTracker(
    storage_from_string(STORAGE_URI),
    max_attempts=settings.LOGIN_MAX_ATTEMPTS,
    window_seconds=settings.LOGIN_ATTEMPT_WINDOW_MINUTES * 60,
)


def get_login_attempts() -> LoginAttemptTracker:
    """FastAPI dependency returning the shared sign-in tracker."""
    return login_attempts
