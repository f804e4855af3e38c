from __future__ import annotations

import logging
import threading
from time import monotonic
from typing import Dict, Optional, Tuple

from app.config import REDIS_URL

logger = logging.getLogger("gallery")


class RateLimiter:
    """Fixed window rate limiter per client, backed by Redis when configured."""

    def __init__(self, limit: int, window_seconds: int = 60, redis_url: Optional[str] = None) -> None:
        self.limit = max(limit, 1)
        self.window_seconds = window_seconds
        self._clients: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()
        self._redis_client = self._connect_redis(REDIS_URL if redis_url is None else redis_url)

    @property
    def use_redis(self) -> bool:
        return self._redis_client is not None

    @staticmethod
    def _connect_redis(url: str):
        if not url:
            return None
        try:
            import redis

            client = redis.from_url(url)
            client.ping()
            return client
        except Exception as exc:
            logger.warning("event=rate_limit_redis_unavailable error=%s", exc)
            return None

    def hit(self, key: str) -> Tuple[bool, int]:
        """
        Register a hit for the given key.
        Returns (allowed, retry_after_seconds).
        """
        if self._redis_client is not None:
            return self._hit_redis(key)
        return self._hit_memory(key)

    def _hit_redis(self, key: str) -> Tuple[bool, int]:
        import redis

        redis_key = f"gallery:rate_limit:{key}"
        try:
            pipe = self._redis_client.pipeline()
            pipe.incr(redis_key)
            pipe.ttl(redis_key)
            count, ttl = pipe.execute()
            if ttl is None or int(ttl) < 0:
                self._redis_client.expire(redis_key, self.window_seconds)
                ttl = self.window_seconds
            retry_after = max(0, int(ttl))
            if int(count) > self.limit:
                return False, retry_after or 1
            return True, retry_after
        except redis.RedisError as exc:
            logger.warning("event=rate_limit_redis_error error=%s", exc)
            return self._hit_memory(key)

    def _hit_memory(self, key: str) -> Tuple[bool, int]:
        now = monotonic()
        with self._lock:
            count, reset_at = self._clients.get(key, (0, now + self.window_seconds))
            if now > reset_at:
                count = 0
                reset_at = now + self.window_seconds
            if count >= self.limit:
                retry_after = max(0, int(reset_at - now))
                return False, retry_after or 1

            self._clients[key] = (count + 1, reset_at)
            retry_after = max(0, int(reset_at - now))
            return True, retry_after
