"""
rate_limiter.py — Per-client token bucket rate limiting
Each client key (IP address) gets a bucket of `capacity` tokens that refills
continuously at `capacity` tokens per `window_seconds`. Buckets live in a bounded
in-memory cache with idle expiry, so rotating source addresses cannot grow it
without limit. An evicted bucket simply starts over full.
"""

import logging
import threading
import time
from collections import OrderedDict
from typing import Callable

from errors import RateLimited

logger = logging.getLogger(__name__)


class TokenBucket:
    """Greedy-refill bucket: a burst of `capacity` is allowed after idling."""

    __slots__ = ("capacity", "refill_per_second", "tokens", "updated_at", "last_access")

    def __init__(self, capacity: int, window_seconds: float, now: float):
        self.capacity = capacity
        self.refill_per_second = capacity / window_seconds
        self.tokens = float(capacity)
        self.updated_at = now
        self.last_access = now

    def _refill(self, now: float):
        elapsed = now - self.updated_at
        if elapsed > 0:
            self.tokens = min(float(self.capacity), self.tokens + elapsed * self.refill_per_second)
            self.updated_at = now

    def try_consume(self, now: float, tokens: int = 1) -> bool:
        self._refill(now)
        self.last_access = now
        if self.tokens >= tokens:
            self.tokens -= tokens
            return True
        return False


class BucketCache:
    """Bounded LRU map of key → TokenBucket with expire-after-access."""

    def __init__(self, max_entries: int, idle_seconds: float):
        self.max_entries = max_entries
        self.idle_seconds = idle_seconds
        # least recently used first
        self._buckets: "OrderedDict[str, TokenBucket]" = OrderedDict()
        self._evictions: int = 0

    def _is_expired(self, bucket: TokenBucket, now: float) -> bool:
        return now - bucket.last_access > self.idle_seconds

    def _evict_expired(self, now: float):
        while self._buckets:
            key, oldest = next(iter(self._buckets.items()))
            if not self._is_expired(oldest, now):
                break
            del self._buckets[key]
            self._evictions += 1

    def get_or_create(self, key: str, now: float, factory: Callable[[float], TokenBucket]) -> TokenBucket:
        bucket = self._buckets.get(key)
        if bucket is not None and self._is_expired(bucket, now):
            del self._buckets[key]
            self._evictions += 1
            bucket = None

        if bucket is None:
            self._evict_expired(now)
            while len(self._buckets) >= self.max_entries:
                self._buckets.popitem(last=False)
                self._evictions += 1
            bucket = factory(now)
            self._buckets[key] = bucket
        else:
            self._buckets.move_to_end(key)
        return bucket

    def __len__(self) -> int:
        return len(self._buckets)

    def __contains__(self, key: str) -> bool:
        return key in self._buckets

    def clear(self):
        self._buckets.clear()
        self._evictions = 0

    @property
    def evictions(self) -> int:
        return self._evictions


class RateLimiter:
    """Thread-safe keyed token-bucket limiter."""

    def __init__(
        self,
        capacity: int = 10,
        window_seconds: float = 60.0,
        max_keys: int = 10_000,
        idle_seconds: float = 120.0,
        time_func: Callable[[], float] = time.monotonic,
    ):
        if capacity <= 0 or window_seconds <= 0:
            raise ValueError("capacity and window_seconds must be positive")
        self.capacity = capacity
        self.window_seconds = window_seconds
        self._time = time_func
        self._cache = BucketCache(max_keys, idle_seconds)
        self._lock = threading.Lock()
        self._allowed: int = 0
        self._rejected: int = 0

    def _new_bucket(self, now: float) -> TokenBucket:
        return TokenBucket(self.capacity, self.window_seconds, now)

    # ------------------------------------------------------------------
    def try_acquire(self, key: str) -> bool:
        """Consume one token for *key*. False when the bucket is empty."""
        with self._lock:
            now = self._time()
            bucket = self._cache.get_or_create(key, now, self._new_bucket)
            allowed = bucket.try_consume(now)
            if allowed:
                self._allowed += 1
            else:
                self._rejected += 1
            return allowed

    def check(self, key: str):
        """Like try_acquire, but raises RateLimited instead of returning False."""
        if not self.try_acquire(key):
            logger.warning(f"Rate limit exceeded for {key}")
            raise RateLimited()

    # ------------------------------------------------------------------
    def reset(self):
        with self._lock:
            self._cache.clear()
            self._allowed = 0
            self._rejected = 0

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "tracked_keys": len(self._cache),
                "allowed": self._allowed,
                "rejected": self._rejected,
                "evictions": self._cache.evictions,
                "capacity": self.capacity,
                "window_seconds": self.window_seconds,
            }
