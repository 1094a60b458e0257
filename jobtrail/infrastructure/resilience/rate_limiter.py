"""Per-route request rate limiting.

Fixed-window counters keyed by route and client address, for endpoints such
as checkout that need a coarse requests-per-window cap. The number of
tracked buckets is bounded so a flood of distinct clients cannot exhaust
memory.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from jobtrail.domain.interfaces.clock import Clock
from jobtrail.infrastructure.resilience.clock import SystemClock

logger = logging.getLogger(__name__)

DEFAULT_MAX_BUCKETS = 10_000
DEFAULT_ROUTE_LIMIT = 5
DEFAULT_ROUTE_WINDOW_MS = 60_000


@dataclass
class _Bucket:
    count: int
    reset_at_ms: int


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of a rate-limit check."""
    ok: bool
    remaining: int
    retry_after_ms: Optional[int] = None


def get_client_ip(headers: Mapping[str, str]) -> str:
    """Extracts the client address from proxy headers (first forwarded hop wins)."""
    lowered = {name.lower(): value for name, value in headers.items()}
    forwarded = lowered.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    real_ip = lowered.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()
    return "unknown"


def route_key(route_name: str, client_ip: str) -> str:
    """Bucket key for a route and client, e.g. ``rl:billing:checkout:1.2.3.4``."""
    return f"rl:{route_name}:{client_ip}"


class RequestRateLimiter:
    """Fixed-window request counter with bounded bucket storage."""

    def __init__(self, max_buckets: int = DEFAULT_MAX_BUCKETS, clock: Optional[Clock] = None):
        """Initializes the limiter.

        Args:
            max_buckets: Bucket count above which expired and then oldest buckets are evicted.
            clock: Time source (wall clock if None).
        """
        if max_buckets <= 0:
            raise ValueError("max_buckets must be positive.")
        self.max_buckets = max_buckets
        self.clock = clock or SystemClock()
        self._buckets: Dict[str, _Bucket] = {}
        self._lock = threading.Lock()
        logger.info(f"RequestRateLimiter initialized: max_buckets={max_buckets}")

    def _evict(self, now_ms: int) -> None:
        """Drops expired buckets, then the oldest half if still over the bound. Caller holds the lock."""
        for key in [k for k, b in self._buckets.items() if now_ms > b.reset_at_ms]:
            del self._buckets[key]
        if len(self._buckets) > self.max_buckets:
            by_age = sorted(self._buckets.items(), key=lambda item: item[1].reset_at_ms)
            for key, _bucket in by_age[: len(by_age) // 2]:
                del self._buckets[key]
            logger.warning(f"Rate limit bucket store over capacity; evicted {len(by_age) // 2} oldest bucket(s).")

    def check(
        self,
        key: str,
        limit: int = DEFAULT_ROUTE_LIMIT,
        window_ms: int = DEFAULT_ROUTE_WINDOW_MS,
    ) -> RateLimitDecision:
        """Counts one request against ``key`` and reports whether it is within the limit."""
        if limit <= 0 or window_ms <= 0:
            raise ValueError("Limit and window must be positive.")
        with self._lock:
            now = self.clock.now_ms()
            if len(self._buckets) > self.max_buckets:
                self._evict(now)

            bucket = self._buckets.get(key)
            if bucket is None or now > bucket.reset_at_ms:
                self._buckets[key] = _Bucket(count=1, reset_at_ms=now + window_ms)
                return RateLimitDecision(ok=True, remaining=limit - 1)

            if bucket.count >= limit:
                return RateLimitDecision(ok=False, remaining=0, retry_after_ms=bucket.reset_at_ms - now)

            bucket.count += 1
            return RateLimitDecision(ok=True, remaining=limit - bucket.count)

    def sweep(self) -> int:
        """Removes buckets whose window has ended."""
        with self._lock:
            now = self.clock.now_ms()
            expired = [k for k, b in self._buckets.items() if now > b.reset_at_ms]
            for key in expired:
                del self._buckets[key]
        return len(expired)

    def size(self) -> int:
        with self._lock:
            return len(self._buckets)
