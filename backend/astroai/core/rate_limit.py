"""
Fixed-window rate limiting.

Per key (session ID, user ID or client IP):
- Up to `limit` calls are allowed per window of `window_seconds`.
- The first call over the limit blocks the key for `block_duration_seconds`
  (by default until the window would have reset).
- Calls keep being counted while a key is blocked; once a key exceeds
  `permanent_block_multiplier` x `limit` calls inside one window it is added to
  a permanent block set for the lifetime of the limiter.

`is_allowed` is O(1). Stale records are evicted lazily on access; `sweep` can
be called periodically to bound memory for keys that never come back.
"""
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Optional, Set

from fastapi import Request

from astroai.core.logging import get_logger
from astroai.core.metrics import record_rate_limit_rejection

logger = get_logger(__name__)


def get_client_ip(request: Request) -> str:
    """Extract client IP from request headers."""
    # Check X-Forwarded-For header (for proxies/load balancers)
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    if request.client:
        return request.client.host

    return "unknown"


def mask_key(key: str) -> str:
    """Shorten identifiers before they reach the logs."""
    return key[:10] + "..." if len(key) > 10 else key


@dataclass
class _WindowRecord:
    count: int
    reset_at: float
    blocked: bool = False


class RateLimiter:
    """
    Fixed-window counter per key with temporary and permanent blocking.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        block_duration_seconds: Optional[float] = None,
        permanent_block_multiplier: Optional[int] = 3,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
    ):
        if limit <= 0:
            raise ValueError("limit must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.limit = limit
        self.window_seconds = window_seconds
        self.block_duration_seconds = (
            block_duration_seconds if block_duration_seconds is not None else window_seconds
        )
        self.permanent_block_multiplier = permanent_block_multiplier
        self.name = name
        self._clock = clock
        self._records: Dict[str, _WindowRecord] = {}
        self._permanently_blocked: Set[str] = set()
        self._lock = Lock()

    @classmethod
    def per_second(cls, limit: int = 3, **kwargs) -> "RateLimiter":
        """Burst limiter: `limit` calls per second."""
        return cls(limit=limit, window_seconds=1.0, **kwargs)

    @classmethod
    def per_hour(cls, limit: int = 20, **kwargs) -> "RateLimiter":
        """Hourly quota, the shape used for chat messages."""
        return cls(limit=limit, window_seconds=3600.0, **kwargs)

    def is_allowed(self, key: str) -> bool:
        """
        Count one call for `key` and report whether it may proceed.

        Args:
            key: Identifier the quota applies to

        Returns:
            True if the call is within the quota, False otherwise
        """
        now = self._clock()
        with self._lock:
            if key in self._permanently_blocked:
                reason = "permanent"
                allowed = False
            else:
                record = self._records.get(key)
                if record is None or now >= record.reset_at:
                    self._records[key] = _WindowRecord(count=1, reset_at=now + self.window_seconds)
                    return True

                record.count += 1
                if record.blocked:
                    reason = "blocked"
                    allowed = False
                elif record.count > self.limit:
                    record.blocked = True
                    record.reset_at = now + self.block_duration_seconds
                    reason = "limit"
                    allowed = False
                else:
                    return True

                if self._exceeds_permanent_threshold(record.count):
                    self._permanently_blocked.add(key)
                    self._records.pop(key, None)
                    reason = "permanent"

        record_rate_limit_rejection(self.name, reason)
        logger.warning(
            "rate_limit_exceeded",
            limiter=self.name,
            key=mask_key(key),
            reason=reason,
        )
        return allowed

    def _exceeds_permanent_threshold(self, count: int) -> bool:
        if not self.permanent_block_multiplier:
            return False
        return count > self.limit * self.permanent_block_multiplier

    def remaining(self, key: str) -> int:
        """Calls left in the current window (0 while blocked)."""
        now = self._clock()
        with self._lock:
            if key in self._permanently_blocked:
                return 0
            record = self._records.get(key)
            if record is None or now >= record.reset_at:
                return self.limit
            if record.blocked:
                return 0
            return max(0, self.limit - record.count)

    def retry_after(self, key: str) -> Optional[float]:
        """
        Seconds until `key` may call again.

        Returns:
            0.0 when allowed now, None when permanently blocked
        """
        now = self._clock()
        with self._lock:
            if key in self._permanently_blocked:
                return None
            record = self._records.get(key)
            if record is None or now >= record.reset_at:
                return 0.0
            if record.blocked or record.count >= self.limit:
                return record.reset_at - now
            return 0.0

    def is_permanently_blocked(self, key: str) -> bool:
        with self._lock:
            return key in self._permanently_blocked

    def reset(self, key: str) -> None:
        """Clear both the window state and any permanent block for `key`."""
        with self._lock:
            self._records.pop(key, None)
            self._permanently_blocked.discard(key)
        logger.info("rate_limit_reset", limiter=self.name, key=mask_key(key))

    def sweep(self) -> int:
        """
        Evict records whose window has elapsed.

        Returns:
            Number of records removed
        """
        now = self._clock()
        with self._lock:
            stale = [key for key, record in self._records.items() if now >= record.reset_at]
            for key in stale:
                del self._records[key]
        return len(stale)

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._records)
