"""
In-process TTL cache.

Generic key -> value store with a default or per-entry expiry. Expired entries
are evicted lazily: `get` drops an entry the first time it is read after its
expiry, and `size` purges every expired entry before counting. Nothing runs in
the background; `purge_expired` may be called from a periodic sweep to bound
memory.

All mutation happens under a single lock so the cache can be shared by
concurrent requests (asyncio tasks or threads).
"""
import time
from threading import Lock
from typing import Any, Callable, Dict, Generic, Hashable, Iterator, List, Optional, Tuple, TypeVar

from astroai.core.logging import get_logger
from astroai.core.metrics import record_cache_hit, record_cache_miss

logger = get_logger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

_MISSING = object()


class TTLCache(Generic[K, V]):
    """
    Key/value cache with time-based expiry.

    An entry written at time `t` with ttl `d` is readable while `now <= t + d`
    and reported missing once `now > t + d`.
    """

    def __init__(
        self,
        default_ttl: float = 5 * 60,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
    ):
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        self.default_ttl = default_ttl
        self.name = name
        self._clock = clock
        self._entries: Dict[K, Tuple[V, float]] = {}
        self._lock = Lock()

    def set(self, key: K, value: V, ttl: Optional[float] = None) -> None:
        """
        Store a value, replacing any previous entry and its expiry.

        Args:
            key: Cache key
            value: Value to store
            ttl: Time to live in seconds (defaults to the cache's default_ttl)
        """
        if ttl is not None and ttl <= 0:
            raise ValueError("ttl must be positive")
        expiry = self._clock() + (ttl if ttl is not None else self.default_ttl)
        with self._lock:
            self._entries[key] = (value, expiry)

    def get(self, key: K, default: Optional[V] = None) -> Optional[V]:
        """
        Return the cached value, or `default` if missing or expired.

        Reading an expired entry evicts it.
        """
        value = self._get(key)
        if value is _MISSING:
            record_cache_miss(self.name)
            return default
        record_cache_hit(self.name)
        return value

    def _get(self, key: K) -> Any:
        with self._lock:
            item = self._entries.get(key)
            if item is None:
                return _MISSING
            value, expiry = item
            if self._clock() > expiry:
                del self._entries[key]
                return _MISSING
            return value

    def has(self, key: K) -> bool:
        return self._get(key) is not _MISSING

    def __contains__(self, key: object) -> bool:
        return self.has(key)  # type: ignore[arg-type]

    def expires_at(self, key: K) -> Optional[float]:
        """Clock reading at which the entry expires, or None if absent/expired."""
        with self._lock:
            item = self._entries.get(key)
            if item is None or self._clock() > item[1]:
                return None
            return item[1]

    def delete(self, key: K) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def purge_expired(self) -> int:
        """
        Drop every expired entry.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        with self._lock:
            expired = [key for key, (_, expiry) in self._entries.items() if now > expiry]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("ttl_cache_purged", cache=self.name, purged=len(expired))
        return len(expired)

    def size(self) -> int:
        """
        Number of live entries.

        Side effect: expired entries are purged before counting.
        """
        self.purge_expired()
        with self._lock:
            return len(self._entries)

    def __len__(self) -> int:
        return self.size()

    def items(self) -> List[Tuple[K, V]]:
        """Snapshot of live (key, value) pairs."""
        now = self._clock()
        with self._lock:
            return [(key, value) for key, (value, expiry) in self._entries.items() if now <= expiry]

    def __iter__(self) -> Iterator[K]:
        return iter([key for key, _ in self.items()])
