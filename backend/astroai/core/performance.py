"""
Label-keyed timing of operations.

Durations are logged and fed into the `operation_duration_seconds` histogram.
Wrapped operations keep their return value and exceptions.
"""
import inspect
import time
from contextlib import contextmanager
from threading import Lock
from typing import Any, Callable, Dict, Iterator, Optional

from astroai.core.logging import get_logger
from astroai.core.metrics import record_operation_duration

logger = get_logger(__name__)


class PerformanceMonitor:
    """Start/stop timers keyed by label."""

    def __init__(self, clock: Callable[[], float] = time.perf_counter):
        self._clock = clock
        self._timers: Dict[str, float] = {}
        self._lock = Lock()

    def start(self, label: str) -> None:
        with self._lock:
            self._timers[label] = self._clock()

    def end(self, label: str) -> Optional[float]:
        """
        Stop the timer for `label`.

        Returns:
            Elapsed milliseconds, or None if no timer was started
        """
        now = self._clock()
        with self._lock:
            started = self._timers.pop(label, None)
        if started is None:
            logger.debug("performance_timer_missing", label=label)
            return None
        duration_ms = (now - started) * 1000
        self._report(label, duration_ms)
        return duration_ms

    def _report(self, label: str, duration_ms: float) -> None:
        record_operation_duration(label, duration_ms / 1000)
        logger.debug("performance_measured", label=label, duration_ms=round(duration_ms, 2))

    def measure(self, label: str, fn: Callable[[], Any]) -> Any:
        """
        Time `fn`.

        Sync callables are timed inline. If `fn` returns an awaitable, a
        coroutine is returned that awaits it and reports on completion.
        """
        started = self._clock()
        try:
            result = fn()
        except Exception:
            self._report(label, (self._clock() - started) * 1000)
            raise
        if inspect.isawaitable(result):
            return self._measure_awaitable(label, started, result)
        self._report(label, (self._clock() - started) * 1000)
        return result

    async def _measure_awaitable(self, label: str, started: float, awaitable: Any) -> Any:
        try:
            return await awaitable
        finally:
            self._report(label, (self._clock() - started) * 1000)

    @contextmanager
    def timed(self, label: str) -> Iterator[None]:
        started = self._clock()
        try:
            yield
        finally:
            self._report(label, (self._clock() - started) * 1000)


performance_monitor = PerformanceMonitor()
