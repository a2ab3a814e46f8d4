"""
Circuit breaker for calls to the completion/embedding provider.

- Failure threshold: 50% error rate over a 1 minute window (min 10 requests)
- Open duration: 30 seconds
- Half-open: a single trial request decides between closing and reopening

A rejected call raises CircuitBreakerOpenError, which is a retryable network
error so that callers fall back the same way they do for an outage.
"""
import time
from collections import deque
from contextlib import asynccontextmanager
from enum import Enum
from threading import Lock
from typing import Any, AsyncIterator, Callable, Optional, Tuple

from astroai.core.errors import NetworkError
from astroai.core.logging import get_logger

logger = get_logger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpenError(NetworkError):
    """Raised when the circuit is open and the call is rejected."""
    default_message = "The AI provider is temporarily unavailable. Please try again shortly."


class CircuitBreaker:

    def __init__(
        self,
        name: str,
        failure_threshold: float = 0.5,
        time_window_seconds: float = 60,
        open_duration_seconds: float = 30,
        min_requests_for_threshold: int = 10,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.time_window_seconds = time_window_seconds
        self.open_duration_seconds = open_duration_seconds
        self.min_requests_for_threshold = min_requests_for_threshold
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._lock = Lock()
        self._outcomes: deque = deque()  # (timestamp, success) inside the window
        self._opened_at: Optional[float] = None
        self._trial_in_flight = False

    @property
    def state(self) -> CircuitState:
        with self._lock:
            self._update_state()
            return self._state

    def _update_state(self) -> None:
        now = self._clock()
        self._prune(now)

        if self._state == CircuitState.OPEN:
            if self._opened_at is not None and (now - self._opened_at) >= self.open_duration_seconds:
                self._state = CircuitState.HALF_OPEN
                self._trial_in_flight = False
                logger.info("circuit_breaker_half_open", circuit_breaker=self.name)

    def _prune(self, now: float) -> None:
        cutoff = now - self.time_window_seconds
        while self._outcomes and self._outcomes[0][0] < cutoff:
            self._outcomes.popleft()

    def _check_threshold(self, now: float) -> None:
        """Open the circuit the moment the windowed error rate crosses the threshold."""
        failures, total = self._window_stats()
        if total < self.min_requests_for_threshold:
            return
        error_rate = failures / total
        if error_rate >= self.failure_threshold:
            self._open(now)
            logger.warning(
                "circuit_breaker_opened",
                circuit_breaker=self.name,
                error_rate=error_rate,
                failures=failures,
                total=total,
            )

    def _window_stats(self) -> Tuple[int, int]:
        failures = sum(1 for _, success in self._outcomes if not success)
        return failures, len(self._outcomes)

    def _open(self, now: float) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = now
        self._outcomes.clear()

    def _acquire(self) -> None:
        """Admit a call or raise CircuitBreakerOpenError."""
        with self._lock:
            self._update_state()
            if self._state == CircuitState.OPEN:
                raise CircuitBreakerOpenError(metadata={"circuit_breaker": self.name})
            if self._state == CircuitState.HALF_OPEN:
                if self._trial_in_flight:
                    raise CircuitBreakerOpenError(metadata={"circuit_breaker": self.name})
                self._trial_in_flight = True

    def _record_result(self, success: bool) -> None:
        now = self._clock()
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._trial_in_flight = False
                if success:
                    self._state = CircuitState.CLOSED
                    self._opened_at = None
                    logger.info("circuit_breaker_closed", circuit_breaker=self.name)
                else:
                    self._open(now)
                    logger.warning("circuit_breaker_reopened", circuit_breaker=self.name)
            elif self._state == CircuitState.CLOSED:
                self._prune(now)
                self._outcomes.append((now, success))
                self._check_threshold(now)

    @asynccontextmanager
    async def protect(self) -> AsyncIterator[None]:
        """
        Guard a block of provider work, such as reading a streamed response.

        Raises:
            CircuitBreakerOpenError: if the circuit is open
        """
        self._acquire()
        try:
            yield
        except GeneratorExit:
            # The consumer stopped reading; the upstream did not fail.
            self._record_result(True)
            raise
        except BaseException:
            # Cancellation (e.g. a wait_for timeout) counts as a failure so a
            # half-open trial call is always released.
            self._record_result(False)
            raise
        self._record_result(True)

    async def call_async(self, func: Callable, *args, **kwargs) -> Any:
        """
        Execute an async function with circuit breaker protection.

        Raises:
            CircuitBreakerOpenError: if the circuit is open
        """
        async with self.protect():
            return await func(*args, **kwargs)

    def get_metrics(self) -> dict:
        """Circuit breaker state for health reporting."""
        with self._lock:
            self._update_state()
            failures, total = self._window_stats()
            return {
                "name": self.name,
                "state": self._state.value,
                "recent_requests": total,
                "recent_failures": failures,
                "error_rate": failures / total if total > 0 else 0.0,
                "opened_at": self._opened_at,
            }
