"""
Unit tests for circuit breaker implementation.
"""
import asyncio

import pytest

from astroai.core.circuit_breaker import CircuitBreaker, CircuitBreakerOpenError, CircuitState


async def _ok():
    return "success"


async def _fail():
    raise RuntimeError("upstream down")


async def _drive(cb, func, times):
    for _ in range(times):
        try:
            await cb.call_async(func)
        except RuntimeError:
            pass


@pytest.mark.asyncio
async def test_circuit_breaker_closed_state(clock):
    """Test circuit breaker in closed state (normal operation)."""
    cb = CircuitBreaker("test", clock=clock)

    assert cb.state == CircuitState.CLOSED
    assert await cb.call_async(_ok) == "success"


@pytest.mark.asyncio
async def test_stays_closed_below_min_requests(clock):
    cb = CircuitBreaker("test", min_requests_for_threshold=10, clock=clock)
    await _drive(cb, _fail, 9)

    assert cb.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_opens_at_error_rate_threshold(clock):
    cb = CircuitBreaker("test", failure_threshold=0.5, min_requests_for_threshold=10, clock=clock)
    await _drive(cb, _ok, 5)
    await _drive(cb, _fail, 5)

    assert cb.state == CircuitState.OPEN
    with pytest.raises(CircuitBreakerOpenError):
        await cb.call_async(_ok)


@pytest.mark.asyncio
async def test_old_requests_leave_the_window(clock):
    cb = CircuitBreaker("test", time_window_seconds=60, min_requests_for_threshold=10, clock=clock)
    await _drive(cb, _fail, 9)
    clock.advance(61)
    await _drive(cb, _fail, 1)

    assert cb.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_half_open_trial_success_closes(clock):
    cb = CircuitBreaker("test", open_duration_seconds=30, min_requests_for_threshold=2, clock=clock)
    await _drive(cb, _fail, 2)
    assert cb.state == CircuitState.OPEN

    clock.advance(30)
    assert cb.state == CircuitState.HALF_OPEN
    assert await cb.call_async(_ok) == "success"
    assert cb.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_half_open_trial_failure_reopens(clock):
    cb = CircuitBreaker("test", open_duration_seconds=30, min_requests_for_threshold=2, clock=clock)
    await _drive(cb, _fail, 2)
    clock.advance(30)

    await _drive(cb, _fail, 1)
    assert cb.state == CircuitState.OPEN


@pytest.mark.asyncio
async def test_half_open_admits_single_trial_call(clock):
    cb = CircuitBreaker("test", open_duration_seconds=30, min_requests_for_threshold=2, clock=clock)
    await _drive(cb, _fail, 2)
    clock.advance(30)

    cb._acquire()  # trial call in flight
    with pytest.raises(CircuitBreakerOpenError):
        await cb.call_async(_ok)


@pytest.mark.asyncio
async def test_opens_when_threshold_is_crossed(clock):
    """The open period starts at the failing call, not at the next admission."""
    cb = CircuitBreaker("test", open_duration_seconds=30, min_requests_for_threshold=2, clock=clock)
    await _drive(cb, _fail, 2)

    assert cb.get_metrics()["opened_at"] == clock.now
    clock.advance(29)
    assert cb.state == CircuitState.OPEN
    clock.advance(1)
    assert cb.state == CircuitState.HALF_OPEN

@pytest.mark.asyncio
async def test_cancelled_trial_call_releases_half_open(clock):
    cb = CircuitBreaker("test", open_duration_seconds=30, min_requests_for_threshold=2, clock=clock)
    await _drive(cb, _fail, 2)
    clock.advance(30)

    async def _hang():
        await asyncio.sleep(10)

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(cb.call_async(_hang), timeout=0.01)

    assert cb.state == CircuitState.OPEN
    clock.advance(30)
    assert await cb.call_async(_ok) == "success"
    assert cb.state == CircuitState.CLOSED


def test_get_metrics(clock):
    cb = CircuitBreaker("llm", clock=clock)
    metrics = cb.get_metrics()

    assert metrics["name"] == "llm"
    assert metrics["state"] == "closed"
    assert metrics["error_rate"] == 0.0
