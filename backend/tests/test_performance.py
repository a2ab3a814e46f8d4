"""
Unit tests for the performance monitor.
"""
from unittest.mock import patch

import pytest

from astroai.core.performance import PerformanceMonitor


def test_start_end_returns_milliseconds(clock):
    monitor = PerformanceMonitor(clock=clock)
    monitor.start("op")
    clock.advance(0.25)

    assert monitor.end("op") == pytest.approx(250.0)


def test_end_without_start_returns_none(clock):
    monitor = PerformanceMonitor(clock=clock)

    assert monitor.end("never-started") is None


def test_measure_sync_keeps_return_value(clock):
    monitor = PerformanceMonitor(clock=clock)

    with patch("astroai.core.performance.record_operation_duration") as record:
        assert monitor.measure("sync", lambda: 7) == 7

    record.assert_called_once()
    assert record.call_args.args[0] == "sync"


def test_measure_sync_reraises(clock):
    monitor = PerformanceMonitor(clock=clock)

    def boom():
        raise RuntimeError("boom")

    with patch("astroai.core.performance.record_operation_duration") as record:
        with pytest.raises(RuntimeError):
            monitor.measure("failing", boom)

    record.assert_called_once()


@pytest.mark.asyncio
async def test_measure_async_reports_after_completion(clock):
    monitor = PerformanceMonitor(clock=clock)

    async def completion():
        clock.advance(1.5)
        return "done"

    with patch("astroai.core.performance.record_operation_duration") as record:
        pending = monitor.measure("async", completion)
        record.assert_not_called()
        assert await pending == "done"

    record.assert_called_once_with("async", pytest.approx(1.5))


def test_timed_context_manager(clock):
    monitor = PerformanceMonitor(clock=clock)

    with patch("astroai.core.performance.record_operation_duration") as record:
        with monitor.timed("block"):
            clock.advance(0.1)

    record.assert_called_once_with("block", pytest.approx(0.1))
