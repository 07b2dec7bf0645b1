"""
Rate limiting tests.

RateLimiter is the scheduling policy behind carving and feature computation,
so it is tested here without any geometry.
"""

import threading

import pytest

from lidar_submap.common.rate_limit import ExecutionStats, RateLimiter


class TestRateLimiter:
    def test_never_run_is_due(self):
        limiter = RateLimiter(min_interval=5.0)
        assert limiter.due_now(0.0)
        assert limiter.elapsed(0.0) is None

    def test_not_due_within_interval(self):
        limiter = RateLimiter(min_interval=5.0)
        limiter.mark_run(10.0)
        assert not limiter.due_now(12.0)
        assert not limiter.due_now(14.999)

    def test_due_at_interval_boundary(self):
        limiter = RateLimiter(min_interval=5.0)
        limiter.mark_run(10.0)
        assert limiter.due_now(15.0)

    def test_skipped_check_does_not_reset(self):
        limiter = RateLimiter(min_interval=1.0)
        limiter.mark_run(0.0)
        limiter.due_now(0.5)
        assert limiter.last_run == 0.0
        assert limiter.elapsed(0.5) == pytest.approx(0.5)

    def test_zero_interval_always_due(self):
        limiter = RateLimiter(min_interval=0.0)
        limiter.mark_run(3.0)
        assert limiter.due_now(3.0)

    def test_reset(self):
        limiter = RateLimiter(min_interval=10.0)
        limiter.mark_run(1.0)
        limiter.reset()
        assert limiter.due_now(1.0)


class TestExecutionStats:
    def test_empty_snapshot(self):
        snap = ExecutionStats().snapshot()
        assert snap.count == 0
        assert snap.avg_msec == 0.0
        assert snap.frequency_hz == 0.0

    def test_average_and_frequency(self):
        stats = ExecutionStats()
        stats.add_measurement_msec(10.0)
        stats.add_measurement_msec(30.0)
        snap = stats.snapshot()
        assert snap.count == 2
        assert snap.avg_msec == pytest.approx(20.0)
        assert snap.frequency_hz == pytest.approx(50.0)

    def test_consume_starts_new_window(self):
        stats = ExecutionStats(window_start=0.0)
        stats.add_measurement_msec(5.0)
        assert stats.window_elapsed(25.0) == pytest.approx(25.0)
        snap = stats.consume(25.0)
        assert snap.count == 1
        assert stats.snapshot().count == 0
        assert stats.window_elapsed(30.0) == pytest.approx(5.0)

    def test_concurrent_measurements(self):
        stats = ExecutionStats()

        def worker():
            for _ in range(500):
                stats.add_measurement_msec(1.0)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        snap = stats.snapshot()
        assert snap.count == 2000
        assert snap.total_msec == pytest.approx(2000.0)
