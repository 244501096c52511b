"""Unit tests for in-process latency observability helpers."""

from __future__ import annotations

import pytest

from provmem.observability import latency_metrics_snapshot
from provmem.observability import record_latency
from provmem.observability import reset_latency_metrics
from provmem.observability import track_latency


class TestObservabilityLatency:
    def setup_method(self):
        reset_latency_metrics()

    def teardown_method(self):
        reset_latency_metrics()

    def test_records_latency_aggregates(self):
        record_latency(operation="recall.recall", duration_ms=10.0, ok=True)
        record_latency(operation="recall.recall", duration_ms=30.0, ok=False)

        metrics = latency_metrics_snapshot()["recall.recall"]
        assert metrics["count"] == 2
        assert metrics["error_count"] == 1
        assert metrics["total_ms"] == 40.0
        assert metrics["avg_ms"] == 20.0
        assert metrics["min_ms"] == 10.0
        assert metrics["max_ms"] == 30.0
        assert metrics["last_ms"] == 30.0

    def test_negative_duration_is_clamped(self):
        record_latency(operation="decay.sweep", duration_ms=-5.0)
        assert latency_metrics_snapshot()["decay.sweep"]["min_ms"] == 0.0

    def test_reset_clears_all_metrics(self):
        record_latency(operation="decay.sweep", duration_ms=12.0, ok=True)
        assert "decay.sweep" in latency_metrics_snapshot()
        reset_latency_metrics()
        assert latency_metrics_snapshot() == {}


class TestTrackLatency:
    def setup_method(self):
        reset_latency_metrics()

    def teardown_method(self):
        reset_latency_metrics()

    def test_successful_block_counts_as_ok(self):
        with track_latency("corroboration.verify"):
            pass

        metrics = latency_metrics_snapshot()["corroboration.verify"]
        assert metrics["count"] == 1
        assert metrics["error_count"] == 0

    def test_escaping_exception_counts_as_error(self):
        with pytest.raises(RuntimeError):
            with track_latency("corroboration.verify"):
                raise RuntimeError("boom")

        metrics = latency_metrics_snapshot()["corroboration.verify"]
        assert metrics["count"] == 1
        assert metrics["error_count"] == 1

    async def test_engine_operations_are_recorded(self, store):
        from provmem.engine import DecayEngine

        await DecayEngine(store).sweep()
        assert latency_metrics_snapshot()["decay.sweep"]["count"] == 1
