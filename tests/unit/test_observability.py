"""Unit tests for in-process latency observability helpers."""

from __future__ import annotations

import pytest

from auditmcp.observability import latency_metrics_snapshot
from auditmcp.observability import record_latency
from auditmcp.observability import reset_latency_metrics
from auditmcp.observability import timed


class TestObservabilityLatency:
    def setup_method(self):
        reset_latency_metrics()

    def teardown_method(self):
        reset_latency_metrics()

    def test_records_latency_aggregates(self):
        record_latency(operation="mcp.start_audit", duration_ms=10.0, ok=True)
        record_latency(operation="mcp.start_audit", duration_ms=30.0, ok=False)

        metrics = latency_metrics_snapshot()["mcp.start_audit"]
        assert metrics["count"] == 2
        assert metrics["error_count"] == 1
        assert metrics["total_ms"] == 40.0
        assert metrics["avg_ms"] == 20.0
        assert metrics["min_ms"] == 10.0
        assert metrics["max_ms"] == 30.0
        assert metrics["last_ms"] == 30.0

    def test_negative_durations_clamped(self):
        record_latency(operation="x", duration_ms=-5.0)
        assert latency_metrics_snapshot()["x"]["min_ms"] == 0.0

    async def test_timed_records_success(self):
        async with timed("mcp.finalize_audit") as outcome:
            outcome["ok"] = True
        metrics = latency_metrics_snapshot()["mcp.finalize_audit"]
        assert metrics["count"] == 1
        assert metrics["error_count"] == 0

    async def test_timed_records_exception_as_error(self):
        with pytest.raises(RuntimeError):
            async with timed("mcp.update_audit"):
                raise RuntimeError("boom")
        assert latency_metrics_snapshot()["mcp.update_audit"]["error_count"] == 1

    def test_reset_clears_all_metrics(self):
        record_latency(operation="mcp.list_audits", duration_ms=12.0, ok=True)
        assert "mcp.list_audits" in latency_metrics_snapshot()
        reset_latency_metrics()
        assert latency_metrics_snapshot() == {}
