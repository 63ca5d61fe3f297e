"""Tests for the observability module.

Tests for metrics collection, persistence, logging configuration and tracing.
"""
import json
import logging
from logging.handlers import RotatingFileHandler

import pytest

from notebridge.observability import (
    ROOT_LOGGER_NAME,
    MetricsCollector,
    configure_logging,
    timed_operation,
    traced,
)


@pytest.fixture
def collector(tmp_path):
    return MetricsCollector(
        metrics_file=tmp_path / "metrics.json", auto_save_interval=0, load_existing=False
    )


class TestMetricsCollector:
    """Tests for MetricsCollector."""

    def test_records_success_and_failure(self, collector):
        collector.record_operation("nb_search", 10.0, True)
        collector.record_operation("nb_search", 30.0, False, error="boom")

        m = collector.get_metrics()["nb_search"]
        assert m["count"] == 2
        assert m["success_count"] == 1
        assert m["error_count"] == 1
        assert m["avg_duration_ms"] == 20.0
        assert m["min_duration_ms"] == 10.0
        assert m["max_duration_ms"] == 30.0
        assert m["last_error"] == "boom"

    def test_summary(self, collector):
        collector.record_operation("a", 1.0, True)
        collector.record_operation("b", 1.0, False, error="x")
        summary = collector.get_summary()
        assert summary["total_operations"] == 2
        assert summary["total_errors"] == 1
        assert summary["overall_success_rate"] == 0.5
        assert set(summary["operations_tracked"]) == {"a", "b"}

    def test_save_and_reload(self, collector, tmp_path):
        collector.record_operation("nb_graph", 5.0, True)
        assert collector.save_metrics()

        data = json.loads((tmp_path / "metrics.json").read_text(encoding="utf-8"))
        assert data["operations"]["nb_graph"]["count"] == 1

        reloaded = MetricsCollector(metrics_file=tmp_path / "metrics.json")
        assert reloaded.get_metrics()["nb_graph"]["count"] == 1

    def test_reload_restores_durations_and_errors(self, collector, tmp_path):
        collector.record_operation("op", 4.0, True)
        collector.record_operation("op", 6.0, False, error="x")
        collector.save_metrics()
        reloaded = MetricsCollector(metrics_file=tmp_path / "metrics.json")
        m = reloaded.get_metrics()["op"]
        assert m["min_duration_ms"] == 4.0
        assert m["max_duration_ms"] == 6.0
        assert m["last_error"] == "x"
        assert m["last_error_time"] is not None

    def test_corrupt_metrics_file_is_ignored(self, tmp_path):
        path = tmp_path / "metrics.json"
        path.write_text("{broken", encoding="utf-8")
        assert MetricsCollector(metrics_file=path).get_metrics() == {}

    def test_auto_save(self, tmp_path):
        path = tmp_path / "auto.json"
        auto = MetricsCollector(metrics_file=path, auto_save_interval=2, load_existing=False)
        auto.record_operation("op", 1.0, True)
        assert not path.exists()
        auto.record_operation("op", 1.0, True)
        assert path.exists()

    def test_reset(self, collector):
        collector.record_operation("op", 1.0, True)
        collector.reset()
        assert collector.get_metrics() == {}


class TestTimedOperation:
    """Tests for timed_operation and traced."""

    def test_records_into_global_metrics(self, isolated_metrics):
        with timed_operation("nb_search", query="raft") as op:
            op["result_count"] = 3
        assert isolated_metrics.get_metrics()["nb_search"]["success_count"] == 1

    def test_errors_are_recorded_and_reraised(self, isolated_metrics):
        with pytest.raises(RuntimeError):
            with timed_operation("nb_graph"):
                raise RuntimeError("failed")
        m = isolated_metrics.get_metrics()["nb_graph"]
        assert m["error_count"] == 1
        assert m["last_error"] == "failed"

    def test_traced_decorator(self, isolated_metrics):
        @traced("load_things")
        def load_things(query=None):
            return [1, 2, 3]

        assert load_things(query="x") == [1, 2, 3]
        assert isolated_metrics.get_metrics()["load_things"]["count"] == 1

    def test_traced_logs_bound_arguments_and_result_size(self, isolated_metrics, caplog):
        @traced()
        def suggest(notes, note_id, limit=None):
            return {"problem_similar": [1, 2], "limit_similar": [3]}

        with caplog.at_level(logging.DEBUG, logger="notebridge.observability"):
            suggest(["a", "b"], "raft")
        assert "START suggest (corpus=2, note_id=raft)" in caplog.text
        assert "result_count=3" in caplog.text
        assert isolated_metrics.get_metrics()["suggest"]["count"] == 1


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_creates_rotating_log_file(self, tmp_path):
        root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        before = list(root_logger.handlers)
        try:
            log_dir = configure_logging(log_dir=tmp_path / "logs", console=False)
            logging.getLogger("notebridge.tests").info("hello from tests")
            for handler in root_logger.handlers:
                handler.flush()

            assert log_dir == tmp_path / "logs"
            assert any(isinstance(h, RotatingFileHandler) for h in root_logger.handlers)
            assert "hello from tests" in (log_dir / "notebridge.log").read_text(encoding="utf-8")
        finally:
            for handler in list(root_logger.handlers):
                if handler not in before:
                    root_logger.removeHandler(handler)
                    handler.close()
