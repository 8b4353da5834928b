"""
Tests for the logging module.
"""

import json

import pytest
import structlog
from structlog.contextvars import get_contextvars

from signature_reconciler.logging import (
    ReconcileTimer,
    configure_logging,
    logging_context,
)


class TestLoggingContext:
    """Test logging context management."""

    def test_logging_context_binds_values(self):
        with logging_context(
            trace_id="trace_123",
            agreement_id="agr_abc",
            role="investor",
        ):
            assert get_contextvars() == {
                "trace_id": "trace_123",
                "agreement_id": "agr_abc",
                "role": "investor",
            }

    def test_logging_context_restores_values(self):
        """Test that context is restored after exiting."""
        with logging_context(trace_id="outer"):
            assert get_contextvars()["trace_id"] == "outer"

            with logging_context(trace_id="inner"):
                assert get_contextvars()["trace_id"] == "inner"

            assert get_contextvars()["trace_id"] == "outer"

        assert "trace_id" not in get_contextvars()

    def test_none_values_are_not_bound(self):
        with logging_context(agreement_id="agr_1", role="agent"):
            with logging_context(agreement_id="agr_only"):
                assert get_contextvars() == {"agreement_id": "agr_only", "role": "agent"}


class TestConfigureLogging:
    @pytest.fixture
    def json_logs(self):
        configure_logging(json_output=True, log_level="INFO")
        yield
        configure_logging(json_output=False)

    def _last_event(self, capsys) -> dict:
        return json.loads(capsys.readouterr().out.strip().splitlines()[-1])

    def test_json_output_includes_context(self, json_logs, capsys):
        logger = structlog.get_logger("test")
        with logging_context(agreement_id="agr_json", role="investor"):
            logger.info("engine.complete", outcome="pending")

        payload = self._last_event(capsys)
        assert payload["event"] == "engine.complete"
        assert payload["agreement_id"] == "agr_json"
        assert payload["role"] == "investor"
        assert payload["outcome"] == "pending"
        assert payload["level"] == "info"
        assert payload["timestamp"].endswith("Z")

    def test_explicit_fields_win_over_context(self, json_logs, capsys):
        logger = structlog.get_logger("test")
        with logging_context(agreement_id="agr_ctx"):
            logger.info("sweep.agreement_reconciled", agreement_id="agr_bound")

        assert self._last_event(capsys)["agreement_id"] == "agr_bound"


class TestReconcileTimer:
    """Test reconcile timing functionality."""

    def test_event_fields_are_flat(self):
        timer = ReconcileTimer()

        with timer.stage("poll"):
            timer.count("poll_attempts")
            timer.count("poll_attempts")
        with timer.stage("dispatch"):
            pass

        fields = timer.event_fields()

        assert set(fields) == {"duration_ms", "poll_ms", "dispatch_ms", "poll_attempts"}
        assert fields["poll_attempts"] == 2
        assert fields["duration_ms"] >= fields["poll_ms"] >= 0

    def test_stage_recorded_when_body_raises(self):
        timer = ReconcileTimer()

        with pytest.raises(RuntimeError):
            with timer.stage("poll"):
                raise RuntimeError("provider down")

        assert "poll_ms" in timer.event_fields()

    def test_repeated_stage_accumulates(self):
        timer = ReconcileTimer()
        timer.stages["apply"] = 5.0

        with timer.stage("apply"):
            pass

        assert timer.stages["apply"] >= 5.0
        assert list(timer.stages) == ["apply"]
