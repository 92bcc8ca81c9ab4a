"""Unit tests for canary_engine.models."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from canary_engine.models import (
    CheckResult,
    CheckStatus,
    CheckSummary,
    Report,
    StepResult,
    Timer,
    aggregate,
    summarize,
)

# ---------------------------------------------------------------------------
# aggregate
# ---------------------------------------------------------------------------


class TestAggregate:
    @pytest.mark.parametrize(
        ("statuses", "expected"),
        [
            ([], CheckStatus.PASS),
            (["pass", "pass"], CheckStatus.PASS),
            (["pass", "fail", "skip"], CheckStatus.FAIL),
            (["fail"], CheckStatus.FAIL),
            (["skip"], CheckStatus.SKIP),
            (["skip", "skip"], CheckStatus.SKIP),
            (["pass", "skip"], CheckStatus.WARN),
            (["skip", "pass"], CheckStatus.WARN),
            (["warn"], CheckStatus.PASS),
            (["warn", "skip"], CheckStatus.WARN),
            (["pass", "warn"], CheckStatus.PASS),
        ],
    )
    def test_lattice(self, statuses, expected):
        assert aggregate(statuses) == expected

    def test_fail_dominates_regardless_of_position(self):
        assert aggregate(["skip", "pass", "warn", "fail"]) == CheckStatus.FAIL
        assert aggregate(["fail", "pass"]) == CheckStatus.FAIL

    def test_accepts_step_results(self):
        steps = [
            StepResult(name="a", status=CheckStatus.PASS),
            StepResult(name="b", status=CheckStatus.SKIP, detail="quota"),
        ]
        assert aggregate(steps) == CheckStatus.WARN

    def test_warn_step_counts_as_ran(self):
        steps = [
            StepResult(name="a", status=CheckStatus.WARN, detail="slow"),
            StepResult(name="b", status=CheckStatus.PASS),
        ]
        assert aggregate(steps) == CheckStatus.PASS
        assert aggregate([*steps, StepResult(name="c", status=CheckStatus.SKIP)]) == CheckStatus.WARN

    def test_depends_only_on_presence(self):
        assert aggregate(["pass"] * 10 + ["skip"]) == aggregate(["skip", "pass"])


# ---------------------------------------------------------------------------
# summarize
# ---------------------------------------------------------------------------


class TestSummarize:
    def test_counts_are_independent(self):
        summary = summarize(["pass", "pass", "fail", "warn", "skip", "skip"])
        assert summary.passed == 2
        assert summary.failed == 1
        assert summary.warned == 1
        assert summary.skipped == 2
        assert summary.total == 6

    def test_total_equals_sum(self):
        summary = summarize(["pass", "warn", "skip"])
        assert summary.total == summary.passed + summary.failed + summary.warned + summary.skipped

    def test_empty(self):
        summary = summarize([])
        assert summary == CheckSummary()

    def test_accepts_check_results(self):
        checks = [
            CheckResult(name="health", status=CheckStatus.PASS),
            CheckResult(name="data-crud", status=CheckStatus.FAIL, error="Cannot proceed without table"),
        ]
        summary = CheckSummary.from_results(checks)
        assert summary.passed == 1
        assert summary.failed == 1


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


class TestSerialization:
    def test_step_uses_camel_case_and_omits_unset_fields(self):
        step = StepResult(name="GET /health", status=CheckStatus.PASS, duration_ms=12)
        assert step.to_dict() == {"name": "GET /health", "status": "pass", "durationMs": 12}

    def test_populate_by_alias(self):
        step = StepResult(name="x", status="fail", durationMs=5, error="boom")
        assert step.duration_ms == 5
        assert step.status == CheckStatus.FAIL

    def test_results_are_frozen(self):
        step = StepResult(name="x", status=CheckStatus.PASS)
        with pytest.raises(ValidationError):
            step.status = CheckStatus.FAIL

    def test_report_shape(self):
        checks = [
            CheckResult(
                name="health",
                status=CheckStatus.PASS,
                duration_ms=40,
                steps=[StepResult(name="GET /health", status=CheckStatus.PASS, duration_ms=40)],
            ),
            CheckResult(name="functions", status=CheckStatus.SKIP),
        ]
        ts = datetime(2025, 5, 15, 12, 0, tzinfo=UTC)
        report = Report.build(checks, total_duration_ms=100, timestamp=ts)

        data = report.to_dict()
        assert data["totalDurationMs"] == 100
        assert data["timestamp"].startswith("2025-05-15T12:00:00")
        assert data["summary"] == {"pass": 1, "fail": 0, "warn": 0, "skip": 1, "total": 2}
        assert [c["name"] for c in data["checks"]] == ["health", "functions"]
        assert data["checks"][0]["steps"][0]["durationMs"] == 40
        assert "error" not in data["checks"][0]

    def test_has_failures(self):
        ok = Report.build([CheckResult(name="a", status=CheckStatus.WARN)], total_duration_ms=1)
        bad = Report.build([CheckResult(name="a", status=CheckStatus.FAIL)], total_duration_ms=1)
        assert ok.has_failures is False
        assert bad.has_failures is True


class TestTimer:
    def test_elapsed_is_non_negative_int(self):
        timer = Timer()
        timer.start()
        elapsed = timer.elapsed_ms()
        assert isinstance(elapsed, int)
        assert elapsed >= 0
