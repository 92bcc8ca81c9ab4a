"""Unit tests for canary_engine.steps and the StepRecorder."""

from __future__ import annotations

import pytest

from canary_engine.base import StepRecorder
from canary_engine.http import RequestResult
from canary_engine.models import CheckStatus
from canary_engine.steps import (
    DETAIL_EXCERPT_CHARS,
    contains_id,
    extract_list,
    pass_step,
    skip_if_status,
    step_from_response,
    unwrap_data,
)

# ---------------------------------------------------------------------------
# step_from_response
# ---------------------------------------------------------------------------


class TestStepFromResponse:
    def test_pass(self):
        result = RequestResult(status=200, body={"ok": True}, raw_text='{"ok":true}', duration_ms=42)
        step = step_from_response("GET /x", result, 200)

        assert step.status == CheckStatus.PASS
        assert step.duration_ms == 42
        assert step.error is None

    def test_transport_error_wins(self):
        result = RequestResult(status=0, duration_ms=10_000, error="Request timed out after 10000ms")
        step = step_from_response("GET /x", result, 200)

        assert step.status == CheckStatus.FAIL
        assert step.error == "Request timed out after 10000ms"

    def test_unexpected_status_with_excerpt(self):
        raw = "x" * 1_000
        result = RequestResult(status=500, raw_text=raw, duration_ms=5)
        step = step_from_response("PUT /t", result, [200, 201])

        assert step.status == CheckStatus.FAIL
        assert step.error == "Expected status 200|201, got 500"
        assert step.detail == raw[:DETAIL_EXCERPT_CHARS]
        assert len(step.detail) == 300

    def test_validator_violation(self):
        result = RequestResult(status=200, body={"status": "degraded"}, duration_ms=1)
        step = step_from_response("GET /health", result, 200, lambda body: f"status={body['status']}")

        assert step.status == CheckStatus.FAIL
        assert step.error == "status=degraded"

    def test_validator_not_called_on_status_mismatch(self):
        called = []
        result = RequestResult(status=404, raw_text="", duration_ms=1)
        step_from_response("GET /x", result, 200, lambda body: called.append(body))
        assert called == []


class TestSkipIfStatus:
    def test_matching_status(self):
        result = RequestResult(status=402, duration_ms=7)
        step = skip_if_status("POST /v1/ai/chat", result, [402], "AI quota exceeded")

        assert step is not None
        assert step.status == CheckStatus.SKIP
        assert step.detail == "AI quota exceeded (402), check skipped"
        assert step.duration_ms == 7

    def test_other_status(self):
        assert skip_if_status("x", RequestResult(status=200), [402, 503], "r") is None

    def test_transport_error_is_not_a_skip(self):
        assert skip_if_status("x", RequestResult(error="boom"), [0], "r") is None


# ---------------------------------------------------------------------------
# Body helpers
# ---------------------------------------------------------------------------


class TestExtractList:
    @pytest.mark.parametrize(
        "body",
        [
            [{"id": 1}],
            {"data": [{"id": 1}]},
            {"rows": [{"id": 1}]},
            {"items": [{"id": 1}]},
        ],
    )
    def test_accepted_shapes(self, body):
        items, violation = extract_list(body)
        assert items == [{"id": 1}]
        assert violation is None

    def test_rejects_non_list(self):
        items, violation = extract_list({"total": 3})
        assert items is None
        assert violation == "Response is not an array and has no data/rows/items array"

    def test_empty_tolerance_is_explicit(self):
        assert extract_list({"data": []}) == ([], None)
        items, violation = extract_list({"data": []}, allow_empty=False)
        assert items is None
        assert violation == "Response list is empty"

    def test_non_json(self):
        items, violation = extract_list(None)
        assert items is None
        assert violation is not None


class TestBodyHelpers:
    def test_contains_id_compares_as_string(self):
        assert contains_id([{"id": 42}, {"id": "7"}], "42") is True
        assert contains_id([{"id": 42}], "7") is False
        assert contains_id(["42"], "42") is False

    def test_unwrap_data(self):
        assert unwrap_data({"data": {"id": "f1"}}) == {"id": "f1"}
        assert unwrap_data({"id": "f1"}) == {"id": "f1"}
        assert unwrap_data([1, 2]) is None


# ---------------------------------------------------------------------------
# StepRecorder
# ---------------------------------------------------------------------------


class TestStepRecorder:
    def test_finish_aggregates_steps(self):
        recorder = StepRecorder("demo")
        recorder.add(pass_step("one"))
        recorder.record("two", RequestResult(status=402, duration_ms=3), 200)

        result = recorder.finish("Cannot proceed")
        assert result.name == "demo"
        assert result.status == CheckStatus.FAIL
        assert [s.name for s in result.steps] == ["one", "two"]
        assert result.error == "Cannot proceed"
        assert recorder.has_failure is True

    def test_annotate_last_only_on_pass(self):
        recorder = StepRecorder("demo")
        recorder.add(pass_step("ok"))
        recorder.annotate_last("status=ok")
        assert recorder.last.detail == "status=ok"

        recorder.record("bad", RequestResult(status=500, raw_text="oops"), 200)
        recorder.annotate_last("ignored")
        assert recorder.last.detail == "oops"

    @pytest.mark.asyncio
    async def test_cleanup_records_exception_as_fail(self):
        recorder = StepRecorder("demo")

        async def explode() -> RequestResult:
            raise RuntimeError("socket closed")

        step = await recorder.cleanup("DELETE /t (cleanup)", explode, [200, 204])

        assert step.status == CheckStatus.FAIL
        assert step.error == "Cleanup failed: socket closed"
        assert recorder.finish().status == CheckStatus.FAIL

    @pytest.mark.asyncio
    async def test_cleanup_records_response(self):
        recorder = StepRecorder("demo")

        async def delete() -> RequestResult:
            return RequestResult(status=404, duration_ms=9)

        step = await recorder.cleanup("DELETE /t (cleanup)", delete, [200, 204, 404])
        assert step.status == CheckStatus.PASS
        assert step.duration_ms == 9

    def test_skipped_result(self):
        result = StepRecorder.skipped("functions", "KAPABLE_APP_ID not set", "needs app")
        assert result.status == CheckStatus.SKIP
        assert result.duration_ms == 0
        assert len(result.steps) == 1
        assert result.steps[0].status == CheckStatus.SKIP
