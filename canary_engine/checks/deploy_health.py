"""Deploy health check.

Hits this canary's own public health URL, exercising the full
proxy -> container -> app chain of the hosting platform.
"""

from __future__ import annotations

import json

from canary_engine.base import BaseCheck, StepRecorder
from canary_engine.http import HttpExecutor
from canary_engine.models import CheckResult
from canary_engine.steps import fail_step, pass_step, skip_step

LATENCY_LIMIT_MS = 5_000


class DeployHealthCheck(BaseCheck):
    """Status, body and latency of one public health endpoint."""

    def __init__(self, health_url: str | None) -> None:
        self._health_url = health_url

    @property
    def name(self) -> str:
        return "deploy-health"

    async def execute(self, http: HttpExecutor) -> CheckResult:
        if not self._health_url:
            return StepRecorder.skipped(
                self.name,
                "KAPABLE_SELF_HEALTH_URL not set",
                "Deploy health check requires KAPABLE_SELF_HEALTH_URL env var",
            )

        recorder = StepRecorder(self.name)
        resp = await http.fetch_url(self._health_url, timeout_ms=LATENCY_LIMIT_MS)

        # Step 1: HTTP 200
        step_name = f"GET {self._health_url}"
        if resp.error is not None:
            recorder.add(fail_step(step_name, resp.error, resp.duration_ms))
        elif resp.status != 200:
            recorder.add(
                fail_step(
                    step_name,
                    f"Expected status 200, got {resp.status}",
                    resp.duration_ms,
                    detail=resp.raw_text[:200],
                )
            )
        else:
            recorder.add(pass_step(step_name, f"status={resp.status}", resp.duration_ms))

        # Step 2: non-empty body, JSON or plain text
        step_name = "Response has valid body"
        if resp.error is not None:
            recorder.add(skip_step(step_name, "Skipped due to request failure"))
        elif resp.body is not None:
            recorder.add(pass_step(step_name, json.dumps(resp.body)[:100]))
        elif resp.raw_text.strip():
            recorder.add(pass_step(step_name, f'plain text: "{resp.raw_text.strip()[:50]}"'))
        else:
            recorder.add(fail_step(step_name, "Response body was empty"))

        # Step 3: latency
        step_name = f"Response time < {LATENCY_LIMIT_MS}ms"
        if resp.error is not None:
            recorder.add(fail_step(step_name, "Request failed, cannot measure latency", resp.duration_ms))
        elif resp.duration_ms >= LATENCY_LIMIT_MS:
            recorder.add(
                fail_step(
                    step_name,
                    f"Response took {resp.duration_ms}ms (limit {LATENCY_LIMIT_MS}ms)",
                    resp.duration_ms,
                )
            )
        else:
            recorder.add(pass_step(step_name, f"{resp.duration_ms}ms", resp.duration_ms))

        return recorder.finish()
