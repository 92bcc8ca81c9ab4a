"""Health check -- ``GET /health`` must report ``status=ok`` and a connected database."""

from __future__ import annotations

from canary_engine.base import BaseCheck, StepRecorder
from canary_engine.http import AuthMode, HttpExecutor
from canary_engine.models import CheckResult
from canary_engine.steps import DETAIL_EXCERPT_CHARS, expect_object, fail_step, step_from_response

_NOT_JSON = "Response was not valid JSON"


def validate_health(body: object) -> str | None:
    obj = expect_object(body)
    if obj is None:
        return _NOT_JSON

    errors: list[str] = []
    if obj.get("status") != "ok":
        errors.append(f'status="{obj.get("status")}" (expected "ok")')
    if "db" in obj and obj["db"] != "connected":
        errors.append(f'db="{obj["db"]}" (expected "connected")')
    return "; ".join(errors) or None


class HealthCheck(BaseCheck):
    """Unauthenticated liveness probe of the platform API."""

    @property
    def name(self) -> str:
        return "health"

    async def execute(self, http: HttpExecutor) -> CheckResult:
        recorder = StepRecorder(self.name)

        resp = await http.get("/health", AuthMode.NONE)
        step = step_from_response("GET /health", resp, 200, validate_health)
        if step.error == _NOT_JSON:
            step = fail_step(step.name, _NOT_JSON, resp.duration_ms, detail=resp.raw_text[:DETAIL_EXCERPT_CHARS])
        recorder.add(step)

        if isinstance(resp.body, dict):
            recorder.annotate_last(
                f"status={resp.body.get('status')}, db={resp.body.get('db', 'not reported')}"
            )
        return recorder.finish()
