"""Serverless functions lifecycle check.

pre-cleanup -> create (compiles to WASM) -> list -> invoke -> poll the
invocation until it completes -> delete.  Requires ``KAPABLE_APP_ID``; the
environment defaults to ``production``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from canary_engine.base import LifecycleCheck, StepRecorder
from canary_engine.http import AuthMode, HttpExecutor, RequestResult
from canary_engine.models import CheckResult, StepResult
from canary_engine.polling import JOB_COMPLETION, PollingPolicy, poll_with_policy
from canary_engine.steps import (
    contains_id,
    extract_list,
    fail_step,
    pass_step,
    unwrap_data,
)

logger = logging.getLogger(__name__)

FUNCTION_NAME = "canary-function"
FUNCTION_SOURCE = 'export function handle(input) { return { ok: true, echo: input.msg || "CANARY_OK" }; }'
CANARY_INPUT = {"msg": "CANARY_OK"}

_STARTED_STATUSES = ("queued", "running", "success")
_TERMINAL_STATUSES = ("success", "error", "timeout")


def _latest_invocation(result: RequestResult) -> dict[str, Any] | None:
    if not result.succeeded(200):
        return None
    items, _ = extract_list(result.body, allow_empty=False)
    if not items or not isinstance(items[0], dict):
        return None
    return items[0]


def _invocation_finished(result: RequestResult) -> bool:
    invocation = _latest_invocation(result)
    return invocation is not None and invocation.get("status") in _TERMINAL_STATUSES


class FunctionsCheck(LifecycleCheck):
    """Create, invoke and delete one serverless function.

    Parameters
    ----------
    app_id:
        Target app; the check skips when it is not configured.
    env_name:
        Target environment of the app.
    create_timeout_ms:
        Timeout for the create call, which compiles the function.
    policy:
        Polling policy for invocation completion.
    clock, sleep:
        Forwarded to :func:`~canary_engine.polling.poll_until`.
    """

    def __init__(
        self,
        app_id: str | None,
        env_name: str = "production",
        create_timeout_ms: int = 30_000,
        policy: PollingPolicy = JOB_COMPLETION,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._app_id = app_id
        self._env_name = env_name
        self._create_timeout_ms = create_timeout_ms
        self._policy = policy
        self._clock = clock
        self._sleep = sleep

    @property
    def name(self) -> str:
        return "functions"

    @property
    def functions_path(self) -> str:
        return f"/v1/apps/{self._app_id}/environments/{self._env_name}/functions"

    async def execute(self, http: HttpExecutor) -> CheckResult:
        if not self._app_id:
            return StepRecorder.skipped(
                self.name,
                "KAPABLE_APP_ID not set",
                "Functions check requires KAPABLE_APP_ID env var",
            )
        return await super().execute(http)

    async def run_steps(self, http: HttpExecutor, recorder: StepRecorder) -> str | None:
        path = self.functions_path

        # Remove canary functions left behind by previous runs.
        existing = await http.get(path, AuthMode.PRIVILEGED)
        items, _ = extract_list(existing.body)
        for item in items or []:
            if isinstance(item, dict) and item.get("name") == FUNCTION_NAME and item.get("id"):
                removed = await http.delete(f"{path}/{item['id']}", AuthMode.PRIVILEGED)
                if removed.succeeded(200, 204):
                    recorder.add(
                        pass_step(
                            f"pre-cleanup: DELETE {FUNCTION_NAME} (existed from previous run)",
                            "Stale function cleaned up",
                            removed.duration_ms,
                        )
                    )

        def _capture_function(body: Any) -> str | None:
            fn = unwrap_data(body)
            if fn is None:
                return "Response is not an object"
            if not fn.get("id"):
                return "Response missing 'id' field"
            if fn.get("name") != FUNCTION_NAME:
                return f'name mismatch: expected "{FUNCTION_NAME}", got "{fn.get("name")}"'
            if not fn.get("compiled_at"):
                return "Function was not compiled (compiled_at is null)"
            recorder.created["function"] = str(fn["id"])
            return None

        create = await http.post(
            path,
            {
                "name": FUNCTION_NAME,
                "source_code": FUNCTION_SOURCE,
                "runtime": "javascript",
                "handler_name": "handle",
                "status": "active",
            },
            AuthMode.PRIVILEGED,
            timeout_ms=self._create_timeout_ms,
        )
        recorder.record("POST .../functions (create + compile)", create, 201, _capture_function)
        function_id = recorder.created.get("function")
        if function_id is None:
            return "Cannot proceed without function ID"
        created = unwrap_data(create.body) or {}
        recorder.annotate_last(
            f"version={created.get('version')}, runtime={created.get('runtime')}, "
            f"fuel_limit={created.get('fuel_limit')}"
        )

        def _listed(body: Any) -> str | None:
            listed, violation = extract_list(body)
            if listed is None:
                return violation
            return None if contains_id(listed, function_id) else f"Function {function_id} not found in list"

        listing = await http.get(path, AuthMode.PRIVILEGED)
        recorder.record("GET .../functions (verify in list)", listing, 200, _listed)

        invocation: dict[str, Any] = {}

        def _capture_invocation(body: Any) -> str | None:
            inv = unwrap_data(body)
            if inv is None:
                return "Response is not an object"
            if not inv.get("id"):
                return "Response missing invocation 'id'"
            if inv.get("status") not in _STARTED_STATUSES:
                return f"Unexpected invocation status: {inv.get('status')}"
            invocation.update(inv)
            return None

        invoke = await http.post(
            f"{path}/{function_id}/invoke", {"input": CANARY_INPUT}, AuthMode.PRIVILEGED
        )
        recorder.record("POST .../invoke (trigger execution)", invoke, 201, _capture_invocation)

        if invocation:
            recorder.add(await self._await_invocation(http, f"{path}/{function_id}/invocations?limit=1"))

        deleted = await http.delete(f"{path}/{function_id}", AuthMode.PRIVILEGED)
        recorder.record(f"DELETE .../functions/{function_id} (cleanup)", deleted, 204)
        if deleted.succeeded(204):
            recorder.created.pop("function", None)
        return None

    async def _await_invocation(self, http: HttpExecutor, invocations_path: str) -> StepResult:
        outcome = await poll_with_policy(
            lambda: http.get(invocations_path, AuthMode.PRIVILEGED),
            _invocation_finished,
            self._policy,
            clock=self._clock,
            sleep=self._sleep,
        )

        if not outcome.terminal_reached or outcome.final_result is None:
            logger.warning("Invocation still pending after %d polls", outcome.attempts)
            return fail_step(
                "GET .../invocations (poll timeout)",
                f"Invocation did not complete within {outcome.attempts} poll attempts "
                f"({outcome.elapsed_ms}ms)",
                outcome.elapsed_ms,
            )

        inv = _latest_invocation(outcome.final_result) or {}
        step_name = f"GET .../invocations (poll attempt {outcome.attempts})"
        status = inv.get("status")
        if status != "success":
            return fail_step(
                step_name,
                f"Invocation {status}: {inv.get('error_message') or 'no error message'}",
                outcome.elapsed_ms,
            )

        output = inv.get("output_payload")
        detail = f"status=success, fuel={inv.get('fuel_consumed')}, output={json.dumps(output)[:100]}"
        if not isinstance(output, dict) or output.get("ok") is not True:
            error = f"Expected output.ok=true, got {json.dumps(output)}"
            return fail_step(step_name, error, outcome.elapsed_ms, detail)
        if output.get("echo") != "CANARY_OK":
            return fail_step(
                step_name,
                f'Expected output.echo="CANARY_OK", got "{output.get("echo")}"',
                outcome.elapsed_ms,
                detail,
            )
        return pass_step(step_name, detail, outcome.elapsed_ms)

    async def cleanup(self, http: HttpExecutor, recorder: StepRecorder) -> None:
        function_id = recorder.created.get("function")
        if function_id is None:
            return
        await recorder.cleanup(
            f"DELETE .../functions/{function_id} (finally cleanup)",
            lambda: http.delete(f"{self.functions_path}/{function_id}", AuthMode.PRIVILEGED),
            [204, 404],
        )
