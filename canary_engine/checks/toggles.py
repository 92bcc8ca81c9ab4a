"""Feature toggle lifecycle check.

Creates a flag, evaluates it, disables it, re-evaluates, and deletes it.
"""

from __future__ import annotations

from typing import Any

from canary_engine.base import LifecycleCheck, StepRecorder
from canary_engine.http import AuthMode, HttpExecutor
from canary_engine.steps import expect_object, pass_step

FLAG_NAME = "canary-flag"
TOGGLES_PATH = "/v1/feature-toggles"
FLAG_PATH = f"{TOGGLES_PATH}/{FLAG_NAME}"
EVALUATE_PATH = f"{TOGGLES_PATH}/evaluate"


def _expect_enabled(expected: bool):
    def _validate(body: Any) -> str | None:
        obj = expect_object(body)
        if obj is None:
            return "Response is not an object"
        if obj.get("enabled") is not expected:
            return f"enabled expected {str(expected).lower()}, got {obj.get('enabled')}"
        return None

    return _validate


def _validate_flag(body: Any) -> str | None:
    obj = expect_object(body)
    if obj is None:
        return "Response is not an object"
    if obj.get("name") != FLAG_NAME:
        return f'name mismatch: expected "{FLAG_NAME}", got "{obj.get("name")}"'
    return None


class TogglesCheck(LifecycleCheck):
    """Create -> evaluate -> disable -> evaluate -> delete of one feature flag."""

    @property
    def name(self) -> str:
        return "toggles"

    async def run_steps(self, http: HttpExecutor, recorder: StepRecorder) -> str | None:
        pre_clean = await http.delete(FLAG_PATH, AuthMode.BEARER)
        if pre_clean.succeeded(200, 204):
            recorder.add(
                pass_step(
                    f"pre-cleanup: DELETE {FLAG_NAME} (existed from previous run)",
                    "Stale flag cleaned up",
                    pre_clean.duration_ms,
                )
            )

        create = await http.post(
            TOGGLES_PATH,
            {"name": FLAG_NAME, "description": "Canary test toggle", "enabled": True},
            AuthMode.BEARER,
        )
        recorder.record(f"POST {TOGGLES_PATH} (create flag)", create, [200, 201])
        if not create.succeeded(200, 201):
            return "Cannot proceed without flag"
        recorder.created["flag"] = FLAG_NAME

        fetched = await http.get(FLAG_PATH, AuthMode.BEARER)
        recorder.record(f"GET {FLAG_PATH} (verify created)", fetched, 200, _validate_flag)

        first = await http.post(EVALUATE_PATH, {"flag_name": FLAG_NAME}, AuthMode.BEARER)
        recorder.record(f"POST {EVALUATE_PATH} (expect enabled)", first, 200, _expect_enabled(True))

        disabled = await http.put(FLAG_PATH, {"enabled": False}, AuthMode.BEARER)
        recorder.record(f"PUT {FLAG_PATH} (disable)", disabled, 200)

        second = await http.post(EVALUATE_PATH, {"flag_name": FLAG_NAME}, AuthMode.BEARER)
        recorder.record(f"POST {EVALUATE_PATH} (expect disabled)", second, 200, _expect_enabled(False))
        return None

    async def cleanup(self, http: HttpExecutor, recorder: StepRecorder) -> None:
        if "flag" not in recorder.created:
            return
        await recorder.cleanup(
            f"DELETE {FLAG_PATH} (cleanup)",
            lambda: http.delete(FLAG_PATH, AuthMode.BEARER),
            [200, 204, 404],
        )
