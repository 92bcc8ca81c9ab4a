"""App lifecycle check -- the core SDLC canary.

Creates an app, verifies its environment, triggers a deploy, waits for the
rollout, verifies the public subdomain serves traffic, then stops the
environment and deletes the app.  The slug is fixed, so orphans from
previous runs are removed first.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from canary_engine.base import LifecycleCheck, StepRecorder
from canary_engine.http import AuthMode, HttpExecutor, RequestResult
from canary_engine.polling import (
    DEPLOY_ROLLOUT,
    REACHABILITY,
    PollingPolicy,
    PollOutcome,
    poll_with_policy,
)
from canary_engine.steps import expect_object, extract_list, fail_step, pass_step, unwrap_data

logger = logging.getLogger(__name__)

T = TypeVar("T")

APP_NAME = "Canary Smoke"
FRAMEWORK = "bun-server"
ENVIRONMENT = "production"

# Container teardown and delete cascades are asynchronous on the platform.
TEARDOWN_RETRY = PollingPolicy(interval_ms=3_000, max_duration_ms=15_000)
CREATE_CONFLICT_RETRY = PollingPolicy(interval_ms=3_000, max_duration_ms=9_000)

SUBDOMAIN_REQUEST_TIMEOUT_MS = 5_000

_DEPLOY_TERMINAL = ("success", "failed", "error")


def _deployment_status(result: RequestResult | None) -> str | None:
    if result is None or result.error is not None:
        return None
    inner = unwrap_data(result.body)
    if inner is None:
        return None
    return str(inner.get("status", "unknown"))


def _delete_settled(result: RequestResult) -> bool:
    return result.succeeded(200, 204, 404)


class AppLifecycleCheck(LifecycleCheck):
    """Create -> deploy -> verify live -> delete of a throwaway app.

    Parameters
    ----------
    slug:
        Fixed slug of the throwaway app.
    app_domain:
        Domain under which apps are served as ``https://<slug>.<domain>``.
    clock, sleep:
        Forwarded to every :func:`~canary_engine.polling.poll_until` loop.
    """

    def __init__(
        self,
        slug: str = "canary-smoke",
        app_domain: str = "kapable.run",
        *,
        deploy_policy: PollingPolicy = DEPLOY_ROLLOUT,
        reachability_policy: PollingPolicy = REACHABILITY,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._slug = slug
        self._app_domain = app_domain
        self._deploy_policy = deploy_policy
        self._reachability_policy = reachability_policy
        self._clock = clock
        self._sleep = sleep

    @property
    def name(self) -> str:
        return "app-lifecycle"

    @property
    def subdomain_url(self) -> str:
        return f"https://{self._slug}.{self._app_domain}/health"

    async def _poll(
        self,
        operation: Callable[[], Awaitable[T]],
        is_terminal: Callable[[T], bool],
        policy: PollingPolicy,
    ) -> PollOutcome[T]:
        return await poll_with_policy(operation, is_terminal, policy, clock=self._clock, sleep=self._sleep)

    async def _teardown(self, http: HttpExecutor, app_id: str) -> tuple[RequestResult, RequestResult]:
        """Stop the environment, then retry the app delete until it settles."""
        stop = await http.post(f"/v1/apps/{app_id}/environments/{ENVIRONMENT}/stop", None, AuthMode.PRIVILEGED)
        outcome = await self._poll(
            lambda: http.delete(f"/v1/apps/{app_id}", AuthMode.PRIVILEGED),
            _delete_settled,
            TEARDOWN_RETRY,
        )
        return stop, outcome.final_result or stop

    # -- Lifecycle -----------------------------------------------------------

    async def run_steps(self, http: HttpExecutor, recorder: StepRecorder) -> str | None:
        await self._remove_orphans(http, recorder)

        app_id = await self._create_app(http, recorder)
        if app_id is None:
            return "Cannot proceed without app ID"

        fetched = await http.get(f"/v1/apps/{app_id}", AuthMode.PRIVILEGED)
        recorder.record(f"GET /v1/apps/{app_id} (verify env)", fetched, 200, _validate_environment)

        deployment_id: list[str] = []

        def _capture_deployment(body: Any) -> str | None:
            obj = expect_object(body)
            if obj is None:
                return "Response is not an object"
            found = obj.get("id") or obj.get("deployment_id")
            if not found:
                return "Response missing deployment ID"
            deployment_id.append(str(found))
            return None

        deploy = await http.post(
            f"/v1/apps/{app_id}/environments/{ENVIRONMENT}/deploy", None, AuthMode.PRIVILEGED
        )
        recorder.record("POST .../deploy (trigger)", deploy, [200, 201, 202], _capture_deployment)
        if not deployment_id:
            return "Cannot proceed without deployment ID"

        deployment_path = f"/v1/apps/{app_id}/environments/{ENVIRONMENT}/deployments/{deployment_id[0]}"
        rollout = await self._poll(
            lambda: http.get(deployment_path, AuthMode.PRIVILEGED),
            lambda result: _deployment_status(result) in _DEPLOY_TERMINAL,
            self._deploy_policy,
        )
        status = _deployment_status(rollout.final_result) or "pending"
        poll_name = f"Poll deployment ({rollout.attempts} polls)"
        if status != "success":
            recorder.add(
                fail_step(
                    poll_name,
                    f"Deploy ended with status '{status}'",
                    rollout.elapsed_ms,
                    detail=f"status={status}",
                )
            )
            return "Deploy did not succeed"
        recorder.add(pass_step(poll_name, f"status={status}", rollout.elapsed_ms))

        live = await self._poll(
            lambda: http.fetch_url(self.subdomain_url, timeout_ms=SUBDOMAIN_REQUEST_TIMEOUT_MS),
            lambda result: result.succeeded(200),
            self._reachability_policy,
        )
        live_name = f"GET {self.subdomain_url} (verify live)"
        if live.terminal_reached:
            recorder.add(pass_step(live_name, f"OK after {live.attempts} attempt(s)", live.elapsed_ms))
        else:
            last = live.final_result
            if last is None:
                reason = "no attempt fit in the budget"
            else:
                reason = last.error or f"status={last.status}"
            recorder.add(
                fail_step(
                    live_name,
                    f"Subdomain not reachable after {live.attempts} attempts: {reason}",
                    live.elapsed_ms,
                )
            )
        return None

    async def cleanup(self, http: HttpExecutor, recorder: StepRecorder) -> None:
        app_id = recorder.created.get("app")
        if app_id is None:
            return

        async def _delete() -> RequestResult:
            _, deleted = await self._teardown(http, app_id)
            return deleted

        await recorder.cleanup(f"DELETE /v1/apps/{app_id} (cleanup)", _delete, [200, 204, 404])

    # -- Steps ---------------------------------------------------------------

    async def _remove_orphans(self, http: HttpExecutor, recorder: StepRecorder) -> None:
        listing = await http.get("/v1/apps", AuthMode.PRIVILEGED)
        apps, _ = extract_list(listing.body, keys=("data",))
        for app in apps or []:
            if not isinstance(app, dict) or app.get("slug") != self._slug:
                continue
            # Every matching orphan is removed; concurrent runs may leave several.
            orphan_id = str(app.get("id"))
            stop, deleted = await self._teardown(http, orphan_id)
            name = f"pre-cleanup: stop + DELETE /v1/apps/{orphan_id}"
            duration = listing.duration_ms + stop.duration_ms + deleted.duration_ms
            if _delete_settled(deleted):
                recorder.add(pass_step(name, "Orphan cleaned up", duration))
            else:
                logger.warning("Could not remove orphaned app %s: %s", orphan_id, deleted.error)
                recorder.add(
                    fail_step(
                        name,
                        deleted.error or f"app-del returned {deleted.status}",
                        duration,
                        detail=f"stop={stop.status}, app-del={deleted.status}",
                    )
                )

    async def _create_app(self, http: HttpExecutor, recorder: StepRecorder) -> str | None:
        payload = {"name": APP_NAME, "slug": self._slug, "framework": FRAMEWORK}

        create = await http.post("/v1/apps", payload, AuthMode.PRIVILEGED)
        if create.status == 409:
            # A delete cascade from the pre-cleanup may still be in progress.
            retried = await self._poll(
                lambda: http.post("/v1/apps", payload, AuthMode.PRIVILEGED),
                lambda result: result.status != 409,
                CREATE_CONFLICT_RETRY,
            )
            create = retried.final_result or create

        def _capture_app(body: Any) -> str | None:
            obj = expect_object(body)
            if obj is None:
                return "Response is not an object"
            if not obj.get("id"):
                return "Response missing 'id' field"
            recorder.created["app"] = str(obj["id"])
            return None

        recorder.record(f"POST /v1/apps (create {self._slug})", create, [200, 201], _capture_app)
        return recorder.created.get("app")


def _validate_environment(body: Any) -> str | None:
    obj = expect_object(body)
    if obj is None:
        return "Response is not an object"
    envs = obj.get("environments")
    if not isinstance(envs, list) or not envs:
        return "No environments found"
    first = envs[0] if isinstance(envs[0], dict) else {}
    if first.get("name") != ENVIRONMENT:
        return f"Expected env name '{ENVIRONMENT}', got '{first.get('name')}'"
    return None
