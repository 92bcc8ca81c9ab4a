"""Unit tests for the registry, runner and service."""

from __future__ import annotations

import asyncio

import pytest

from canary_engine.base import FunctionCheck, StepRecorder
from canary_engine.config import CanarySettings
from canary_engine.errors import CanaryBusyError, CheckNotFoundError
from canary_engine.lock import RunLock
from canary_engine.models import CheckResult, CheckStatus
from canary_engine.registry import CheckRegistry
from canary_engine.runner import CanaryRunner, create_default_registry
from canary_engine.service import CanaryService
from canary_engine.steps import fail_step, pass_step, skip_step


def _static(name: str, status: CheckStatus) -> FunctionCheck:
    async def fn(http):
        recorder = StepRecorder(name)
        if status == CheckStatus.SKIP:
            recorder.add(skip_step("not configured", "skipped"))
        elif status == CheckStatus.FAIL:
            recorder.add(pass_step("first"))
            recorder.add(fail_step("second", "broken"))
            return recorder.finish("broken")
        else:
            recorder.add(pass_step("only"))
        return recorder.finish()

    return FunctionCheck(name, fn)


def _crashing(name: str) -> FunctionCheck:
    async def fn(http):
        raise RuntimeError("kaboom")

    return FunctionCheck(name, fn)


# ---------------------------------------------------------------------------
# CheckRegistry
# ---------------------------------------------------------------------------


class TestCheckRegistry:
    def test_keeps_registration_order(self):
        registry = CheckRegistry([_static("b", CheckStatus.PASS), _static("a", CheckStatus.PASS)])
        assert registry.names() == ["b", "a"]
        assert len(registry) == 2
        assert "a" in registry

    def test_duplicate_name_rejected(self):
        registry = CheckRegistry([_static("a", CheckStatus.PASS)])
        with pytest.raises(ValueError, match="already registered"):
            registry.register(_static("a", CheckStatus.FAIL))

    def test_unregister(self):
        registry = CheckRegistry([_static("a", CheckStatus.PASS)])
        registry.unregister("a")
        assert registry.get("a") is None
        with pytest.raises(KeyError):
            registry.unregister("a")

    def test_default_registry_order(self):
        registry = create_default_registry(CanarySettings(api_url="https://api.test"))
        assert registry.names() == [
            "health",
            "data-crud",
            "toggles",
            "ai-chat",
            "functions",
            "app-lifecycle",
            "deploy-health",
        ]


# ---------------------------------------------------------------------------
# CanaryRunner
# ---------------------------------------------------------------------------


class TestCanaryRunner:
    @pytest.mark.asyncio
    async def test_run_all_in_order_with_summary(self, http):
        registry = CheckRegistry(
            [
                _static("one", CheckStatus.PASS),
                _static("two", CheckStatus.SKIP),
                _static("three", CheckStatus.FAIL),
            ]
        )
        report = await CanaryRunner(registry, http).run_all()

        assert [c.name for c in report.checks] == ["one", "two", "three"]
        assert report.summary.passed == 1
        assert report.summary.skipped == 1
        assert report.summary.failed == 1
        assert report.summary.total == 3
        assert report.total_duration_ms >= 0

    @pytest.mark.asyncio
    async def test_crashing_check_is_isolated(self, http):
        registry = CheckRegistry(
            [
                _static("before", CheckStatus.PASS),
                _crashing("boom"),
                _static("after", CheckStatus.PASS),
            ]
        )
        report = await CanaryRunner(registry, http).run_all()

        crashed = report.checks[1]
        assert crashed.name == "boom"
        assert crashed.status == CheckStatus.FAIL
        assert crashed.steps == []
        assert crashed.error == "Unhandled: kaboom"
        assert report.checks[2].status == CheckStatus.PASS

    @pytest.mark.asyncio
    async def test_run_one(self, http):
        runner = CanaryRunner(CheckRegistry([_static("one", CheckStatus.PASS)]), http)

        result = await runner.run_one("one")
        assert result is not None
        assert result.status == CheckStatus.PASS
        assert await runner.run_one("nope") is None

    @pytest.mark.asyncio
    async def test_run_one_isolates_crash(self, http):
        runner = CanaryRunner(CheckRegistry([_crashing("boom")]), http)
        result = await runner.run_one("boom")
        assert result.error == "Unhandled: kaboom"


# ---------------------------------------------------------------------------
# CanaryService
# ---------------------------------------------------------------------------


class TestCanaryService:
    @pytest.mark.asyncio
    async def test_stores_last_report_and_releases_lock(self, http):
        service = CanaryService(CanaryRunner(CheckRegistry([_static("one", CheckStatus.PASS)]), http))
        assert service.last_report is None

        report = await service.run_all_checks()

        assert service.last_report is report
        assert service.lock.running is False

    @pytest.mark.asyncio
    async def test_single_check_does_not_replace_last_report(self, http):
        service = CanaryService(CanaryRunner(CheckRegistry([_static("one", CheckStatus.PASS)]), http))
        await service.run_check("one")
        assert service.last_report is None

    @pytest.mark.asyncio
    async def test_concurrent_run_rejected_without_remote_calls(self, http, platform):
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow(executor):
            started.set()
            await release.wait()
            return CheckResult(name="slow", status=CheckStatus.PASS)

        service = CanaryService(CanaryRunner(CheckRegistry([FunctionCheck("slow", slow)]), http))

        first = asyncio.create_task(service.run_all_checks())
        await started.wait()

        with pytest.raises(CanaryBusyError) as exc_info:
            await service.run_check("slow")
        assert str(exc_info.value) == "Canary is already running. Please wait for it to finish."
        assert platform.requests == []

        release.set()
        report = await first
        assert report.summary.passed == 1
        assert service.lock.running is False

    @pytest.mark.asyncio
    async def test_lock_released_when_run_raises(self, http):
        runner = CanaryRunner(CheckRegistry(), http)

        async def broken():
            raise RuntimeError("registry exploded")

        runner.run_all = broken
        service = CanaryService(runner)

        with pytest.raises(RuntimeError):
            await service.run_all_checks()
        assert service.lock.running is False

    @pytest.mark.asyncio
    async def test_stale_lock_allows_new_run(self, http, fake_clock):
        lock = RunLock(stale_after_ms=120_000, clock=fake_clock)
        service = CanaryService(CanaryRunner(CheckRegistry([_static("one", CheckStatus.PASS)]), http), lock)

        lock.acquire()
        with pytest.raises(CanaryBusyError):
            await service.run_all_checks()

        fake_clock.advance(121)
        report = await service.run_all_checks()
        assert report.summary.total == 1

    @pytest.mark.asyncio
    async def test_list_check_names_does_not_lock(self, http):
        service = CanaryService(CanaryRunner(CheckRegistry([_static("one", CheckStatus.PASS)]), http))
        service.lock.acquire()
        assert service.list_check_names() == ["one"]


class TestErrors:
    def test_not_found_message(self):
        error = CheckNotFoundError("nope", ["health", "toggles"])
        assert str(error) == 'Check "nope" not found. Available: health, toggles'
