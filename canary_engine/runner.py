"""Run orchestrator -- sequential execution of registered checks.

The :class:`CanaryRunner` executes checks one at a time in registration
order, so lifecycle checks that create fixed-name singleton resources can
never collide with each other.  A check that raises is converted into a
synthetic ``fail`` result; one broken check never aborts the run.
"""

from __future__ import annotations

import logging

from canary_engine.base import BaseCheck
from canary_engine.config import CanarySettings
from canary_engine.http import HttpExecutor
from canary_engine.models import CheckResult, CheckStatus, Report, Timer
from canary_engine.registry import CheckRegistry

logger = logging.getLogger(__name__)


class CanaryRunner:
    """Orchestrates registered checks against one executor.

    Parameters
    ----------
    registry:
        The ordered check registry.
    http:
        Executor handed to every check.
    """

    def __init__(self, registry: CheckRegistry, http: HttpExecutor) -> None:
        self._registry = registry
        self._http = http

    @property
    def registry(self) -> CheckRegistry:
        return self._registry

    def list_check_names(self) -> list[str]:
        """Return registered check names in execution order."""
        return self._registry.names()

    async def run_all(self) -> Report:
        """Run every registered check sequentially and build a report."""
        timer = Timer()
        timer.start()

        checks: list[CheckResult] = []
        for check in self._registry.get_all():
            checks.append(await self._run_isolated(check))

        report = Report.build(checks, total_duration_ms=timer.elapsed_ms())
        logger.info(
            "Canary run finished in %dms: %d pass, %d fail, %d warn, %d skip",
            report.total_duration_ms,
            report.summary.passed,
            report.summary.failed,
            report.summary.warned,
            report.summary.skipped,
        )
        return report

    async def run_one(self, name: str) -> CheckResult | None:
        """Run a single check by name; ``None`` if it is not registered."""
        check = self._registry.get(name)
        if check is None:
            logger.info("Check %s is not registered", name)
            return None
        return await self._run_isolated(check)

    async def _run_isolated(self, check: BaseCheck) -> CheckResult:
        timer = Timer()
        timer.start()
        logger.debug("Running check: %s", check.name)

        try:
            result = await check.execute(self._http)
        except Exception as exc:
            logger.error(
                "Check %s raised an unhandled exception: %s",
                check.name,
                exc,
                exc_info=True,
                extra={"check": check.name},
            )
            return CheckResult(
                name=check.name,
                status=CheckStatus.FAIL,
                duration_ms=timer.elapsed_ms(),
                steps=[],
                error=f"Unhandled: {exc}",
            )

        logger.info(
            "Check %s: %s (%dms, %d steps)",
            result.name,
            result.status.value,
            result.duration_ms,
            len(result.steps),
            extra={"check": result.name},
        )
        return result


def create_default_registry(settings: CanarySettings) -> CheckRegistry:
    """Create a :class:`CheckRegistry` with all built-in checks, in run order."""
    from canary_engine.checks import builtin_checks

    return CheckRegistry(builtin_checks(settings))


def create_default_runner(settings: CanarySettings, http: HttpExecutor) -> CanaryRunner:
    """Create a :class:`CanaryRunner` with all built-in checks registered.

    Parameters
    ----------
    settings:
        Supplies the identifiers individual checks depend on.
    http:
        Executor configured for the target platform.
    """
    return CanaryRunner(create_default_registry(settings), http)
