"""Host-facing facade: lock-guarded runs plus the last-known report.

HTTP endpoints, the CLI and schedule triggers all call into
:class:`CanaryService`.  Runs are single-flight: a request that arrives
while another run holds the :class:`~canary_engine.lock.RunLock` is
rejected immediately with :class:`~canary_engine.errors.CanaryBusyError`
and performs no remote calls.
"""

from __future__ import annotations

import logging

from canary_engine.errors import CanaryBusyError
from canary_engine.lock import RunLock
from canary_engine.models import CheckResult, Report
from canary_engine.runner import CanaryRunner

logger = logging.getLogger(__name__)


class CanaryService:
    """Single-flight wrapper around a :class:`CanaryRunner`."""

    def __init__(self, runner: CanaryRunner, lock: RunLock | None = None) -> None:
        self._runner = runner
        self._lock = lock or RunLock()
        self._last_report: Report | None = None

    @property
    def lock(self) -> RunLock:
        return self._lock

    @property
    def last_report(self) -> Report | None:
        """The most recent full-run report, if any."""
        return self._last_report

    def list_check_names(self) -> list[str]:
        """Registered check names; does not take the lock."""
        return self._runner.list_check_names()

    def _acquire(self) -> None:
        if not self._lock.acquire():
            held_for = self._lock.held_for_ms()
            logger.info("Canary run rejected: another run in progress for %dms", held_for)
            raise CanaryBusyError(held_for_ms=held_for)

    async def run_all_checks(self) -> Report:
        """Run every check and store the report as the last known one.

        Raises
        ------
        CanaryBusyError
            If another run currently holds the lock.
        """
        self._acquire()
        try:
            report = await self._runner.run_all()
            self._last_report = report
            return report
        finally:
            self._lock.release()

    async def run_check(self, name: str) -> CheckResult | None:
        """Run one named check; ``None`` if the name is not registered.

        Raises
        ------
        CanaryBusyError
            If another run currently holds the lock.
        """
        self._acquire()
        try:
            return await self._runner.run_one(name)
        finally:
            self._lock.release()
