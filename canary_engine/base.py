"""Check contract and the shared step recorder.

All checks must subclass :class:`BaseCheck` (or be wrapped in a
:class:`FunctionCheck`) and implement :meth:`BaseCheck.execute`.  Checks
build their result through a :class:`StepRecorder`, which owns the ordered
step list and the check timer and derives the final status via
:func:`~canary_engine.models.aggregate`.
"""

from __future__ import annotations

import abc
import logging
from collections.abc import Awaitable, Callable, Iterable

from canary_engine.http import HttpExecutor, RequestResult
from canary_engine.models import CheckResult, CheckStatus, StepResult, Timer, aggregate
from canary_engine.steps import fail_step, skip_step, step_from_response

logger = logging.getLogger(__name__)


class BaseCheck(abc.ABC):
    """Abstract base for all check implementations.

    Checks should be reentrant: they clean up leftovers from previous
    failed runs before starting, and remove whatever they create before
    returning.
    """

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Registry key of the check."""

    @abc.abstractmethod
    async def execute(self, http: HttpExecutor) -> CheckResult:
        """Run the check against the platform.

        Parameters
        ----------
        http:
            The only channel to the remote platform.

        Returns
        -------
        CheckResult
            The completed, immutable check result.
        """


class FunctionCheck(BaseCheck):
    """Adapt a plain ``async def fn(http) -> CheckResult`` to the contract."""

    def __init__(self, name: str, fn: Callable[[HttpExecutor], Awaitable[CheckResult]]) -> None:
        self._name = name
        self._fn = fn

    @property
    def name(self) -> str:
        return self._name

    async def execute(self, http: HttpExecutor) -> CheckResult:
        return await self._fn(http)


class StepRecorder:
    """In-progress builder for one check's result.

    The recorder starts its timer on construction, so the check duration
    covers everything from the first pre-cleanup call to the last cleanup.
    """

    def __init__(self, check_name: str) -> None:
        self.check_name = check_name
        self._steps: list[StepResult] = []
        self.created: dict[str, str] = {}
        self._timer = Timer()
        self._timer.start()

    @property
    def steps(self) -> list[StepResult]:
        return list(self._steps)

    @property
    def last(self) -> StepResult | None:
        return self._steps[-1] if self._steps else None

    @property
    def has_failure(self) -> bool:
        return any(step.status == CheckStatus.FAIL for step in self._steps)

    def elapsed_ms(self) -> int:
        return self._timer.elapsed_ms()

    def add(self, step: StepResult) -> StepResult:
        """Append *step* and return it."""
        self._steps.append(step)
        if step.status == CheckStatus.FAIL:
            logger.debug("%s: step %r failed: %s", self.check_name, step.name, step.error)
        return step

    def record(
        self,
        name: str,
        result: RequestResult,
        expected_status: int | Iterable[int],
        validate: Callable[[object], str | None] | None = None,
    ) -> StepResult:
        """Shorthand for ``add(step_from_response(...))``."""
        return self.add(step_from_response(name, result, expected_status, validate))

    def annotate_last(self, detail: str) -> None:
        """Attach a detail to the step just appended, if it passed."""
        if self._steps and self._steps[-1].status == CheckStatus.PASS:
            self._steps[-1] = self._steps[-1].model_copy(update={"detail": detail})

    async def cleanup(
        self,
        name: str,
        action: Callable[[], Awaitable[RequestResult]],
        expected_status: int | Iterable[int],
    ) -> StepResult:
        """Run a cleanup call and record it as a step.

        Cleanup failures are recorded as ``fail`` steps.  An exception from
        *action* becomes a ``fail`` step rather than propagating.
        """
        try:
            result = await action()
        except Exception as exc:
            logger.warning("%s: cleanup %r raised: %s", self.check_name, name, exc)
            return self.add(fail_step(name, f"Cleanup failed: {exc}"))
        return self.record(name, result, expected_status)

    def finish(self, error: str | None = None) -> CheckResult:
        """Freeze the recorded steps into a :class:`CheckResult`."""
        return CheckResult(
            name=self.check_name,
            status=aggregate(self._steps),
            duration_ms=self._timer.elapsed_ms(),
            steps=list(self._steps),
            error=error,
        )

    @staticmethod
    def skipped(check_name: str, step_name: str, detail: str) -> CheckResult:
        """Result for a check that is not applicable in this environment.

        Produces exactly one ``skip`` step without touching the executor.
        """
        return CheckResult(
            name=check_name,
            status=CheckStatus.SKIP,
            duration_ms=0,
            steps=[skip_step(step_name, detail)],
        )


class LifecycleCheck(BaseCheck):
    """Template for create -> verify -> mutate -> verify -> delete checks.

    Subclasses implement :meth:`run_steps`, which returns an abort reason
    (becoming ``CheckResult.error``) or ``None``, and optionally
    :meth:`cleanup`.  Cleanup always runs, after both early aborts and
    unexpected exceptions, and records its own steps.  Identifiers of
    created resources are kept in ``recorder.created`` so that cleanup knows
    what to remove.
    """

    @abc.abstractmethod
    async def run_steps(self, http: HttpExecutor, recorder: StepRecorder) -> str | None:
        """Run the main lifecycle; return an abort reason or ``None``."""

    async def cleanup(self, http: HttpExecutor, recorder: StepRecorder) -> None:
        """Remove whatever :meth:`run_steps` created.  No-op by default."""

    async def execute(self, http: HttpExecutor) -> CheckResult:
        recorder = StepRecorder(self.name)
        abort_reason: str | None = None
        try:
            abort_reason = await self.run_steps(http, recorder)
        except Exception as exc:
            logger.error("%s: unexpected error: %s", self.name, exc, exc_info=True)
            recorder.add(fail_step("unexpected error", str(exc) or exc.__class__.__name__))
        finally:
            await self.cleanup(http, recorder)
        return recorder.finish(abort_reason)
