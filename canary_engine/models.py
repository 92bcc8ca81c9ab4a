"""Data models for the canary engine.

Defines the status enum, the step/check/report result models, and the two
pure functions that fold statuses together:

* :func:`aggregate` -- many step statuses into one check status;
* :func:`summarize` -- many check statuses into independent counts.

JSON field names use camelCase aliases (``durationMs``,
``totalDurationMs``) so that serialized reports keep the wire shape that
dashboards already consume.
"""

from __future__ import annotations

import time
from collections.abc import Iterable
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CheckStatus(str, Enum):
    """Outcome of a step or a check."""

    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"
    SKIP = "skip"


class _ResultModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_dict(self) -> dict[str, Any]:
        """Serialize with camelCase aliases, omitting unset optional fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class StepResult(_ResultModel):
    """One elementary verified action inside a check."""

    name: str = Field(..., description="Human-readable identifier of the action.")
    status: CheckStatus = Field(..., description="Outcome of the step.")
    duration_ms: int = Field(default=0, alias="durationMs", description="Wall-clock duration.")
    detail: str | None = Field(default=None, description="Diagnostic summary on success or skip.")
    error: str | None = Field(default=None, description="The violated expectation; set iff status is fail.")


class CheckResult(_ResultModel):
    """Outcome of one check invocation."""

    name: str = Field(..., description="Check name (registry key).")
    status: CheckStatus = Field(..., description="Status derived from the steps via aggregate().")
    duration_ms: int = Field(default=0, alias="durationMs", description="Wall-clock span of the whole check.")
    steps: list[StepResult] = Field(default_factory=list, description="Steps in execution order.")
    error: str | None = Field(default=None, description="Set when the check aborted early.")


class CheckSummary(_ResultModel):
    """Independent per-status counts across the checks of a report."""

    passed: int = Field(default=0, alias="pass")
    failed: int = Field(default=0, alias="fail")
    warned: int = Field(default=0, alias="warn")
    skipped: int = Field(default=0, alias="skip")
    total: int = Field(default=0)

    @staticmethod
    def from_results(checks: Iterable[CheckResult]) -> CheckSummary:
        """Build a summary from a sequence of check results."""
        return summarize(checks)


class Report(_ResultModel):
    """Result of one full canary run."""

    timestamp: datetime = Field(..., description="Capture time of the run (UTC).")
    total_duration_ms: int = Field(default=0, alias="totalDurationMs")
    summary: CheckSummary = Field(default_factory=CheckSummary)
    checks: list[CheckResult] = Field(default_factory=list, description="Results in registration order.")

    @classmethod
    def build(
        cls,
        checks: list[CheckResult],
        total_duration_ms: int,
        timestamp: datetime | None = None,
    ) -> Report:
        """Assemble a report, computing the summary from *checks*."""
        return cls(
            timestamp=timestamp or datetime.now(UTC),
            total_duration_ms=total_duration_ms,
            summary=summarize(checks),
            checks=list(checks),
        )

    @property
    def has_failures(self) -> bool:
        return self.summary.failed > 0


# ---------------------------------------------------------------------------
# Status lattice
# ---------------------------------------------------------------------------


def _status_of(item: StepResult | CheckResult | CheckStatus | str) -> CheckStatus:
    if isinstance(item, (StepResult, CheckResult)):
        return item.status
    return CheckStatus(item)


def aggregate(items: Iterable[StepResult | CheckStatus | str]) -> CheckStatus:
    """Fold step statuses into a single check status.

    The result depends only on which statuses are present:

    * ``fail`` if any step failed;
    * ``skip`` if at least one step skipped and none ran to completion;
    * ``warn`` if steps ran and at least one skipped;
    * ``pass`` otherwise, including for an empty sequence.

    A ``warn`` step counts as a step that ran, i.e. like ``pass``.
    """
    present = {_status_of(item) for item in items}

    if CheckStatus.FAIL in present:
        return CheckStatus.FAIL

    ran = CheckStatus.PASS in present or CheckStatus.WARN in present
    if CheckStatus.SKIP in present:
        return CheckStatus.WARN if ran else CheckStatus.SKIP
    return CheckStatus.PASS


def summarize(checks: Iterable[CheckResult | CheckStatus | str]) -> CheckSummary:
    """Count check statuses without collapsing them into one verdict."""
    counts = {status: 0 for status in CheckStatus}
    total = 0
    for check in checks:
        counts[_status_of(check)] += 1
        total += 1

    return CheckSummary(
        passed=counts[CheckStatus.PASS],
        failed=counts[CheckStatus.FAIL],
        warned=counts[CheckStatus.WARN],
        skipped=counts[CheckStatus.SKIP],
        total=total,
    )


class Timer:
    """Simple monotonic timer for measuring durations in milliseconds."""

    def __init__(self) -> None:
        self._start: float = 0.0

    def start(self) -> None:
        self._start = time.monotonic()

    def elapsed_ms(self) -> int:
        return int(round((time.monotonic() - self._start) * 1000))
