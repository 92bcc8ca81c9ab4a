"""Tweety canary engine -- continuous verification of the Kapable platform API.

Provides the authenticated request executor, the step/check result model
with its status lattice, the poll-until primitive, the single-flight run
lock, and the orchestrator that runs registered checks sequentially.

Quick start::

    from canary_engine import CanaryService, create_default_runner, create_executor, load_settings

    settings = load_settings()
    async with create_executor(settings) as http:
        service = CanaryService(create_default_runner(settings, http))
        report = await service.run_all_checks()
        print(report.summary.total, report.summary.failed)
"""

from canary_engine.base import BaseCheck, FunctionCheck, LifecycleCheck, StepRecorder
from canary_engine.config import CanarySettings, load_settings
from canary_engine.errors import CanaryBusyError, CanaryError, CheckNotFoundError
from canary_engine.http import AuthMode, HttpExecutor, RequestResult, create_executor
from canary_engine.lock import RunLock
from canary_engine.models import (
    CheckResult,
    CheckStatus,
    CheckSummary,
    Report,
    StepResult,
    aggregate,
    summarize,
)
from canary_engine.polling import PollingPolicy, PollOutcome, poll_until
from canary_engine.registry import CheckRegistry
from canary_engine.runner import CanaryRunner, create_default_runner
from canary_engine.service import CanaryService
from canary_engine.steps import step_from_response

__version__ = "0.1.0"

__all__ = [
    "AuthMode",
    "BaseCheck",
    "CanaryBusyError",
    "CanaryError",
    "CanaryRunner",
    "CanaryService",
    "CanarySettings",
    "CheckNotFoundError",
    "CheckRegistry",
    "CheckResult",
    "CheckStatus",
    "CheckSummary",
    "FunctionCheck",
    "HttpExecutor",
    "LifecycleCheck",
    "PollOutcome",
    "PollingPolicy",
    "Report",
    "RequestResult",
    "RunLock",
    "StepRecorder",
    "StepResult",
    "aggregate",
    "create_default_runner",
    "create_executor",
    "load_settings",
    "poll_until",
    "step_from_response",
    "summarize",
]
