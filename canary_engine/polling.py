"""Bounded poll-until primitive for long-running remote lifecycles.

Checks that wait on asynchronous remote work (a deployment rolling out, a
function invocation completing, a subdomain becoming reachable) call
:func:`poll_until` instead of hand-rolling sleep loops.  The only variation
point between callers is the interval, the wall-clock budget, and the
terminal predicate.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class PollOutcome(Generic[T]):
    """Result of a :func:`poll_until` loop."""

    final_result: T | None
    terminal_reached: bool
    attempts: int
    elapsed_ms: int


class PollingPolicy(BaseModel):
    """Interval and wall-clock budget for one kind of wait."""

    interval_ms: int = Field(..., gt=0, description="Sleep before each attempt.")
    max_duration_ms: int = Field(..., ge=0, description="Wall-clock budget for the whole loop.")


# Deployment rollout: terminal on success / failed / error.
DEPLOY_ROLLOUT = PollingPolicy(interval_ms=5_000, max_duration_ms=120_000)
# External reachability after rollout: terminal on HTTP 200.
REACHABILITY = PollingPolicy(interval_ms=3_000, max_duration_ms=30_000)
# Asynchronous job completion: terminal on success / error / timeout.
JOB_COMPLETION = PollingPolicy(interval_ms=1_000, max_duration_ms=10_000)


async def poll_until(
    operation: Callable[[], Awaitable[T]],
    is_terminal: Callable[[T], bool],
    interval_ms: int,
    max_duration_ms: int,
    *,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> PollOutcome[T]:
    """Invoke *operation* until *is_terminal* holds or the budget runs out.

    Each round sleeps *interval_ms*, invokes *operation*, and evaluates
    *is_terminal* on its result.  The number of rounds follows the planned
    schedule: round ``k`` is started only while ``k * interval_ms <=
    max_duration_ms``, so a budget of ``k * interval_ms`` allows exactly ``k``
    rounds.  Measured wall-clock time is an outer guard: no round starts once
    ``elapsed >= max_duration_ms``, which bounds slow operations.

    Non-terminal results (including encoded transport errors) simply lead to
    another round; whether an error is terminal is the predicate's decision.

    Parameters
    ----------
    operation:
        Zero-argument coroutine function, typically an executor call.
    is_terminal:
        Predicate deciding whether a result ends the wait.
    interval_ms:
        Delay before each attempt.
    max_duration_ms:
        Wall-clock budget for the whole loop.
    clock:
        Monotonic clock in seconds; injectable for deterministic tests.
    sleep:
        Coroutine function sleeping for a number of seconds; injectable.

    Returns
    -------
    PollOutcome
        The last result seen, whether a terminal state was reached, the
        number of attempts, and the elapsed milliseconds.
    """
    start = clock()
    attempts = 0
    final_result: T | None = None
    terminal_reached = False

    while True:
        elapsed_ms = (clock() - start) * 1000
        if (attempts + 1) * interval_ms > max_duration_ms or elapsed_ms >= max_duration_ms:
            break

        await sleep(interval_ms / 1000)
        final_result = await operation()
        attempts += 1

        if is_terminal(final_result):
            terminal_reached = True
            break

    elapsed = int(round((clock() - start) * 1000))
    logger.debug(
        "poll_until finished: terminal=%s attempts=%d elapsed=%dms",
        terminal_reached,
        attempts,
        elapsed,
    )
    return PollOutcome(
        final_result=final_result,
        terminal_reached=terminal_reached,
        attempts=attempts,
        elapsed_ms=elapsed,
    )


async def poll_with_policy(
    operation: Callable[[], Awaitable[T]],
    is_terminal: Callable[[T], bool],
    policy: PollingPolicy,
    *,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> PollOutcome[T]:
    """Shorthand for :func:`poll_until` with a :class:`PollingPolicy`."""
    return await poll_until(
        operation,
        is_terminal,
        policy.interval_ms,
        policy.max_duration_ms,
        clock=clock,
        sleep=sleep,
    )
