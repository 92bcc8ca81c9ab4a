"""Adapters turning :class:`RequestResult` envelopes into :class:`StepResult`.

Every check validates responses the same way: transport error first, then
the expected status set, then an optional structural validator.  A
validator receives the parsed body and returns ``None`` when the body is
acceptable or a string describing the violated expectation.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from typing import Any

from canary_engine.http import RequestResult
from canary_engine.models import CheckStatus, StepResult

Validator = Callable[[Any], str | None]

# Length of the raw body excerpt attached to unexpected-status failures.
DETAIL_EXCERPT_CHARS = 300


def _expected_set(expected_status: int | Iterable[int]) -> list[int]:
    if isinstance(expected_status, int):
        return [expected_status]
    return list(expected_status)


def step_from_response(
    name: str,
    result: RequestResult,
    expected_status: int | Iterable[int],
    validate: Validator | None = None,
) -> StepResult:
    """Map one executor result onto a step.

    Parameters
    ----------
    name:
        Step name, usually ``"<METHOD> <path> (<intent>)"``.
    result:
        The executor envelope.
    expected_status:
        A status code or a collection of acceptable codes.
    validate:
        Optional structural validator applied to ``result.body``.
    """
    if result.error is not None:
        return StepResult(name=name, status=CheckStatus.FAIL, duration_ms=result.duration_ms, error=result.error)

    expected = _expected_set(expected_status)
    if result.status not in expected:
        return StepResult(
            name=name,
            status=CheckStatus.FAIL,
            duration_ms=result.duration_ms,
            error=f"Expected status {'|'.join(str(s) for s in expected)}, got {result.status}",
            detail=result.raw_text[:DETAIL_EXCERPT_CHARS],
        )

    if validate is not None:
        violation = validate(result.body)
        if violation:
            return StepResult(name=name, status=CheckStatus.FAIL, duration_ms=result.duration_ms, error=violation)

    return StepResult(name=name, status=CheckStatus.PASS, duration_ms=result.duration_ms)


def skip_if_status(
    name: str,
    result: RequestResult,
    statuses: Iterable[int],
    reason: str,
) -> StepResult | None:
    """Return a ``skip`` step when the platform flags a known degraded state.

    Degradation the platform reports itself (service not configured, quota
    exhausted) is not a probe failure.  Returns ``None`` when *result* does
    not carry one of *statuses*.
    """
    if result.error is not None or result.status not in set(statuses):
        return None
    return StepResult(
        name=name,
        status=CheckStatus.SKIP,
        duration_ms=result.duration_ms,
        detail=f"{reason} ({result.status}), check skipped",
    )


def pass_step(name: str, detail: str | None = None, duration_ms: int = 0) -> StepResult:
    return StepResult(name=name, status=CheckStatus.PASS, duration_ms=duration_ms, detail=detail)


def fail_step(name: str, error: str, duration_ms: int = 0, detail: str | None = None) -> StepResult:
    return StepResult(name=name, status=CheckStatus.FAIL, duration_ms=duration_ms, error=error, detail=detail)


def skip_step(name: str, detail: str, duration_ms: int = 0) -> StepResult:
    return StepResult(name=name, status=CheckStatus.SKIP, duration_ms=duration_ms, detail=detail)


# ---------------------------------------------------------------------------
# Body helpers used by validators
# ---------------------------------------------------------------------------


def expect_object(body: Any) -> dict[str, Any] | None:
    """Return *body* if it is a JSON object, else ``None``."""
    return body if isinstance(body, dict) else None


def unwrap_data(body: Any) -> dict[str, Any] | None:
    """Return the inner object of a ``{"data": {...}}`` envelope, or *body* itself."""
    obj = expect_object(body)
    if obj is None:
        return None
    inner = obj.get("data")
    if isinstance(inner, dict):
        return inner
    return obj


def extract_list(
    body: Any,
    keys: Sequence[str] = ("data", "rows", "items"),
    *,
    allow_empty: bool = True,
) -> tuple[list[Any] | None, str | None]:
    """Pull a list out of a bare array or a wrapped ``{data|rows|items: [...]}`` body.

    Emptiness tolerance is an explicit decision of the caller: with
    ``allow_empty=False`` an empty list is reported as a violation.

    Returns
    -------
    tuple
        ``(items, None)`` on success or ``(None, violation)`` on failure.
    """
    items: Any = body
    if not isinstance(body, list):
        obj = expect_object(body)
        items = None
        if obj is not None:
            for key in keys:
                if isinstance(obj.get(key), list):
                    items = obj[key]
                    break
        if items is None:
            return None, f"Response is not an array and has no {'/'.join(keys)} array"

    if not allow_empty and not items:
        return None, "Response list is empty"
    return items, None


def contains_id(items: Iterable[Any], wanted: str) -> bool:
    """Return ``True`` if any object in *items* has ``str(id) == wanted``."""
    return any(isinstance(item, dict) and str(item.get("id")) == wanted for item in items)
