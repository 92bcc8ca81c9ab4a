"""Canary run endpoints.

``GET /canary`` runs every check; ``GET /canary/{name}`` runs one.  Both
are single-flight: while a run is in progress further run requests are
answered with HTTP 429 without touching the platform.  Listing and the
last report never take the lock.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Path

from canary_api import __version__
from canary_api.dependencies import ServiceDep
from canary_engine.errors import CheckNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["canary"])


@router.get("/")
async def index(service: ServiceDep) -> dict[str, Any]:
    """JSON overview: app, version, registered checks, last report."""
    last = service.last_report
    return {
        "app": "tweety",
        "version": __version__,
        "checks": service.list_check_names(),
        "lastReport": last.to_dict() if last is not None else None,
    }


@router.get("/canary")
async def run_all(service: ServiceDep) -> dict[str, Any]:
    """Run every registered check and return the report."""
    report = await service.run_all_checks()
    return report.to_dict()


@router.get("/canary/checks")
async def list_checks(service: ServiceDep) -> dict[str, list[str]]:
    """Registered check names in execution order."""
    return {"checks": service.list_check_names()}


@router.get("/canary/last")
async def last_report(service: ServiceDep) -> dict[str, Any]:
    """The most recent full-run report, or ``{"report": null}``."""
    last = service.last_report
    if last is None:
        return {"report": None}
    return last.to_dict()


@router.get("/canary/{name}")
async def run_one(
    service: ServiceDep,
    name: str = Path(..., pattern=r"^[a-z0-9-]+$"),
) -> dict[str, Any]:
    """Run a single check by name."""
    result = await service.run_check(name)
    if result is None:
        raise CheckNotFoundError(name, service.list_check_names())
    return result.to_dict()
