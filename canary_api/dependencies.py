"""FastAPI dependency injection for the canary service."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from canary_engine.service import CanaryService


def get_service(request: Request) -> CanaryService:
    """Return the :class:`CanaryService` attached to the running application."""
    service: CanaryService | None = getattr(request.app.state, "service", None)
    if service is None:
        raise RuntimeError("Canary service has not been initialised. Ensure the app lifespan has run.")
    return service


ServiceDep = Annotated[CanaryService, Depends(get_service)]
