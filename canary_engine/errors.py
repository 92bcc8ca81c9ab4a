"""Exception hierarchy for host-level canary conditions.

Remote platform failures are never raised: the executor encodes them in
:class:`~canary_engine.http.RequestResult` and checks encode them as
``fail`` steps.  The exceptions here describe conditions of the *caller*
(lock contention, unknown check names) rather than platform health.
"""

from __future__ import annotations


class CanaryError(Exception):
    """Base class for canary engine errors."""


class CanaryBusyError(CanaryError):
    """Raised when a run is requested while another run holds the lock."""

    def __init__(self, held_for_ms: int = 0) -> None:
        self.held_for_ms = held_for_ms
        super().__init__("Canary is already running. Please wait for it to finish.")


class CheckNotFoundError(CanaryError):
    """Raised by host layers when a requested check name is not registered."""

    def __init__(self, name: str, available: list[str]) -> None:
        self.name = name
        self.available = list(available)
        super().__init__(f'Check "{name}" not found. Available: {", ".join(self.available)}')
