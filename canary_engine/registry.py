"""Check registry for discovering and managing check implementations.

Checks are keyed by name and kept in registration order, which is also
the order in which the runner executes them.
"""

from __future__ import annotations

import logging

from canary_engine.base import BaseCheck

logger = logging.getLogger(__name__)


class CheckRegistry:
    """Ordered registry of check implementations."""

    def __init__(self, checks: list[BaseCheck] | None = None) -> None:
        self._checks: dict[str, BaseCheck] = {}
        for check in checks or []:
            self.register(check)

    def register(self, check: BaseCheck) -> None:
        """Register a check implementation.

        Parameters
        ----------
        check:
            The check instance to register.  Its ``name`` determines the key.

        Raises
        ------
        ValueError
            If a check with the same name is already registered.
        """
        if check.name in self._checks:
            raise ValueError(
                f"Check {check.name} is already registered. "
                f"Unregister the existing check first."
            )
        self._checks[check.name] = check
        logger.debug("Registered check: %s", check.name)

    def unregister(self, name: str) -> None:
        """Remove a check from the registry.

        Raises
        ------
        KeyError
            If the name is not registered.
        """
        if name not in self._checks:
            raise KeyError(f"Check {name} is not registered.")
        del self._checks[name]
        logger.debug("Unregistered check: %s", name)

    def get(self, name: str) -> BaseCheck | None:
        """Look up a check by name, or ``None`` if unregistered."""
        return self._checks.get(name)

    def get_all(self) -> list[BaseCheck]:
        """Return all registered checks in registration order."""
        return list(self._checks.values())

    def names(self) -> list[str]:
        """Return registered check names in registration order."""
        return list(self._checks)

    def __len__(self) -> int:
        return len(self._checks)

    def __contains__(self, name: object) -> bool:
        return name in self._checks
