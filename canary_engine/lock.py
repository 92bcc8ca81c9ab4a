"""Single-flight run lock with staleness-based forced recovery.

At most one canary run (all checks, or one named check) may execute at a
time.  A second request is rejected immediately rather than queued.  If a
run has held the lock longer than the staleness threshold it is assumed to
be hung and the lock is forcibly taken over, so a wedged run can never
block future runs permanently.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)

DEFAULT_STALE_AFTER_MS = 120_000


class RunLock:
    """Process-wide single-flight guard.

    Parameters
    ----------
    stale_after_ms:
        Maximum time the lock may be held before :meth:`acquire` forcibly
        clears it.
    clock:
        Clock returning seconds; injectable for deterministic tests.
    """

    def __init__(
        self,
        stale_after_ms: int = DEFAULT_STALE_AFTER_MS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._stale_after_ms = stale_after_ms
        self._clock = clock
        self._guard = threading.Lock()
        self._running = False
        self._started_at = 0.0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def started_at(self) -> float:
        """Clock reading at the last successful acquisition."""
        return self._started_at

    @property
    def stale_after_ms(self) -> int:
        return self._stale_after_ms

    def held_for_ms(self) -> int:
        """Milliseconds since acquisition, or 0 when not running."""
        with self._guard:
            if not self._running:
                return 0
            return int((self._clock() - self._started_at) * 1000)

    def acquire(self) -> bool:
        """Try to take the lock without blocking.

        Returns ``True`` if the caller now holds the lock, ``False`` if
        another run holds it and is not yet stale.
        """
        with self._guard:
            now = self._clock()
            if self._running:
                held_ms = (now - self._started_at) * 1000
                if held_ms < self._stale_after_ms:
                    return False
                logger.warning(
                    "Force-clearing stale canary lock (held for %ds)",
                    round(held_ms / 1000),
                )
                self._running = False

            self._running = True
            self._started_at = now
            return True

    def release(self) -> None:
        """Clear the lock unconditionally."""
        with self._guard:
            self._running = False
