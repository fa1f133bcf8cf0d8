"""
Time sources for the contract models.

Contracts take a ``time_provider`` callable returning integer Unix seconds.
``ManualClock`` is the deterministic provider used by tests, simulations and
the CLI; it refuses to move backwards.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from .vm.exceptions import ClockError

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def system_clock() -> int:
    """Wall-clock time in whole seconds."""
    return int(time.time())


def read_clock(time_provider: Clock) -> int:
    """Call ``time_provider`` and validate it returned an integer timestamp."""
    timestamp = time_provider()
    try:
        return int(timestamp)
    except (TypeError, ValueError) as exc:
        raise ClockError("time_provider must return an integer timestamp") from exc


class ManualClock:
    """
    Monotonically non-decreasing clock driven by the caller.

    Mirrors the ``time.increase`` / ``time.increaseTo`` helpers used when
    exercising contracts on a development chain.
    """

    def __init__(self, start: int | None = None) -> None:
        self._now = system_clock() if start is None else int(start)

    def __call__(self) -> int:
        return self._now

    @property
    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        """Move forward by ``seconds`` and return the new time."""
        if seconds < 0:
            raise ClockError(f"Cannot move clock backwards by {seconds}s")
        self._now += int(seconds)
        return self._now

    def increase_to(self, timestamp: int) -> int:
        """Jump to ``timestamp``, which must not be in the past."""
        if timestamp < self._now:
            raise ClockError(
                f"Cannot decrease time to {timestamp} (current {self._now})"
            )
        self._now = int(timestamp)
        logger.debug("Manual clock moved", extra={"event": "clock.increase_to", "timestamp": self._now})
        return self._now
