"""
All-or-nothing execution for contract operations.

A contract operation touches its own state and one or more token ledgers.
``atomic`` takes a snapshot of every participant before the operation runs
and restores all of them if a revert escapes, so a failed operation leaves
balances, counters, tier tables and event logs exactly as they were.

Usage:
    with atomic(self, self.grant_token, self.payment_token):
        self.payment_token.transfer_from(...)
        self.grant_token.transfer(...)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Protocol, runtime_checkable

from .exceptions import VMExecutionError

logger = logging.getLogger(__name__)


@runtime_checkable
class Snapshottable(Protocol):
    """State holder that can be captured and rolled back."""

    def snapshot(self) -> dict[str, Any]:
        """Return a deep copy of all mutable state."""
        ...

    def restore(self, snapshot: dict[str, Any]) -> None:
        """Replace all mutable state with a previously taken snapshot."""
        ...


@contextmanager
def atomic(*participants: Snapshottable) -> Iterator[None]:
    """
    Run the enclosed block as one atomic unit over ``participants``.

    The same object may be passed more than once (e.g. when the grant and
    payment token are the same ledger); it is only snapshotted once.

    Raises:
        VMExecutionError: Re-raised unchanged after every participant is restored
    """
    unique: list[Snapshottable] = []
    seen: set[int] = set()
    for participant in participants:
        if id(participant) not in seen:
            seen.add(id(participant))
            unique.append(participant)

    snapshots = [(participant, participant.snapshot()) for participant in unique]
    try:
        yield
    except VMExecutionError as exc:
        for participant, state in reversed(snapshots):
            participant.restore(state)
        logger.debug(
            "Operation reverted",
            extra={
                "event": "vm.revert",
                "reason": exc.message,
                "participants": len(snapshots),
            }
        )
        raise
