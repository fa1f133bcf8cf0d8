"""
Linear vesting wallet for REV allocations.

A wallet holds tokens for a single beneficiary and unlocks them linearly
between ``start`` and ``start + duration``. The vesting pool is recomputed on
every call as live balance plus everything already released, so deposits made
after deployment join the curve instead of being tracked separately.

The controller (the deployer) may push the currently vested amount to the
beneficiary with ``force_release`` and sweep surplus with ``recover_erc20``;
it can never take balance the beneficiary is owed now or later.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

from ..clock import Clock, read_clock, system_clock
from ..vm.exceptions import (
    CannotRecoverVestedFunds,
    InvalidBeneficiary,
    InvalidDuration,
    TransferFailed,
    VMExecutionError,
)
from ..vm.execution import atomic
from .access import derive_address, is_zero_address, normalize_address, require_owner
from .erc20 import TokenLedger

logger = logging.getLogger(__name__)


class VestingPhase(Enum):
    """Where a schedule sits relative to its window."""
    PENDING = "pending"  # before start
    VESTING = "vesting"  # between start and end
    VESTED = "vested"  # at or after end


@dataclass
class VestingEvent:
    """Release or recovery performed by a vesting wallet."""

    event_type: str  # "ERC20Released" or "ERC20Recovered"
    token: str
    recipient: str
    amount: int
    timestamp: int = field(default_factory=lambda: int(time.time()))


class VestingWallet:
    """
    Single-beneficiary linear vesting schedule.

    Args:
        beneficiary: Sole recipient of released tokens
        start: Unix timestamp at which vesting begins
        duration: Vesting window length in seconds (must be positive)
        controller: Identity allowed to force-release and recover surplus
        vesting_assets: Token addresses this wallet is funded in; None treats
            every token as under vesting
        time_provider: Callable returning the current Unix time
        address: Contract address (generated when empty)
    """

    def __init__(
        self,
        beneficiary: str,
        start: int,
        duration: int,
        controller: str,
        vesting_assets: Iterable[str] | None = None,
        time_provider: Clock | None = None,
        address: str = "",
    ) -> None:
        if is_zero_address(beneficiary):
            raise InvalidBeneficiary("Beneficiary cannot be zero address")
        if not isinstance(start, int) or not isinstance(duration, int):
            raise InvalidDuration("Start and duration must be integer seconds")
        if duration <= 0:
            raise InvalidDuration(
                "Duration must be greater than zero", {"duration": duration}
            )
        if is_zero_address(controller):
            raise VMExecutionError("Controller cannot be zero address")

        self._beneficiary = normalize_address(beneficiary)
        self._controller = normalize_address(controller)
        self._start = start
        self._duration = duration
        self._vesting_assets = (
            None if vesting_assets is None
            else frozenset(normalize_address(a) for a in vesting_assets)
        )
        self._time_provider = time_provider or system_clock
        self.address = normalize_address(address or derive_address("vesting", beneficiary, start, duration))

        # Cumulative released amount per token address
        self._released: dict[str, int] = {}
        self.events: list[VestingEvent] = []

        logger.info(
            "Vesting wallet created",
            extra={
                "event": "vesting.created",
                "address": self.address,
                "beneficiary": self._beneficiary[:10],
                "start": start,
                "duration": duration,
            }
        )

    # ==================== View Functions ====================

    @property
    def beneficiary(self) -> str:
        return self._beneficiary

    @property
    def owner(self) -> str:
        """The wallet reports its beneficiary as owner."""
        return self._beneficiary

    @property
    def controller(self) -> str:
        return self._controller

    @property
    def start(self) -> int:
        return self._start

    @property
    def duration(self) -> int:
        return self._duration

    @property
    def end(self) -> int:
        return self._start + self._duration

    def released(self, token: TokenLedger) -> int:
        """Cumulative amount of ``token`` already released."""
        return self._released.get(normalize_address(token.address), 0)

    def is_vesting_asset(self, token: TokenLedger) -> bool:
        if self._vesting_assets is None:
            return True
        return normalize_address(token.address) in self._vesting_assets

    def total_pool(self, token: TokenLedger) -> int:
        """Live balance plus everything released so far."""
        return token.balance_of(self.address) + self.released(token)

    def vested_amount(self, token: TokenLedger, timestamp: int | None = None) -> int:
        """
        Amount of ``token`` vested at ``timestamp`` (defaults to now).

        The pool is recomputed from the live balance on every call. Assets
        outside ``vesting_assets`` are not on the schedule and vest nothing.
        """
        if not self.is_vesting_asset(token):
            return 0
        if timestamp is None:
            timestamp = self._now()
        return self._vesting_schedule(self.total_pool(token), timestamp)

    def releasable(self, token: TokenLedger) -> int:
        """Vested but not yet released amount at the current time."""
        return self.vested_amount(token) - self.released(token)

    def protected_balance(self, token: TokenLedger) -> int:
        """Balance owed to the beneficiary now or in the future."""
        if not self.is_vesting_asset(token):
            return 0
        return self.total_pool(token) - self.released(token)

    def recoverable(self, token: TokenLedger) -> int:
        """Surplus the controller may sweep without touching owed balance."""
        return max(0, token.balance_of(self.address) - self.protected_balance(token))

    def phase(self, timestamp: int | None = None) -> VestingPhase:
        if timestamp is None:
            timestamp = self._now()
        if timestamp < self._start:
            return VestingPhase.PENDING
        if timestamp >= self.end:
            return VestingPhase.VESTED
        return VestingPhase.VESTING

    # ==================== State-Changing Functions ====================

    def release(self, caller: str, token: TokenLedger) -> int:
        """
        Release the vested, unreleased amount of ``token`` to the beneficiary.
        Tokens outside ``vesting_assets`` are never released; they stay
        recoverable surplus for the controller.

        Returns:
            Amount released (0 is a successful no-op)

        Raises:
            Unauthorized: If caller is not the beneficiary
            TransferFailed: If the ledger rejects the transfer
        """
        require_owner(caller, self._beneficiary, "Caller is not the beneficiary")
        return self._release(token, initiator="beneficiary")

    def force_release(self, caller: str, token: TokenLedger) -> int:
        """
        Controller-triggered release.

        Uses the same time-gated computation as ``release``; only the currently
        vested remainder is paid out.

        Raises:
            Unauthorized: If caller is not the controller
            TransferFailed: If the ledger rejects the transfer
        """
        require_owner(caller, self._controller)
        return self._release(token, initiator="controller")

    def recover_erc20(self, caller: str, token: TokenLedger, amount: int) -> int:
        """
        Send ``amount`` of surplus ``token`` to the controller.

        Raises:
            Unauthorized: If caller is not the controller
            CannotRecoverVestedFunds: If the amount exceeds the recoverable surplus
            TransferFailed: If the ledger rejects the transfer
        """
        require_owner(caller, self._controller)
        if amount < 0:
            raise VMExecutionError("Recovery amount cannot be negative")

        balance = token.balance_of(self.address)
        protected = self.protected_balance(token)
        if amount > balance - protected:
            raise CannotRecoverVestedFunds(
                "Cannot recover vested tokens",
                {"token": token.symbol, "amount": amount, "balance": balance, "protected": protected},
            )

        with atomic(self, token):
            self._transfer_out(token, self._controller, amount)
            self._emit("ERC20Recovered", token, self._controller, amount)

        logger.info(
            "Surplus recovered from vesting wallet",
            extra={
                "event": "vesting.recovered",
                "address": self.address,
                "token": token.symbol,
                "amount": amount,
            }
        )
        return amount

    # ==================== Atomic Execution ====================

    def snapshot(self) -> dict[str, Any]:
        return {"released": dict(self._released), "events": list(self.events)}

    def restore(self, snapshot: dict[str, Any]) -> None:
        self._released = dict(snapshot["released"])
        self.events = list(snapshot["events"])

    # ==================== Helpers ====================

    def _now(self) -> int:
        return read_clock(self._time_provider)

    def _vesting_schedule(self, total_allocation: int, timestamp: int) -> int:
        if timestamp < self._start:
            return 0
        if timestamp >= self.end:
            return total_allocation
        return total_allocation * (timestamp - self._start) // self._duration

    def _release(self, token: TokenLedger, initiator: str) -> int:
        amount = self.releasable(token)
        if amount <= 0:
            logger.debug(
                "Nothing to release",
                extra={"event": "vesting.release_noop", "address": self.address, "token": token.symbol}
            )
            return 0

        with atomic(self, token):
            self._transfer_out(token, self._beneficiary, amount)
            key = normalize_address(token.address)
            self._released[key] = self._released.get(key, 0) + amount
            self._emit("ERC20Released", token, self._beneficiary, amount)

        logger.info(
            "Vested tokens released",
            extra={
                "event": "vesting.released",
                "address": self.address,
                "token": token.symbol,
                "amount": amount,
                "initiator": initiator,
                "total_released": self.released(token),
            }
        )
        return amount

    def _transfer_out(self, token: TokenLedger, recipient: str, amount: int) -> None:
        try:
            token.transfer(self.address, recipient, amount)
        except VMExecutionError as exc:
            raise TransferFailed(
                f"Transfer of {amount} {token.symbol} failed: {exc.message}",
                {"token": token.symbol, "recipient": recipient, "amount": amount},
            ) from exc

    def _emit(self, event_type: str, token: TokenLedger, recipient: str, amount: int) -> None:
        self.events.append(
            VestingEvent(
                event_type=event_type,
                token=normalize_address(token.address),
                recipient=recipient,
                amount=amount,
                timestamp=self._now(),
            )
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "beneficiary": self._beneficiary,
            "controller": self._controller,
            "start": self._start,
            "duration": self._duration,
            "end": self.end,
            "released": dict(self._released),
            "vesting_assets": sorted(self._vesting_assets) if self._vesting_assets is not None else None,
        }
