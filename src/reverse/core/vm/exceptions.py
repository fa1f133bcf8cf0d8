"""
Revert exception hierarchy for the REV contract models.

Every failed contract operation raises a ``VMExecutionError`` subclass. The
exception message is the revert reason a caller would observe; ``details``
carries the numbers behind the failure for logging and diagnostics.
"""

from __future__ import annotations

from typing import Any


class VMExecutionError(Exception):
    """Base exception for all reverted contract operations.

    Attributes:
        message: Revert reason
        details: Additional context about the failure
        recoverable: Whether the caller may retry after fixing preconditions
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable


# ==================== Construction Errors ====================


class InvalidBeneficiary(VMExecutionError):
    """Raised when a vesting wallet is created for the zero address."""
    pass


class InvalidDuration(VMExecutionError):
    """Raised when a vesting wallet is created with a non-positive duration."""
    pass


# ==================== Authorization Errors ====================


class Unauthorized(VMExecutionError):
    """Raised when the caller does not hold the identity an operation requires."""
    pass


# ==================== Balance Errors ====================


class InsufficientBalance(VMExecutionError):
    """Raised when a holder lacks the balance for a transfer or purchase.

    Callers can top up and retry.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details, recoverable=True)


InsufficientFunds = InsufficientBalance


class InsufficientAllowance(VMExecutionError):
    """Raised when a spender's allowance does not cover the amount.

    Callers can re-approve and retry.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details, recoverable=True)


class InsufficientContractBalance(VMExecutionError):
    """Raised when the seller cannot cover the grant side of a purchase."""
    pass


class TransferFailed(VMExecutionError):
    """Raised when the ledger rejects a transfer initiated by a contract."""
    pass


# ==================== Price Tier Errors ====================


class InvalidPaymentAmount(VMExecutionError):
    """Raised for a payment amount that is zero or not a registered tier."""
    pass


class InvalidGrantAmount(VMExecutionError):
    """Raised when a tier would grant zero tokens."""
    pass


class TierAlreadyExists(VMExecutionError):
    """Raised when registering a payment amount that already has a tier."""
    pass


class TierNotFound(VMExecutionError):
    """Raised when removing a payment amount that has no tier."""
    pass


# ==================== Vesting Errors ====================


class CannotRecoverVestedFunds(VMExecutionError):
    """Raised when a recovery would dip into balance owed to the beneficiary."""
    pass


class ClockError(VMExecutionError):
    """Raised when a clock is moved backwards or returns a non-integer time."""
    pass


__all__ = [
    "VMExecutionError",
    "InvalidBeneficiary",
    "InvalidDuration",
    "Unauthorized",
    "InsufficientBalance",
    "InsufficientFunds",
    "InsufficientAllowance",
    "InsufficientContractBalance",
    "TransferFailed",
    "InvalidPaymentAmount",
    "InvalidGrantAmount",
    "TierAlreadyExists",
    "TierNotFound",
    "CannotRecoverVestedFunds",
    "ClockError",
]
