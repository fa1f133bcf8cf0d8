"""
Fixed-tier REV inner sale.

Buyers pay an exact, registered USDT amount and receive the REV amount that
tier grants. Payment goes straight to the receiver address; REV comes out of
the seller's own holdings. Both legs of a purchase commit together or not at
all.

Price tiers are managed by the owner, who can also sweep either token back
out of the seller.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping

from ..vm.exceptions import (
    InsufficientAllowance,
    InsufficientBalance,
    InsufficientContractBalance,
    InvalidGrantAmount,
    InvalidPaymentAmount,
    TierAlreadyExists,
    TierNotFound,
    TransferFailed,
    VMExecutionError,
)
from ..vm.execution import atomic
from .access import derive_address, is_zero_address, normalize_address, require_owner
from .erc20 import TokenLedger

logger = logging.getLogger(__name__)


@dataclass
class SellerEvent:
    """Notification emitted by the inner seller."""

    event_type: str  # "PriceTierAdded", "PriceTierRemoved" or "TokensPurchased"
    args: dict[str, Any]
    timestamp: float = field(default_factory=time.time)


class PriceTierTable:
    """
    Payment amount -> grant amount mapping with an enumerable index.

    The mapping and the index are only ever changed together, so the index
    always holds exactly the registered payment amounts, each once.
    """

    def __init__(self) -> None:
        self._tiers: dict[int, int] = {}
        self._index: list[int] = []
        self._positions: dict[int, int] = {}

    def __contains__(self, payment_amount: object) -> bool:
        return self._tiers.get(payment_amount, 0) != 0  # type: ignore[arg-type]

    def __len__(self) -> int:
        return len(self._index)

    def __iter__(self) -> Iterator[int]:
        return iter(list(self._index))

    def get(self, payment_amount: int) -> int:
        """Grant amount for ``payment_amount``; 0 when not registered."""
        return self._tiers.get(payment_amount, 0)

    def add(self, payment_amount: int, grant_amount: int) -> None:
        if payment_amount in self:
            raise TierAlreadyExists(
                "Price tier already exists", {"payment_amount": payment_amount}
            )
        self._tiers[payment_amount] = grant_amount
        self._positions[payment_amount] = len(self._index)
        self._index.append(payment_amount)

    def remove(self, payment_amount: int) -> int:
        """Unregister ``payment_amount`` and return the grant it had."""
        if payment_amount not in self:
            raise TierNotFound("Price tier does not exist", {"payment_amount": payment_amount})

        grant_amount = self._tiers.pop(payment_amount)
        # swap with last and pop
        position = self._positions.pop(payment_amount)
        last = self._index.pop()
        if last != payment_amount:
            self._index[position] = last
            self._positions[last] = position
        return grant_amount

    def items(self) -> list[tuple[int, int]]:
        return [(payment, self._tiers[payment]) for payment in self._index]

    def snapshot(self) -> dict[str, Any]:
        return {"tiers": dict(self._tiers), "index": list(self._index)}

    def restore(self, snapshot: dict[str, Any]) -> None:
        self._tiers = dict(snapshot["tiers"])
        self._index = list(snapshot["index"])
        self._positions = {payment: i for i, payment in enumerate(self._index)}


class InnerSeller:
    """
    Tiered USDT-for-REV exchange.

    Args:
        grant_token: Token handed to buyers (REV)
        payment_token: Token buyers pay with (USDT)
        receiver: Address that collects payments
        owner: Identity allowed to manage tiers and withdraw
        initial_tiers: Optional payment -> grant amounts registered at deployment
        address: Contract address (generated when empty)
    """

    def __init__(
        self,
        grant_token: TokenLedger,
        payment_token: TokenLedger,
        receiver: str,
        owner: str,
        initial_tiers: Mapping[int, int] | None = None,
        address: str = "",
    ) -> None:
        if is_zero_address(receiver):
            raise VMExecutionError("Receiver cannot be zero address")
        if is_zero_address(owner):
            raise VMExecutionError("Owner cannot be zero address")

        self.grant_token = grant_token
        self.payment_token = payment_token
        self.receiver = normalize_address(receiver)
        self.owner = normalize_address(owner)
        self.address = normalize_address(address or derive_address("seller", grant_token.address, receiver))
        self._tiers = PriceTierTable()
        self.events: list[SellerEvent] = []

        for payment_amount, grant_amount in (initial_tiers or {}).items():
            self._register_tier(payment_amount, grant_amount)

        logger.info(
            "Inner seller deployed",
            extra={
                "event": "seller.created",
                "address": self.address,
                "grant_token": grant_token.symbol,
                "payment_token": payment_token.symbol,
                "tiers": len(self._tiers),
            }
        )

    # ==================== Tier Management ====================

    def add_price_tier(self, caller: str, payment_amount: int, grant_amount: int) -> None:
        """
        Register a new price tier (owner only).

        Raises:
            Unauthorized: If caller is not the owner
            InvalidPaymentAmount / InvalidGrantAmount: If either amount is zero
            TierAlreadyExists: If ``payment_amount`` is already registered
        """
        require_owner(caller, self.owner)
        with atomic(self):
            self._register_tier(payment_amount, grant_amount)

    def remove_price_tier(self, caller: str, payment_amount: int) -> None:
        """
        Unregister a price tier (owner only).

        Raises:
            Unauthorized: If caller is not the owner
            TierNotFound: If ``payment_amount`` is not registered
        """
        require_owner(caller, self.owner)
        with atomic(self):
            self._tiers.remove(payment_amount)
            self._emit("PriceTierRemoved", payment_amount=payment_amount)

        logger.info(
            "Price tier removed",
            extra={"event": "seller.tier_removed", "payment_amount": payment_amount}
        )

    def is_valid_payment_amount(self, payment_amount: int) -> bool:
        return payment_amount in self._tiers

    def get_rev_amount(self, payment_amount: int) -> int:
        """
        Grant amount for a registered payment amount.

        Raises:
            InvalidPaymentAmount: If ``payment_amount`` is not registered
        """
        grant_amount = self._tiers.get(payment_amount)
        if grant_amount == 0:
            raise InvalidPaymentAmount("Invalid payment amount", {"payment_amount": payment_amount})
        return grant_amount

    def get_price_tiers(self) -> list[tuple[int, int]]:
        """All registered (payment, grant) pairs."""
        return self._tiers.items()

    # ==================== Purchasing ====================

    def buy_tokens(self, buyer: str, payment_amount: int) -> int:
        """
        Exchange exactly ``payment_amount`` USDT for the tier's REV amount.

        Checks run in a fixed order: tier, buyer balance, allowance, seller
        liquidity.

        Returns:
            REV amount delivered to the buyer

        Raises:
            InvalidPaymentAmount: If no tier matches ``payment_amount``
            InsufficientBalance: If the buyer holds too little USDT
            InsufficientAllowance: If the seller is not approved for the amount
            InsufficientContractBalance: If the seller holds too little REV
            TransferFailed: If either ledger leg is rejected
        """
        if not self.is_valid_payment_amount(payment_amount):
            raise InvalidPaymentAmount("Invalid payment amount", {"payment_amount": payment_amount})
        grant_amount = self._tiers.get(payment_amount)
        buyer_norm = normalize_address(buyer)
        pay_symbol = self.payment_token.symbol
        grant_symbol = self.grant_token.symbol

        buyer_balance = self.payment_token.balance_of(buyer_norm)
        if buyer_balance < payment_amount:
            raise InsufficientBalance(
                f"Insufficient {pay_symbol} balance",
                {"buyer": buyer_norm, "balance": buyer_balance, "required": payment_amount},
            )

        allowance = self.payment_token.allowance(buyer_norm, self.address)
        if allowance < payment_amount:
            raise InsufficientAllowance(
                f"Insufficient {pay_symbol} allowance",
                {"buyer": buyer_norm, "allowance": allowance, "required": payment_amount},
            )

        liquidity = self.grant_token.balance_of(self.address)
        if liquidity < grant_amount:
            raise InsufficientContractBalance(
                f"Insufficient {grant_symbol} balance in contract",
                {"available": liquidity, "required": grant_amount},
            )

        with atomic(self, self.payment_token, self.grant_token):
            try:
                self.payment_token.transfer_from(self.address, buyer_norm, self.receiver, payment_amount)
                self.grant_token.transfer(self.address, buyer_norm, grant_amount)
            except (InsufficientBalance, InsufficientAllowance) as exc:
                raise TransferFailed(f"Purchase transfer failed: {exc.message}") from exc
            self._emit(
                "TokensPurchased",
                buyer=buyer_norm,
                usdt_amount=payment_amount,
                rev_amount=grant_amount,
            )

        logger.info(
            "Tokens purchased",
            extra={
                "event": "seller.purchase",
                "buyer": buyer_norm[:10],
                "payment_amount": payment_amount,
                "grant_amount": grant_amount,
            }
        )
        return grant_amount

    # ==================== Treasury ====================

    def withdraw_rev(self, caller: str, amount: int) -> None:
        """Send ``amount`` REV held by the seller to the owner (owner only)."""
        self._withdraw(caller, self.grant_token, amount)

    def withdraw_usdt(self, caller: str, amount: int) -> None:
        """Send ``amount`` USDT held by the seller to the owner (owner only)."""
        self._withdraw(caller, self.payment_token, amount)

    withdraw_grant_asset = withdraw_rev
    withdraw_payment_asset = withdraw_usdt

    def receive(self, sender: str, value: int) -> None:
        """The seller has no payable entry point; native value is always rejected."""
        raise VMExecutionError(
            "InnerSeller: contract does not accept native value",
            {"sender": sender, "value": value},
        )

    # ==================== Atomic Execution ====================

    def snapshot(self) -> dict[str, Any]:
        return {"tiers": self._tiers.snapshot(), "events": list(self.events)}

    def restore(self, snapshot: dict[str, Any]) -> None:
        self._tiers.restore(snapshot["tiers"])
        self.events = list(snapshot["events"])

    # ==================== Helpers ====================

    def _register_tier(self, payment_amount: int, grant_amount: int) -> None:
        if payment_amount <= 0:
            raise InvalidPaymentAmount("Payment amount must be greater than zero")
        if grant_amount <= 0:
            raise InvalidGrantAmount("REV amount must be greater than zero")
        self._tiers.add(payment_amount, grant_amount)
        self._emit("PriceTierAdded", payment_amount=payment_amount, grant_amount=grant_amount)

        logger.info(
            "Price tier added",
            extra={
                "event": "seller.tier_added",
                "payment_amount": payment_amount,
                "grant_amount": grant_amount,
            }
        )

    def _withdraw(self, caller: str, token: TokenLedger, amount: int) -> None:
        require_owner(caller, self.owner)
        with atomic(self, token):
            try:
                token.transfer(self.address, self.owner, amount)
            except VMExecutionError as exc:
                raise TransferFailed(
                    f"Withdrawal of {amount} {token.symbol} failed: {exc.message}",
                    {"token": token.symbol, "amount": amount},
                ) from exc

        logger.info(
            "Seller withdrawal",
            extra={"event": "seller.withdraw", "token": token.symbol, "amount": amount}
        )

    def _emit(self, event_type: str, **args: Any) -> None:
        self.events.append(SellerEvent(event_type=event_type, args=args))

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "owner": self.owner,
            "receiver": self.receiver,
            "grant_token": self.grant_token.address,
            "payment_token": self.payment_token.address,
            "tiers": [{"payment": p, "grant": g} for p, g in self.get_price_tiers()],
        }
