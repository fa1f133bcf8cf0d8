"""
ERC20 ledger model used by the distribution contracts.

Provides the fungible-token ledger both the vesting wallet and the inner
seller move value through:
- Basic token operations (transfer, approve, transferFrom)
- Owner minting (mock stablecoin) and holder burning (REV)
- Metadata (name, symbol, decimals)
- Events (Transfer, Approval)
- Snapshot/restore so contract operations can revert atomically

Security features:
- Zero address checks
- Balance underflow prevention
- Allowance validation
"""

from __future__ import annotations

import copy
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from ..vm.exceptions import InsufficientAllowance, InsufficientBalance, VMExecutionError
from .access import ZERO_ADDRESS, derive_address, normalize_address, require_owner

logger = logging.getLogger(__name__)


@runtime_checkable
class TokenLedger(Protocol):
    """
    Ledger operations the distribution contracts depend on.

    Any token object implementing these methods can be vested or sold;
    failures surface as ``InsufficientBalance`` / ``InsufficientAllowance``.
    """

    address: str
    symbol: str
    decimals: int

    def balance_of(self, account: str) -> int: ...

    def allowance(self, owner: str, spender: str) -> int: ...

    def transfer(self, sender: str, recipient: str, amount: int) -> bool: ...

    def transfer_from(self, spender: str, from_addr: str, to_addr: str, amount: int) -> bool: ...

    def snapshot(self) -> dict[str, Any]: ...

    def restore(self, snapshot: dict[str, Any]) -> None: ...


@dataclass
class TokenEvent:
    """Represents an ERC20 event."""

    event_type: str  # "Transfer" or "Approval"
    from_address: str
    to_address: str
    value: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class ERC20Token:
    """
    In-memory ERC20 token.

    Used for the REV token (fixed supply minted to the deployer, burnable)
    and for the mock USDT payment token (owner-mintable). All balances and
    allowances are held in dictionaries keyed by lowercase address.
    """

    # Token metadata
    name: str
    symbol: str
    decimals: int = 18
    total_supply: int = 0

    # Contract address
    address: str = ""

    # Owner (for minting permissions)
    owner: str = ""

    # State
    balances: dict[str, int] = field(default_factory=dict)
    allowances: dict[str, dict[str, int]] = field(default_factory=dict)

    # Event log
    events: list[TokenEvent] = field(default_factory=list)

    # Supply cap (0 = unlimited)
    max_supply: int = 0

    # Constants
    UINT256_MAX: int = 2**256 - 1

    def __post_init__(self) -> None:
        if not self.address:
            self.address = derive_address(self.name, self.symbol, self.owner)
        self.address = normalize_address(self.address)
        self.owner = normalize_address(self.owner)

    # ==================== View Functions ====================

    def balance_of(self, account: str) -> int:
        """
        Get the token balance of an account.

        Args:
            account: Address to check

        Returns:
            Token balance
        """
        return self.balances.get(normalize_address(account), 0)

    def allowance(self, owner: str, spender: str) -> int:
        """
        Get the allowance granted by owner to spender.

        Args:
            owner: Token owner address
            spender: Spender address

        Returns:
            Approved amount
        """
        owner_norm = normalize_address(owner)
        spender_norm = normalize_address(spender)
        return self.allowances.get(owner_norm, {}).get(spender_norm, 0)

    def to_units(self, whole_tokens: int) -> int:
        """Scale a whole-token amount by this token's decimals."""
        return int(whole_tokens) * 10**self.decimals

    # ==================== State-Changing Functions ====================

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """
        Transfer tokens from sender to recipient.

        Args:
            sender: Address sending tokens (msg.sender)
            recipient: Address receiving tokens
            amount: Amount to transfer

        Returns:
            True if successful

        Raises:
            InsufficientBalance: If sender balance is too low
            VMExecutionError: If the recipient or amount is invalid
        """
        sender_norm = normalize_address(sender)
        recipient_norm = normalize_address(recipient)

        self._validate_address(recipient_norm, "recipient")
        self._validate_amount(amount)

        sender_balance = self.balances.get(sender_norm, 0)
        if sender_balance < amount:
            raise InsufficientBalance(
                f"ERC20: transfer amount exceeds balance ({amount} > {sender_balance})",
                {"token": self.symbol, "holder": sender_norm, "balance": sender_balance, "amount": amount},
            )

        self._move(sender_norm, recipient_norm, amount)

        logger.debug(
            "ERC20 transfer",
            extra={
                "event": "erc20.transfer",
                "token": self.symbol,
                "from": sender_norm[:10],
                "to": recipient_norm[:10],
                "amount": amount,
            }
        )

        return True

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        """
        Approve spender to spend tokens on behalf of owner.

        Args:
            owner: Token owner (msg.sender)
            spender: Address being approved
            amount: Amount to approve

        Returns:
            True if successful
        """
        owner_norm = normalize_address(owner)
        spender_norm = normalize_address(spender)

        self._validate_address(spender_norm, "spender")
        self._validate_amount(amount)

        self.allowances.setdefault(owner_norm, {})[spender_norm] = amount
        self._emit_approval(owner_norm, spender_norm, amount)

        return True

    def transfer_from(
        self, spender: str, from_addr: str, to_addr: str, amount: int
    ) -> bool:
        """
        Transfer tokens using an allowance.

        Args:
            spender: Address executing transfer (msg.sender)
            from_addr: Token owner
            to_addr: Recipient
            amount: Amount to transfer

        Returns:
            True if successful

        Raises:
            InsufficientAllowance: If the spender's allowance is too low
            InsufficientBalance: If the owner's balance is too low
        """
        spender_norm = normalize_address(spender)
        from_norm = normalize_address(from_addr)
        to_norm = normalize_address(to_addr)

        self._validate_address(to_norm, "recipient")
        self._validate_amount(amount)

        current_allowance = self.allowance(from_norm, spender_norm)
        if current_allowance < amount:
            raise InsufficientAllowance(
                f"ERC20: insufficient allowance ({current_allowance} < {amount})",
                {"token": self.symbol, "owner": from_norm, "spender": spender_norm},
            )

        from_balance = self.balances.get(from_norm, 0)
        if from_balance < amount:
            raise InsufficientBalance(
                f"ERC20: transfer amount exceeds balance ({amount} > {from_balance})",
                {"token": self.symbol, "holder": from_norm, "balance": from_balance, "amount": amount},
            )

        # Unlimited approvals are never decremented
        if current_allowance != self.UINT256_MAX:
            self.allowances[from_norm][spender_norm] = current_allowance - amount

        self._move(from_norm, to_norm, amount)

        return True

    def increase_allowance(self, owner: str, spender: str, added_value: int) -> bool:
        """Increase spender's allowance, saturating at uint256 max."""
        new_allowance = min(self.allowance(owner, spender) + added_value, self.UINT256_MAX)
        return self.approve(owner, spender, new_allowance)

    def decrease_allowance(self, owner: str, spender: str, subtracted_value: int) -> bool:
        """
        Decrease spender's allowance.

        Raises:
            VMExecutionError: If decrease exceeds current allowance
        """
        current = self.allowance(owner, spender)
        if subtracted_value > current:
            raise VMExecutionError("ERC20: decreased allowance below zero")

        return self.approve(owner, spender, current - subtracted_value)

    # ==================== Minting & Burning ====================

    def mint(self, minter: str, to: str, amount: int) -> bool:
        """
        Mint new tokens (owner only).

        Raises:
            Unauthorized: If minter is not the owner
            VMExecutionError: If the mint would exceed the supply cap
        """
        require_owner(minter, self.owner, "ERC20: caller is not owner")

        to_norm = normalize_address(to)
        self._validate_address(to_norm, "recipient")
        self._validate_amount(amount)

        if self.max_supply > 0 and self.total_supply + amount > self.max_supply:
            raise VMExecutionError(
                f"ERC20: mint would exceed max supply "
                f"({self.total_supply + amount} > {self.max_supply})"
            )

        self.total_supply += amount
        self.balances[to_norm] = self.balances.get(to_norm, 0) + amount
        self._emit_transfer(ZERO_ADDRESS, to_norm, amount)

        logger.info(
            "ERC20 mint",
            extra={
                "event": "erc20.mint",
                "token": self.symbol,
                "to": to_norm[:10],
                "amount": amount,
                "new_supply": self.total_supply,
            }
        )

        return True

    def burn(self, holder: str, amount: int) -> bool:
        """
        Burn tokens from holder's balance.

        Raises:
            InsufficientBalance: If holder balance is too low
        """
        holder_norm = normalize_address(holder)
        self._validate_amount(amount)

        balance = self.balances.get(holder_norm, 0)
        if balance < amount:
            raise InsufficientBalance(
                f"ERC20: burn amount exceeds balance ({amount} > {balance})"
            )

        self.balances[holder_norm] = balance - amount
        self.total_supply -= amount
        self._emit_transfer(holder_norm, ZERO_ADDRESS, amount)

        logger.info(
            "ERC20 burn",
            extra={
                "event": "erc20.burn",
                "token": self.symbol,
                "from": holder_norm[:10],
                "amount": amount,
                "new_supply": self.total_supply,
            }
        )

        return True

    def burn_from(self, spender: str, from_addr: str, amount: int) -> bool:
        """Burn tokens using allowance."""
        spender_norm = normalize_address(spender)
        from_norm = normalize_address(from_addr)
        self._validate_amount(amount)

        current_allowance = self.allowance(from_norm, spender_norm)
        if current_allowance < amount:
            raise InsufficientAllowance(
                f"ERC20: burn amount exceeds allowance ({amount} > {current_allowance})"
            )

        balance = self.balances.get(from_norm, 0)
        if balance < amount:
            raise InsufficientBalance(
                f"ERC20: burn amount exceeds balance ({amount} > {balance})"
            )

        if current_allowance != self.UINT256_MAX:
            self.allowances[from_norm][spender_norm] = current_allowance - amount

        self.balances[from_norm] = balance - amount
        self.total_supply -= amount
        self._emit_transfer(from_norm, ZERO_ADDRESS, amount)

        return True

    # ==================== Admin Functions ====================

    def transfer_ownership(self, caller: str, new_owner: str) -> bool:
        """Transfer ownership (owner only)."""
        require_owner(caller, self.owner, "ERC20: caller is not owner")
        self._validate_address(normalize_address(new_owner), "new owner")
        self.owner = normalize_address(new_owner)
        return True

    # ==================== Atomic Execution ====================

    def snapshot(self) -> dict[str, Any]:
        """Capture mutable ledger state for rollback."""
        return {
            "total_supply": self.total_supply,
            "owner": self.owner,
            "balances": dict(self.balances),
            "allowances": {k: dict(v) for k, v in self.allowances.items()},
            "events": copy.copy(self.events),
        }

    def restore(self, snapshot: dict[str, Any]) -> None:
        """Restore ledger state captured by ``snapshot``."""
        self.total_supply = snapshot["total_supply"]
        self.owner = snapshot["owner"]
        self.balances = dict(snapshot["balances"])
        self.allowances = {k: dict(v) for k, v in snapshot["allowances"].items()}
        self.events = list(snapshot["events"])

    # ==================== Helpers ====================

    def _move(self, from_norm: str, to_norm: str, amount: int) -> None:
        self.balances[from_norm] = self.balances.get(from_norm, 0) - amount
        self.balances[to_norm] = self.balances.get(to_norm, 0) + amount
        self._emit_transfer(from_norm, to_norm, amount)

    def _validate_address(self, address: str, field: str) -> None:
        """Validate address is not zero."""
        if address == ZERO_ADDRESS or not address:
            raise VMExecutionError(f"ERC20: {field} is zero address")

    def _validate_amount(self, amount: int) -> None:
        """Validate amount is valid."""
        if amount < 0:
            raise VMExecutionError("ERC20: amount cannot be negative")
        if amount > self.UINT256_MAX:
            raise VMExecutionError("ERC20: amount exceeds uint256")

    def _emit_transfer(self, from_addr: str, to_addr: str, amount: int) -> None:
        self.events.append(
            TokenEvent(
                event_type="Transfer",
                from_address=from_addr,
                to_address=to_addr,
                value=amount,
            )
        )

    def _emit_approval(self, owner: str, spender: str, amount: int) -> None:
        self.events.append(
            TokenEvent(
                event_type="Approval",
                from_address=owner,
                to_address=spender,
                value=amount,
            )
        )

    # ==================== Serialization ====================

    def to_dict(self) -> dict[str, Any]:
        """Serialize token state to dictionary."""
        return {
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "total_supply": self.total_supply,
            "address": self.address,
            "owner": self.owner,
            "balances": dict(self.balances),
            "allowances": {k: dict(v) for k, v in self.allowances.items()},
            "max_supply": self.max_supply,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ERC20Token":
        """Deserialize token state from dictionary."""
        token = cls(
            name=data["name"],
            symbol=data["symbol"],
            decimals=data.get("decimals", 18),
            total_supply=data.get("total_supply", 0),
            address=data.get("address", ""),
            owner=data.get("owner", ""),
            max_supply=data.get("max_supply", 0),
        )
        token.balances = dict(data.get("balances", {}))
        token.allowances = {
            k: dict(v) for k, v in data.get("allowances", {}).items()
        }
        return token


def create_reverse_token(
    deployer: str,
    name: str = "Reverse",
    symbol: str = "REV",
    initial_supply: int = 200_000_000,
    decimals: int = 18,
) -> ERC20Token:
    """
    Deploy the REV token.

    ``initial_supply`` is given in whole tokens; the full supply, scaled by
    ``decimals``, is minted to the deployer and the cap is fixed there.

    Raises:
        VMExecutionError: If metadata or supply is invalid
    """
    if not name:
        raise VMExecutionError("ERC20: name cannot be empty")
    if not symbol:
        raise VMExecutionError("ERC20: symbol cannot be empty")
    if decimals < 0 or decimals > 18:
        raise VMExecutionError("ERC20: invalid decimals")
    if initial_supply <= 0:
        raise VMExecutionError("ERC20: invalid initial supply")

    supply = initial_supply * 10**decimals
    token = ERC20Token(
        name=name,
        symbol=symbol,
        decimals=decimals,
        owner=deployer,
        max_supply=supply,
    )
    token.mint(deployer, deployer, supply)

    logger.info(
        "REV token deployed",
        extra={
            "event": "erc20.created",
            "address": token.address,
            "symbol": symbol,
            "total_supply": token.total_supply,
            "deployer": deployer[:10],
        }
    )
    return token


def create_mock_stablecoin(
    owner: str,
    name: str = "Tether USD",
    symbol: str = "USDT",
    decimals: int = 6,
) -> ERC20Token:
    """Deploy an owner-mintable, uncapped stablecoin used as the payment token."""
    token = ERC20Token(name=name, symbol=symbol, decimals=decimals, owner=owner)
    logger.info(
        "Mock stablecoin deployed",
        extra={"event": "erc20.created", "address": token.address, "symbol": symbol}
    )
    return token
