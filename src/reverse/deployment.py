"""
Simulated REV deployment.

Builds the full distribution setup in memory: the REV token, a mock USDT
payment token, one vesting wallet per beneficiary, and the inner seller
funded with REV. Plans come from YAML files or plain dictionaries.

Example plan::

    deployer: "0x1111111111111111111111111111111111111111"
    token: {name: Reverse, symbol: REV, initial_supply: 200000000, decimals: 18}
    payment_token: {symbol: USDT, decimals: 6, mint: 1000000}
    seller:
      receiver: "0x45b0deb4e7f4b4a3b31321d44a7de4d0406a45cf"
      funding: 1000000
      tiers: {3000: 5000, 10000: 18000, 50000: 100000}
    vesting:
      - {beneficiary: "0x31905ee8d57c05ec7e413fa327a63490dce0e4d6", profile: six_month}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .core import config
from .core.clock import Clock, ManualClock, read_clock
from .core.config import ConfigurationError
from .core.contracts.erc20 import ERC20Token, create_mock_stablecoin, create_reverse_token
from .core.contracts.inner_seller import InnerSeller
from .core.contracts.vesting import VestingWallet
from .core.vm.execution import atomic

logger = logging.getLogger(__name__)


@dataclass
class VestingGrant:
    """One beneficiary's allocation; ``amount`` is whole REV."""

    beneficiary: str
    profile: str = "six_month"
    amount: int | None = None

    def allocation(self) -> int:
        if self.amount is not None:
            return self.amount
        _, duration = config.VESTING_PROFILES[self.profile]
        if duration <= 1:
            # cliff-only locks vest a full year's allocation at once
            return config.VESTING_TOKENS_PER_YEAR
        return config.VESTING_TOKENS_PER_YEAR * duration // config.YEAR


@dataclass
class DeploymentPlan:
    """Everything needed to bootstrap the distribution contracts."""

    deployer: str
    usdt_receiver: str
    token_name: str = config.TOKEN_NAME
    token_symbol: str = config.TOKEN_SYMBOL
    initial_supply: int = config.INITIAL_SUPPLY
    decimals: int = config.TOKEN_DECIMALS
    payment_symbol: str = "USDT"
    payment_decimals: int = config.PAYMENT_DECIMALS
    payment_mint: int = 1_000_000
    seller_funding: int = config.SELLER_FUNDING
    price_tiers: dict[int, int] = field(default_factory=lambda: dict(config.DEFAULT_PRICE_TIERS))
    vesting: list[VestingGrant] = field(default_factory=list)

    def validate(self) -> None:
        if not self.deployer:
            raise ConfigurationError("Deployment plan requires a deployer address")
        if not self.usdt_receiver:
            raise ConfigurationError("Deployment plan requires a seller receiver address")
        for grant in self.vesting:
            if grant.profile not in config.VESTING_PROFILES:
                raise ConfigurationError(
                    f"Unknown vesting profile {grant.profile!r}; "
                    f"expected one of {sorted(config.VESTING_PROFILES)}"
                )
            if grant.amount is not None and grant.amount <= 0:
                raise ConfigurationError(f"Vesting amount for {grant.beneficiary} must be positive")
        total = self.seller_funding + sum(grant.allocation() for grant in self.vesting)
        if total > self.initial_supply:
            raise ConfigurationError(
                f"Plan allocates {total} {self.token_symbol} but supply is {self.initial_supply}"
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeploymentPlan":
        if not isinstance(data, dict):
            raise ConfigurationError("Deployment plan must be a mapping")
        token = data.get("token") or {}
        payment = data.get("payment_token") or {}
        seller = data.get("seller") or {}
        tiers = seller.get("tiers")
        try:
            plan = cls(
                deployer=str(data.get("deployer", "")),
                usdt_receiver=str(seller.get("receiver", "")),
                token_name=token.get("name", config.TOKEN_NAME),
                token_symbol=token.get("symbol", config.TOKEN_SYMBOL),
                initial_supply=int(token.get("initial_supply", config.INITIAL_SUPPLY)),
                decimals=int(token.get("decimals", config.TOKEN_DECIMALS)),
                payment_symbol=payment.get("symbol", "USDT"),
                payment_decimals=int(payment.get("decimals", config.PAYMENT_DECIMALS)),
                payment_mint=int(payment.get("mint", 1_000_000)),
                seller_funding=int(seller.get("funding", config.SELLER_FUNDING)),
                price_tiers=(
                    {int(k): int(v) for k, v in tiers.items()}
                    if tiers is not None else dict(config.DEFAULT_PRICE_TIERS)
                ),
                vesting=[
                    VestingGrant(
                        beneficiary=str(entry["beneficiary"]),
                        profile=entry.get("profile", "six_month"),
                        amount=int(entry["amount"]) if entry.get("amount") is not None else None,
                    )
                    for entry in data.get("vesting") or []
                ],
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise ConfigurationError(f"Malformed deployment plan: {exc}") from exc
        plan.validate()
        return plan

    @classmethod
    def from_yaml(cls, path: Path | str) -> "DeploymentPlan":
        path = Path(path)
        with path.open("r", encoding="utf-8") as handle:
            try:
                data = yaml.safe_load(handle) or {}
            except yaml.YAMLError as exc:
                raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc
        return cls.from_dict(data)


@dataclass
class Deployment:
    """Contracts produced by ``deploy``."""

    plan: DeploymentPlan
    clock: Clock
    rev: ERC20Token
    usdt: ERC20Token
    seller: InnerSeller
    wallets: list[VestingWallet] = field(default_factory=list)

    def summary(self) -> dict[str, Any]:
        return {
            "deployed_at": read_clock(self.clock),
            "rev": {
                "address": self.rev.address,
                "symbol": self.rev.symbol,
                "total_supply": self.rev.total_supply,
                "deployer_balance": self.rev.balance_of(self.plan.deployer),
            },
            "usdt": {"address": self.usdt.address, "symbol": self.usdt.symbol},
            "seller": {
                **self.seller.to_dict(),
                "rev_balance": self.rev.balance_of(self.seller.address),
            },
            "vesting": [
                {
                    **wallet.to_dict(),
                    "balance": self.rev.balance_of(wallet.address),
                }
                for wallet in self.wallets
            ],
        }


def deploy(plan: DeploymentPlan, clock: Clock | None = None) -> Deployment:
    """
    Deploy and fund every contract described by ``plan``.

    Raises:
        ConfigurationError: If the plan is invalid
        VMExecutionError: If funding fails; token balances are left untouched
    """
    plan.validate()
    clock = clock or ManualClock()
    now = read_clock(clock)
    deployer = plan.deployer

    rev = create_reverse_token(
        deployer,
        name=plan.token_name,
        symbol=plan.token_symbol,
        initial_supply=plan.initial_supply,
        decimals=plan.decimals,
    )
    usdt = create_mock_stablecoin(deployer, symbol=plan.payment_symbol, decimals=plan.payment_decimals)

    seller = InnerSeller(
        grant_token=rev,
        payment_token=usdt,
        receiver=plan.usdt_receiver,
        owner=deployer,
        initial_tiers={
            usdt.to_units(payment): rev.to_units(grant)
            for payment, grant in plan.price_tiers.items()
        },
    )

    wallets: list[VestingWallet] = []
    with atomic(rev, usdt):
        if plan.payment_mint:
            usdt.mint(deployer, deployer, usdt.to_units(plan.payment_mint))

        for grant in plan.vesting:
            offset, duration = config.VESTING_PROFILES[grant.profile]
            wallet = VestingWallet(
                beneficiary=grant.beneficiary,
                start=now + offset,
                duration=duration,
                controller=deployer,
                vesting_assets=[rev.address],
                time_provider=clock,
            )
            rev.transfer(deployer, wallet.address, rev.to_units(grant.allocation()))
            wallets.append(wallet)

        rev.transfer(deployer, seller.address, rev.to_units(plan.seller_funding))

    logger.info(
        "Deployment completed",
        extra={
            "event": "deployment.completed",
            "rev": rev.address,
            "seller": seller.address,
            "vesting_wallets": len(wallets),
        }
    )
    return Deployment(plan=plan, clock=clock, rev=rev, usdt=usdt, seller=seller, wallets=wallets)
