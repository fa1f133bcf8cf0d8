"""
REV distribution contracts.

This module provides the in-memory contract models:
- ERC20: Fungible token ledger (REV and the mock USDT payment token)
- VestingWallet: Linear single-beneficiary vesting
- InnerSeller: Fixed-tier USDT-for-REV exchange
- Access helpers shared by all privileged operations
"""

from .access import ZERO_ADDRESS, is_owner, require_owner
from .erc20 import ERC20Token, TokenEvent, TokenLedger, create_mock_stablecoin, create_reverse_token
from .inner_seller import InnerSeller, PriceTierTable, SellerEvent
from .vesting import VestingEvent, VestingPhase, VestingWallet

__all__ = [
    # Ledger
    "ERC20Token",
    "TokenEvent",
    "TokenLedger",
    "create_reverse_token",
    "create_mock_stablecoin",
    # Vesting
    "VestingWallet",
    "VestingEvent",
    "VestingPhase",
    # Inner sale
    "InnerSeller",
    "PriceTierTable",
    "SellerEvent",
    # Access
    "ZERO_ADDRESS",
    "is_owner",
    "require_owner",
]
