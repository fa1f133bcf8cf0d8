"""
Reverse - REV token distribution toolkit

In-memory contract models for distributing the fixed-supply REV token.

Main Components:
- Vesting: Linear vesting wallet with controller force-release and surplus recovery
- Inner Seller: Fixed-tier USDT-for-REV exchange
- Ledger: ERC20 token model used for REV and the payment stablecoin
- Deployment: Simulated bootstrap of tokens, vesting cohorts and seller
"""

__version__ = "0.1.0"
__author__ = "Reverse Development Team"

__all__ = []
