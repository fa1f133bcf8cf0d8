"""
Reverse Core Module

Core functionality for REV distribution including:
- Contract models (ERC20 ledger, vesting wallet, inner seller)
- Atomic execution and revert semantics
- Clock and access control primitives
- Configuration and structured logging
"""

__all__ = []
