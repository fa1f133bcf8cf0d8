"""
Caller authorization for contract operations.

Privileged calls compare the acting identity with the identity stored on the
contract. Addresses are compared case-insensitively.
"""

from __future__ import annotations

import hashlib
import logging
import secrets

from ..vm.exceptions import Unauthorized

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x" + "0" * 40


def normalize_address(address: str) -> str:
    """Normalize address to lowercase."""
    return address.lower()


def is_zero_address(address: str | None) -> bool:
    """True for empty values and the all-zero address."""
    return not address or normalize_address(address) == ZERO_ADDRESS


def derive_address(*parts: object) -> str:
    """Generate a fresh contract address from deployment parameters."""
    seed = ":".join(str(part) for part in parts) + secrets.token_hex(16)
    addr_hash = hashlib.sha3_256(seed.encode()).digest()
    return f"0x{addr_hash[-20:].hex()}"


def is_owner(caller: str, owner: str) -> bool:
    """Return True when ``caller`` is the stored authorized identity."""
    if not caller or not owner:
        return False
    return normalize_address(caller) == normalize_address(owner)


def require_owner(caller: str, owner: str, message: str = "Ownable: caller is not the owner") -> None:
    """
    Raise ``Unauthorized`` unless ``caller`` is ``owner``.

    Raises:
        Unauthorized: If the caller is not the authorized identity
    """
    if not is_owner(caller, owner):
        logger.warning(
            "Access denied",
            extra={
                "event": "access.denied",
                "caller": (caller or "")[:10],
                "required": (owner or "")[:10],
            }
        )
        raise Unauthorized(message, {"caller": caller})
