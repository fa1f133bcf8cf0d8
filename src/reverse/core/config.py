"""
Reverse Configuration

Settings are read from ``REV_*`` environment variables at import time.
Malformed values raise ``ConfigurationError`` immediately.
"""

from __future__ import annotations

import logging
import os
from enum import Enum

logger = logging.getLogger(__name__)


class NetworkType(Enum):
    TESTNET = "testnet"
    MAINNET = "mainnet"


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _get_int(env_var: str, default: int, minimum: int = 0) -> int:
    """Read an integer setting, rejecting malformed or out-of-range values."""
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{env_var} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ConfigurationError(f"{env_var} must be >= {minimum}, got {value}")
    return value


def _get_network(env_var: str = "REV_NETWORK") -> NetworkType:
    raw = os.getenv(env_var, "testnet").strip().lower()
    try:
        return NetworkType(raw)
    except ValueError as exc:
        raise ConfigurationError(
            f"{env_var} must be one of {[n.value for n in NetworkType]}, got {raw!r}"
        ) from exc


# Get network type from environment variable
NETWORK = _get_network()  # Default to testnet for safety
ENVIRONMENT = os.getenv("REV_ENVIRONMENT", "development" if NETWORK is NetworkType.TESTNET else "production")

LOG_LEVEL = os.getenv("REV_LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("REV_LOG_FILE", "").strip() or None

# Token parameters (whole tokens; scaled by decimals at deployment)
TOKEN_NAME = os.getenv("REV_TOKEN_NAME", "Reverse")
TOKEN_SYMBOL = os.getenv("REV_TOKEN_SYMBOL", "REV")
INITIAL_SUPPLY = _get_int("REV_INITIAL_SUPPLY", 200_000_000, minimum=1)
TOKEN_DECIMALS = _get_int("REV_DECIMALS", 18)
PAYMENT_DECIMALS = _get_int("REV_PAYMENT_DECIMALS", 6)

# REV moved into the inner seller at deployment
SELLER_FUNDING = _get_int("REV_SELLER_FUNDING", 1_000_000)

# Inner sale tiers shipped with the seller: USDT paid -> REV granted (whole tokens)
DEFAULT_PRICE_TIERS: dict[int, int] = {
    3_000: 5_000,
    10_000: 18_000,
    50_000: 100_000,
}

# Vesting cohort profiles: (start offset from deployment, duration) in seconds
DAY = 24 * 60 * 60
YEAR = 365 * DAY
VESTING_PROFILES: dict[str, tuple[int, int]] = {
    "two_year_lock": (2 * YEAR, 1),
    "cliff_6m_1y": (180 * DAY, YEAR),
    "six_month": (0, 180 * DAY),
}
# Whole REV allocated per year of vesting duration (cliff-only locks get one year's worth)
VESTING_TOKENS_PER_YEAR = _get_int("REV_VESTING_TOKENS_PER_YEAR", 70_000_000)

if TOKEN_DECIMALS > 18:
    raise ConfigurationError(f"REV_DECIMALS must be <= 18, got {TOKEN_DECIMALS}")
if NETWORK is NetworkType.MAINNET and ENVIRONMENT != "production":
    logger.warning(
        "Mainnet selected with non-production environment %s",
        ENVIRONMENT,
        extra={"event": "config.environment_mismatch", "environment": ENVIRONMENT},
    )
