from types import SimpleNamespace

import pytest

from reverse.core.clock import ManualClock
from reverse.core.contracts.erc20 import create_mock_stablecoin, create_reverse_token
from reverse.core.contracts.inner_seller import InnerSeller
from reverse.core.contracts.vesting import VestingWallet

GENESIS = 1_700_000_000
VESTING_DELAY = 60
VESTING_DURATION = 1000

REV = 10**18
USDT = 10**6

DEFAULT_TIERS = {
    3_000 * USDT: 5_000 * REV,
    10_000 * USDT: 18_000 * REV,
    50_000 * USDT: 100_000 * REV,
}


@pytest.fixture
def accounts():
    """Distinct lowercase addresses for each role."""
    return SimpleNamespace(
        deployer="0x" + "d" * 40,
        beneficiary="0x" + "b" * 40,
        other="0x" + "e" * 40,
        buyer="0x" + "f" * 40,
        receiver="0x" + "9" * 40,
        new_owner="0x" + "8" * 40,
    )


@pytest.fixture
def clock():
    return ManualClock(GENESIS)


@pytest.fixture
def rev(accounts):
    return create_reverse_token(accounts.deployer)


@pytest.fixture
def usdt(accounts):
    token = create_mock_stablecoin(accounts.deployer)
    token.mint(accounts.deployer, accounts.buyer, 100_000_000 * USDT)
    return token


@pytest.fixture
def vesting_amount():
    return 1_000_000 * REV


@pytest.fixture
def start_time():
    return GENESIS + VESTING_DELAY


@pytest.fixture
def wallet(accounts, clock, rev, start_time, vesting_amount):
    """Vesting wallet funded with one million REV, starting a minute from now."""
    vesting = VestingWallet(
        beneficiary=accounts.beneficiary,
        start=start_time,
        duration=VESTING_DURATION,
        controller=accounts.deployer,
        vesting_assets=[rev.address],
        time_provider=clock,
    )
    rev.transfer(accounts.deployer, vesting.address, vesting_amount)
    return vesting


@pytest.fixture
def seller(accounts, rev, usdt):
    """Seller with the default tiers, 50M REV of liquidity and a 50k USDT approval from the buyer."""
    contract = InnerSeller(
        grant_token=rev,
        payment_token=usdt,
        receiver=accounts.receiver,
        owner=accounts.deployer,
        initial_tiers=DEFAULT_TIERS,
    )
    rev.transfer(accounts.deployer, contract.address, 50_000_000 * REV)
    usdt.approve(accounts.buyer, contract.address, 50_000 * USDT)
    return contract
