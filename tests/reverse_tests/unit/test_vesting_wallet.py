"""
Unit tests for VestingWallet.

Coverage targets:
- Construction validation (beneficiary, duration)
- Linear schedule before, during and after the vesting window
- Beneficiary release, controller force-release and their authorization
- Pool re-basing on deposits
- Surplus recovery never touching owed balance
- All-or-nothing behaviour when the ledger rejects a transfer
"""

import pytest

from reverse.core.contracts.access import ZERO_ADDRESS
from reverse.core.contracts.erc20 import ERC20Token
from reverse.core.contracts.vesting import VestingPhase, VestingWallet
from reverse.core.vm.exceptions import (
    CannotRecoverVestedFunds,
    InsufficientBalance,
    InvalidBeneficiary,
    InvalidDuration,
    TransferFailed,
    Unauthorized,
)

REV = 10**18
DURATION = 1000


class FrozenToken(ERC20Token):
    """Ledger whose outgoing transfers always fail."""

    def transfer(self, sender, recipient, amount):
        raise InsufficientBalance("ledger frozen")


class TestConstructor:
    def test_sets_the_beneficiary_correctly(self, wallet, accounts):
        assert wallet.owner == accounts.beneficiary
        assert wallet.beneficiary == accounts.beneficiary
        assert wallet.controller == accounts.deployer

    def test_sets_the_schedule_correctly(self, wallet, start_time):
        assert wallet.start == start_time
        assert wallet.duration == DURATION
        assert wallet.end == start_time + DURATION

    def test_rejects_zero_address_beneficiary(self, accounts, start_time):
        with pytest.raises(InvalidBeneficiary, match="Beneficiary cannot be zero address"):
            VestingWallet(ZERO_ADDRESS, start_time, DURATION, controller=accounts.deployer)

    def test_rejects_empty_beneficiary(self, accounts, start_time):
        with pytest.raises(InvalidBeneficiary):
            VestingWallet("", start_time, DURATION, controller=accounts.deployer)

    @pytest.mark.parametrize("duration", [0, -1])
    def test_rejects_non_positive_duration(self, accounts, start_time, duration):
        with pytest.raises(InvalidDuration):
            VestingWallet(accounts.beneficiary, start_time, duration, controller=accounts.deployer)


class TestVestingSchedule:
    def test_should_not_vest_any_tokens_before_start_time(self, wallet, rev, start_time):
        assert wallet.vested_amount(rev, start_time - 100) == 0
        assert wallet.vested_amount(rev, start_time - 1) == 0

    def test_should_vest_tokens_linearly(self, wallet, rev, start_time, vesting_amount):
        for pct in (25, 50, 75):
            checkpoint = start_time + DURATION * pct // 100
            assert wallet.vested_amount(rev, checkpoint) == vesting_amount * pct // 100

    def test_should_vest_all_tokens_after_duration(self, wallet, rev, start_time, vesting_amount):
        assert wallet.vested_amount(rev, start_time + DURATION) == vesting_amount
        assert wallet.vested_amount(rev, start_time + DURATION + 1) == vesting_amount

    def test_million_unit_pool_midpoint(self, accounts, clock, start_time):
        token = ERC20Token(name="Reverse", symbol="REV", decimals=0, owner=accounts.deployer)
        vesting = VestingWallet(accounts.beneficiary, start_time, DURATION, accounts.deployer, time_provider=clock)
        token.mint(accounts.deployer, vesting.address, 1_000_000)

        assert vesting.vested_amount(token, start_time + 500) == 500_000
        assert vesting.vested_amount(token, start_time + 1000) == 1_000_000
        assert vesting.vested_amount(token, start_time - 1) == 0

    def test_integer_division_truncates(self, accounts, clock, start_time):
        token = ERC20Token(name="Reverse", symbol="REV", decimals=0, owner=accounts.deployer)
        vesting = VestingWallet(accounts.beneficiary, start_time, 3, accounts.deployer, time_provider=clock)
        token.mint(accounts.deployer, vesting.address, 10)

        assert vesting.vested_amount(token, start_time + 1) == 3
        assert vesting.vested_amount(token, start_time + 2) == 6

    def test_defaults_to_current_time(self, wallet, rev, clock, start_time, vesting_amount):
        clock.increase_to(start_time + DURATION // 4)
        assert wallet.vested_amount(rev) == vesting_amount // 4

    def test_phase_follows_clock(self, wallet, clock, start_time):
        assert wallet.phase() is VestingPhase.PENDING
        clock.increase_to(start_time)
        assert wallet.phase() is VestingPhase.VESTING
        clock.increase_to(start_time + DURATION)
        assert wallet.phase() is VestingPhase.VESTED

    def test_should_track_remaining_vesting_amount_correctly(self, wallet, rev, clock, accounts, start_time, vesting_amount):
        midpoint = start_time + DURATION // 2
        clock.increase_to(midpoint)

        wallet.release(accounts.beneficiary, rev)

        assert wallet.released(rev) == wallet.vested_amount(rev, midpoint)
        assert vesting_amount - wallet.released(rev) == vesting_amount // 2


class TestRelease:
    def test_release_before_start_is_a_noop(self, wallet, rev, accounts, vesting_amount):
        assert wallet.release(accounts.beneficiary, rev) == 0
        assert rev.balance_of(accounts.beneficiary) == 0
        assert rev.balance_of(wallet.address) == vesting_amount
        assert wallet.events == []

    def test_should_release_tokens_after_vesting_has_started(self, wallet, rev, clock, accounts, start_time, vesting_amount):
        clock.increase_to(start_time + DURATION // 2)

        released = wallet.release(accounts.beneficiary, rev)

        assert released == vesting_amount // 2
        assert rev.balance_of(accounts.beneficiary) == vesting_amount // 2
        assert wallet.releasable(rev) == 0
        event = wallet.events[-1]
        assert event.event_type == "ERC20Released"
        assert event.token == rev.address
        assert event.amount == released

    def test_should_release_remaining_tokens_after_vesting_period(self, wallet, rev, clock, accounts, start_time, vesting_amount):
        clock.increase_to(start_time + DURATION // 2)
        wallet.release(accounts.beneficiary, rev)

        clock.increase_to(start_time + DURATION + 10)
        before = rev.balance_of(accounts.beneficiary)
        wallet.release(accounts.beneficiary, rev)

        assert rev.balance_of(accounts.beneficiary) - before == vesting_amount // 2
        assert rev.balance_of(wallet.address) == 0
        assert wallet.released(rev) == vesting_amount

    def test_release_is_idempotent_at_fixed_time(self, wallet, rev, clock, accounts, start_time):
        clock.increase_to(start_time + 300)

        first = wallet.release(accounts.beneficiary, rev)
        second = wallet.release(accounts.beneficiary, rev)

        assert first > 0
        assert second == 0
        assert len(wallet.events) == 1

    def test_only_beneficiary_can_release(self, wallet, rev, clock, accounts, start_time, vesting_amount):
        clock.increase_to(start_time + DURATION // 2)

        for caller in (accounts.other, accounts.deployer):
            with pytest.raises(Unauthorized):
                wallet.release(caller, rev)

        assert wallet.released(rev) == 0
        assert rev.balance_of(wallet.address) == vesting_amount

    def test_beneficiary_match_is_case_insensitive(self, wallet, rev, clock, accounts, start_time):
        clock.increase_to(start_time + DURATION)
        assert wallet.release(accounts.beneficiary.upper().replace("0X", "0x"), rev) > 0

    def test_transfer_failure_leaves_counters_untouched(self, accounts, clock, start_time):
        token = FrozenToken(name="Frozen", symbol="FRZ", owner=accounts.deployer)
        vesting = VestingWallet(accounts.beneficiary, start_time, DURATION, accounts.deployer, time_provider=clock)
        token.mint(accounts.deployer, vesting.address, 1_000 * REV)
        clock.increase_to(start_time + DURATION)

        with pytest.raises(TransferFailed):
            vesting.release(accounts.beneficiary, token)

        assert vesting.released(token) == 0
        assert vesting.events == []
        assert token.balance_of(vesting.address) == 1_000 * REV


class TestPoolRebasing:
    def test_deposit_during_vesting_enlarges_curve(self, wallet, rev, clock, accounts, start_time, vesting_amount):
        clock.increase_to(start_time + DURATION // 2)
        wallet.release(accounts.beneficiary, rev)

        rev.transfer(accounts.deployer, wallet.address, vesting_amount)

        # pool is now 2M: half vested = 1M, 500k already released
        assert wallet.total_pool(rev) == 2 * vesting_amount
        assert wallet.vested_amount(rev) == vesting_amount
        assert wallet.releasable(rev) == vesting_amount // 2

    def test_deposit_after_full_vesting_is_immediately_vested(self, wallet, rev, clock, accounts, start_time, vesting_amount):
        clock.increase_to(start_time + DURATION)
        wallet.release(accounts.beneficiary, rev)

        rev.transfer(accounts.deployer, wallet.address, 10_000 * REV)

        assert wallet.releasable(rev) == 10_000 * REV
        assert wallet.release(accounts.beneficiary, rev) == 10_000 * REV

    def test_released_never_exceeds_vested(self, wallet, rev, clock, accounts, start_time):
        for offset in (0, 100, 250, 250, 700, 1000, 1500):
            clock.increase_to(max(clock.now, start_time + offset))
            wallet.release(accounts.beneficiary, rev)
            assert wallet.released(rev) <= wallet.vested_amount(rev)


class TestForceRelease:
    def test_only_controller_can_force_release(self, wallet, rev, clock, accounts, start_time):
        clock.increase_to(start_time + DURATION // 2)

        with pytest.raises(Unauthorized, match="Ownable: caller is not the owner"):
            wallet.force_release(accounts.other, rev)
        with pytest.raises(Unauthorized):
            wallet.force_release(accounts.beneficiary, rev)

    def test_controller_can_force_release_tokens(self, wallet, rev, clock, accounts, start_time, vesting_amount):
        clock.increase_to(start_time + DURATION // 2)

        released = wallet.force_release(accounts.deployer, rev)

        assert released == vesting_amount // 2
        assert rev.balance_of(accounts.beneficiary) == vesting_amount // 2

    def test_force_release_is_time_gated(self, wallet, rev, accounts, vesting_amount):
        assert wallet.force_release(accounts.deployer, rev) == 0
        assert rev.balance_of(wallet.address) == vesting_amount


class TestRecoverERC20:
    def test_only_controller_can_recover_tokens(self, wallet, rev, accounts):
        extra = 10_000 * REV
        rev.transfer(accounts.deployer, wallet.address, extra)

        with pytest.raises(Unauthorized):
            wallet.recover_erc20(accounts.other, rev, extra)

    def test_cannot_recover_vested_tokens(self, wallet, rev, accounts, vesting_amount):
        with pytest.raises(CannotRecoverVestedFunds, match="Cannot recover vested tokens"):
            wallet.recover_erc20(accounts.deployer, rev, vesting_amount)

    def test_extra_deposits_of_vesting_asset_join_the_pool(self, wallet, rev, accounts, vesting_amount):
        extra = 10_000 * REV
        rev.transfer(accounts.deployer, wallet.address, extra)

        assert wallet.recoverable(rev) == 0
        with pytest.raises(CannotRecoverVestedFunds):
            wallet.recover_erc20(accounts.deployer, rev, extra)
        assert rev.balance_of(wallet.address) == vesting_amount + extra

    def test_cannot_recover_after_partial_vesting(self, wallet, rev, clock, accounts, start_time):
        clock.increase_to(start_time + DURATION // 2)
        wallet.release(accounts.beneficiary, rev)

        with pytest.raises(CannotRecoverVestedFunds):
            wallet.recover_erc20(accounts.deployer, rev, 1)

    def test_can_recover_misdirected_tokens(self, wallet, usdt, accounts):
        misdirected = 2_500 * 10**6
        usdt.transfer(accounts.buyer, wallet.address, misdirected)
        before = usdt.balance_of(accounts.deployer)

        assert wallet.recoverable(usdt) == misdirected
        wallet.recover_erc20(accounts.deployer, usdt, misdirected)

        assert usdt.balance_of(accounts.deployer) - before == misdirected
        assert usdt.balance_of(wallet.address) == 0
        assert wallet.events[-1].event_type == "ERC20Recovered"

    def test_recovery_above_surplus_fails(self, wallet, usdt, accounts):
        usdt.transfer(accounts.buyer, wallet.address, 100)

        with pytest.raises(CannotRecoverVestedFunds):
            wallet.recover_erc20(accounts.deployer, usdt, 101)
        assert usdt.balance_of(wallet.address) == 100

    def test_every_asset_is_protected_without_asset_list(self, accounts, clock, start_time, usdt):
        vesting = VestingWallet(accounts.beneficiary, start_time, DURATION, accounts.deployer, time_provider=clock)
        usdt.transfer(accounts.buyer, vesting.address, 100)

        assert vesting.is_vesting_asset(usdt)
        with pytest.raises(CannotRecoverVestedFunds):
            vesting.recover_erc20(accounts.deployer, usdt, 100)

    def test_misdirected_tokens_are_not_released(self, wallet, usdt, clock, accounts, start_time):
        usdt.transfer(accounts.buyer, wallet.address, 1_000)
        clock.increase_to(start_time + DURATION // 2)

        assert wallet.vested_amount(usdt) == 0
        assert wallet.release(accounts.beneficiary, usdt) == 0
        assert wallet.force_release(accounts.deployer, usdt) == 0
        assert usdt.balance_of(wallet.address) == 1_000

    def test_release_then_recover_keeps_released_within_vested(self, wallet, usdt, clock, accounts, start_time):
        usdt.transfer(accounts.buyer, wallet.address, 1_000)
        clock.increase_to(start_time + DURATION // 2)

        wallet.release(accounts.beneficiary, usdt)
        wallet.recover_erc20(accounts.deployer, usdt, wallet.recoverable(usdt))

        assert usdt.balance_of(accounts.beneficiary) == 0
        assert wallet.released(usdt) <= wallet.vested_amount(usdt)
        assert wallet.releasable(usdt) == 0
