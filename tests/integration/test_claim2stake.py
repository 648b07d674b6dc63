from __future__ import annotations

import pytest

from lockledger.core.errors import (
    BridgePoolNotSet,
    ContractAlreadySet,
    CounterpartMismatch,
    NoLocksForCaller,
    OnlyAdministrator,
    OnlyVestingContract,
    PoolHashMismatch,
    StakeContractNotSet,
    WrongPoolIndex,
)
from lockledger.core.math import MAX_UINT256, UNIT, to_units
from lockledger.integration.clock import DAY, WEEK, ManualClock
from lockledger.integration.events import Claimed, Deposit
from lockledger.integration.staking_ledger import StakingLedger
from lockledger.integration.token import InMemoryToken
from lockledger.integration.vesting_ledger import VestingLedger
from lockledger.state.canonical import derive_address

T0 = 1_700_000_000

OWNER = derive_address("test:owner")
USER1 = derive_address("test:user1")


def _deploy() -> tuple[ManualClock, InMemoryToken, VestingLedger, StakingLedger]:
    clock = ManualClock(T0)
    token = InMemoryToken("Mateico", "MATE")
    token.mint(OWNER, 1_000 * UNIT)
    vesting = VestingLedger(token, OWNER, time_provider=clock)
    staking = StakingLedger(token, vesting.address, OWNER, time_provider=clock)
    token.approve(OWNER, vesting.address, 100 * UNIT)
    token.approve(OWNER, staking.address, MAX_UINT256)
    return clock, token, vesting, staking


def _pool_and_vest(vesting: VestingLedger, staking: StakingLedger) -> None:
    vesting.add_lock(OWNER, USER1, start_amount=0, total_amount=10 * UNIT, start_date=T0 + DAY, end_date=T0 + WEEK)
    staking.create_pool(
        OWNER,
        min_stake=UNIT,
        max_stake=10 * UNIT,
        start_time=T0 + DAY,
        end_time=T0 + WEEK,
        reward_permille=10,
        lock_period=WEEK,
        max_total_staked=100 * UNIT,
    )


class TestConfigure:
    def test_non_owner_cannot_configure(self) -> None:
        _, _, vesting, staking = _deploy()
        with pytest.raises(OnlyAdministrator):
            vesting.set_stake_address(USER1, staking)

    def test_configures_with_unlimited_allowance(self) -> None:
        _, token, vesting, staking = _deploy()
        assert staking.token_address == token.address
        assert staking.vesting_address == vesting.address
        vesting.set_stake_address(OWNER, staking)
        assert vesting.stake_address == staking.address
        assert token.allowance(vesting.address, staking.address) == MAX_UINT256
        with pytest.raises(ContractAlreadySet):
            vesting.set_stake_address(OWNER, staking)

    def test_counterpart_must_name_this_vesting_ledger(self) -> None:
        clock, token, vesting, _ = _deploy()
        stranger = StakingLedger(
            token, derive_address("test:other-vesting"), OWNER, time_provider=clock, address=derive_address("s2")
        )
        with pytest.raises(CounterpartMismatch):
            vesting.set_stake_address(OWNER, stranger)
        assert vesting.stake_address is None
        assert token.allowance(vesting.address, stranger.address) == 0

    def test_bridge_pool_binding(self) -> None:
        _, _, vesting, staking = _deploy()
        _pool_and_vest(vesting, staking)
        assert not staking.c2s_configured()
        with pytest.raises(OnlyAdministrator):
            staking.update_c2s_pool(USER1, 0)
        with pytest.raises(WrongPoolIndex):
            staking.update_c2s_pool(OWNER, 1)
        target = staking.update_c2s_pool(OWNER, 0)
        assert staking.c2s_configured()
        assert target.pool_hash == staking.pool_info(0).pool_hash
        assert staking.bridge_target() == target


class TestClaim2Stake:
    def test_no_locks(self) -> None:
        _, _, vesting, staking = _deploy()
        vesting.set_stake_address(OWNER, staking)
        with pytest.raises(NoLocksForCaller):
            vesting.claim2stake(USER1)

    def test_requires_stake_contract(self) -> None:
        clock, _, vesting, staking = _deploy()
        _pool_and_vest(vesting, staking)
        clock.advance_to(T0 + 4 * DAY)
        with pytest.raises(StakeContractNotSet):
            vesting.claim2stake(USER1)

    def test_stakes_claimed_amount(self) -> None:
        clock, token, vesting, staking = _deploy()
        vesting.set_stake_address(OWNER, staking)
        _pool_and_vest(vesting, staking)
        staking.update_c2s_pool(OWNER, 0)
        clock.advance_to(T0 + 4 * DAY)

        assert vesting.claim2stake(USER1) == 5 * UNIT
        assert vesting.events[-1] == Claimed(caller=USER1, amount=5 * UNIT)
        assert staking.events[-1] == Deposit(caller=USER1, pool_id=0, amount=5 * UNIT, unlock_time=T0 + 4 * DAY + WEEK)
        assert staking.total_staked_tokens() == to_units("5.05")
        assert vesting.vested() == 5 * UNIT
        assert token.balance_of(vesting.address) == 5 * UNIT
        assert token.balance_of(USER1) == 0
        assert token.allowance(vesting.address, staking.address) == MAX_UINT256

        clock.advance_to(T0 + 4 * DAY + WEEK + 1)
        assert staking.claim(USER1) == to_units("5.05")


class TestScenarioC:
    def test_unconfigured_sender_is_rejected(self) -> None:
        clock, _, vesting, staking = _deploy()
        _pool_and_vest(vesting, staking)
        staking.update_c2s_pool(OWNER, 0)
        clock.advance_to(T0 + 2 * DAY)
        with pytest.raises(OnlyVestingContract):
            staking.claim2stake(USER1, USER1, UNIT)

    def test_unbound_pool(self) -> None:
        clock, _, vesting, staking = _deploy()
        vesting.set_stake_address(OWNER, staking)
        _pool_and_vest(vesting, staking)
        clock.advance_to(T0 + 4 * DAY)
        with pytest.raises(BridgePoolNotSet):
            vesting.claim2stake(USER1)
        assert vesting.claimable(USER1) == 5 * UNIT

    def test_reclaimed_pool_is_detected_by_hash(self) -> None:
        clock, token, vesting, staking = _deploy()
        vesting.set_stake_address(OWNER, staking)
        vesting.add_lock(
            OWNER, USER1, start_amount=0, total_amount=10 * UNIT, start_date=T0 + DAY, end_date=T0 + 4 * WEEK
        )
        for end in (T0 + WEEK, T0 + 3 * WEEK):
            staking.create_pool(
                OWNER,
                min_stake=UNIT,
                max_stake=10 * UNIT,
                start_time=T0 + DAY,
                end_time=end,
                reward_permille=10,
                lock_period=WEEK,
                max_total_staked=100 * UNIT,
            )
        staking.update_c2s_pool(OWNER, 0)
        bound_hash = staking.pool_info(0).pool_hash

        clock.advance_to(T0 + 2 * WEEK)
        staking.reclaim_rewards(OWNER)
        # Index 0 is still valid but now holds the other pool.
        assert staking.pool_count() == 1
        assert staking.pool_info(0).pool_hash != bound_hash

        vested_before = vesting.vested()
        with pytest.raises(PoolHashMismatch):
            vesting.claim2stake(USER1)
        # The vesting side rolled back its claim.
        assert vesting.vested() == vested_before
        assert vesting.vesting(USER1, 0).claimed == 0
        assert token.balance_of(vesting.address) == 10 * UNIT

        staking.update_c2s_pool(OWNER, 0)
        assert vesting.claim2stake(USER1) > 0


class TestCrossLedgerConsistency:
    def test_failing_staking_subscriber_does_not_split_the_ledgers(self, caplog) -> None:
        clock, token, vesting, staking = _deploy()
        vesting.set_stake_address(OWNER, staking)
        _pool_and_vest(vesting, staking)
        staking.update_c2s_pool(OWNER, 0)

        def broken(event) -> None:
            raise RuntimeError("indexer offline")

        staking.subscribe(broken)
        clock.advance_to(T0 + 4 * DAY)

        with caplog.at_level("ERROR", logger="lockledger.integration.staking_ledger"):
            assert vesting.claim2stake(USER1) == 5 * UNIT
        assert "indexer offline" in caplog.text

        assert vesting.vested() == 5 * UNIT
        assert token.balance_of(vesting.address) == vesting.vested()
        assert staking.user_stake_count(USER1) == 1
        assert vesting.claimable(USER1) == 0
        assert vesting.audit() == []
        assert staking.audit() == []

    def test_counterpart_must_share_the_token(self) -> None:
        clock, token, vesting, _ = _deploy()
        other_token = InMemoryToken("Other", "OTH")
        stranger = StakingLedger(other_token, vesting.address, OWNER, time_provider=clock)
        with pytest.raises(CounterpartMismatch):
            vesting.set_stake_address(OWNER, stranger)
        assert vesting.stake_address is None
        assert token.allowance(vesting.address, stranger.address) == 0
        assert other_token.allowance(vesting.address, stranger.address) == 0
