"""Invariant checkers for the staking and vesting kernels.

Each function returns True when the invariant holds, and the `check_*()`
functions return the list of violated invariant IDs (empty = all pass).

Three layers:
- book invariants over the ledger-wide `StakingState` / `VestingState`,
- step invariants over one `StakingTransition` / `VestingTransition`; these
  only look at what the command touched (the book counters, the touched pools
  and the one account), so `step()` can run them on every command,
- ledger invariants that sum over every account. They are global
  conservation laws and are meant for audits and tests, not for `step()`.

The external conservation law (token balance of the ledger >= committed
totals) needs the token collaborator and is checked by the property tests.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Mapping, Optional

from ..state.pools import Address, Pool
from ..state.positions import open_total
from .types import StakerAccount, StakingState, VestingAccount, VestingState


@dataclass(frozen=True)
class StakingTransition:
    """One staking step: book and account before/after, plus (before, after) for each touched pool."""

    pre: StakingState
    post: StakingState
    pre_account: StakerAccount
    post_account: StakerAccount
    pools: tuple[tuple[Optional[Pool], Optional[Pool]], ...] = ()


@dataclass(frozen=True)
class VestingTransition:
    pre: VestingState
    post: VestingState
    pre_account: VestingAccount
    post_account: VestingAccount


def _pool_params_ordered(p: Pool) -> bool:
    return (
        p.min_stake < p.max_stake
        and p.max_total_staked >= p.max_stake
        and p.end_time > p.start_time
        and p.lock_period > 0
    )


def _unclaimed(a: VestingAccount) -> int:
    return sum(v.total_amount - v.claimed for v in a.vests)


# ---------------------------------------------------------------------------
# Book invariants
# ---------------------------------------------------------------------------

def inv_free_rewards_nonneg(s: StakingState) -> bool:
    return s.total_free_rewards >= 0


def inv_staked_and_reward_nonneg(s: StakingState) -> bool:
    return s.total_staked_and_reward >= 0


def inv_pool_params_ordered(s: StakingState) -> bool:
    return all(_pool_params_ordered(p) for p in s.pools)


def inv_pool_capacity(s: StakingState) -> bool:
    return all(p.total_staked <= p.max_total_staked for p in s.pools)


def inv_free_rewards_cover_open_capacity(s: StakingState) -> bool:
    # Per-deposit flooring can only leave extra dust in the free reserve.
    return s.total_free_rewards >= sum(p.unused_reserve for p in s.pools)


def inv_bridge_index_nonneg(s: StakingState) -> bool:
    return s.bridge is None or s.bridge.index >= 0


def inv_vested_total_nonneg(s: VestingState) -> bool:
    return s.vested_total >= 0


# ---------------------------------------------------------------------------
# Step invariants
# ---------------------------------------------------------------------------

def inv_step_book_counters_nonneg(t: StakingTransition) -> bool:
    return inv_free_rewards_nonneg(t.post) and inv_staked_and_reward_nonneg(t.post)


def inv_step_bridge_index_nonneg(t: StakingTransition) -> bool:
    return inv_bridge_index_nonneg(t.post)


def inv_step_touched_pools_valid(t: StakingTransition) -> bool:
    return all(
        after is None or (_pool_params_ordered(after) and after.total_staked <= after.max_total_staked)
        for _, after in t.pools
    )


def inv_step_reserve_covers_touched_capacity(t: StakingTransition) -> bool:
    # Untouched pools keep their unused reserve, so the free reserve must move
    # at least as much as the touched pools' unused reserve does.
    before = sum(p.unused_reserve for p, _ in t.pools if p is not None)
    after = sum(p.unused_reserve for _, p in t.pools if p is not None)
    return t.post.total_free_rewards - t.pre.total_free_rewards >= after - before


def inv_step_staked_and_reward_tracks_account(t: StakingTransition) -> bool:
    delta = t.post.total_staked_and_reward - t.pre.total_staked_and_reward
    return delta == open_total(t.post_account.positions) - open_total(t.pre_account.positions)


def inv_step_account_well_formed(t: StakingTransition) -> bool:
    a = t.post_account
    return all(p.total_amount > 0 for p in a.positions) and all(v >= 0 for v in a.pool_balances.values())


def inv_step_vested_total_nonneg(t: VestingTransition) -> bool:
    return inv_vested_total_nonneg(t.post)


def inv_step_vested_total_tracks_account(t: VestingTransition) -> bool:
    delta = t.post.vested_total - t.pre.vested_total
    return delta == _unclaimed(t.post_account) - _unclaimed(t.pre_account)


def inv_step_claimed_bounded(t: VestingTransition) -> bool:
    return all(v.claimed <= v.total_amount for v in t.post_account.vests)


# ---------------------------------------------------------------------------
# Ledger invariants (every account)
# ---------------------------------------------------------------------------

def inv_staked_and_reward_matches_positions(s: StakingState, accounts: Mapping[Address, StakerAccount]) -> bool:
    total = sum(open_total(a.positions) for a in accounts.values())
    return s.total_staked_and_reward == total


def inv_no_empty_accounts(s: StakingState, accounts: Mapping[Address, StakerAccount]) -> bool:
    return not any(a.is_empty() for a in accounts.values())


def inv_vested_total_matches_vests(s: VestingState, accounts: Mapping[Address, VestingAccount]) -> bool:
    return s.vested_total == sum(_unclaimed(a) for a in accounts.values())


def inv_claimed_bounded(s: VestingState, accounts: Mapping[Address, VestingAccount]) -> bool:
    return all(v.claimed <= v.total_amount for a in accounts.values() for v in a.vests)


# ---------------------------------------------------------------------------
# Registries
# ---------------------------------------------------------------------------

STAKING_INVARIANTS: dict[str, Callable[[StakingState], bool]] = {
    "inv_free_rewards_nonneg": inv_free_rewards_nonneg,
    "inv_staked_and_reward_nonneg": inv_staked_and_reward_nonneg,
    "inv_pool_params_ordered": inv_pool_params_ordered,
    "inv_pool_capacity": inv_pool_capacity,
    "inv_free_rewards_cover_open_capacity": inv_free_rewards_cover_open_capacity,
    "inv_bridge_index_nonneg": inv_bridge_index_nonneg,
}

VESTING_INVARIANTS: dict[str, Callable[[VestingState], bool]] = {
    "inv_vested_total_nonneg": inv_vested_total_nonneg,
}

STAKING_STEP_INVARIANTS: dict[str, Callable[[StakingTransition], bool]] = {
    "inv_step_book_counters_nonneg": inv_step_book_counters_nonneg,
    "inv_step_bridge_index_nonneg": inv_step_bridge_index_nonneg,
    "inv_step_touched_pools_valid": inv_step_touched_pools_valid,
    "inv_step_reserve_covers_touched_capacity": inv_step_reserve_covers_touched_capacity,
    "inv_step_staked_and_reward_tracks_account": inv_step_staked_and_reward_tracks_account,
    "inv_step_account_well_formed": inv_step_account_well_formed,
}

VESTING_STEP_INVARIANTS: dict[str, Callable[[VestingTransition], bool]] = {
    "inv_step_vested_total_nonneg": inv_step_vested_total_nonneg,
    "inv_step_vested_total_tracks_account": inv_step_vested_total_tracks_account,
    "inv_step_claimed_bounded": inv_step_claimed_bounded,
}

STAKING_LEDGER_INVARIANTS: dict[str, Callable[[StakingState, Mapping[Address, StakerAccount]], bool]] = {
    "inv_staked_and_reward_matches_positions": inv_staked_and_reward_matches_positions,
    "inv_no_empty_accounts": inv_no_empty_accounts,
}

VESTING_LEDGER_INVARIANTS: dict[str, Callable[[VestingState, Mapping[Address, VestingAccount]], bool]] = {
    "inv_vested_total_matches_vests": inv_vested_total_matches_vests,
    "inv_claimed_bounded": inv_claimed_bounded,
}


def check_staking(state: StakingState) -> list[str]:
    """Return list of violated staking book invariant IDs (empty = all pass)."""
    return [inv_id for inv_id, check_fn in STAKING_INVARIANTS.items() if not check_fn(state)]


def check_vesting(state: VestingState) -> list[str]:
    """Return list of violated vesting book invariant IDs (empty = all pass)."""
    return [inv_id for inv_id, check_fn in VESTING_INVARIANTS.items() if not check_fn(state)]


def check_staking_step(t: StakingTransition) -> list[str]:
    return [inv_id for inv_id, check_fn in STAKING_STEP_INVARIANTS.items() if not check_fn(t)]


def check_vesting_step(t: VestingTransition) -> list[str]:
    return [inv_id for inv_id, check_fn in VESTING_STEP_INVARIANTS.items() if not check_fn(t)]


def check_staking_ledger(state: StakingState, accounts: Mapping[Address, StakerAccount]) -> list[str]:
    """Book invariants plus the laws that need every account."""
    violations = check_staking(state)
    violations += [
        inv_id for inv_id, check_fn in STAKING_LEDGER_INVARIANTS.items() if not check_fn(state, accounts)
    ]
    return violations


def check_vesting_ledger(state: VestingState, accounts: Mapping[Address, VestingAccount]) -> list[str]:
    violations = check_vesting(state)
    violations += [
        inv_id for inv_id, check_fn in VESTING_LEDGER_INVARIANTS.items() if not check_fn(state, accounts)
    ]
    return violations
