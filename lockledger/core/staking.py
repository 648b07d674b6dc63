"""
Staking kernel: reward pools, positions and reward reservation.

This is a pure state machine intended for the functional core:
- Inputs are the ledger-wide `StakingState`, the `StakerAccount` of the one
  caller the command concerns, a `StakingCommand` and the current time.
- Outputs are (next_state, next_account, effects) or a rejection code.
- Token movements are described in the effects (`pull_amount`, `payout`);
  the shell performs them and commits the state only if they succeed.

Reward accounting is two-phase. Creating a pool reserves the reward for its
full capacity; each deposit moves its own reward out of the free reserve into
a position; reclaiming an expired pool releases whatever capacity went unused.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable, Mapping, Optional

from ..state.pools import BridgeTarget, Pool, POOL_PARAM_NAMES, reward_for, validate_pool_params
from ..state.positions import Position, swap_remove, swap_remove_where
from .errors import error_for_code
from .invariants import StakingTransition, check_staking_step
from .types import (
    DEFAULT_LIMITS,
    Limits,
    StakerAccount,
    StakingAction,
    StakingCommand,
    StakingState,
    StepResult,
)

EMPTY_ACCOUNT = StakerAccount()


def init_staking_state() -> StakingState:
    return StakingState()


def _reject(code: str) -> StepResult:
    return StepResult(ok=False, error=code)


def _int_arg(args: Mapping[str, Any], name: str) -> int | None:
    value = args.get(name)
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        return None
    return value


def _caller_arg(args: Mapping[str, Any]) -> str | None:
    caller = args.get("caller")
    if not isinstance(caller, str) or not caller:
        return None
    return caller


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

def _create_pool(
    state: StakingState, account: StakerAccount, args: Mapping[str, Any], now: int, limits: Limits
) -> StepResult:
    if not args.get("auth_ok"):
        return _reject("OnlyAdministrator")

    params: dict[str, Any] = {name: args.get(name) for name in POOL_PARAM_NAMES}
    code = validate_pool_params(**params)
    if code is not None:
        return _reject(code)
    if sum(1 for p in state.pools if not p.is_expired(now)) >= limits.max_pools:
        return _reject("CapacityExceeded")

    pool = Pool(**params)
    reward = pool.full_reserve
    new_state = replace(
        state,
        pools=state.pools + (pool,),
        total_free_rewards=state.total_free_rewards + reward,
    )
    return StepResult(
        ok=True,
        state=new_state,
        effects={
            "pool_id": len(state.pools),
            "pool_hash": pool.pool_hash,
            "reward": reward,
            "pull_amount": reward,
        },
    )


def _apply_deposit(
    state: StakingState,
    account: StakerAccount,
    *,
    caller: str,
    pool_id: int,
    amount: int,
    now: int,
    limits: Limits,
) -> StepResult:
    if not (0 <= pool_id < len(state.pools)):
        return _reject("WrongPoolIndex")
    if amount <= 0:
        return _reject("ZeroAmount")

    pool = state.pools[pool_id]
    if now <= pool.start_time:
        return _reject("PoolNotYetOpen")
    if now >= pool.end_time:
        return _reject("AlreadyClosed")
    if pool.total_staked + amount > pool.max_total_staked:
        return _reject("PoolIsFull")

    caller_staked = account.pool_balances.get(pool.pool_hash, 0) + amount
    if caller_staked < pool.min_stake:
        return _reject("PoolMinStake")
    if caller_staked > pool.max_stake:
        return _reject("PoolMaxStake")

    if len(account.positions) >= limits.max_positions_per_caller:
        return _reject("CapacityExceeded")

    reward = reward_for(amount, pool.reward_permille)
    unlock_time = now + pool.lock_period
    position = Position(unlock_time=unlock_time, total_amount=amount + reward)

    pools = list(state.pools)
    pools[pool_id] = replace(pool, total_staked=pool.total_staked + amount)

    new_state = replace(
        state,
        pools=tuple(pools),
        total_free_rewards=state.total_free_rewards - reward,
        total_staked_and_reward=state.total_staked_and_reward + amount + reward,
    )
    new_account = StakerAccount(
        positions=account.positions + (position,),
        pool_balances={**account.pool_balances, pool.pool_hash: caller_staked},
    )
    return StepResult(
        ok=True,
        state=new_state,
        account=new_account,
        effects={
            "caller": caller,
            "pool_id": pool_id,
            "amount": amount,
            "reward": reward,
            "unlock_time": unlock_time,
            "pull_amount": amount,
        },
    )


def _deposit(
    state: StakingState, account: StakerAccount, args: Mapping[str, Any], now: int, limits: Limits
) -> StepResult:
    caller = _caller_arg(args)
    pool_id = _int_arg(args, "pool_id")
    amount = _int_arg(args, "amount")
    if caller is None or amount is None:
        return _reject("InvalidArgument")
    if pool_id is None:
        return _reject("WrongPoolIndex")
    return _apply_deposit(state, account, caller=caller, pool_id=pool_id, amount=amount, now=now, limits=limits)


def _claim_to_stake(
    state: StakingState, account: StakerAccount, args: Mapping[str, Any], now: int, limits: Limits
) -> StepResult:
    if not args.get("sender_ok"):
        return _reject("OnlyVestingContract")
    caller = _caller_arg(args)
    amount = _int_arg(args, "amount")
    if caller is None or amount is None:
        return _reject("InvalidArgument")
    if state.bridge is None:
        return _reject("BridgePoolNotSet")
    if not state.bridge.matches(state.pools):
        return _reject("PoolHashMismatch")
    return _apply_deposit(
        state, account, caller=caller, pool_id=state.bridge.index, amount=amount, now=now, limits=limits
    )


def _claimed(state: StakingState, account: StakerAccount, survivors: tuple, payout: int) -> tuple:
    new_state = replace(state, total_staked_and_reward=state.total_staked_and_reward - payout)
    return new_state, replace(account, positions=survivors)


def _claim_all(
    state: StakingState, account: StakerAccount, args: Mapping[str, Any], now: int, limits: Limits
) -> StepResult:
    caller = _caller_arg(args)
    if caller is None:
        return _reject("InvalidArgument")
    if not account.positions:
        return _reject("NoStakesForCaller")

    survivors, matured = swap_remove_where(account.positions, lambda p: p.is_matured(now))
    if not matured:
        return _reject("NothingToClaim")

    payout = sum(p.total_amount for p in matured)
    new_state, new_account = _claimed(state, account, survivors, payout)
    return StepResult(
        ok=True,
        state=new_state,
        account=new_account,
        effects={"caller": caller, "payout": payout, "positions_claimed": len(matured)},
    )


def _claim_one(
    state: StakingState, account: StakerAccount, args: Mapping[str, Any], now: int, limits: Limits
) -> StepResult:
    caller = _caller_arg(args)
    if caller is None:
        return _reject("InvalidArgument")
    if not account.positions:
        return _reject("NoStakesForCaller")
    index = _int_arg(args, "index")
    if index is None or index >= len(account.positions):
        return _reject("WrongStakeIndex")

    position = account.positions[index]
    if not position.is_matured(now):
        return _reject("NothingToClaim")

    payout = position.total_amount
    new_state, new_account = _claimed(state, account, swap_remove(account.positions, index), payout)
    return StepResult(
        ok=True,
        state=new_state,
        account=new_account,
        effects={"caller": caller, "payout": payout, "positions_claimed": 1},
    )


def _reclaim_expired(
    state: StakingState, account: StakerAccount, args: Mapping[str, Any], now: int, limits: Limits
) -> StepResult:
    if not args.get("auth_ok"):
        return _reject("OnlyAdministrator")

    survivors, expired = swap_remove_where(state.pools, lambda p: p.is_expired(now))
    amount = sum(p.unused_reserve for p in expired)
    if not expired or amount == 0:
        return _reject("NothingToReclaim")

    # Per-caller balances keyed by an expired pool's hash are left in place: a
    # pool with the same hash has the same end time, so it can never reopen.
    new_state = replace(
        state,
        pools=survivors,
        total_free_rewards=state.total_free_rewards - amount,
    )
    return StepResult(
        ok=True,
        state=new_state,
        effects={
            "payout": amount,
            "pools_removed": len(expired),
            "removed_hashes": tuple(p.pool_hash for p in expired),
        },
    )


def _set_bridge_pool(
    state: StakingState, account: StakerAccount, args: Mapping[str, Any], now: int, limits: Limits
) -> StepResult:
    if not args.get("auth_ok"):
        return _reject("OnlyAdministrator")
    index = _int_arg(args, "index")
    if index is None or index >= len(state.pools):
        return _reject("WrongPoolIndex")
    bridge = BridgeTarget(index=index, pool_hash=state.pools[index].pool_hash)
    return StepResult(
        ok=True,
        state=replace(state, bridge=bridge),
        effects={"index": index, "pool_hash": bridge.pool_hash},
    )


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

HandlerFn = Callable[[StakingState, StakerAccount, Mapping[str, Any], int, Limits], StepResult]

_DISPATCH: dict[StakingAction, HandlerFn] = {
    StakingAction.CREATE_POOL: _create_pool,
    StakingAction.DEPOSIT: _deposit,
    StakingAction.CLAIM_ALL: _claim_all,
    StakingAction.CLAIM_ONE: _claim_one,
    StakingAction.CLAIM_TO_STAKE: _claim_to_stake,
    StakingAction.RECLAIM_EXPIRED: _reclaim_expired,
    StakingAction.SET_BRIDGE_POOL: _set_bridge_pool,
}


def _touched_pools(
    action: StakingAction, pre: StakingState, result: StepResult, now: int
) -> tuple[tuple[Optional[Pool], Optional[Pool]], ...]:
    post: StakingState = result.state
    if action is StakingAction.CREATE_POOL:
        return ((None, post.pools[-1]),)
    if action in (StakingAction.DEPOSIT, StakingAction.CLAIM_TO_STAKE):
        pool_id = result.effects["pool_id"]
        return ((pre.pools[pool_id], post.pools[pool_id]),)
    if action is StakingAction.RECLAIM_EXPIRED:
        return tuple((p, None) for p in pre.pools if p.is_expired(now))
    return ()


def step(
    state: StakingState,
    cmd: StakingCommand,
    *,
    now: int,
    limits: Limits = DEFAULT_LIMITS,
    account: StakerAccount | None = None,
) -> StepResult:
    """Execute one staking command at time `now`.

    `account` is the slice of the caller the command names (empty when omitted).

    Returns ``StepResult`` with ``ok=True``, the post-state and (for caller
    commands) the post-account on success, or ``ok=False`` with the rejection code.
    """
    handler = _DISPATCH.get(cmd.action)
    if handler is None:
        return _reject(f"unknown_action:{cmd.action}")
    if not isinstance(now, int) or isinstance(now, bool) or now < 0:
        return _reject("InvalidArgument")

    pre_account = account if account is not None else EMPTY_ACCOUNT
    result = handler(state, pre_account, cmd.args, now, limits)
    if not result.ok:
        return result

    transition = StakingTransition(
        pre=state,
        post=result.state,
        pre_account=pre_account,
        post_account=result.account if result.account is not None else pre_account,
        pools=_touched_pools(cmd.action, state, result, now),
    )
    violations = check_staking_step(transition)
    if violations:
        return _reject(f"invariant:{','.join(violations)}")
    return result


def step_or_raise(
    state: StakingState,
    cmd: StakingCommand,
    *,
    now: int,
    limits: Limits = DEFAULT_LIMITS,
    account: StakerAccount | None = None,
) -> StepResult:
    """Like ``step()`` but raises the named ``LedgerError`` on rejection."""
    result = step(state, cmd, now=now, limits=limits, account=account)
    if result.ok:
        return result
    raise error_for_code(result.error or "LedgerError")
