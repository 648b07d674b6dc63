"""
Vesting kernel: linear-release grants.

Pure state machine, same contract as the staking kernel: `step()` takes the
ledger-wide book plus the one beneficiary's `VestingAccount`, returns both
post-states and the effects, and the shell moves tokens before committing.

A claim (plain or redirected into staking) walks every grant of the caller,
advances each grant's `claimed` by its own claimable amount and reports the
sum as `payout`.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable, Mapping

from ..state.canonical import ZERO_ADDRESS
from ..state.vests import Vest
from .errors import error_for_code
from .invariants import VestingTransition, check_vesting_step
from .math import claimable_at
from .types import DEFAULT_LIMITS, Limits, StepResult, VestingAccount, VestingAction, VestingCommand, VestingState

EMPTY_ACCOUNT = VestingAccount()


def init_vesting_state() -> VestingState:
    return VestingState()


def _reject(code: str) -> StepResult:
    return StepResult(ok=False, error=code)


def _int_arg(args: Mapping[str, Any], name: str) -> int | None:
    value = args.get(name)
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        return None
    return value


def _add_lock(
    state: VestingState, account: VestingAccount, args: Mapping[str, Any], now: int, limits: Limits
) -> StepResult:
    if not args.get("auth_ok"):
        return _reject("OnlyAdministrator")

    beneficiary = args.get("beneficiary")
    start_amount = _int_arg(args, "start_amount")
    total_amount = _int_arg(args, "total_amount")
    start_date = _int_arg(args, "start_date")
    end_date = _int_arg(args, "end_date")
    if not isinstance(beneficiary, str) or None in (start_amount, total_amount, start_date, end_date):
        return _reject("InvalidArgument")

    if total_amount == 0:
        return _reject("ZeroAmount")
    if beneficiary == ZERO_ADDRESS:
        return _reject("ZeroAddress")
    if start_date <= now:
        return _reject("StartDateInPast")
    if end_date <= start_date:
        return _reject("TimestampsMisconfigured")
    if start_amount > total_amount:
        return _reject("StartAmountExceedsTotal")

    if len(account.vests) >= limits.max_vests_per_caller:
        return _reject("CapacityExceeded")

    vest = Vest(
        start_amount=start_amount,
        total_amount=total_amount,
        start_date=start_date,
        end_date=end_date,
    )
    return StepResult(
        ok=True,
        state=replace(state, vested_total=state.vested_total + total_amount),
        account=VestingAccount(vests=account.vests + (vest,)),
        effects={
            "beneficiary": beneficiary,
            "index": len(account.vests),
            "pull_amount": total_amount,
            **vest.to_dict(),
        },
    )


def _apply_claim(state: VestingState, account: VestingAccount, caller: str, now: int) -> StepResult:
    if not account.vests:
        return _reject("NoLocksForCaller")

    payout = 0
    updated = []
    for vest in account.vests:
        amount = claimable_at(vest, now)
        payout += amount
        updated.append(replace(vest, claimed=vest.claimed + amount) if amount else vest)
    if payout == 0:
        return _reject("NothingToClaim")

    return StepResult(
        ok=True,
        state=replace(state, vested_total=state.vested_total - payout),
        account=VestingAccount(vests=tuple(updated)),
        effects={"caller": caller, "payout": payout},
    )


def _claim(
    state: VestingState, account: VestingAccount, args: Mapping[str, Any], now: int, limits: Limits
) -> StepResult:
    caller = args.get("caller")
    if not isinstance(caller, str) or not caller:
        return _reject("InvalidArgument")
    return _apply_claim(state, account, caller, now)


def _claim_to_stake(
    state: VestingState, account: VestingAccount, args: Mapping[str, Any], now: int, limits: Limits
) -> StepResult:
    if state.stake_contract is None:
        return _reject("StakeContractNotSet")
    result = _claim(state, account, args, now, limits)
    if not result.ok:
        return result
    return replace(result, effects={**result.effects, "stake_contract": state.stake_contract})


def _set_stake_contract(
    state: VestingState, account: VestingAccount, args: Mapping[str, Any], now: int, limits: Limits
) -> StepResult:
    if not args.get("auth_ok"):
        return _reject("OnlyAdministrator")
    if state.stake_contract is not None:
        return _reject("ContractAlreadySet")
    stake_contract = args.get("stake_contract")
    if not isinstance(stake_contract, str) or not stake_contract:
        return _reject("InvalidArgument")
    if stake_contract == ZERO_ADDRESS:
        return _reject("ZeroAddress")
    # The staking side must name this vesting ledger and hold the same token.
    if not args.get("counterpart_ok"):
        return _reject("CounterpartMismatch")
    return StepResult(
        ok=True,
        state=replace(state, stake_contract=stake_contract),
        effects={"stake_contract": stake_contract},
    )


HandlerFn = Callable[[VestingState, VestingAccount, Mapping[str, Any], int, Limits], StepResult]

_DISPATCH: dict[VestingAction, HandlerFn] = {
    VestingAction.ADD_LOCK: _add_lock,
    VestingAction.CLAIM: _claim,
    VestingAction.CLAIM_TO_STAKE: _claim_to_stake,
    VestingAction.SET_STAKE_CONTRACT: _set_stake_contract,
}


def step(
    state: VestingState,
    cmd: VestingCommand,
    *,
    now: int,
    limits: Limits = DEFAULT_LIMITS,
    account: VestingAccount | None = None,
) -> StepResult:
    """Execute one vesting command at time `now` against the named caller's `account`."""
    handler = _DISPATCH.get(cmd.action)
    if handler is None:
        return _reject(f"unknown_action:{cmd.action}")
    if not isinstance(now, int) or isinstance(now, bool) or now < 0:
        return _reject("InvalidArgument")

    pre_account = account if account is not None else EMPTY_ACCOUNT
    result = handler(state, pre_account, cmd.args, now, limits)
    if not result.ok:
        return result

    transition = VestingTransition(
        pre=state,
        post=result.state,
        pre_account=pre_account,
        post_account=result.account if result.account is not None else pre_account,
    )
    violations = check_vesting_step(transition)
    if violations:
        return _reject(f"invariant:{','.join(violations)}")
    return result


def step_or_raise(
    state: VestingState,
    cmd: VestingCommand,
    *,
    now: int,
    limits: Limits = DEFAULT_LIMITS,
    account: VestingAccount | None = None,
) -> StepResult:
    """Like ``step()`` but raises the named ``LedgerError`` on rejection."""
    result = step(state, cmd, now=now, limits=limits, account=account)
    if result.ok:
        return result
    raise error_for_code(result.error or "LedgerError")
