#!/usr/bin/env python3
"""
Replay a YAML scenario against fresh staking and vesting ledgers.

Accounts are referenced by name in the scenario and mapped to deterministic
addresses. Every account starts with an unlimited allowance for both ledgers.
A step with `expect_error` must fail with exactly that error.

Example:
  python3 tools/ledger_demo.py tools/scenarios/demo.yaml --log-level INFO
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from lockledger.core.errors import LedgerError
from lockledger.core.math import MAX_UINT256
from lockledger.integration import (
    InMemoryToken,
    LedgerConfig,
    ManualClock,
    Scenario,
    ScenarioError,
    ScenarioStep,
    StakingLedger,
    VestingLedger,
    load_scenario,
)
from lockledger.state.canonical import derive_address

logger = logging.getLogger("ledger_demo")


def account(name: str) -> str:
    return derive_address(f"account:{name}")


def _describe(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if value is None or isinstance(value, (bool, int, str)):
        return value
    return repr(value)


def _apply(step: ScenarioStep, *, staking: StakingLedger, vesting: VestingLedger) -> Any:
    caller = account(step.caller)
    a = step.args
    if step.op == "create_pool":
        return staking.create_pool(
            caller,
            min_stake=a["min_stake"],
            max_stake=a["max_stake"],
            start_time=a["start_time"],
            end_time=a["end_time"],
            reward_permille=a["reward_permille"],
            lock_period=a["lock_period"],
            max_total_staked=a["max_total_staked"],
        )
    if step.op == "deposit":
        return staking.deposit(caller, a["pool_id"], a["amount"])
    if step.op == "claim":
        return staking.claim(caller)
    if step.op == "claim_one":
        return staking.claim_stake(caller, a["index"])
    if step.op == "reclaim":
        return staking.reclaim_rewards(caller)
    if step.op == "set_c2s_pool":
        return staking.update_c2s_pool(caller, a["index"])
    if step.op == "recover":
        return staking.recover_surplus(caller, a.get("amount", 0))
    if step.op == "bind_vesting":
        return vesting.set_stake_address(caller, staking)
    if step.op == "add_lock":
        return vesting.add_lock(
            caller,
            account(a["beneficiary"]),
            start_amount=a["start_amount"],
            total_amount=a["total_amount"],
            start_date=a["start_date"],
            end_date=a["end_date"],
        )
    if step.op == "claim_vesting":
        return vesting.claim(caller)
    if step.op == "claim_to_stake":
        return vesting.claim2stake(caller)
    raise ScenarioError(f"unsupported op {step.op!r}")


def replay(scenario: Scenario, *, config: LedgerConfig | None = None) -> dict[str, Any]:
    """Run every step of `scenario` and return a JSON-friendly summary."""
    clock = ManualClock(scenario.start_time)
    token = InMemoryToken(scenario.token_name, scenario.token_symbol, scenario.decimals)
    owner = account(scenario.owner)
    vesting = VestingLedger(token, owner, time_provider=clock, config=config)
    staking = StakingLedger(token, vesting.address, owner, time_provider=clock, config=config)

    names = {scenario.owner, *scenario.balances, *(s.caller for s in scenario.steps)}
    for name, amount in scenario.balances.items():
        token.mint(account(name), amount)
    for name in names:
        token.approve(account(name), staking.address, MAX_UINT256)
        token.approve(account(name), vesting.address, MAX_UINT256)

    trace: list[dict[str, Any]] = []
    for i, step in enumerate(scenario.steps):
        clock.advance_to(step.at)
        entry: dict[str, Any] = {"step": i, "at": step.at, "op": step.op, "caller": step.caller}
        try:
            entry["result"] = _describe(_apply(step, staking=staking, vesting=vesting))
        except LedgerError as exc:
            if step.expect_error != exc.code:
                raise
            entry["error"] = exc.code
        else:
            if step.expect_error is not None:
                raise ScenarioError(f"steps[{i}] succeeded but expected {step.expect_error}")
        logger.info("step %d %s by %s -> %s", i, step.op, step.caller, entry.get("error", "ok"))
        trace.append(entry)

    return {
        "trace": trace,
        "balances": {name: token.balance_of(account(name)) for name in sorted(names)},
        "staking": {
            "address": staking.address,
            "balance": token.balance_of(staking.address),
            "pools": [p.to_dict() for p in staking.pools()],
            "total_staked_and_reward": staking.total_staked_tokens(),
            "rewards_available": staking.rewards_available(),
        },
        "vesting": {
            "address": vesting.address,
            "balance": token.balance_of(vesting.address),
            "vested": vesting.vested(),
        },
    }


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Replay a staking/vesting scenario file.")
    p.add_argument("scenario", type=Path, help="Path to a YAML scenario")
    p.add_argument(
        "--log-level",
        default="WARNING",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: WARNING)",
    )
    p.add_argument("--out", default="", help="Write the JSON summary to this path (defaults to stdout)")
    args = p.parse_args(argv)

    logging.basicConfig(level=args.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        summary = replay(load_scenario(args.scenario), config=LedgerConfig.from_env())
    except (OSError, ScenarioError, LedgerError) as exc:
        print(f"ledger_demo error: {exc}", file=sys.stderr)
        return 2

    text = json.dumps(summary, indent=2, sort_keys=True)
    if args.out:
        Path(args.out).write_text(text + "\n", encoding="utf-8")
    else:
        print(text)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
