"""
Configuration for the ledger shells.

- `LedgerConfig`: runtime limits, optionally overridden from the environment.
- `load_scenario()`: YAML deployment/scenario files replayed by `tools/ledger_demo.py`.

Scenario files describe a token, named accounts with initial balances and a
time-ordered list of steps. Amount fields accept whole-token decimal strings
("0.5") or integer smallest units; time fields accept integer seconds or
durations ("3d", "1w", "12h", "90s") relative to the scenario start.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Tuple

import yaml

from ..core.math import to_units
from ..core.types import Limits


def _env_int(name: str, default: int, *, lo: int, hi: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return int(default)
    try:
        v = int(raw.strip())
    except ValueError:
        return int(default)
    if v < lo:
        return int(lo)
    if v > hi:
        return int(hi)
    return int(v)


@dataclass(frozen=True)
class LedgerConfig:
    """Runtime config shared by the staking and vesting ledgers."""

    # DoS limits (applied by the kernels before any state is built):
    max_pools: int = 256
    max_positions_per_caller: int = 1024
    max_vests_per_caller: int = 256

    def limits(self) -> Limits:
        return Limits(
            max_pools=self.max_pools,
            max_positions_per_caller=self.max_positions_per_caller,
            max_vests_per_caller=self.max_vests_per_caller,
        )

    @classmethod
    def from_env(cls, prefix: str = "LOCKLEDGER_") -> "LedgerConfig":
        defaults = cls()
        return cls(
            max_pools=_env_int(f"{prefix}MAX_POOLS", defaults.max_pools, lo=1, hi=65_536),
            max_positions_per_caller=_env_int(
                f"{prefix}MAX_POSITIONS_PER_CALLER", defaults.max_positions_per_caller, lo=1, hi=1_000_000
            ),
            max_vests_per_caller=_env_int(
                f"{prefix}MAX_VESTS_PER_CALLER", defaults.max_vests_per_caller, lo=1, hi=1_000_000
            ),
        )


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------

SCENARIO_OPS = frozenset(
    {
        "create_pool",
        "deposit",
        "claim",
        "claim_one",
        "reclaim",
        "set_c2s_pool",
        "bind_vesting",
        "add_lock",
        "claim_vesting",
        "claim_to_stake",
        "recover",
    }
)

AMOUNT_FIELDS = frozenset({"amount", "min_stake", "max_stake", "max_total_staked", "start_amount", "total_amount"})
TIME_FIELDS = frozenset({"start_time", "end_time", "start_date", "end_date"})
DURATION_FIELDS = frozenset({"lock_period"})

_DURATION_RE = re.compile(r"^(\d+)([smhdw])$")
_DURATION_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86_400, "w": 604_800}


class ScenarioError(ValueError):
    """Raised when a scenario file is malformed."""


def parse_duration(value: Any, *, name: str) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        if value < 0:
            raise ScenarioError(f"{name} must be non-negative")
        return value
    if isinstance(value, str):
        m = _DURATION_RE.fullmatch(value.strip())
        if m:
            return int(m.group(1)) * _DURATION_UNITS[m.group(2)]
    raise ScenarioError(f"{name} must be seconds or a duration like '3d', got {value!r}")


def parse_amount(value: Any, *, name: str, decimals: int) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        if value < 0:
            raise ScenarioError(f"{name} must be non-negative")
        return value
    if isinstance(value, str):
        try:
            return to_units(value, decimals)
        except ValueError as exc:
            raise ScenarioError(f"{name}: {exc}") from exc
    raise ScenarioError(f"{name} must be an int or decimal string, got {value!r}")


@dataclass(frozen=True)
class ScenarioStep:
    at: int
    op: str
    caller: str
    args: Mapping[str, Any] = field(default_factory=dict)
    expect_error: str | None = None


@dataclass(frozen=True)
class Scenario:
    token_name: str
    token_symbol: str
    decimals: int
    start_time: int
    owner: str
    balances: Mapping[str, int]
    steps: Tuple[ScenarioStep, ...]


def _require_mapping(obj: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(obj, Mapping):
        raise ScenarioError(f"{what} must be a mapping")
    return obj


def _parse_step(raw: Any, *, index: int, start_time: int, decimals: int) -> ScenarioStep:
    raw = _require_mapping(raw, f"steps[{index}]")
    op = raw.get("op")
    if op not in SCENARIO_OPS:
        raise ScenarioError(f"steps[{index}].op must be one of {sorted(SCENARIO_OPS)}, got {op!r}")
    caller = raw.get("caller")
    if not isinstance(caller, str) or not caller:
        raise ScenarioError(f"steps[{index}].caller must be an account name")
    at = start_time + parse_duration(raw.get("at", 0), name=f"steps[{index}].at")

    args: dict[str, Any] = {}
    for key, value in raw.items():
        if key in ("op", "caller", "at", "expect_error"):
            continue
        name = f"steps[{index}].{key}"
        if key in AMOUNT_FIELDS:
            args[key] = parse_amount(value, name=name, decimals=decimals)
        elif key in TIME_FIELDS:
            args[key] = start_time + parse_duration(value, name=name)
        elif key in DURATION_FIELDS:
            args[key] = parse_duration(value, name=name)
        else:
            args[key] = value

    expect_error = raw.get("expect_error")
    if expect_error is not None and not isinstance(expect_error, str):
        raise ScenarioError(f"steps[{index}].expect_error must be an error name")
    return ScenarioStep(at=at, op=op, caller=caller, args=args, expect_error=expect_error)


def parse_scenario(obj: Any) -> Scenario:
    root = _require_mapping(obj, "scenario")
    token = _require_mapping(root.get("token", {}), "token")
    decimals = token.get("decimals", 18)
    if not isinstance(decimals, int) or isinstance(decimals, bool) or not (0 <= decimals <= 36):
        raise ScenarioError("token.decimals must be an int in [0, 36]")
    start_time = root.get("start_time", 1_700_000_000)
    if not isinstance(start_time, int) or isinstance(start_time, bool) or start_time < 0:
        raise ScenarioError("start_time must be a non-negative int")

    owner = root.get("owner", "owner")
    if not isinstance(owner, str) or not owner:
        raise ScenarioError("owner must be an account name")

    balances = {
        str(name): parse_amount(amount, name=f"balances.{name}", decimals=decimals)
        for name, amount in _require_mapping(root.get("balances", {}), "balances").items()
    }

    raw_steps = root.get("steps", [])
    if not isinstance(raw_steps, list):
        raise ScenarioError("steps must be a list")
    steps = tuple(
        _parse_step(raw, index=i, start_time=start_time, decimals=decimals) for i, raw in enumerate(raw_steps)
    )
    for prev, cur in zip(steps, steps[1:]):
        if cur.at < prev.at:
            raise ScenarioError("steps must be ordered by time")

    return Scenario(
        token_name=str(token.get("name", "Token")),
        token_symbol=str(token.get("symbol", "TKN")),
        decimals=decimals,
        start_time=start_time,
        owner=owner,
        balances=balances,
        steps=steps,
    )


def load_scenario(path: str | Path) -> Scenario:
    """Read and validate a YAML scenario file."""
    text = Path(path).read_text(encoding="utf-8")
    try:
        obj = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ScenarioError(f"invalid YAML in {path}: {exc}") from exc
    return parse_scenario(obj)
