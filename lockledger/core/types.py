"""Data types for the staking and vesting kernels.

All kernel states are frozen dataclasses. Each ledger is split into a small
ledger-wide book (`StakingState`, `VestingState`) and per-caller accounts
(`StakerAccount`, `VestingAccount`). A step reads and writes the book plus at
most one account, so its cost does not depend on how many callers exist.

Units/conventions:
- amounts are integer smallest-denomination token units,
- times are integer Unix seconds supplied by the caller (kernels have no clock),
- caller identities are canonical 0x-prefixed 20-byte hex addresses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, unique
from typing import Any, Mapping, Optional

from ..state.pools import Address, Amount, BridgeTarget, Pool
from ..state.positions import Position
from ..state.vests import Vest


@unique
class StakingAction(Enum):
    CREATE_POOL = "create_pool"
    DEPOSIT = "deposit"
    CLAIM_ALL = "claim_all"
    CLAIM_ONE = "claim_one"
    CLAIM_TO_STAKE = "claim_to_stake"
    RECLAIM_EXPIRED = "reclaim_expired"
    SET_BRIDGE_POOL = "set_bridge_pool"


@unique
class VestingAction(Enum):
    ADD_LOCK = "add_lock"
    CLAIM = "claim"
    CLAIM_TO_STAKE = "claim_to_stake"
    SET_STAKE_CONTRACT = "set_stake_contract"


@dataclass(frozen=True)
class Limits:
    """Upper bounds on collection sizes (DoS limits applied before any work).

    `max_pools` counts live pools only; expired pools wait for reclamation
    without blocking new ones.
    """

    max_pools: int = 256
    max_positions_per_caller: int = 1024
    max_vests_per_caller: int = 256


DEFAULT_LIMITS = Limits()


@dataclass(frozen=True)
class StakingState:
    """Ledger-wide book of the staking ledger: pools, counters and the bridge target."""

    pools: tuple[Pool, ...] = ()
    total_staked_and_reward: Amount = 0
    total_free_rewards: Amount = 0
    bridge: Optional[BridgeTarget] = None


@dataclass(frozen=True)
class StakerAccount:
    """One caller's slice of the staking ledger."""

    positions: tuple[Position, ...] = ()
    # pool_hash -> cumulative principal; only used for per-caller bounds.
    pool_balances: Mapping[str, Amount] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not self.positions and not self.pool_balances


@dataclass(frozen=True)
class VestingState:
    """Ledger-wide book of the vesting ledger."""

    vested_total: Amount = 0
    stake_contract: Optional[Address] = None


@dataclass(frozen=True)
class VestingAccount:
    """One beneficiary's grants. Fully claimed grants stay listed."""

    vests: tuple[Vest, ...] = ()

    def is_empty(self) -> bool:
        return not self.vests


@dataclass(frozen=True)
class StakingCommand:
    action: StakingAction
    args: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class VestingCommand:
    action: VestingAction
    args: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StepResult:
    """Result of a single kernel step.

    `account` is the post-state of the one account the command touched, or
    None when the command only changes the book.
    """

    ok: bool
    state: Any = None
    account: Any = None
    effects: Mapping[str, Any] | None = None
    error: str | None = None
