"""
Core ledger kernels (pure, deterministic, integer-only)
"""

from .errors import LedgerError, error_for_code
from .math import MAX_UINT256, UNIT, claimable_at, released_at, to_units
from .staking import init_staking_state
from .staking import step as staking_step
from .staking import step_or_raise as staking_step_or_raise
from .types import (
    DEFAULT_LIMITS,
    Limits,
    StakerAccount,
    StakingAction,
    StakingCommand,
    StakingState,
    StepResult,
    VestingAccount,
    VestingAction,
    VestingCommand,
    VestingState,
)
from .vesting import init_vesting_state
from .vesting import step as vesting_step
from .vesting import step_or_raise as vesting_step_or_raise

__all__ = [
    "LedgerError",
    "error_for_code",
    "MAX_UINT256",
    "UNIT",
    "claimable_at",
    "released_at",
    "to_units",
    "init_staking_state",
    "staking_step",
    "staking_step_or_raise",
    "DEFAULT_LIMITS",
    "Limits",
    "StakerAccount",
    "StakingAction",
    "StakingCommand",
    "StakingState",
    "StepResult",
    "VestingAccount",
    "VestingAction",
    "VestingCommand",
    "VestingState",
    "init_vesting_state",
    "vesting_step",
    "vesting_step_or_raise",
]
