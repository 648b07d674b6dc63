"""
Imperative shell: ledgers that own committed state, sample time and move tokens
"""

from .admin import Ownable
from .clock import DAY, WEEK, ManualClock, system_time
from .config import LedgerConfig, Scenario, ScenarioError, ScenarioStep, load_scenario, parse_scenario
from .events import Claimed, Deposit, LedgerEvent, OwnershipChanged, PoolAdded, RewardsReclaimed, VestingAdded, Withdraw
from .staking_ledger import StakingLedger
from .token import InMemoryToken, TokenCollaborator
from .vesting_ledger import VestingLedger

__all__ = [
    "Ownable",
    "DAY",
    "WEEK",
    "ManualClock",
    "system_time",
    "LedgerConfig",
    "Scenario",
    "ScenarioError",
    "ScenarioStep",
    "load_scenario",
    "parse_scenario",
    "Claimed",
    "Deposit",
    "LedgerEvent",
    "OwnershipChanged",
    "PoolAdded",
    "RewardsReclaimed",
    "VestingAdded",
    "Withdraw",
    "StakingLedger",
    "InMemoryToken",
    "TokenCollaborator",
    "VestingLedger",
]
