"""
Events produced by the ledgers for observers and indexers.

Each ledger appends events to its own `events` list only after the operation
that produced them has fully committed.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum, unique
from typing import Any, ClassVar


@unique
class EventKind(Enum):
    POOL_ADDED = "PoolAdded"
    DEPOSIT = "Deposit"
    WITHDRAW = "Withdraw"
    REWARDS_RECLAIMED = "RewardsReclaimed"
    VESTING_ADDED = "VestingAdded"
    CLAIMED = "Claimed"
    OWNERSHIP_CHANGED = "OwnershipChanged"


@dataclass(frozen=True)
class LedgerEvent:
    kind: ClassVar[EventKind]

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["event"] = self.kind.value
        return out


@dataclass(frozen=True)
class PoolAdded(LedgerEvent):
    kind: ClassVar[EventKind] = EventKind.POOL_ADDED
    pool_id: int
    pool_hash: str
    reward: int


@dataclass(frozen=True)
class Deposit(LedgerEvent):
    kind: ClassVar[EventKind] = EventKind.DEPOSIT
    caller: str
    pool_id: int
    amount: int
    unlock_time: int


@dataclass(frozen=True)
class Withdraw(LedgerEvent):
    kind: ClassVar[EventKind] = EventKind.WITHDRAW
    caller: str
    amount: int


@dataclass(frozen=True)
class RewardsReclaimed(LedgerEvent):
    kind: ClassVar[EventKind] = EventKind.REWARDS_RECLAIMED
    amount: int
    pools_removed: int


@dataclass(frozen=True)
class VestingAdded(LedgerEvent):
    kind: ClassVar[EventKind] = EventKind.VESTING_ADDED
    beneficiary: str
    start_amount: int
    total_amount: int
    start_date: int
    end_date: int


@dataclass(frozen=True)
class Claimed(LedgerEvent):
    kind: ClassVar[EventKind] = EventKind.CLAIMED
    caller: str
    amount: int


@dataclass(frozen=True)
class OwnershipChanged(LedgerEvent):
    kind: ClassVar[EventKind] = EventKind.OWNERSHIP_CHANGED
    previous: str
    new: str
