"""
Per-caller staking positions.

A position is created by a deposit and destroyed by a claim. Removal copies
the last element over the removed slot and truncates, so position order is not
stable across claims.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Tuple

from .pools import Amount, Timestamp


@dataclass(frozen=True)
class Position:
    """One stake: principal + reward, released once `now > unlock_time`."""

    unlock_time: Timestamp
    total_amount: Amount

    def __post_init__(self) -> None:
        if not isinstance(self.unlock_time, int) or isinstance(self.unlock_time, bool) or self.unlock_time < 0:
            raise ValueError("unlock_time must be a non-negative int")
        if not isinstance(self.total_amount, int) or isinstance(self.total_amount, bool) or self.total_amount < 0:
            raise ValueError("total_amount must be a non-negative int")

    def is_matured(self, now: Timestamp) -> bool:
        return now > self.unlock_time

    def to_dict(self) -> dict[str, int]:
        return {"unlock_time": self.unlock_time, "total_amount": self.total_amount}


def swap_remove(items: tuple, index: int) -> tuple:
    """Remove `items[index]` by moving the last element into its slot."""
    if not (0 <= index < len(items)):
        raise IndexError(f"index {index} out of range for {len(items)} items")
    out = list(items)
    out[index] = out[-1]
    out.pop()
    return tuple(out)


def swap_remove_where(items: tuple, predicate: Callable[[object], bool]) -> Tuple[tuple, list]:
    """
    Single compaction pass removing every element matching `predicate`.

    After a swap the cursor stays put, because the slot now holds an element
    that has not been examined yet.

    Returns:
        (survivors, removed) with `removed` in the order they were visited.
    """
    out = list(items)
    removed = []
    i = 0
    while i < len(out):
        if predicate(out[i]):
            removed.append(out[i])
            out[i] = out[-1]
            out.pop()
        else:
            i += 1
    return tuple(out), removed


def matured_total(positions: tuple[Position, ...], now: Timestamp) -> Amount:
    return sum(p.total_amount for p in positions if p.is_matured(now))


def open_total(positions: tuple[Position, ...]) -> Amount:
    return sum(p.total_amount for p in positions)
