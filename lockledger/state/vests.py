"""
Per-caller linear-release grants held by the vesting ledger.
"""

from __future__ import annotations

from dataclasses import dataclass

from .pools import Amount, Timestamp


@dataclass(frozen=True)
class Vest:
    """
    One linear-release grant.

    `start_amount` is released at `start_date`, the remainder linearly until
    `end_date`. `claimed` only ever grows and vests are never removed, so a
    fully claimed grant stays in the caller's list with nothing left to claim.
    """

    start_amount: Amount
    total_amount: Amount
    start_date: Timestamp
    end_date: Timestamp
    claimed: Amount = 0

    def __post_init__(self) -> None:
        for name in ("start_amount", "total_amount", "start_date", "end_date", "claimed"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValueError(f"{name} must be a non-negative int")
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be > start_date")
        if self.start_amount > self.total_amount:
            raise ValueError("start_amount must be <= total_amount")
        if self.claimed > self.total_amount:
            raise ValueError("claimed must be <= total_amount")

    @property
    def unclaimed(self) -> Amount:
        return self.total_amount - self.claimed

    def to_dict(self) -> dict[str, int]:
        return {
            "start_amount": self.start_amount,
            "total_amount": self.total_amount,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "claimed": self.claimed,
        }
