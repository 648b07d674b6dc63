"""Integer math for the ledgers.

Units/conventions:
- amounts are integers in the smallest token denomination; ``UNIT`` is one whole token,
- reward rates are per-mille (1/1000),
- every division floors, so rounding always favours the ledger.
"""

from __future__ import annotations

from ..state.pools import PERMILLE, reward_for
from ..state.vests import Vest

UNIT: int = 10**18
MAX_UINT256: int = 2**256 - 1

__all__ = [
    "UNIT",
    "MAX_UINT256",
    "PERMILLE",
    "reward_for",
    "to_units",
    "released_at",
    "claimable_at",
]


def to_units(whole: int | str, decimals: int = 18) -> int:
    """Convert a decimal token amount ("0.1", 10) to smallest units without floats."""
    text = str(whole).strip()
    if not text:
        raise ValueError("amount must be non-empty")
    if text.startswith("-"):
        raise ValueError("amount must be non-negative")
    int_part, _, frac_part = text.partition(".")
    if len(frac_part) > decimals:
        raise ValueError(f"amount has more than {decimals} decimal places: {text!r}")
    if not (int_part or "0").isdigit() or (frac_part and not frac_part.isdigit()):
        raise ValueError(f"invalid decimal amount: {text!r}")
    return int(int_part or "0") * 10**decimals + int(frac_part.ljust(decimals, "0") or "0")


def released_at(vest: Vest, now: int) -> int:
    """Cumulative amount of `vest` released at time `now` (claimed or not)."""
    if now <= vest.start_date:
        return 0
    if now >= vest.end_date:
        return vest.total_amount
    elapsed = now - vest.start_date
    duration = vest.end_date - vest.start_date
    return vest.start_amount + ((vest.total_amount - vest.start_amount) * elapsed) // duration


def claimable_at(vest: Vest, now: int) -> int:
    """Amount of `vest` that can be withdrawn at `now`."""
    if now <= vest.start_date:
        return 0
    if now >= vest.end_date:
        return vest.total_amount - vest.claimed
    return max(0, released_at(vest, now) - vest.claimed)
