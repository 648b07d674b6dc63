"""
Reward pool records for the staking ledger.

A pool is one staking offer: a deposit window, per-caller bounds, a lock
duration and a fixed per-mille reward rate. Pools live in an ordered tuple and
are removed with swap-with-last, so the index of a pool is not a stable
identity. `pool_hash` is.
"""

from __future__ import annotations

from dataclasses import dataclass

from .canonical import canonical_json_bytes, domain_sep_bytes, sha256_hex


# Type aliases
Address = str  # canonical 0x-prefixed 20-byte hex
Amount = int  # Non-negative integer, smallest token denomination
Timestamp = int  # Unix seconds

PERMILLE = 1000

POOL_PARAM_NAMES: tuple[str, ...] = (
    "min_stake",
    "max_stake",
    "start_time",
    "end_time",
    "reward_permille",
    "lock_period",
    "max_total_staked",
)


def reward_for(amount: Amount, reward_permille: int) -> Amount:
    """Reward earned on `amount` principal at `reward_permille` (floor)."""
    return (amount * reward_permille) // PERMILLE


def compute_pool_hash(
    *,
    min_stake: Amount,
    max_stake: Amount,
    start_time: Timestamp,
    end_time: Timestamp,
    reward_permille: int,
    lock_period: int,
    max_total_staked: Amount,
) -> str:
    """
    Deterministically compute a pool identity from its seven creation parameters.

        pool_hash = H(domain("StakePool") || canonical_json(params))
    """
    params = {
        "end_time": end_time,
        "lock_period": lock_period,
        "max_stake": max_stake,
        "max_total_staked": max_total_staked,
        "min_stake": min_stake,
        "reward_permille": reward_permille,
        "start_time": start_time,
    }
    for name, value in params.items():
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise ValueError(f"{name} must be a non-negative int")
    return sha256_hex(domain_sep_bytes("StakePool") + canonical_json_bytes(params))


@dataclass(frozen=True)
class Pool:
    """
    State of one staking pool.

    Attributes:
        min_stake / max_stake: bounds on a caller's cumulative principal in this pool
        start_time / end_time: deposits are accepted strictly inside (start_time, end_time)
        reward_permille: reward units per 1000 units of principal
        lock_period: seconds from deposit to maturity
        max_total_staked: pool capacity (the reserve is funded against it)
        total_staked: principal accepted so far
        pool_hash: stable identity over the seven creation parameters
    """

    min_stake: Amount
    max_stake: Amount
    start_time: Timestamp
    end_time: Timestamp
    reward_permille: int
    lock_period: int
    max_total_staked: Amount
    total_staked: Amount = 0
    pool_hash: str = ""

    def __post_init__(self) -> None:
        for name in POOL_PARAM_NAMES + ("total_staked",):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValueError(f"{name} must be a non-negative int")
        if self.total_staked > self.max_total_staked:
            raise ValueError("total_staked must be <= max_total_staked")
        if not self.pool_hash:
            object.__setattr__(self, "pool_hash", compute_pool_hash(**self.params()))

    def params(self) -> dict[str, int]:
        return {name: getattr(self, name) for name in POOL_PARAM_NAMES}

    @property
    def full_reserve(self) -> Amount:
        """Reward reserved at creation: capacity times rate."""
        return reward_for(self.max_total_staked, self.reward_permille)

    @property
    def unused_reserve(self) -> Amount:
        """Reward still backing unfilled capacity."""
        return reward_for(self.max_total_staked - self.total_staked, self.reward_permille)

    def is_open(self, now: Timestamp) -> bool:
        return self.start_time < now < self.end_time

    def is_expired(self, now: Timestamp) -> bool:
        return now >= self.end_time

    def to_dict(self) -> dict[str, int | str]:
        out: dict[str, int | str] = dict(self.params())
        out["total_staked"] = self.total_staked
        out["pool_hash"] = self.pool_hash
        return out


def validate_pool_params(
    *,
    min_stake: Amount,
    max_stake: Amount,
    start_time: Timestamp,
    end_time: Timestamp,
    reward_permille: int,
    lock_period: int,
    max_total_staked: Amount,
) -> str | None:
    """
    Check the pool creation invariants.

    Returns the rejection code, or None when the parameters are acceptable.
    """
    values = (min_stake, max_stake, start_time, end_time, reward_permille, lock_period, max_total_staked)
    if any(not isinstance(v, int) or isinstance(v, bool) or v < 0 for v in values):
        return "PoolMisconfigured"
    if end_time <= start_time:
        return "TimestampsMisconfigured"
    if min_stake >= max_stake:
        return "PoolMisconfigured"
    if max_total_staked < max_stake:
        return "PoolMisconfigured"
    if lock_period <= 0:
        return "PoolMisconfigured"
    return None


@dataclass(frozen=True)
class BridgeTarget:
    """The single pool the vesting ledger may deposit into, remembered by index and hash."""

    index: int
    pool_hash: str

    def matches(self, pools: tuple[Pool, ...]) -> bool:
        if not (0 <= self.index < len(pools)):
            return False
        return pools[self.index].pool_hash == self.pool_hash
