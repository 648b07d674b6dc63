"""
State records for the staking and vesting ledgers
"""

from .canonical import ZERO_ADDRESS, canonical_address, derive_address
from .pools import BridgeTarget, Pool, compute_pool_hash, reward_for
from .positions import Position, swap_remove, swap_remove_where
from .vests import Vest

__all__ = [
    "ZERO_ADDRESS",
    "canonical_address",
    "derive_address",
    "BridgeTarget",
    "Pool",
    "compute_pool_hash",
    "reward_for",
    "Position",
    "swap_remove",
    "swap_remove_where",
    "Vest",
]
