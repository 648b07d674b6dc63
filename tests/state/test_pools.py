from __future__ import annotations

import pytest

from lockledger.state.pools import BridgeTarget, Pool, compute_pool_hash, reward_for, validate_pool_params

UNIT = 10**18


def _params(**overrides: int) -> dict[str, int]:
    params = {
        "min_stake": 1 * UNIT,
        "max_stake": 10 * UNIT,
        "start_time": 1_000,
        "end_time": 2_000,
        "reward_permille": 10,
        "lock_period": 500,
        "max_total_staked": 1_000 * UNIT,
    }
    params.update(overrides)
    return params


def test_reward_is_per_mille_and_floors() -> None:
    assert reward_for(10 * UNIT, 10) == UNIT // 10
    assert reward_for(999, 1) == 0
    assert reward_for(1_000, 1) == 1


def test_pool_hash_is_deterministic_and_covers_every_parameter() -> None:
    base = compute_pool_hash(**_params())
    assert base == compute_pool_hash(**_params())
    assert base.startswith("0x") and len(base) == 66

    for name, value in _params().items():
        assert compute_pool_hash(**_params(**{name: value + 1})) != base, name


def test_pool_derives_hash_and_reserves() -> None:
    pool = Pool(**_params())
    assert pool.pool_hash == compute_pool_hash(**_params())
    assert pool.full_reserve == 10 * UNIT
    assert pool.unused_reserve == 10 * UNIT

    half = Pool(**_params(), total_staked=500 * UNIT)
    assert half.pool_hash == pool.pool_hash
    assert half.unused_reserve == 5 * UNIT


def test_pool_window_is_open_strictly_inside() -> None:
    pool = Pool(**_params())
    assert not pool.is_open(1_000)
    assert pool.is_open(1_001)
    assert pool.is_open(1_999)
    assert not pool.is_open(2_000)
    assert not pool.is_expired(1_999)
    assert pool.is_expired(2_000)


def test_pool_rejects_overfilled_state() -> None:
    with pytest.raises(ValueError):
        Pool(**_params(max_total_staked=10 * UNIT), total_staked=11 * UNIT)
    with pytest.raises(ValueError):
        Pool(**_params(min_stake=-1))


@pytest.mark.parametrize(
    "overrides, code",
    [
        ({}, None),
        ({"end_time": 1_000}, "TimestampsMisconfigured"),
        ({"end_time": 999}, "TimestampsMisconfigured"),
        ({"min_stake": 10 * UNIT}, "PoolMisconfigured"),
        ({"max_total_staked": 9 * UNIT}, "PoolMisconfigured"),
        ({"lock_period": 0}, "PoolMisconfigured"),
        ({"reward_permille": -1}, "PoolMisconfigured"),
    ],
)
def test_validate_pool_params(overrides: dict[str, int], code: str | None) -> None:
    assert validate_pool_params(**_params(**overrides)) == code


def test_bridge_target_matches_only_same_hash_at_index() -> None:
    a = Pool(**_params())
    b = Pool(**_params(reward_permille=20))
    target = BridgeTarget(index=1, pool_hash=b.pool_hash)
    assert target.matches((a, b))
    # After a swap-remove of pool 0, index 1 no longer exists.
    assert not target.matches((b,))
    # Same index, different pool.
    assert not target.matches((b, a))
