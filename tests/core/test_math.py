from __future__ import annotations

import importlib.util

import pytest

if importlib.util.find_spec("hypothesis") is None:  # pragma: no cover
    pytest.skip("hypothesis not installed", allow_module_level=True)

import hypothesis.strategies as st
from hypothesis import given, settings

from lockledger.core.math import UNIT, claimable_at, released_at, to_units
from lockledger.state.vests import Vest

DAY = 86_400


class TestToUnits:
    def test_whole_and_fractional(self) -> None:
        assert to_units("1") == UNIT
        assert to_units(10) == 10 * UNIT
        assert to_units("0.5") == UNIT // 2
        assert to_units("519.778") == 519_778 * 10**15
        assert to_units(".25") == UNIT // 4

    def test_other_decimals(self) -> None:
        assert to_units("1.5", decimals=6) == 1_500_000
        assert to_units("3", decimals=0) == 3

    @pytest.mark.parametrize("bad", ["", "-1", "1.2.3", "abc", "1e18", "0.0000000000000000001"])
    def test_rejects_malformed(self, bad: str) -> None:
        with pytest.raises(ValueError):
            to_units(bad)


class TestLinearRelease:
    def test_edges(self) -> None:
        v = Vest(start_amount=UNIT, total_amount=3 * UNIT, start_date=100, end_date=100 + 9 * DAY)
        assert released_at(v, 0) == 0
        assert released_at(v, 100) == 0
        assert claimable_at(v, 100) == 0
        assert released_at(v, 101) == UNIT + (2 * UNIT * 1) // (9 * DAY)
        assert released_at(v, 100 + 9 * DAY) == 3 * UNIT
        assert claimable_at(v, 10**12) == 3 * UNIT

    def test_partial_claim_in_the_middle(self) -> None:
        # 0.5 released linearly over 19 days, claimed after 4 of them.
        v = Vest(start_amount=0, total_amount=UNIT // 2, start_date=DAY, end_date=20 * DAY)
        assert claimable_at(v, 5 * DAY) == 105263157894736842

    def test_claimed_is_subtracted(self) -> None:
        v = Vest(start_amount=0, total_amount=10 * UNIT, start_date=0, end_date=6 * DAY, claimed=5 * UNIT)
        assert claimable_at(v, 3 * DAY) == 0
        assert claimable_at(v, 4 * DAY) == (10 * UNIT * 4) // 6 - 5 * UNIT
        assert claimable_at(v, 6 * DAY) == 5 * UNIT

    @settings(max_examples=200, deadline=None)
    @given(
        start_amount=st.integers(min_value=0, max_value=10**24),
        extra=st.integers(min_value=1, max_value=10**24),
        start=st.integers(min_value=0, max_value=10**9),
        duration=st.integers(min_value=1, max_value=10**8),
        t=st.integers(min_value=0, max_value=2 * 10**9),
    )
    def test_release_is_exact_floor_and_monotone(
        self, start_amount: int, extra: int, start: int, duration: int, t: int
    ) -> None:
        total = start_amount + extra
        v = Vest(start_amount=start_amount, total_amount=total, start_date=start, end_date=start + duration)
        r = released_at(v, t)
        if t <= start:
            assert r == 0
        elif t >= start + duration:
            assert r == total
        else:
            assert r == start_amount + (extra * (t - start)) // duration
        assert 0 <= r <= total
        assert released_at(v, t + 1) >= r
