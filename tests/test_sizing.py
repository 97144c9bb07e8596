"""
Unit tests for executor/sizing.py -- Kelly criterion position sizing.
"""

import pytest

from executor.sizing import CONSERVATIVE_FACTOR, compute_position_size, kelly_fraction
from scanner.models import MarketOpportunity, Outcome


def _make_opp(price=0.04, edge=0.06, confidence=0.8):
    return MarketOpportunity(
        market_id="0xmarket123456",
        question="Will it happen?",
        outcome=Outcome.YES,
        current_price=price,
        predicted_probability=price + edge,
        confidence=confidence,
        expected_value=edge * 100 * confidence,
        risk_score=1 - confidence,
    )


class TestKellyFraction:
    def test_basic(self):
        assert kelly_fraction(edge=0.06, price=0.04) == pytest.approx(0.0625)

    def test_no_edge(self):
        assert kelly_fraction(edge=0.0, price=0.04) == 0.0
        assert kelly_fraction(edge=-0.1, price=0.04) == 0.0

    def test_price_at_one(self):
        assert kelly_fraction(edge=0.1, price=1.0) == 0.0


class TestComputePositionSize:
    def test_quarter_kelly_floored(self):
        # 0.0625 * 0.25 * 100 = 1.5625 -> 1
        assert compute_position_size(_make_opp(), 100.0, 50.0) == 1.0

    def test_small_edge_rounds_to_zero(self):
        assert compute_position_size(_make_opp(edge=0.01), 100.0, 50.0) == 0.0

    def test_risk_limit_caps(self):
        opp = _make_opp(price=0.4, edge=0.5)
        assert compute_position_size(opp, 100.0, 50.0) == 20.0
        assert compute_position_size(opp, 100.0, 10.0) == 10.0

    def test_kelly_above_one_capped(self):
        opp = _make_opp(price=0.5, edge=0.6)
        assert compute_position_size(opp, 100.0, 50.0) == 100.0 * CONSERVATIVE_FACTOR

    def test_monotonic_in_edge(self):
        sizes = [compute_position_size(_make_opp(price=0.05, edge=e / 100), 1000.0, 1000.0) for e in range(1, 60)]
        assert sizes == sorted(sizes)

    def test_never_negative_or_above_caps(self):
        for price in (0.01, 0.05, 0.3, 0.6, 0.95):
            for edge in (0.0, 0.01, 0.1, 0.5):
                size = compute_position_size(_make_opp(price=price, edge=edge), 80.0, 15.0)
                assert 0.0 <= size <= 15.0
                assert size == int(size)

    def test_price_one_gives_zero(self):
        assert compute_position_size(_make_opp(price=1.0, edge=0.0), 100.0, 50.0) == 0.0
