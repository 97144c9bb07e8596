"""
Unit tests for executor/evaluator.py -- the final trade gate.
"""

import pytest

from config import Config
from executor.evaluator import MIN_EXPECTED_VALUE, OpportunityEvaluator
from scanner.models import MarketOpportunity, Outcome


def _make_opp(price=0.4, edge=0.5, confidence=0.95, risk=None, ev=None, outcome=Outcome.YES, signals=("Price edge",)):
    return MarketOpportunity(
        market_id="0xmarket123456",
        question="Will it happen?",
        outcome=outcome,
        current_price=price,
        predicted_probability=price + edge,
        confidence=confidence,
        expected_value=ev if ev is not None else edge * 100 * confidence,
        risk_score=risk if risk is not None else 1 - confidence,
        signals=signals,
    )


def _make_evaluator(**overrides):
    return OpportunityEvaluator(Config(_env_file=None, **overrides))


class TestNormalMode:
    def test_approved(self):
        decision = _make_evaluator().evaluate(_make_opp())
        assert decision.should_trade is True
        assert decision.size == 20.0
        assert decision.price == 0.4
        assert decision.outcome == Outcome.YES
        assert decision.confidence == pytest.approx(0.95 * 0.95)
        assert decision.question == "Will it happen?"
        assert decision.reasoning.startswith("Trade YES $20")

    def test_default_confidence_falls_below_threshold(self):
        # 0.8 * (1 - 0.2) = 0.64 < 0.7
        decision = _make_evaluator().evaluate(_make_opp(confidence=0.8))
        assert decision.should_trade is False
        assert "final confidence 64.0% below 70%" in decision.reasoning

    def test_expected_value_must_exceed_minimum(self):
        decision = _make_evaluator().evaluate(_make_opp(ev=MIN_EXPECTED_VALUE))
        assert decision.should_trade is False
        assert "expected value" in decision.reasoning

    def test_zero_size_rejected(self):
        decision = _make_evaluator().evaluate(_make_opp(price=0.04, edge=0.01, ev=50.0))
        assert decision.should_trade is False
        assert "position size is zero" in decision.reasoning

    def test_rejection_carries_zero_size(self):
        decision = _make_evaluator().evaluate(_make_opp(confidence=0.5))
        assert decision.should_trade is False
        assert decision.size == 0.0
        assert decision.reasoning.startswith("Rejected: ")

    def test_all_failed_gates_listed(self):
        decision = _make_evaluator().evaluate(_make_opp(confidence=0.5, ev=1.0, edge=0.001))
        for fragment in ("final confidence", "expected value", "position size is zero"):
            assert fragment in decision.reasoning

    def test_threshold_configurable(self):
        decision = _make_evaluator(min_confidence_threshold=0.6).evaluate(_make_opp(confidence=0.8))
        assert decision.should_trade is True

    def test_risk_limit_applied(self):
        decision = _make_evaluator(max_position_size=100, risk_limit_per_trade=5).evaluate(_make_opp())
        assert decision.size == 5.0

    def test_supporting_signals_counted(self):
        decision = _make_evaluator().evaluate(_make_opp(signals=("Price edge", "News: a", "News: b")))
        assert "2 supporting signals" in decision.reasoning

    def test_deterministic_reasoning(self):
        ev = _make_evaluator()
        opp = _make_opp(confidence=0.6)
        assert ev.evaluate(opp) == ev.evaluate(opp)


class TestSimpleMode:
    def test_fixed_size(self):
        ev = _make_evaluator(simple_strategy_enabled=True, test_position_size=10)
        decision = ev.evaluate(_make_opp(price=0.04, edge=0.01, confidence=0.8, ev=0.8))
        assert ev.simple_mode is True
        assert decision.should_trade is True
        assert decision.size == 10.0

    def test_confidence_gate(self):
        ev = _make_evaluator(simple_strategy_enabled=True, simple_min_confidence=0.9)
        decision = ev.evaluate(_make_opp(confidence=0.8))
        assert decision.should_trade is False
        assert decision.size == 0.0

    def test_zero_test_size_rejected(self):
        ev = _make_evaluator(simple_strategy_enabled=True, test_position_size=0)
        assert ev.evaluate(_make_opp()).should_trade is False


class TestInvalidPrice:
    @pytest.mark.parametrize("price", [0.0, 1.0, -0.2, float("nan")])
    def test_rejected(self, price):
        decision = _make_evaluator().evaluate(_make_opp(price=price, edge=0.0, ev=50.0))
        assert decision.should_trade is False
        assert decision.size == 0.0
        assert "Invalid price" in decision.reasoning
