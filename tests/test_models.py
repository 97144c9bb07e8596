"""
Unit tests for scanner/models.py -- derived properties and enum parsing.
"""

import pytest

from scanner.models import (
    DepositResult,
    ExecutionOutcome,
    ExecutionState,
    MarketOpportunity,
    MidpointPrice,
    Outcome,
    Position,
    TradingDecision,
)


class TestOutcome:
    @pytest.mark.parametrize("name", ["Yes", "YES", " yes "])
    def test_parse_yes(self, name):
        assert Outcome.parse(name) is Outcome.YES

    def test_parse_unknown(self):
        assert Outcome.parse("Lakers") is None


class TestDerived:
    def test_edge_is_absolute(self):
        opp = MarketOpportunity("m", "Q?", Outcome.YES, 0.06, 0.04, 0.8, 1.6, 0.2)
        assert opp.edge == pytest.approx(0.02)

    def test_cost_basis(self):
        assert Position("m", "t", "Yes", 200.0, 0.05).cost_basis == pytest.approx(10.0)

    def test_midpoint(self):
        assert MidpointPrice(bid=0.2, ask=0.3).mid == pytest.approx(0.25)

    def test_outcome_succeeded(self):
        decision = TradingDecision("m", Outcome.YES, 10.0, 0.04, 0.9, True, "r")
        assert ExecutionOutcome(decision, ExecutionState.SUCCESS).succeeded is True
        failed = ExecutionOutcome(decision, ExecutionState.FAILED_FINAL, deposit=DepositResult(success=False))
        assert failed.succeeded is False

    def test_frozen(self):
        decision = TradingDecision("m", Outcome.YES, 10.0, 0.04, 0.9, True, "r")
        with pytest.raises(AttributeError):
            decision.size = 20.0
