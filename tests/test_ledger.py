"""
Unit tests for monitor/ledger.py -- append-only decision ledger.
"""

import json

from monitor.ledger import TradeLedger
from scanner.models import DepositResult, ExecutionOutcome, ExecutionState, Outcome, TradingDecision


def _decision():
    return TradingDecision(
        market_id="0xmarket123456",
        outcome=Outcome.NO,
        size=20.0,
        price=0.03,
        confidence=0.912345,
        should_trade=True,
        reasoning="Trade NO $20",
        question="Will it happen?",
    )


def _lines(path):
    with open(path) as f:
        return [json.loads(line) for line in f]


class TestTradeLedger:
    def test_simulated(self, tmp_path):
        path = tmp_path / "ledger.ndjson"
        ledger = TradeLedger(str(path))
        entry = ledger.record_simulated(_decision())
        assert entry.state == "WOULD_TRADE"
        rows = _lines(path)
        assert len(rows) == 1
        assert rows[0]["mode"] == "dry_run"
        assert rows[0]["outcome"] == "NO"
        assert rows[0]["confidence"] == 0.9123
        assert rows[0]["order_id"] is None

    def test_executed_with_deposit(self, tmp_path):
        path = tmp_path / "ledger.ndjson"
        ledger = TradeLedger(str(path))
        outcome = ExecutionOutcome(
            decision=_decision(),
            state=ExecutionState.SUCCESS,
            order_id="0xorder",
            deposit=DepositResult(success=True, amount=22.0, transaction_hash="0xtx"),
        )
        ledger.record_outcome(outcome)
        row = _lines(path)[0]
        assert row["mode"] == "live"
        assert row["state"] == "SUCCESS"
        assert row["order_id"] == "0xorder"
        assert row["deposit_amount"] == 22.0
        assert row["deposit_tx"] == "0xtx"

    def test_appends_in_order(self, tmp_path):
        path = tmp_path / "ledger.ndjson"
        ledger = TradeLedger(str(path))
        ledger.record_simulated(_decision())
        ledger.record_outcome(ExecutionOutcome(decision=_decision(), state=ExecutionState.SUCCESS, order_id="o"))
        ledger.record_outcome(ExecutionOutcome(decision=_decision(), state=ExecutionState.FAILED_FINAL, error="x"))
        assert [row["state"] for row in _lines(path)] == ["WOULD_TRADE", "SUCCESS", "FAILED_FINAL"]
