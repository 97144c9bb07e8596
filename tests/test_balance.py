"""
Unit tests for executor/balance.py -- balance checks and deposit top-ups.
"""

from unittest.mock import MagicMock

import pytest

from executor.balance import BalanceGuard
from scanner.models import DepositResult


def _make_guard(balance=100.0, depositor=None, **kwargs):
    source = MagicMock()
    if isinstance(balance, Exception):
        source.get_balance.side_effect = balance
    else:
        source.get_balance.return_value = balance
    sleeper = MagicMock()
    guard = BalanceGuard(source, depositor=depositor, sleeper=sleeper, **kwargs)
    return guard, source, sleeper


class TestCheck:
    def test_sufficient(self):
        guard, _, _ = _make_guard(balance=25.0)
        check = guard.check(20.0)
        assert check.sufficient is True
        assert check.available == 25.0
        assert check.error is None
        assert guard.last_balance == 25.0

    def test_exact_amount_is_sufficient(self):
        guard, _, _ = _make_guard(balance=20.0)
        assert guard.check(20.0).sufficient is True

    def test_short(self):
        guard, _, _ = _make_guard(balance=5.0)
        check = guard.check(20.0)
        assert check.sufficient is False
        assert check.error is None

    def test_error_fails_closed(self):
        guard, _, _ = _make_guard(balance=ConnectionError("clob down"))
        check = guard.check(1.0)
        assert check.sufficient is False
        assert check.available == 0.0
        assert "clob down" in check.error
        assert guard.last_balance is None


class TestTopUp:
    def test_amount_is_ceiling_plus_buffer(self):
        guard, _, _ = _make_guard(buffer_usd=2.0)
        assert guard.deposit_amount(10.2) == 13.0
        assert guard.deposit_amount(10.0) == 12.0

    def test_deposits(self):
        depositor = MagicMock()
        depositor.deposit.return_value = DepositResult(success=True, amount=13.0, transaction_hash="0xabc")
        guard, _, _ = _make_guard(depositor=depositor)
        result = guard.top_up(10.2)
        assert result.success is True
        depositor.deposit.assert_called_once_with(13.0)

    def test_no_depositor(self):
        guard, _, _ = _make_guard()
        result = guard.top_up(5.0)
        assert result.success is False
        assert "no deposit capability" in result.error

    def test_depositor_failure_passed_through(self):
        depositor = MagicMock()
        depositor.deposit.return_value = DepositResult(success=False, amount=7.0, error="wallet empty")
        guard, _, _ = _make_guard(depositor=depositor)
        assert guard.top_up(5.0).error == "wallet empty"

    def test_depositor_raising_never_escapes(self):
        depositor = MagicMock()
        depositor.deposit.side_effect = RuntimeError("boom")
        guard, _, _ = _make_guard(depositor=depositor)
        result = guard.top_up(5.0)
        assert result.success is False
        assert result.error == "boom"


class TestSettlement:
    def test_waits_configured_delay(self):
        guard, _, sleeper = _make_guard(settle_sec=5.0)
        guard.wait_for_settlement()
        sleeper.assert_called_once_with(5.0)

    def test_zero_delay_skips_sleep(self):
        guard, _, sleeper = _make_guard(settle_sec=0)
        guard.wait_for_settlement()
        sleeper.assert_not_called()


class TestInitialBalance:
    def test_logged(self):
        guard, _, _ = _make_guard(balance=42.5)
        assert guard.log_initial_balance() == pytest.approx(42.5)
        assert guard.last_balance == 42.5

    def test_failure_returns_none(self):
        guard, _, _ = _make_guard(balance=RuntimeError("nope"))
        assert guard.log_initial_balance() is None
