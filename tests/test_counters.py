"""
Unit tests for state/counters.py -- daily trade counter.
"""

from datetime import date

import pytest

from state.counters import DailyCounters


class TestDailyCounters:
    def test_increment(self):
        c = DailyCounters(reset_date=date(2026, 3, 1))
        assert c.increment() == 1
        assert c.increment() == 2

    def test_same_day_no_reset(self):
        c = DailyCounters(trade_count=4, reset_date=date(2026, 3, 1))
        assert c.roll(date(2026, 3, 1)) is False
        assert c.trade_count == 4

    def test_new_day_resets_once(self):
        c = DailyCounters(trade_count=4, reset_date=date(2026, 3, 1))
        assert c.roll(date(2026, 3, 2)) is True
        assert c.trade_count == 0
        assert c.reset_date == date(2026, 3, 2)
        c.increment()
        assert c.roll(date(2026, 3, 2)) is False
        assert c.trade_count == 1

    def test_round_trip(self):
        c = DailyCounters(trade_count=3, reset_date=date(2026, 3, 1))
        assert c.to_dict() == {"trade_count": 3, "reset_date": "2026-03-01"}
        assert DailyCounters.from_dict(c.to_dict()) == c

    def test_from_dict_rejects_garbage(self):
        with pytest.raises(ValueError):
            DailyCounters.from_dict({"trade_count": 1, "reset_date": "yesterday"})
