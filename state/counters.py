"""
Daily trade counter. Mutated only by the scheduler, under its state lock.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date


@dataclass
class DailyCounters:
    trade_count: int = 0
    reset_date: date = field(default_factory=date.today)

    def roll(self, today: date) -> bool:
        """Reset the count when today differs from reset_date. True if a reset happened."""
        if today == self.reset_date:
            return False
        self.trade_count = 0
        self.reset_date = today
        return True

    def increment(self) -> int:
        self.trade_count += 1
        return self.trade_count

    def to_dict(self) -> dict:
        return {"trade_count": self.trade_count, "reset_date": self.reset_date.isoformat()}

    @classmethod
    def from_dict(cls, data: dict) -> DailyCounters:
        return cls(
            trade_count=int(data["trade_count"]),
            reset_date=date.fromisoformat(data["reset_date"]),
        )
