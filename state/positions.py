"""
Open positions, keyed by market id (token id when the market id is unknown).

Contents are only ever replaced wholesale from the position source; nothing
edits individual entries. Readers get a copy.
"""

from __future__ import annotations

import logging
import threading

from client.platform import PositionSource
from scanner.models import Position

logger = logging.getLogger(__name__)


def position_key(position: Position) -> str:
    return position.market_id or position.token_id


class PositionStore:
    def __init__(self, lock: threading.RLock | None = None) -> None:
        self._positions: dict[str, Position] = {}
        self._lock = lock or threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        """Shared with the scheduler, which guards its daily counters with the same mutex."""
        return self._lock

    def reload(self, source: PositionSource) -> int:
        """
        Replace every position with the source's current view. Returns the new count.
        Raises whatever the source raises; contents are unchanged on failure.
        """
        fresh: dict[str, Position] = {}
        for pos in source.get_positions():
            key = position_key(pos)
            existing = fresh.get(key)
            if existing is not None:
                # Same market held on several tokens: keep the larger holding
                if existing.size >= pos.size:
                    continue
            fresh[key] = pos

        with self._lock:
            self._positions = fresh
        logger.info("Positions reloaded: %d open", len(fresh))
        return len(fresh)

    def snapshot(self) -> dict[str, Position]:
        with self._lock:
            return dict(self._positions)

    def market_ids(self) -> set[str]:
        with self._lock:
            return set(self._positions)

    def has_position(self, market_id: str) -> bool:
        with self._lock:
            return market_id in self._positions

    def count(self) -> int:
        with self._lock:
            return len(self._positions)

    def summary(self) -> dict:
        """Count, cost basis (USDC) and unrealized P&L of open positions, from one snapshot."""
        positions = self.snapshot()
        pnl = [p.pnl for p in positions.values() if p.pnl is not None]
        return {
            "count": len(positions),
            "exposure": round(sum(p.cost_basis for p in positions.values()), 2),
            "unrealized_pnl": round(sum(pnl), 2) if pnl else None,
        }
