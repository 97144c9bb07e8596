"""
Position sizing using a conservative Kelly fraction with hard caps.
"""

from __future__ import annotations

import logging
import math

from scanner.models import MarketOpportunity

logger = logging.getLogger(__name__)

CONSERVATIVE_FACTOR = 0.25  # quarter-Kelly


def kelly_fraction(edge: float, price: float) -> float:
    """
    Kelly criterion for a binary share bought at price: f* = edge / (1 - price).
    0 when there is no edge or no upside left (price >= 1).
    """
    if price >= 1.0 or edge <= 0:
        return 0.0
    return edge / (1.0 - price)


def compute_position_size(
    opportunity: MarketOpportunity,
    max_position_size: float,
    risk_limit_per_trade: float,
) -> float:
    """
    USDC notional for an opportunity:
      floor(min(kelly * CONSERVATIVE_FACTOR * max_position_size, risk_limit_per_trade))
    Never negative, never above risk_limit_per_trade or max_position_size * CONSERVATIVE_FACTOR.
    """
    f = kelly_fraction(opportunity.edge, opportunity.current_price)
    f = min(f, 1.0)  # size <= max_position_size * CONSERVATIVE_FACTOR
    raw = f * CONSERVATIVE_FACTOR * max_position_size
    size = math.floor(min(raw, risk_limit_per_trade))
    if size <= 0:
        logger.debug("Zero size for %s... (kelly=%.4f)", opportunity.market_id[:10], f)
        return 0.0
    return float(size)
