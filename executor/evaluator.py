"""
Final trade gate. Turns a MarketOpportunity into a sized TradingDecision.

Normal mode:
  size             = quarter-Kelly notional capped by risk_limit_per_trade
  final_confidence = confidence * (1 - risk_score)
  trade            iff final_confidence >= min_confidence_threshold
                       and size > 0 and expected_value > MIN_EXPECTED_VALUE
Simplified test mode:
  size  = test_position_size
  trade iff size > 0 and confidence >= simple_min_confidence

Rejected decisions always carry size 0. Reasoning is deterministic for the
same inputs.
"""

from __future__ import annotations

import logging
import math

from config import Config
from executor.sizing import compute_position_size
from scanner.models import MarketOpportunity, TradingDecision

logger = logging.getLogger(__name__)

MIN_EXPECTED_VALUE = 5.0  # USDC


class OpportunityEvaluator:
    def __init__(self, cfg: Config):
        self._cfg = cfg

    @property
    def simple_mode(self) -> bool:
        return self._cfg.simple_strategy_enabled

    def evaluate(self, opportunity: MarketOpportunity) -> TradingDecision:
        price = opportunity.current_price
        if not math.isfinite(price) or price <= 0 or price >= 1:
            return self._reject(opportunity, 0.0, f"Invalid price {price}: no trade")

        if self.simple_mode:
            size = float(self._cfg.test_position_size)
        else:
            size = compute_position_size(
                opportunity, self._cfg.max_position_size, self._cfg.risk_limit_per_trade,
            )
        final_confidence = opportunity.confidence * (1.0 - opportunity.risk_score)

        failed: list[str] = []
        if self.simple_mode:
            if opportunity.confidence < self._cfg.simple_min_confidence:
                failed.append(
                    f"confidence {opportunity.confidence:.1%} below {self._cfg.simple_min_confidence:.0%}"
                )
        else:
            if final_confidence < self._cfg.min_confidence_threshold:
                failed.append(
                    f"final confidence {final_confidence:.1%} below {self._cfg.min_confidence_threshold:.0%}"
                )
            if opportunity.expected_value <= MIN_EXPECTED_VALUE:
                failed.append(
                    f"expected value ${opportunity.expected_value:.2f} not above ${MIN_EXPECTED_VALUE:.2f}"
                )
        if size <= 0:
            failed.append("position size is zero")

        facts = (
            f"confidence {opportunity.confidence:.1%} (final {final_confidence:.1%}), "
            f"EV ${opportunity.expected_value:.2f}, edge {opportunity.edge:.3f}, "
            f"price {price * 100:.1f}%"
        )
        if failed:
            return self._reject(opportunity, final_confidence, f"Rejected: {'; '.join(failed)}. {facts}")

        reasoning = f"Trade {opportunity.outcome.value} ${size:.0f}: {facts}"
        if len(opportunity.signals) > 1:
            reasoning += f", {len(opportunity.signals) - 1} supporting signals"
        return TradingDecision(
            market_id=opportunity.market_id,
            outcome=opportunity.outcome,
            size=size,
            price=price,
            confidence=final_confidence,
            should_trade=True,
            reasoning=reasoning,
            question=opportunity.question,
        )

    def _reject(self, opportunity: MarketOpportunity, confidence: float, reasoning: str) -> TradingDecision:
        logger.debug("%s... %s", opportunity.market_id[:10], reasoning)
        return TradingDecision(
            market_id=opportunity.market_id,
            outcome=opportunity.outcome,
            size=0.0,
            price=opportunity.current_price,
            confidence=confidence,
            should_trade=False,
            reasoning=reasoning,
            question=opportunity.question,
        )
