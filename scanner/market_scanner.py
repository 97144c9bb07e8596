"""
Threshold scanner over a fixed market universe.

For every configured market without an open position:
  1. Fetch the MarketRecord (parallel, bounded worker pool). Unavailable or
     inactive markets are skipped.
  2. For each outcome apply two rules:
     - cheap buy:     price <= buy_threshold and buy_threshold - price >= min_edge
                      -> buy that outcome, edge = buy_threshold - price
     - expensive YES: YES price >= sell_threshold, price - sell_threshold >= min_edge
                      and 1 - price <= buy_threshold
                      -> buy NO at 1 - price, edge = price - sell_threshold
  3. Score each candidate (price edge + optional external signal) and keep the
     ones the scorer lets through, with
       expected_value = edge * 100 * confidence
       risk_score     = 1 - confidence

Results come back in configured market order regardless of fetch completion order.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

import httpx

from client.gamma import MarketUnavailable
from client.platform import MarketFetcher, SignalSource
from scanner.confidence import ConfidenceScorer
from scanner.models import MarketOpportunity, MarketRecord, Outcome, SignalBundle

logger = logging.getLogger(__name__)

# Absorbs float error in threshold subtraction (0.05 - 0.04 < 0.01 in binary)
_EPS = 1e-9


class MarketScanner:
    def __init__(
        self,
        market_ids: list[str],
        fetch_market: MarketFetcher,
        positioned_ids: Callable[[], set[str]],
        buy_threshold: float = 0.10,
        sell_threshold: float = 0.90,
        min_edge: float = 0.02,
        signal_source: SignalSource | None = None,
        scorer: ConfidenceScorer | None = None,
        max_workers: int = 8,
    ):
        self._market_ids = list(market_ids)
        self._fetch_market = fetch_market
        self._positioned_ids = positioned_ids
        self.buy_threshold = buy_threshold
        self.sell_threshold = sell_threshold
        self.min_edge = min_edge
        self._signal_source = signal_source
        self._scorer = scorer or ConfidenceScorer()
        self._max_workers = max(1, max_workers)
        self.last_markets_scanned = 0

    @property
    def market_ids(self) -> list[str]:
        return list(self._market_ids)

    def find_opportunities(self) -> list[MarketOpportunity]:
        held = self._positioned_ids()
        targets = [m for m in self._market_ids if m not in held]
        skipped = len(self._market_ids) - len(targets)
        if skipped:
            logger.debug("Skipping %d market(s) with open positions", skipped)

        records = self._fetch_all(targets)
        self.last_markets_scanned = sum(1 for r in records if r is not None)

        opportunities: list[MarketOpportunity] = []
        for market_id, record in zip(targets, records):
            if record is None:
                continue
            if not record.active:
                logger.debug("Market %s... inactive, skipping", market_id[:10])
                continue
            opportunities.extend(self.analyze_market(record))

        logger.info(
            "Scan: %d/%d markets fetched, %d opportunities",
            self.last_markets_scanned, len(targets), len(opportunities),
        )
        return opportunities

    def _fetch_all(self, market_ids: list[str]) -> list[MarketRecord | None]:
        """Fetch records in parallel. Output is aligned with market_ids; failures are None."""
        if not market_ids:
            return []

        def _fetch_single(market_id: str) -> MarketRecord | None:
            try:
                return self._fetch_market(market_id)
            except (MarketUnavailable, httpx.HTTPError) as e:
                logger.warning("Market %s... unavailable: %s", market_id[:10], e)
                return None

        workers = min(self._max_workers, len(market_ids))
        if workers == 1:
            return [_fetch_single(m) for m in market_ids]
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(_fetch_single, market_ids))

    def count_reachable(self) -> int:
        """Fetch every configured market once. Returns how many came back."""
        return sum(1 for record in self._fetch_all(self._market_ids) if record is not None)

    def candidates(self, record: MarketRecord) -> list[tuple[Outcome, float, float, str]]:
        """
        Threshold rules only: (outcome, price, edge, label) per candidate.
        At most one candidate per outcome; when both rules pick NO the larger edge wins.
        """
        found: dict[Outcome, tuple[Outcome, float, float, str]] = {}

        def _keep(outcome: Outcome, price: float, edge: float, label: str) -> None:
            current = found.get(outcome)
            if current is None or edge > current[2]:
                found[outcome] = (outcome, price, edge, label)

        for name, price in zip(record.outcome_names, record.outcome_prices):
            outcome = Outcome.parse(name)
            if outcome is None:
                continue

            if price <= self.buy_threshold:
                edge = self.buy_threshold - price
                if edge + _EPS >= self.min_edge:
                    _keep(outcome, price, edge, f"Price edge: {outcome.value} at {price * 100:.1f}%")

            if outcome is Outcome.YES and price >= self.sell_threshold:
                no_price = 1.0 - price
                edge = price - self.sell_threshold
                if edge + _EPS >= self.min_edge and no_price <= self.buy_threshold + _EPS:
                    _keep(Outcome.NO, no_price, edge, f"Price edge: NO at {no_price * 100:.1f}% (YES expensive)")
        return list(found.values())

    def analyze_market(self, record: MarketRecord) -> list[MarketOpportunity]:
        candidates = self.candidates(record)
        if not candidates:
            return []

        signal = self._lookup_signal(record.question)
        opportunities: list[MarketOpportunity] = []
        for outcome, price, edge, label in candidates:
            score = self._scorer.score(edge, signal, outcome)
            if not score.should_trade:
                logger.info("Rejected by scorer: %s - %s (%s)", record.question[:60], outcome.value, score.reasoning)
                continue

            signals = [label]
            if score.signal_confidence is not None:
                signals.append(score.reasoning)
            signals.extend(f"News: {item.title}" for item in score.supporting_evidence)

            opp = MarketOpportunity(
                market_id=record.market_id,
                question=record.question,
                outcome=outcome,
                current_price=price,
                predicted_probability=min(1.0, price + edge),
                confidence=score.confidence,
                expected_value=edge * 100 * score.confidence,
                risk_score=1.0 - score.confidence,
                signals=tuple(signals),
            )
            logger.info(
                "Opportunity: %s | %s at %.1f%%, edge %.3f, confidence %.0f%%",
                record.question[:60], outcome.value, price * 100, edge, score.confidence * 100,
            )
            opportunities.append(opp)
        return opportunities

    def _lookup_signal(self, question: str) -> SignalBundle | None:
        if self._signal_source is None:
            return None
        try:
            return self._signal_source.get_signal(question)
        except Exception as e:
            logger.warning("Signal lookup failed for %r: %s", question[:60], e)
            return None
