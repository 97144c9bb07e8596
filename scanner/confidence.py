"""
Confidence model. Blends the bare price edge with an optional external signal
(e.g. news sentiment) into one confidence plus a human-readable rationale.

This is a filter, not the final trade gate: its minimum sits below the
evaluator's confidence threshold.

Without a signal (or an empty bundle) every candidate gets DEFAULT_CONFIDENCE
and passes. With evidence:

  price_conf  = clamp(0.5 + 4 * edge, 0, 0.95)
  signal_conf = bundle confidence if aligned (bullish/YES, bearish/NO),
                1 - confidence if opposed, 0.5 if neutral
  combined    = price_weight * price_conf + signal_weight * signal_conf
                x1.1  both above 0.7
                x0.9  they differ by more than 0.4
                x0.95 neutral signal
                clamped to [0, 0.95]
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from scanner.models import ConfidenceScore, Outcome, SignalBundle, SignalDirection

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.8
MAX_CONFIDENCE = 0.95

_AGREEMENT_LEVEL = 0.7
_AGREEMENT_BONUS = 1.1
_CONFLICT_GAP = 0.4
_CONFLICT_PENALTY = 0.9
_NEUTRAL_PENALTY = 0.95
_STRONG_PRICE = 0.85
_STRONG_SIGNAL = 0.8
_STRONG_SIGNAL_MIN_ITEMS = 3


def _clamp(value: float, lo: float = 0.0, hi: float = MAX_CONFIDENCE) -> float:
    return max(lo, min(hi, value))


def price_confidence(edge: float) -> float:
    """0.02 edge -> 0.58, 0.10 edge -> 0.90, capped at 0.95."""
    return _clamp(0.5 + 4.0 * edge)


def _alignment(direction: SignalDirection, outcome: Outcome) -> str:
    if direction == SignalDirection.NEUTRAL:
        return "neutral"
    supports = Outcome.YES if direction == SignalDirection.BULLISH else Outcome.NO
    return "aligned" if outcome is supports else "opposed"


@dataclass
class ConfidenceScorer:
    """Tunable blend. Weights must sum to 1."""

    price_weight: float = 0.6
    signal_weight: float = 0.4
    min_combined: float = 0.6
    min_price: float = 0.6
    min_signal: float = 0.5
    default_confidence: float = DEFAULT_CONFIDENCE

    def __post_init__(self) -> None:
        if abs(self.price_weight + self.signal_weight - 1.0) > 1e-9:
            raise ValueError(
                f"price_weight + signal_weight must be 1, got {self.price_weight} + {self.signal_weight}"
            )

    def score(self, edge: float, signal: SignalBundle | None, outcome: Outcome) -> ConfidenceScore:
        if signal is None or not signal.items:
            return ConfidenceScore(
                confidence=self.default_confidence,
                should_trade=True,
                reasoning=f"Price edge of {edge * 100:.1f}%, no external signal; default confidence {self.default_confidence:.0%}",
                price_confidence=price_confidence(edge),
            )

        p_conf = price_confidence(edge)
        alignment = _alignment(signal.direction, outcome)
        if alignment == "aligned":
            s_conf = signal.confidence
        elif alignment == "opposed":
            s_conf = 1.0 - signal.confidence
        else:
            s_conf = 0.5

        combined = self.price_weight * p_conf + self.signal_weight * s_conf
        if p_conf > _AGREEMENT_LEVEL and s_conf > _AGREEMENT_LEVEL:
            combined *= _AGREEMENT_BONUS
        elif abs(p_conf - s_conf) > _CONFLICT_GAP:
            combined *= _CONFLICT_PENALTY
        elif signal.direction == SignalDirection.NEUTRAL:
            combined *= _NEUTRAL_PENALTY
        combined = _clamp(combined)

        n_items = len(signal.items)
        should_trade = combined >= self.min_combined and (
            p_conf > _STRONG_PRICE
            or (s_conf > _STRONG_SIGNAL and n_items >= _STRONG_SIGNAL_MIN_ITEMS)
            or (p_conf >= self.min_price and s_conf >= self.min_signal)
        )

        parts = [f"Price edge of {edge * 100:.1f}% gives {p_conf:.0%} confidence"]
        if alignment == "aligned":
            parts.append(f"Signal is {signal.direction.value} ({n_items} items), supporting {outcome.value}")
        elif alignment == "opposed":
            parts.append(f"Signal is {signal.direction.value} against {outcome.value} (contrarian)")
        else:
            parts.append(f"Signal is neutral ({n_items} items)")
        parts.append(f"Combined confidence {combined:.0%}")
        if should_trade:
            parts.append("passed")
        elif combined < self.min_combined:
            parts.append(f"below minimum combined confidence {self.min_combined:.0%}")
        elif p_conf < self.min_price:
            parts.append("price edge too small")
        else:
            parts.append("signal too weak or conflicting")

        logger.debug("Confidence %s: price=%.2f signal=%.2f combined=%.2f", outcome.value, p_conf, s_conf, combined)
        return ConfidenceScore(
            confidence=combined,
            should_trade=should_trade,
            reasoning=". ".join(parts),
            price_confidence=p_conf,
            signal_confidence=s_conf,
            supporting_evidence=signal.items[:3],
        )
