"""
Data models for the trading loop. Pure data, no behavior beyond derived properties.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum


class Outcome(Enum):
    YES = "YES"
    NO = "NO"

    @classmethod
    def parse(cls, name: str) -> Outcome | None:
        """Map an outcome label ("Yes", "NO", ...) to an Outcome, or None."""
        try:
            return cls(str(name).strip().upper())
        except ValueError:
            return None


class Side(Enum):
    BUY = "BUY"
    SELL = "SELL"


class SignalDirection(Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class OrderErrorKind(Enum):
    BALANCE_ALLOWANCE = "balance_allowance"  # top-up can fix it
    TRANSIENT = "transient"  # network, timeout, 5xx
    REJECTED = "rejected"  # exchange refused the order
    INVALID = "invalid"  # bad local input, never sent


class ExecutionState(Enum):
    CHECKING = "CHECKING"
    SUFFICIENT = "SUFFICIENT"
    EXECUTING = "EXECUTING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    DEPOSITING = "DEPOSITING"
    RETRY_EXECUTING = "RETRY_EXECUTING"
    FAILED_FINAL = "FAILED_FINAL"


@dataclass(frozen=True)
class ExplicitPrices:
    """Per-outcome price array published by the market (outcomePrices)."""
    prices: tuple[float, ...]


@dataclass(frozen=True)
class MakerDataPrices:
    """Price array derived from the market maker payload (marketMakerData)."""
    prices: tuple[float, ...]


@dataclass(frozen=True)
class MidpointPrice:
    """Best bid/ask of the first outcome. Complement is implied for binary markets."""
    bid: float
    ask: float

    @property
    def mid(self) -> float:
        return (self.bid + self.ask) / 2.0


PriceSource = ExplicitPrices | MakerDataPrices | MidpointPrice


@dataclass(frozen=True)
class MarketRecord:
    market_id: str  # condition ID
    question: str
    active: bool
    outcome_names: tuple[str, ...]
    outcome_prices: tuple[float, ...]
    token_ids: tuple[str, ...] = ()
    end_time: str = ""  # ISO 8601 (empty = unknown)
    volume: float = 0.0
    price_source: PriceSource | None = None


@dataclass(frozen=True)
class SignalItem:
    title: str
    source: str = ""
    url: str = ""
    sentiment: str = "neutral"  # positive | negative | neutral
    relevance: float = 0.0


@dataclass(frozen=True)
class SignalBundle:
    """External evidence about a market question, e.g. aggregated news sentiment."""
    query: str
    direction: SignalDirection
    confidence: float
    items: tuple[SignalItem, ...] = ()


@dataclass(frozen=True)
class ConfidenceScore:
    confidence: float
    should_trade: bool
    reasoning: str
    price_confidence: float = 0.0
    signal_confidence: float | None = None
    supporting_evidence: tuple[SignalItem, ...] = ()


@dataclass(frozen=True)
class MarketOpportunity:
    market_id: str
    question: str
    outcome: Outcome
    current_price: float
    predicted_probability: float
    confidence: float
    expected_value: float  # USDC
    risk_score: float
    signals: tuple[str, ...] = ()
    timestamp: float = field(default_factory=time.time)

    @property
    def edge(self) -> float:
        return abs(self.predicted_probability - self.current_price)


@dataclass(frozen=True)
class TradingDecision:
    market_id: str
    outcome: Outcome
    size: float  # USDC notional
    price: float
    confidence: float
    should_trade: bool
    reasoning: str
    question: str = ""


@dataclass(frozen=True)
class Position:
    market_id: str
    token_id: str
    outcome: str
    size: float  # shares
    avg_price: float
    current_price: float | None = None
    pnl: float | None = None

    @property
    def cost_basis(self) -> float:
        return self.size * self.avg_price


@dataclass(frozen=True)
class OrderRequest:
    token_id: str
    side: Side
    price: float
    size: float  # shares
    order_type: str = "GTC"


@dataclass(frozen=True)
class OrderResult:
    success: bool
    order_id: str | None = None
    error: str | None = None
    error_kind: OrderErrorKind | None = None


@dataclass(frozen=True)
class BalanceCheck:
    sufficient: bool
    available: float
    error: str | None = None


@dataclass(frozen=True)
class DepositResult:
    success: bool
    amount: float = 0.0
    transaction_hash: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class ExecutionOutcome:
    decision: TradingDecision
    state: ExecutionState
    order_id: str | None = None
    error: str | None = None
    deposit: DepositResult | None = None
    trail: tuple[ExecutionState, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.state == ExecutionState.SUCCESS
