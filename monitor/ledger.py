"""
Append-only decision ledger. One JSON object per line for every decision the
loop acted on: executed, simulated (would trade) or failed.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import asdict, dataclass

from scanner.models import ExecutionOutcome, TradingDecision

logger = logging.getLogger(__name__)

LEDGER_FILE = "trade_ledger.ndjson"


@dataclass
class LedgerEntry:
    timestamp: float
    mode: str  # live | dry_run
    state: str
    market_id: str
    question: str
    outcome: str
    size: float
    price: float
    confidence: float
    reasoning: str
    order_id: str | None = None
    error: str | None = None
    deposit_amount: float | None = None
    deposit_tx: str | None = None


class TradeLedger:
    def __init__(self, ledger_path: str = LEDGER_FILE):
        self.ledger_path = ledger_path
        self._lock = threading.Lock()

    def record_simulated(self, decision: TradingDecision) -> LedgerEntry:
        return self._append(decision, mode="dry_run", state="WOULD_TRADE")

    def record_outcome(self, outcome: ExecutionOutcome) -> LedgerEntry:
        deposit = outcome.deposit
        return self._append(
            outcome.decision,
            mode="live",
            state=outcome.state.value,
            order_id=outcome.order_id,
            error=outcome.error,
            deposit_amount=deposit.amount if deposit else None,
            deposit_tx=deposit.transaction_hash if deposit else None,
        )

    def _append(self, decision: TradingDecision, mode: str, state: str, **extra) -> LedgerEntry:
        entry = LedgerEntry(
            timestamp=time.time(),
            mode=mode,
            state=state,
            market_id=decision.market_id,
            question=decision.question,
            outcome=decision.outcome.value,
            size=decision.size,
            price=decision.price,
            confidence=round(decision.confidence, 4),
            reasoning=decision.reasoning,
            **extra,
        )
        line = json.dumps(asdict(entry), separators=(",", ":"))
        with self._lock:
            with open(self.ledger_path, "a") as f:
                f.write(line + "\n")
        return entry
