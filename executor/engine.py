"""
Trade execution. Resolves a decision to an order, submits it, and recovers from
a balance/allowance shortfall with a single top-up-and-retry.

State machine per decision:

  CHECKING -> SUFFICIENT -> EXECUTING -> SUCCESS
                                      -> FAILED                (non-balance error)
                                      -> FAILED(balance) -> DEPOSITING
  CHECKING (short) ------------------------------------> DEPOSITING
  DEPOSITING -> RETRY_EXECUTING -> SUCCESS | FAILED_FINAL
  DEPOSITING (deposit failed) ----> FAILED_FINAL

At most one deposit and one retry per decision.
"""

from __future__ import annotations

import logging
import math
from typing import Callable

from client.gamma import resolve_token_id
from client.platform import MarketFetcher, OrderPlacer
from executor.balance import BalanceGuard
from scanner.models import (
    ExecutionOutcome,
    ExecutionState,
    OrderErrorKind,
    OrderRequest,
    OrderResult,
    Side,
    TradingDecision,
)

logger = logging.getLogger(__name__)

# Exchange minimum order value (USDC)
MIN_ORDER_VALUE = 1.0


class InstrumentNotFound(Exception):
    """Raised when a market has no token id for the requested outcome."""
    pass


class Executor:
    def __init__(
        self,
        order_placer: OrderPlacer,
        fetch_market: MarketFetcher,
        min_order_value: float = MIN_ORDER_VALUE,
    ):
        self._order_placer = order_placer
        self._fetch_market = fetch_market
        self._min_order_value = min_order_value

    def notional(self, decision: TradingDecision) -> float:
        """USDC committed by an order for this decision, lifted to the exchange minimum."""
        return max(decision.size, self._min_order_value)

    def resolve_instrument(self, decision: TradingDecision) -> str:
        """Token id for the decision's market and outcome. Raises InstrumentNotFound."""
        record = self._fetch_market(decision.market_id)
        token_id = resolve_token_id(record, decision.outcome)
        if not token_id:
            raise InstrumentNotFound(
                f"no token id for {decision.outcome.value} in market {decision.market_id[:10]}..."
            )
        return token_id

    def place(self, decision: TradingDecision) -> OrderResult:
        """Submit a BUY GTC order for the decision. Never raises."""
        if not math.isfinite(decision.price) or decision.price <= 0 or decision.price >= 1:
            return OrderResult(
                success=False, error=f"invalid price {decision.price}", error_kind=OrderErrorKind.INVALID,
            )

        try:
            token_id = self.resolve_instrument(decision)
        except InstrumentNotFound as e:
            logger.warning("Instrument not found: %s", e)
            return OrderResult(success=False, error=str(e), error_kind=OrderErrorKind.INVALID)
        except Exception as e:
            logger.warning("Market lookup failed for %s...: %s", decision.market_id[:10], e)
            return OrderResult(success=False, error=str(e), error_kind=OrderErrorKind.TRANSIENT)

        notional = self.notional(decision)
        if notional > decision.size:
            logger.info("Order value $%.2f lifted to exchange minimum $%.2f", decision.size, notional)
        units = notional / decision.price

        request = OrderRequest(token_id=token_id, side=Side.BUY, price=decision.price, size=units)
        try:
            return self._order_placer.place_order(request)
        except Exception as e:
            logger.error("Order placer raised for %s...: %s", decision.market_id[:10], e)
            return OrderResult(success=False, error=str(e), error_kind=OrderErrorKind.TRANSIENT)


def execute_decision(
    decision: TradingDecision,
    guard: BalanceGuard,
    executor: Executor,
    on_success: Callable[[OrderResult], None] | None = None,
) -> ExecutionOutcome:
    """
    Run one approved decision through the balance/execution state machine.
    Never places an order for a decision with should_trade False.
    """
    trail: list[ExecutionState] = []

    def _finish(state: ExecutionState, result: OrderResult | None = None, error: str | None = None, deposit=None):
        trail.append(state)
        if state == ExecutionState.SUCCESS and on_success is not None and result is not None:
            on_success(result)
        return ExecutionOutcome(
            decision=decision,
            state=state,
            order_id=result.order_id if result else None,
            error=error if error is not None else (result.error if result else None),
            deposit=deposit,
            trail=tuple(trail),
        )

    if not decision.should_trade:
        return _finish(ExecutionState.FAILED, error="decision not approved")

    required = executor.notional(decision)

    trail.append(ExecutionState.CHECKING)
    check = guard.check(required)
    if check.error is not None:
        return _finish(ExecutionState.FAILED, error=f"balance check failed: {check.error}")

    if check.sufficient:
        trail.append(ExecutionState.SUFFICIENT)
        trail.append(ExecutionState.EXECUTING)
        result = executor.place(decision)
        if result.success:
            return _finish(ExecutionState.SUCCESS, result)
        if result.error_kind != OrderErrorKind.BALANCE_ALLOWANCE:
            return _finish(ExecutionState.FAILED, result)
        trail.append(ExecutionState.FAILED)
        logger.warning("Balance/allowance error on %s...: %s", decision.market_id[:10], result.error)

    trail.append(ExecutionState.DEPOSITING)
    deposit = guard.top_up(required)
    if not deposit.success:
        return _finish(ExecutionState.FAILED_FINAL, error=f"deposit failed: {deposit.error}", deposit=deposit)
    guard.wait_for_settlement()

    trail.append(ExecutionState.RETRY_EXECUTING)
    result = executor.place(decision)
    if result.success:
        return _finish(ExecutionState.SUCCESS, result, deposit=deposit)
    return _finish(ExecutionState.FAILED_FINAL, result, deposit=deposit)
