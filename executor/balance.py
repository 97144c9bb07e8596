"""
Balance guard. Checks spendable USDC before an order and tops the trading
account up through the deposit capability when it runs short.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Callable

from client.platform import BalanceSource, Depositor
from scanner.models import BalanceCheck, DepositResult

logger = logging.getLogger(__name__)

DEPOSIT_BUFFER_USD = 2.0
SETTLEMENT_DELAY_SEC = 5.0


class BalanceGuard:
    def __init__(
        self,
        balance_source: BalanceSource,
        depositor: Depositor | None = None,
        buffer_usd: float = DEPOSIT_BUFFER_USD,
        settle_sec: float = SETTLEMENT_DELAY_SEC,
        sleeper: Callable[[float], None] = time.sleep,
    ):
        self._balance_source = balance_source
        self._depositor = depositor
        self._buffer = buffer_usd
        self._settle_sec = settle_sec
        self._sleep = sleeper
        self.last_balance: float | None = None

    def check(self, required: float) -> BalanceCheck:
        """Fail closed: any error reading the balance counts as insufficient."""
        try:
            available = float(self._balance_source.get_balance())
        except Exception as e:
            logger.warning("Balance check failed: %s", e)
            return BalanceCheck(sufficient=False, available=0.0, error=str(e))

        self.last_balance = available
        sufficient = available >= required
        if not sufficient:
            logger.info("Insufficient balance: $%.2f available, $%.2f required", available, required)
        return BalanceCheck(sufficient=sufficient, available=available)

    def deposit_amount(self, required: float) -> float:
        return math.ceil(required) + self._buffer

    def top_up(self, required: float) -> DepositResult:
        """Deposit ceil(required) + buffer. Never raises."""
        amount = self.deposit_amount(required)
        if self._depositor is None:
            logger.warning("Top-up of $%.2f needed but no deposit capability configured", amount)
            return DepositResult(success=False, amount=amount, error="no deposit capability configured")

        logger.info("Topping up $%.2f (required $%.2f + buffer $%.2f)", amount, required, self._buffer)
        try:
            result = self._depositor.deposit(amount)
        except Exception as e:
            logger.error("Deposit raised: %s", e)
            return DepositResult(success=False, amount=amount, error=str(e))
        if not result.success:
            logger.warning("Deposit failed: %s", result.error)
        return result

    def wait_for_settlement(self) -> None:
        """Fixed delay after a deposit. A heuristic, not a settlement guarantee."""
        if self._settle_sec > 0:
            logger.debug("Waiting %.1fs for deposit settlement", self._settle_sec)
            self._sleep(self._settle_sec)

    def log_initial_balance(self) -> float | None:
        try:
            balance = float(self._balance_source.get_balance())
        except Exception as e:
            logger.warning("Could not read starting balance: %s", e)
            return None
        self.last_balance = balance
        logger.info("Starting USDC balance: $%.2f", balance)
        return balance
