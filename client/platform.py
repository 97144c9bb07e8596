"""
Collaborator protocols. The scanner, executor and scheduler depend only on
these shapes, so any exchange client, wallet or news feed that satisfies them
plugs in with zero changes, and tests substitute plain fakes.
"""

from __future__ import annotations

from typing import Callable, Protocol, runtime_checkable

from scanner.models import (
    DepositResult,
    MarketRecord,
    OrderRequest,
    OrderResult,
    Position,
    SignalBundle,
)

# condition_id -> MarketRecord; raises client.gamma.MarketUnavailable
MarketFetcher = Callable[[str], MarketRecord]


@runtime_checkable
class OrderPlacer(Protocol):
    def place_order(self, request: OrderRequest) -> OrderResult:
        """Submit an order. Failures come back as OrderResult(success=False)."""
        ...


@runtime_checkable
class BalanceSource(Protocol):
    def get_balance(self) -> float:
        """Spendable collateral in USDC. Raises on failure."""
        ...


@runtime_checkable
class Depositor(Protocol):
    def deposit(self, amount: float) -> DepositResult:
        """Move amount USDC into the trading account. Never raises."""
        ...


@runtime_checkable
class PositionSource(Protocol):
    def get_positions(self) -> list[Position]:
        """Every open position. Raises on failure."""
        ...


@runtime_checkable
class SignalSource(Protocol):
    def get_signal(self, question: str) -> SignalBundle | None:
        """External evidence for a market question, or None when there is none."""
        ...
