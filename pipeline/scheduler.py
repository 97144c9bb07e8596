"""
Trading loop scheduler.

One worker thread runs a tick immediately on start and then every
scan_interval_sec until stopped. A tick:

  1. rolls the daily counter on a new calendar date
  2. skips entirely when the daily trade cap, the open position cap, or the
     trading-hours window says so (no scan is performed)
  3. scans, then for each opportunity in discovery order: re-checks the caps,
     evaluates, and either logs a would-be trade (monitoring mode) or runs the
     balance/execution state machine (unsupervised mode)

Ticks never overlap. stop() cancels the timer, lets an in-flight tick finish,
and is idempotent.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable

from client.platform import PositionSource
from config import Config
from executor.balance import BalanceGuard
from executor.engine import Executor, execute_decision
from executor.evaluator import OpportunityEvaluator
from monitor.ledger import TradeLedger
from monitor.logger import EXECUTED, FAILED_FINAL, WOULD_TRADE
from scanner.market_scanner import MarketScanner
from scanner.models import ExecutionState, OrderResult, TradingDecision
from state.checkpoint import StateCheckpoint
from state.counters import DailyCounters
from state.positions import PositionStore

logger = logging.getLogger(__name__)

COUNTERS_CHECKPOINT = "daily_counters"


class SchedulerStartError(Exception):
    """Raised by start() when the loop cannot be brought up (no markets, data or position source unreachable)."""
    pass


@dataclass
class TickResult:
    skipped_reason: str | None = None
    opportunities: int = 0
    rejected: int = 0
    simulated: int = 0
    executed: int = 0
    failed: int = 0
    capped: list[tuple[str, str]] = field(default_factory=list)  # (market_id, reason)
    decisions: list[TradingDecision] = field(default_factory=list)


@dataclass(frozen=True)
class SchedulerStatus:
    running: bool
    unsupervised: bool
    simple_mode: bool
    market_count: int
    scan_interval_sec: float
    daily_trades: int
    max_daily_trades: int
    reset_date: date
    open_positions: int
    max_open_positions: int
    exposure: float
    last_balance: float | None
    ticks: int
    last_tick_at: float | None
    last_skip_reason: str | None
    executed: int
    simulated: int
    failed: int
    trading_hours: tuple[int, int] | None = None
    unrealized_pnl: float | None = None


class Scheduler:
    def __init__(
        self,
        cfg: Config,
        scanner: MarketScanner,
        evaluator: OpportunityEvaluator,
        positions: PositionStore,
        position_source: PositionSource | None = None,
        guard: BalanceGuard | None = None,
        executor: Executor | None = None,
        ledger: TradeLedger | None = None,
        checkpoint: StateCheckpoint | None = None,
        today: Callable[[], date] = date.today,
        current_hour: Callable[[], int] = lambda: datetime.now().hour,
    ):
        if cfg.unsupervised_mode and (guard is None or executor is None):
            raise ValueError("unsupervised mode requires a balance guard and an executor")
        self._cfg = cfg
        self._scanner = scanner
        self._evaluator = evaluator
        self._positions = positions
        self._position_source = position_source
        self._guard = guard
        self._executor = executor
        self._ledger = ledger
        self._checkpoint = checkpoint
        self._today = today
        self._current_hour = current_hour

        # Single mutex for PositionStore and DailyCounters
        self._state_lock = positions.lock
        self._counters = DailyCounters(reset_date=today())
        self._tick_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._lifecycle_lock = threading.Lock()
        self._running = False

        self._ticks = 0
        self._last_tick_at: float | None = None
        self._last_skip_reason: str | None = None
        self._totals = {"executed": 0, "simulated": 0, "failed": 0}

    @property
    def running(self) -> bool:
        return self._running

    @property
    def counters(self) -> DailyCounters:
        return self._counters

    # -- Lifecycle --

    def _prepare(self) -> None:
        """Startup work shared by start() and run_once(). Raises SchedulerStartError."""
        if not self._scanner.market_ids:
            raise SchedulerStartError("no markets configured (MARKET_IDS is empty)")

        total = len(self._scanner.market_ids)
        try:
            reachable = self._scanner.count_reachable()
        except Exception as e:
            raise SchedulerStartError(f"market data source unreachable: {e}") from e
        if reachable == 0:
            raise SchedulerStartError(f"market data source unreachable: 0/{total} markets fetched")
        logger.info("Market data reachable: %d/%d markets", reachable, total)

        if self._checkpoint is not None:
            restored = self._checkpoint.load(COUNTERS_CHECKPOINT, DailyCounters)
            if restored is not None:
                with self._state_lock:
                    self._counters = restored
                logger.info("Daily trades restored: %d on %s", restored.trade_count, restored.reset_date)

        if self._position_source is not None:
            try:
                self._positions.reload(self._position_source)
            except Exception as e:
                raise SchedulerStartError(f"cannot load positions: {e}") from e

        if self._guard is not None:
            self._guard.log_initial_balance()

    def start(self) -> None:
        with self._lifecycle_lock:
            if self._running:
                logger.warning("Scheduler already running")
                return
            self._prepare()
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._run, name="trading-loop", daemon=True)
            self._running = True
            self._thread.start()
        logger.info(
            "Scheduler started: %d markets, every %.0fs, %s mode",
            len(self._scanner.market_ids), self._cfg.scan_interval_sec,
            "UNSUPERVISED" if self._cfg.unsupervised_mode else "MONITORING",
        )

    def stop(self, wait: bool = True) -> None:
        """Cancel the timer. An in-flight tick completes. No-op when already stopped."""
        with self._lifecycle_lock:
            if not self._running:
                return
            self._running = False
            self._stop_event.set()
            thread = self._thread
            self._thread = None

        if wait and thread is not None and thread is not threading.current_thread():
            thread.join()
        self._save_counters()
        logger.info("Scheduler stopped after %d ticks", self._ticks)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until stopped. True if the worker has exited."""
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def run_once(self) -> TickResult:
        self._prepare()
        return self.tick()

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("Tick crashed")
            self._stop_event.wait(self._cfg.scan_interval_sec)

    # -- Tick --

    def _cap_reason(self, include_hours: bool = True) -> str | None:
        with self._state_lock:
            trades = self._counters.trade_count
            open_positions = self._positions.count()
        if trades >= self._cfg.max_daily_trades:
            return f"daily trade cap reached ({trades}/{self._cfg.max_daily_trades})"
        if open_positions >= self._cfg.max_open_positions:
            return f"open position cap reached ({open_positions}/{self._cfg.max_open_positions})"
        if include_hours and self._cfg.has_trading_hours:
            hour = self._current_hour()
            if not self._cfg.trading_start_hour <= hour < self._cfg.trading_end_hour:
                return (
                    f"outside trading hours ({hour:02d}h not in "
                    f"{self._cfg.trading_start_hour:02d}-{self._cfg.trading_end_hour:02d}h)"
                )
        return None

    def tick(self) -> TickResult:
        if not self._tick_lock.acquire(blocking=False):
            logger.warning("Previous tick still running, skipping")
            return TickResult(skipped_reason="tick in progress")
        try:
            return self._tick()
        finally:
            self._tick_lock.release()

    def _tick(self) -> TickResult:
        self._ticks += 1
        self._last_tick_at = time.time()

        with self._state_lock:
            rolled = self._counters.roll(self._today())
        if rolled:
            logger.info("New trading day %s: daily trade count reset", self._counters.reset_date)
            self._save_counters()

        reason = self._cap_reason()
        self._last_skip_reason = reason
        if reason:
            logger.info("Tick %d skipped: %s", self._ticks, reason)
            return TickResult(skipped_reason=reason)

        result = TickResult()
        try:
            opportunities = self._scanner.find_opportunities()
        except Exception as e:
            logger.error("Scan failed: %s", e)
            result.skipped_reason = f"scan failed: {e}"
            return result
        result.opportunities = len(opportunities)

        # Markets acted on this tick; positions only refresh after a fill
        acted: set[str] = set()
        for opp in opportunities:
            if opp.market_id in acted or self._positions.has_position(opp.market_id):
                logger.info("Skipping %s... %s: market already positioned", opp.market_id[:10], opp.outcome.value)
                result.capped.append((opp.market_id, "market already positioned"))
                continue

            # Caps can be hit mid-tick by executions earlier in this loop
            reason = self._cap_reason(include_hours=False)
            if reason:
                logger.info("Skipping %s... %s: %s", opp.market_id[:10], opp.outcome.value, reason)
                result.capped.append((opp.market_id, reason))
                continue

            try:
                decision = self._evaluator.evaluate(opp)
            except Exception as e:
                logger.error("Evaluation failed for %s...: %s", opp.market_id[:10], e)
                result.rejected += 1
                continue
            result.decisions.append(decision)

            if not decision.should_trade:
                logger.info("No trade %s: %s", opp.question[:60], decision.reasoning)
                result.rejected += 1
                continue

            acted.add(opp.market_id)
            if not self._cfg.unsupervised_mode:
                logger.info(
                    "%s %s %s $%.2f @ %.3f | %s",
                    WOULD_TRADE, decision.outcome.value, opp.question[:60],
                    decision.size, decision.price, decision.reasoning,
                )
                result.simulated += 1
                self._record(lambda: self._ledger.record_simulated(decision))
                continue

            outcome = execute_decision(decision, self._guard, self._executor, on_success=self._on_success)
            if outcome.succeeded:
                result.executed += 1
                logger.info(
                    "%s %s %s $%.2f @ %.3f order=%s",
                    EXECUTED, decision.outcome.value, opp.question[:60],
                    decision.size, decision.price, outcome.order_id,
                )
            else:
                result.failed += 1
                tag = FAILED_FINAL if outcome.state == ExecutionState.FAILED_FINAL else "[FAILED]"
                logger.warning(
                    "%s %s %s: %s (path %s)",
                    tag, decision.outcome.value, opp.question[:60], outcome.error,
                    " -> ".join(s.value for s in outcome.trail),
                )
            self._record(lambda: self._ledger.record_outcome(outcome))

        self._totals["executed"] += result.executed
        self._totals["simulated"] += result.simulated
        self._totals["failed"] += result.failed
        logger.info(
            "Tick %d: %d opportunities, %d executed, %d simulated, %d rejected, %d failed, %d capped",
            self._ticks, result.opportunities, result.executed, result.simulated,
            result.rejected, result.failed, len(result.capped),
        )
        return result

    def _on_success(self, order: OrderResult) -> None:
        with self._state_lock:
            count = self._counters.increment()
        logger.debug("Order %s filled, daily trades now %d", order.order_id, count)
        self._save_counters()
        if self._position_source is not None:
            try:
                self._positions.reload(self._position_source)
            except Exception as e:
                logger.warning("Position reload after execution failed: %s", e)

    def _record(self, write: Callable[[], object]) -> None:
        if self._ledger is None:
            return
        try:
            write()
        except OSError as e:
            logger.error("Ledger write failed: %s", e)

    def _save_counters(self) -> None:
        if self._checkpoint is None:
            return
        with self._state_lock:
            snapshot = DailyCounters(self._counters.trade_count, self._counters.reset_date)
        try:
            self._checkpoint.save(COUNTERS_CHECKPOINT, snapshot)
        except Exception as e:
            logger.error("Counter checkpoint failed: %s", e)

    # -- Status --

    def status(self) -> SchedulerStatus:
        with self._state_lock:
            trades = self._counters.trade_count
            reset_date = self._counters.reset_date
            positions = self._positions.summary()
        hours = None
        if self._cfg.has_trading_hours:
            hours = (self._cfg.trading_start_hour, self._cfg.trading_end_hour)
        return SchedulerStatus(
            running=self._running,
            unsupervised=self._cfg.unsupervised_mode,
            simple_mode=self._cfg.simple_strategy_enabled,
            market_count=len(self._scanner.market_ids),
            scan_interval_sec=self._cfg.scan_interval_sec,
            daily_trades=trades,
            max_daily_trades=self._cfg.max_daily_trades,
            reset_date=reset_date,
            open_positions=positions["count"],
            max_open_positions=self._cfg.max_open_positions,
            exposure=positions["exposure"],
            unrealized_pnl=positions["unrealized_pnl"],
            last_balance=self._guard.last_balance if self._guard else None,
            ticks=self._ticks,
            last_tick_at=self._last_tick_at,
            last_skip_reason=self._last_skip_reason,
            executed=self._totals["executed"],
            simulated=self._totals["simulated"],
            failed=self._totals["failed"],
            trading_hours=hours,
        )
