#!/usr/bin/env python3
"""
Autonomous prediction-market trader -- entry point.

Wires the loop together:
  1. Load config (env + .env)
  2. Build market data, signal, position and (live only) order/balance/deposit clients
  3. Start the scheduler: scan -> evaluate -> would-trade log or execute, every SCAN_INTERVAL_SEC
  4. Stop cleanly on SIGINT/SIGTERM

Usage:
  python run.py --dry-run                 # monitoring mode, no wallet needed
  python run.py --dry-run --once          # one tick, print status, exit
  python run.py --live                    # real orders (needs PRIVATE_KEY + POLYMARKET_PROFILE_ADDRESS)
  python run.py --markets 0xabc,0xdef     # override MARKET_IDS
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import time
from functools import partial

from pydantic import ValidationError

from client.auth import build_clob_client
from client.clob import ClobGateway
from client.data import DataApiPositionSource
from client.deposit import Web3Depositor
from client.gamma import get_market
from config import Config, load_config
from executor.balance import BalanceGuard
from executor.engine import Executor
from executor.evaluator import OpportunityEvaluator
from monitor.ledger import TradeLedger
from monitor.logger import setup_logging
from monitor.status import format_status
from pipeline.scheduler import Scheduler, SchedulerStartError
from scanner.confidence import ConfidenceScorer
from scanner.market_scanner import MarketScanner
from scanner.signals import NewsSignalSource, NullSignalSource
from state.checkpoint import StateCheckpoint
from state.positions import PositionStore

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Autonomous prediction-market trader")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--live", action="store_true", help="Place real orders (forces UNSUPERVISED_MODE=true)")
    mode.add_argument("--dry-run", action="store_true", help="Log would-be trades only, no wallet needed")
    parser.add_argument("--once", action="store_true", help="Run a single tick, print status and exit")
    parser.add_argument("--markets", type=str, default=None, help="Comma-separated condition IDs (overrides MARKET_IDS)")
    parser.add_argument("--json-log", type=str, default=None, help="Path to JSON log file for machine-readable output")
    return parser.parse_args(argv)


def apply_overrides(cfg: Config, args: argparse.Namespace) -> Config:
    """CLI flags win over environment. Returns a new Config (immutable)."""
    updates: dict = {}
    if args.live:
        updates["unsupervised_mode"] = True
    if args.dry_run:
        updates["unsupervised_mode"] = False
    if args.markets:
        updates["market_ids"] = [m.strip() for m in args.markets.split(",") if m.strip()]
    return cfg.model_copy(update=updates) if updates else cfg


def build_scheduler(cfg: Config) -> Scheduler:
    fetch_market = partial(get_market, cfg.gamma_host, timeout=cfg.request_timeout_sec)

    if cfg.news_api_key:
        signal_source = NewsSignalSource(
            api_key=cfg.news_api_key,
            host=cfg.news_api_host,
            lookback_days=cfg.news_lookback_days,
            cache_sec=cfg.news_cache_sec,
            timeout=cfg.request_timeout_sec,
        )
        logger.info("News signal source enabled")
    else:
        signal_source = NullSignalSource()
        logger.info("No NEWS_API_KEY: price-edge confidence only")

    positions = PositionStore()
    position_source = None
    if cfg.polymarket_profile_address:
        position_source = DataApiPositionSource(
            cfg.data_host, cfg.polymarket_profile_address, timeout=cfg.request_timeout_sec,
        )

    scanner = MarketScanner(
        market_ids=cfg.market_ids,
        fetch_market=fetch_market,
        positioned_ids=positions.market_ids,
        buy_threshold=cfg.buy_threshold,
        sell_threshold=cfg.sell_threshold,
        min_edge=cfg.min_edge,
        signal_source=signal_source,
        scorer=ConfidenceScorer(),
        max_workers=cfg.market_fetch_workers,
    )

    guard = None
    executor = None
    if cfg.unsupervised_mode:
        logger.debug("Authenticating with Polymarket CLOB...")
        gateway = ClobGateway(
            build_clob_client(cfg), signature_type=cfg.signature_type, timeout_sec=cfg.request_timeout_sec,
        )
        depositor = Web3Depositor(
            rpc_url=cfg.polygon_rpc_url,
            private_key=cfg.private_key,
            proxy_address=cfg.polymarket_profile_address,
            usdc_address=cfg.usdc_address,
            chain_id=cfg.chain_id,
        )
        guard = BalanceGuard(
            gateway, depositor, buffer_usd=cfg.deposit_buffer_usd, settle_sec=cfg.deposit_settle_sec,
        )
        executor = Executor(gateway, fetch_market)

    return Scheduler(
        cfg,
        scanner=scanner,
        evaluator=OpportunityEvaluator(cfg),
        positions=positions,
        position_source=position_source,
        guard=guard,
        executor=executor,
        ledger=TradeLedger(cfg.ledger_path),
        checkpoint=StateCheckpoint(cfg.state_db),
    )


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    try:
        cfg = apply_overrides(load_config(), args)
    except ValidationError as e:
        print(f"Invalid configuration:\n{e}", file=sys.stderr)
        sys.exit(2)

    log_file_path = setup_logging(cfg.log_level, json_log_file=args.json_log)
    logger.info("Log file: %s", log_file_path)

    if cfg.unsupervised_mode and not cfg.has_wallet:
        logger.error("PRIVATE_KEY and POLYMARKET_PROFILE_ADDRESS required for unsupervised trading.")
        logger.error("Use --dry-run to monitor without a wallet.")
        sys.exit(1)

    logger.info(
        "Mode: %s | %d markets | buy<=%.2f sell>=%.2f edge>=%.2f | max %d trades/day, %d positions",
        "UNSUPERVISED" if cfg.unsupervised_mode else "MONITORING",
        len(cfg.market_ids), cfg.buy_threshold, cfg.sell_threshold, cfg.min_edge,
        cfg.max_daily_trades, cfg.max_open_positions,
    )

    scheduler = build_scheduler(cfg)

    if args.once:
        try:
            scheduler.run_once()
        except SchedulerStartError as e:
            logger.error("Startup failed: %s", e)
            sys.exit(1)
        print(format_status(scheduler.status()))
        return

    shutdown_requested = False

    def handle_signal(signum, frame):
        nonlocal shutdown_requested
        logger.info("Signal %d received, stopping after the current tick...", signum)
        shutdown_requested = True

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    try:
        scheduler.start()
    except SchedulerStartError as e:
        logger.error("Startup failed: %s", e)
        sys.exit(1)

    while not shutdown_requested and scheduler.running:
        time.sleep(0.5)

    scheduler.stop()
    logger.info("\n%s", format_status(scheduler.status()))


if __name__ == "__main__":
    main()
