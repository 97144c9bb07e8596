"""
Human-readable status report for the trading loop.
"""

from __future__ import annotations

import time

from pipeline.scheduler import SchedulerStatus


def _ago(ts: float | None, now: float) -> str:
    if ts is None:
        return "never"
    secs = max(0, int(now - ts))
    if secs < 60:
        return f"{secs}s ago"
    return f"{secs // 60}m {secs % 60}s ago"


def format_status(status: SchedulerStatus, now: float | None = None) -> str:
    now = time.time() if now is None else now
    mode = "UNSUPERVISED (live orders)" if status.unsupervised else "MONITORING (would-trade only)"
    if status.simple_mode:
        mode += ", simple strategy"
    hours = "24h"
    if status.trading_hours is not None:
        hours = f"{status.trading_hours[0]:02d}:00-{status.trading_hours[1]:02d}:00"
    balance = "unknown" if status.last_balance is None else f"${status.last_balance:,.2f}"
    pnl = "unknown" if status.unrealized_pnl is None else f"${status.unrealized_pnl:+,.2f}"

    lines = [
        "Autonomous trading status",
        f"  State:          {'RUNNING' if status.running else 'STOPPED'}",
        f"  Mode:           {mode}",
        f"  Markets:        {status.market_count} every {status.scan_interval_sec:.0f}s",
        f"  Trading hours:  {hours}",
        f"  Daily trades:   {status.daily_trades}/{status.max_daily_trades} ({status.reset_date.isoformat()})",
        f"  Open positions: {status.open_positions}/{status.max_open_positions}",
        f"  Exposure:       ${status.exposure:,.2f}",
        f"  Unrealized P&L: {pnl}",
        f"  USDC balance:   {balance}",
        f"  Ticks:          {status.ticks} (last {_ago(status.last_tick_at, now)})",
        f"  Session:        {status.executed} executed, {status.simulated} would-trade, {status.failed} failed",
    ]
    if status.last_skip_reason:
        lines.append(f"  Last skip:      {status.last_skip_reason}")
    return "\n".join(lines)
