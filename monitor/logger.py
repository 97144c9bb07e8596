"""
Logging setup for the trading loop.

Handlers installed on the root logger:
  - stderr at the configured level, color-coded when attached to a terminal
  - <log_dir>/run_YYYYMMDD_HHMMSS.log at DEBUG, always
  - an optional NDJSON file for machine consumption

Trade lines start with one of the tags below. The console paints each tag
in its own color and the JSON output carries it as a separate field, so a
simulated trade can never be mistaken for a real one.
"""

from __future__ import annotations

import json
import logging
import os
import sys
import time
from datetime import datetime, timezone

WOULD_TRADE = "[WOULD TRADE]"
EXECUTED = "[EXECUTED]"
FAILED_FINAL = "[FAILED_FINAL]"

_TRADE_TAGS = (WOULD_TRADE, EXECUTED, FAILED_FINAL)

_ESC = "\033["
_RESET = _ESC + "0m"
_DIM = _ESC + "2m"

_LEVEL_LABELS = {
    logging.DEBUG: ("DBG", _ESC + "2m"),
    logging.INFO: ("INF", _ESC + "36m"),
    logging.WARNING: ("WRN", _ESC + "33m"),
    logging.ERROR: ("ERR", _ESC + "31m"),
    logging.CRITICAL: ("CRT", _ESC + "1;31m"),
}

_TAG_COLORS = {
    WOULD_TRADE: _ESC + "1;35m",
    EXECUTED: _ESC + "1;32m",
    FAILED_FINAL: _ESC + "1;31m",
}

_QUIET_LOGGERS = ("httpx", "httpcore", "py_clob_client", "web3", "urllib3")


def trade_tag(message: str) -> str | None:
    """The trade tag a log message starts with, if any."""
    for tag in _TRADE_TAGS:
        if message.startswith(tag):
            return tag
    return None


class ConsoleFormatter(logging.Formatter):
    """HH:MM:SS LVL message, with the level and any trade tag colored."""

    def __init__(self, use_color: bool | None = None):
        super().__init__()
        self._use_color = _supports_color() if use_color is None else use_color

    def format(self, record: logging.LogRecord) -> str:
        clock = time.strftime("%H:%M:%S", time.localtime(record.created))
        label, color = _LEVEL_LABELS.get(record.levelno, ("???", ""))
        message = record.getMessage()

        if self._use_color:
            tag = trade_tag(message)
            if tag:
                message = _TAG_COLORS[tag] + tag + _RESET + message[len(tag):]
            line = f"{_DIM}{clock}{_RESET} {color}{label}{_RESET} {message}"
        else:
            line = f"{clock} {label} {message}"

        if record.exc_info and record.exc_info[1] is not None:
            line += f"\n     {type(record.exc_info[1]).__name__}: {record.exc_info[1]}"
        return line


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).strftime("%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "msg": message,
        }
        tag = trade_tag(message)
        if tag:
            entry["trade"] = tag.strip("[]")
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = repr(record.exc_info[1])
        return json.dumps(entry, separators=(",", ":"))


def _file_handler(path: str, formatter: logging.Formatter, level: int = logging.DEBUG) -> logging.Handler:
    handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(level: str = "INFO", json_log_file: str | None = None, log_dir: str = "logs") -> str:
    """Replace the root logger's handlers. Returns the verbose log path."""
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(getattr(logging, level.upper(), logging.INFO))
    console.setFormatter(ConsoleFormatter())
    root.addHandler(console)

    os.makedirs(log_dir, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    log_path = os.path.join(log_dir, f"run_{stamp}.log")
    root.addHandler(_file_handler(log_path, logging.Formatter(
        "%(asctime)s %(levelname)-8s %(name)s:%(lineno)d %(message)s",
    )))

    if json_log_file:
        root.addHandler(_file_handler(json_log_file, JSONFormatter()))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_path


def _supports_color() -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("FORCE_COLOR"):
        return True
    return sys.stderr.isatty()
