"""
Unit tests for monitor/logger.py -- formatters and handler setup.
"""

import json
import logging

import pytest

from monitor.logger import EXECUTED, WOULD_TRADE, ConsoleFormatter, JSONFormatter, setup_logging, trade_tag


def _record(msg, level=logging.INFO):
    return logging.LogRecord("test", level, __file__, 1, msg, None, None)


@pytest.fixture
def restore_root():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for h in root.handlers[:]:
        root.removeHandler(h)
        h.close()
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)


class TestFormatters:
    def test_console_plain(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "1")
        line = ConsoleFormatter().format(_record(f"{WOULD_TRADE} YES Question? $10.00"))
        assert "INF" in line
        assert "[WOULD TRADE] YES" in line
        assert "\033[" not in line

    def test_console_highlights_trade_tags(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("FORCE_COLOR", "1")
        line = ConsoleFormatter().format(_record(f"{EXECUTED} YES Question?"))
        assert "\033[1;32m[EXECUTED]" in line

    def test_json(self):
        entry = json.loads(JSONFormatter().format(_record("hello", logging.WARNING)))
        assert entry["level"] == "WARNING"
        assert entry["msg"] == "hello"
        assert "trade" not in entry

    def test_json_trade_field(self):
        entry = json.loads(JSONFormatter().format(_record(f"{WOULD_TRADE} NO Question? $5.00")))
        assert entry["trade"] == "WOULD TRADE"

    def test_trade_tag(self):
        assert trade_tag(f"{EXECUTED} YES") == EXECUTED
        assert trade_tag("Scan: 3/3 markets") is None


class TestSetupLogging:
    def test_creates_verbose_file_and_json(self, tmp_path, restore_root):
        json_path = tmp_path / "run.ndjson"
        log_path = setup_logging("INFO", json_log_file=str(json_path), log_dir=str(tmp_path / "logs"))
        logging.getLogger("scheduler").info("tick done")
        for h in logging.getLogger().handlers:
            h.flush()
        assert "tick done" in open(log_path).read()
        assert json.loads(json_path.read_text().splitlines()[-1])["msg"] == "tick done"
        assert logging.getLogger("httpx").level == logging.WARNING
