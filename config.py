"""
Configuration loaded from environment variables. Loaded once per run, frozen afterwards.
"""

from __future__ import annotations

import json
from typing import Annotated

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode


class Config(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "frozen": True, "extra": "ignore"}

    # Credentials (required for live trading, optional for dry-run)
    private_key: str = Field(default="", description="Polygon wallet private key (hex)")
    polymarket_profile_address: str = Field(default="", description="Polymarket proxy (deposit) address")
    signature_type: int = Field(default=1, ge=0, le=2)

    # API endpoints
    clob_host: str = "https://clob.polymarket.com"
    gamma_host: str = "https://gamma-api.polymarket.com"
    data_host: str = "https://data-api.polymarket.com"
    polygon_rpc_url: str = "https://polygon-rpc.com"
    chain_id: int = 137  # Polygon mainnet
    usdc_address: str = "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174"  # USDC.e on Polygon

    # Execution gate: False = monitoring mode, opportunities are only logged
    unsupervised_mode: bool = False

    # Risk limits (USDC)
    max_position_size: float = Field(default=100.0, gt=0)
    min_confidence_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    max_daily_trades: int = Field(default=10, gt=0)
    max_open_positions: int = Field(default=20, gt=0)
    risk_limit_per_trade: float = Field(default=50.0, gt=0)

    # Threshold strategy
    # Buy any outcome priced at or below buy_threshold; treat YES at or above
    # sell_threshold as a cheap NO.
    buy_threshold: float = Field(default=0.10, gt=0.0, lt=1.0)
    sell_threshold: float = Field(default=0.90, gt=0.0, lt=1.0)
    min_edge: float = Field(default=0.02, ge=0.0, lt=1.0)

    # Simplified test mode: fixed position size and a bare confidence gate
    simple_strategy_enabled: bool = False
    test_position_size: float = Field(default=10.0, ge=0)
    simple_min_confidence: float = Field(default=0.7, ge=0.0, le=1.0)

    # Market universe (condition IDs). Env accepts a JSON array or "id1,id2".
    market_ids: Annotated[list[str], NoDecode] = Field(default_factory=list)

    # Optional trading window, local hours [start, end)
    trading_start_hour: int | None = Field(default=None, ge=0, le=23)
    trading_end_hour: int | None = Field(default=None, ge=1, le=24)

    # Timing
    scan_interval_sec: float = Field(default=60.0, gt=0)
    request_timeout_sec: float = Field(default=15.0, ge=1.0, le=60.0)
    market_fetch_workers: int = Field(default=8, ge=1, le=16)

    # Balance top-up
    deposit_buffer_usd: float = Field(default=2.0, ge=0)
    deposit_settle_sec: float = Field(default=5.0, ge=0)

    # News signal source (empty key disables it)
    news_api_key: str = ""
    news_api_host: str = "https://newsapi.org/v2"
    news_lookback_days: int = Field(default=7, ge=1, le=30)
    news_cache_sec: float = Field(default=900.0, ge=0)

    # Ops
    log_level: str = "INFO"
    state_db: str = "state.db"
    ledger_path: str = "trade_ledger.ndjson"

    @field_validator("market_ids", mode="before")
    @classmethod
    def _split_market_ids(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            text = value.strip()
            if not text:
                return []
            if text.startswith("["):
                return [str(v).strip() for v in json.loads(text) if str(v).strip()]
            return [part.strip() for part in text.split(",") if part.strip()]
        return value

    @model_validator(mode="after")
    def _check_limits(self) -> Config:
        if self.risk_limit_per_trade > self.max_position_size:
            raise ValueError(
                f"risk_limit_per_trade ({self.risk_limit_per_trade}) must not exceed "
                f"max_position_size ({self.max_position_size})"
            )
        if self.buy_threshold >= self.sell_threshold:
            raise ValueError(
                f"buy_threshold ({self.buy_threshold}) must be below sell_threshold ({self.sell_threshold})"
            )
        if (self.trading_start_hour is None) != (self.trading_end_hour is None):
            raise ValueError("trading_start_hour and trading_end_hour must be set together")
        if self.trading_start_hour is not None and self.trading_start_hour >= self.trading_end_hour:
            raise ValueError("trading_start_hour must be before trading_end_hour")
        return self

    @property
    def has_trading_hours(self) -> bool:
        return self.trading_start_hour is not None and self.trading_end_hour is not None

    @property
    def has_wallet(self) -> bool:
        return bool(self.private_key and self.polymarket_profile_address)


def load_config() -> Config:
    """Load and validate config from environment. Raises ValidationError on bad values."""
    return Config()
