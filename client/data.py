"""
Position reconciliation via Polymarket Data API.
Source of truth for what the wallet currently holds; the PositionStore is
fully replaced from this on every reload.
"""

from __future__ import annotations

import logging

import httpx

from scanner.models import Position

logger = logging.getLogger(__name__)

_TIMEOUT = 5.0


class PositionFetchError(Exception):
    """Raised when the Data API cannot return the wallet's positions."""
    pass


def _optional_float(value: object) -> float | None:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_position(raw: dict) -> Position | None:
    """Convert one Data API row into a Position. None for empty or unusable rows."""
    token_id = str(raw.get("asset", raw.get("token_id", "")) or "")
    market_id = str(raw.get("conditionId", raw.get("condition_id", "")) or "")
    size = _optional_float(raw.get("size", raw.get("amount"))) or 0.0
    if size <= 0 or not (token_id or market_id):
        return None
    return Position(
        market_id=market_id,
        token_id=token_id,
        outcome=str(raw.get("outcome", "")),
        size=size,
        avg_price=_optional_float(raw.get("avgPrice")) or 0.0,
        current_price=_optional_float(raw.get("curPrice")),
        pnl=_optional_float(raw.get("cashPnl")),
    )


class DataApiPositionSource:
    """
    Queries Data API for current holdings of the proxy wallet.
    Satisfies the PositionSource protocol.
    """

    def __init__(
        self,
        data_host: str = "https://data-api.polymarket.com",
        profile_address: str = "",
        timeout: float = _TIMEOUT,
    ):
        self._data_host = data_host
        self._profile_address = profile_address
        self._timeout = timeout

    def get_positions(self) -> list[Position]:
        """
        Return every open position. Empty list when no address is configured.
        Raises PositionFetchError on transport failure or a malformed body.
        """
        if not self._profile_address:
            return []

        try:
            resp = httpx.get(
                f"{self._data_host}/positions",
                params={"user": self._profile_address, "sizeThreshold": 0},
                timeout=self._timeout,
            )
            resp.raise_for_status()
            raw = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise PositionFetchError(f"{type(e).__name__}: {e}") from e

        if not isinstance(raw, list):
            raise PositionFetchError(f"unexpected positions payload: {type(raw).__name__}")

        positions = [p for p in (parse_position(row) for row in raw if isinstance(row, dict)) if p]
        logger.debug("Fetched %d positions", len(positions))
        return positions
