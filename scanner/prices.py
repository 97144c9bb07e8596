"""
Price extraction from heterogeneous Gamma market payloads.

A market may publish its prices in one of three shapes. The shape is resolved
once into a PriceSource variant and converted into a per-outcome price vector;
nothing downstream re-parses the raw payload.

Priority:
  1. outcomePrices   -- explicit per-outcome array (JSON string or list)
  2. marketMakerData -- maker payload carrying a "prices" array
  3. bestBid/bestAsk -- midpoint of the first outcome, complement for the second
Missing or unparseable entries fall back to DEFAULT_PRICE.
"""

from __future__ import annotations

import json
import logging
import math

from scanner.models import (
    ExplicitPrices,
    MakerDataPrices,
    MidpointPrice,
    PriceSource,
)

logger = logging.getLogger(__name__)

DEFAULT_PRICE = 0.5


def _decode(value: object) -> object:
    """Decode a JSON-encoded string; pass other values through."""
    if isinstance(value, str):
        return json.loads(value)
    return value


def _to_price_tuple(values: object) -> tuple[float, ...] | None:
    """Convert a list of numbers/strings to floats. None if any entry is bad."""
    if not isinstance(values, (list, tuple)) or not values:
        return None
    prices: list[float] = []
    for v in values:
        try:
            p = float(v)
        except (TypeError, ValueError):
            return None
        if not math.isfinite(p):
            return None
        prices.append(p)
    return tuple(prices)


def _parse_explicit(raw: dict) -> ExplicitPrices | None:
    value = raw.get("outcomePrices")
    if value in (None, ""):
        return None
    try:
        prices = _to_price_tuple(_decode(value))
    except (json.JSONDecodeError, TypeError):
        prices = None
    if prices is None:
        logger.debug("Unparseable outcomePrices: %r", value)
        return None
    return ExplicitPrices(prices=prices)


def _parse_maker_data(raw: dict) -> MakerDataPrices | None:
    value = raw.get("marketMakerData")
    if value in (None, ""):
        return None
    try:
        data = _decode(value)
    except (json.JSONDecodeError, TypeError):
        logger.debug("Unparseable marketMakerData: %r", value)
        return None
    if not isinstance(data, dict):
        return None
    prices = _to_price_tuple(data.get("prices"))
    if prices is None:
        return None
    return MakerDataPrices(prices=prices)


def _parse_midpoint(raw: dict) -> MidpointPrice | None:
    bid, ask = raw.get("bestBid"), raw.get("bestAsk")
    if bid in (None, "") or ask in (None, ""):
        return None
    try:
        return MidpointPrice(bid=float(bid), ask=float(ask))
    except (TypeError, ValueError):
        logger.debug("Unparseable bestBid/bestAsk: %r / %r", bid, ask)
        return None


def resolve_price_source(raw: dict) -> PriceSource | None:
    """Pick the highest-priority price source that parses. None if nothing does."""
    return _parse_explicit(raw) or _parse_maker_data(raw) or _parse_midpoint(raw)


def _clamp(price: float) -> float:
    return max(0.0, min(1.0, price))


def extract_prices(source: PriceSource | None, n_outcomes: int) -> list[float]:
    """
    Return a price per outcome, aligned with the market's outcome order.
    Length is always n_outcomes; every price is in [0, 1].
    """
    prices = [DEFAULT_PRICE] * n_outcomes
    if source is None or n_outcomes <= 0:
        return prices

    if isinstance(source, (ExplicitPrices, MakerDataPrices)):
        for i, p in enumerate(source.prices[:n_outcomes]):
            prices[i] = _clamp(p)
    elif isinstance(source, MidpointPrice):
        mid = _clamp(source.mid)
        prices[0] = mid
        if n_outcomes == 2:
            prices[1] = 1.0 - mid

    return prices
