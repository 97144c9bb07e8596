"""
Gamma API client for per-market lookups. Pure REST, no SDK dependency.
"""

from __future__ import annotations

import json
import logging

import httpx

from scanner.models import MarketRecord, Outcome
from scanner.prices import extract_prices, resolve_price_source

logger = logging.getLogger(__name__)

_TIMEOUT = 15.0
_DEFAULT_OUTCOMES = ("Yes", "No")


class MarketUnavailable(Exception):
    """Raised when a market cannot be fetched (non-200, empty result, network error)."""
    pass


def fetch_market(gamma_host: str, condition_id: str, timeout: float = _TIMEOUT) -> dict:
    """
    GET /markets?condition_ids={id} and return the first raw market object.
    Raises MarketUnavailable on any transport failure, non-200 or empty array.
    """
    url = f"{gamma_host}/markets"
    try:
        resp = httpx.get(url, params={"condition_ids": condition_id}, timeout=timeout)
    except httpx.HTTPError as e:
        raise MarketUnavailable(f"{condition_id[:10]}...: {type(e).__name__}: {e}") from e

    if resp.status_code != 200:
        raise MarketUnavailable(f"{condition_id[:10]}...: HTTP {resp.status_code}")

    try:
        data = resp.json()
    except ValueError as e:
        raise MarketUnavailable(f"{condition_id[:10]}...: invalid JSON body") from e

    if not isinstance(data, list) or not data or not isinstance(data[0], dict):
        raise MarketUnavailable(f"{condition_id[:10]}...: not found")
    return data[0]


def _decode_str_list(value: object) -> tuple[str, ...] | None:
    """Gamma encodes string arrays as JSON strings. Accept either form."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except (json.JSONDecodeError, TypeError):
            return None
    if not isinstance(value, list):
        return None
    return tuple(str(v) for v in value)


def parse_market(raw: dict, condition_id: str = "") -> MarketRecord:
    """Convert a raw Gamma market object into a MarketRecord with resolved prices."""
    outcome_names = _decode_str_list(raw.get("outcomes")) or _DEFAULT_OUTCOMES
    token_ids = _decode_str_list(raw.get("clobTokenIds") or raw.get("clob_token_ids")) or ()

    source = resolve_price_source(raw)
    prices = extract_prices(source, len(outcome_names))

    try:
        volume = float(raw.get("volumeNum", raw.get("volume", 0)) or 0)
    except (TypeError, ValueError):
        volume = 0.0

    end_time = str(raw.get("endDateIso") or raw.get("endDate") or raw.get("end_date_iso") or "")

    return MarketRecord(
        market_id=condition_id or str(raw.get("conditionId", raw.get("condition_id", ""))),
        question=str(raw.get("question", "")),
        active=bool(raw.get("active", False)) and not bool(raw.get("closed", False)),
        outcome_names=outcome_names,
        outcome_prices=tuple(prices),
        token_ids=token_ids,
        end_time=end_time,
        volume=volume,
        price_source=source,
    )


def get_market(gamma_host: str, condition_id: str, timeout: float = _TIMEOUT) -> MarketRecord:
    """Fetch and parse a single market. Raises MarketUnavailable."""
    raw = fetch_market(gamma_host, condition_id, timeout=timeout)
    return parse_market(raw, condition_id)


def resolve_token_id(record: MarketRecord, outcome: Outcome) -> str | None:
    """
    Map an outcome to its CLOB token id. Matches outcome names case-insensitively
    when they line up with the token list, else YES -> token[0], NO -> token[1].
    """
    if not record.token_ids:
        return None
    if len(record.outcome_names) == len(record.token_ids):
        for name, token_id in zip(record.outcome_names, record.token_ids):
            if Outcome.parse(name) is outcome:
                return token_id or None
    index = 0 if outcome is Outcome.YES else 1
    if index >= len(record.token_ids):
        return None
    return record.token_ids[index] or None
