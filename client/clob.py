"""
CLOB wrapper. Thin layer converting SDK calls and errors to our domain models.

Order signing and broadcast stay inside py_clob_client. Error text from the SDK
is classified exactly once here into an OrderErrorKind; callers branch on the
kind, never on message substrings.
"""

from __future__ import annotations

import logging
import math
import time

from py_clob_client.client import ClobClient
from py_clob_client.clob_types import (
    AssetType,
    BalanceAllowanceParams,
    OrderArgs,
    OrderType,
    PartialCreateOrderOptions,
)
from py_clob_client.exceptions import PolyApiException
from py_clob_client.order_builder.constants import BUY, SELL

from scanner.models import OrderErrorKind, OrderRequest, OrderResult, Side

logger = logging.getLogger(__name__)

# Retry config for flaky CLOB reads (HTTP/2 connection resets, SSL errors)
_MAX_RETRIES = 3
_RETRY_BACKOFF_SEC = 1.0
USDC_DECIMALS = 6

# Patch py_clob_client's shared httpx client:
#   - Disable HTTP/2: the CLOB server sends GOAWAY frames that crash the shared
#     connection pool (httpcore.RemoteProtocolError: ConnectionTerminated)
#   - Bound every SDK call with a timeout; a timeout surfaces as a transient error
import httpx as _httpx
from py_clob_client.http_helpers import helpers as _clob_helpers
DEFAULT_TIMEOUT_SEC = 15.0
_clob_helpers._http_client = _httpx.Client(http2=False, timeout=DEFAULT_TIMEOUT_SEC)


def set_request_timeout(timeout_sec: float) -> None:
    """Rebuild the SDK's shared httpx client with a new per-request timeout."""
    previous = _clob_helpers._http_client
    _clob_helpers._http_client = _httpx.Client(http2=False, timeout=timeout_sec)
    previous.close()


_BALANCE_MARKERS = ("not enough balance", "allowance", "insufficient balance")
_TRANSIENT_MARKERS = ("request exception", "status_code=none", "timed out", "timeout", "connection")


def classify_error(exc: BaseException | str) -> OrderErrorKind:
    """Map an SDK exception (or its message) to an OrderErrorKind."""
    text = str(exc).lower()
    if any(marker in text for marker in _BALANCE_MARKERS):
        return OrderErrorKind.BALANCE_ALLOWANCE
    if isinstance(exc, _httpx.TimeoutException):
        return OrderErrorKind.TRANSIENT
    status = getattr(exc, "status_code", None)
    if isinstance(exc, PolyApiException) and isinstance(status, int) and status >= 500:
        return OrderErrorKind.TRANSIENT
    if any(marker in text for marker in _TRANSIENT_MARKERS):
        return OrderErrorKind.TRANSIENT
    return OrderErrorKind.REJECTED


def _retry_api_call(fn, *args, max_retries: int = _MAX_RETRIES, **kwargs):
    """Retry a read-only py_clob_client call with exponential backoff on connection errors."""
    last_exc = None
    for attempt in range(max_retries):
        try:
            return fn(*args, **kwargs)
        except Exception as exc:
            last_exc = exc
            if classify_error(exc) != OrderErrorKind.TRANSIENT or attempt == max_retries - 1:
                raise
            wait = _RETRY_BACKOFF_SEC * (2 ** attempt)
            logger.debug("CLOB API retry %d/%d after %.1fs: %s", attempt + 1, max_retries, wait, exc)
            time.sleep(wait)
    raise last_exc  # unreachable, but satisfies type checker


def quantize_price(price: float, tick_size: float = 0.01) -> float:
    """Round a price to the nearest tick, kept strictly inside (0, 1)."""
    if tick_size <= 0:
        raise ValueError(f"tick_size must be positive, got {tick_size}")
    ticks = round(price / tick_size)
    quantized = round(ticks * tick_size, 6)
    return max(tick_size, min(1.0 - tick_size, quantized))


def resolve_tick_size(client: ClobClient, token_id: str) -> str:
    """Minimum price increment the book for token_id quotes in ("0.01", "0.001", ...)."""
    return str(_retry_api_call(client.get_tick_size, token_id))


def buy_shares(budget: float, price: float) -> float:
    """Shares (2dp, rounded down) that budget USDC buys at price."""
    return math.floor(round(budget / price * 100, 6)) / 100


def place_order(
    client: ClobClient,
    request: OrderRequest,
    tick_size: str | None = None,
    neg_risk: bool = False,
) -> OrderResult:
    """
    Sign and post a limit order. Never raises: every failure comes back as an
    OrderResult with success=False and a classified error_kind.

    The price is moved onto the book's tick (looked up when tick_size is None).
    For a BUY the share count is then recomputed so the order never costs more
    than request.price * request.size.
    """
    if request.price <= 0 or request.price >= 1 or request.size <= 0:
        return OrderResult(
            success=False,
            error=f"invalid order: price={request.price} size={request.size}",
            error_kind=OrderErrorKind.INVALID,
        )

    try:
        if tick_size is None:
            tick_size = resolve_tick_size(client, request.token_id)
        price = quantize_price(request.price, float(tick_size))
    except Exception as exc:
        kind = classify_error(exc)
        logger.warning("Tick size lookup failed for %s... (%s): %s", request.token_id[:12], kind.value, exc)
        return OrderResult(success=False, error=str(exc), error_kind=kind)

    if request.side == Side.BUY:
        size = buy_shares(request.price * request.size, price)
    else:
        size = round(request.size, 2)
    if size <= 0:
        return OrderResult(
            success=False,
            error=f"order too small: ${request.price * request.size:.4f} at {price}",
            error_kind=OrderErrorKind.INVALID,
        )

    args = OrderArgs(
        token_id=request.token_id,
        price=price,
        size=size,
        side=BUY if request.side == Side.BUY else SELL,
    )
    options = PartialCreateOrderOptions(tick_size=tick_size, neg_risk=neg_risk)

    try:
        signed = client.create_order(args, options)
        resp = client.post_order(signed, getattr(OrderType, request.order_type))
    except Exception as exc:
        kind = classify_error(exc)
        logger.warning("Order post failed (%s): %s", kind.value, exc)
        return OrderResult(success=False, error=str(exc), error_kind=kind)

    resp = resp or {}
    order_id = resp.get("orderID") or resp.get("order_id")
    if resp.get("success", True) and order_id:
        return OrderResult(success=True, order_id=str(order_id))

    error = str(resp.get("errorMsg") or "order placement failed - no order ID returned")
    return OrderResult(success=False, error=error, error_kind=classify_error(error))


def get_usdc_balance(client: ClobClient, signature_type: int = 1) -> float:
    """Return spendable USDC collateral on the exchange. Raises on API failure."""
    params = BalanceAllowanceParams(asset_type=AssetType.COLLATERAL, signature_type=signature_type)
    resp = _retry_api_call(client.get_balance_allowance, params=params)
    raw = int(resp.get("balance", 0) or 0)
    return raw / (10 ** USDC_DECIMALS)


class ClobGateway:
    """
    Order placement and balance query bound to one authenticated client.
    Satisfies the OrderPlacer and BalanceSource protocols.
    """

    def __init__(
        self,
        client: ClobClient,
        signature_type: int = 1,
        tick_size: str | None = None,
        timeout_sec: float | None = None,
    ) -> None:
        self._client = client
        self._signature_type = signature_type
        # None: resolve per token from the book
        self._tick_size = tick_size
        if timeout_sec is not None:
            set_request_timeout(timeout_sec)

    def place_order(self, request: OrderRequest) -> OrderResult:
        logger.info(
            "Posting %s %s: %.2f shares @ %.3f (token %s...)",
            request.order_type, request.side.value, request.size, request.price, request.token_id[:12],
        )
        return place_order(self._client, request, tick_size=self._tick_size)

    def get_balance(self) -> float:
        return get_usdc_balance(self._client, self._signature_type)
