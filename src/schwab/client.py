"""Schwab Brokerage Adapter.

Implements the brokerage interface on top of Schwab's Trader and Market
Data REST APIs. Requests go through an ``AuthenticatedTransport``; replies
are parsed into adapter-local schemas and mapped onto canonical entities.
"""

from datetime import datetime, timezone
from typing import Any, Optional
import logging

import httpx

from src.brokerage.config import BrokerType, OrderAction, OrderStatus, OrderType
from src.brokerage.exceptions import ResponseParseError, VendorAPIError
from src.brokerage.interface import BaseBrokerage
from src.brokerage.models import Account, Order, OrderRequest, Position, Quote
from src.oauth.session import OAuthSession
from src.oauth.transport import AuthenticatedTransport
from src.schwab.schemas import (
    SchwabAccountRecord,
    SchwabOrderRecord,
    SchwabPositionRecord,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

ACCOUNTS_PATH = "/trader/v1/accounts"
ORDERS_PATH = "/trader/v1/accounts/{account_id}/orders"
QUOTES_PATH = "/marketdata/v1/quotes"

_STATUS_MAP = {
    "FILLED": OrderStatus.FILLED,
    "CANCELED": OrderStatus.CANCELLED,
    "CANCELLED": OrderStatus.CANCELLED,
    "REJECTED": OrderStatus.REJECTED,
}


# =====================================================================
# Translation helpers
# =====================================================================


def normalize_order_status(status: str) -> OrderStatus:
    """Map a Schwab order status onto the canonical status.

    Matching is exact and case-insensitive; anything unrecognized,
    including an empty string, is treated as pending.
    """
    return _STATUS_MAP.get((status or "").upper(), OrderStatus.PENDING)


def _parse_action(instruction: str) -> Optional[OrderAction]:
    instruction = instruction.upper()
    # BUY_TO_COVER, SELL_SHORT and the option variants collapse onto a side
    if instruction.startswith("BUY"):
        return OrderAction.BUY
    if instruction.startswith("SELL"):
        return OrderAction.SELL
    return None


def _parse_order_type(order_type: str) -> Optional[OrderType]:
    try:
        return OrderType(order_type.lower())
    except ValueError:
        if order_type:
            logger.debug("Unmapped Schwab order type %s", order_type)
        return None


def build_order_payload(order: OrderRequest) -> dict[str, Any]:
    """Build the Schwab order submission body for ``order``.

    Limit orders carry ``price``; market orders never do.
    """
    payload: dict[str, Any] = {
        "orderType": order.order_type.value.upper(),
        "session": "NORMAL",
        "duration": "DAY",
        "orderStrategyType": "SINGLE",
        "orderLegCollection": [
            {
                "instruction": order.action.value.upper(),
                "quantity": order.quantity,
                "instrument": {
                    "symbol": order.symbol,
                    "assetType": "EQUITY",
                },
            },
        ],
    }
    if order.order_type == OrderType.LIMIT and order.limit_price is not None:
        payload["price"] = order.limit_price
    return payload


def order_id_from_location(location: str) -> str:
    """Return the trailing path segment of a ``Location`` header."""
    if not location:
        return ""
    return location.rstrip("/").rsplit("/", 1)[-1]


def _to_account(record: SchwabAccountRecord) -> Account:
    return Account(
        account_id=record.account_id,
        account_number=record.account_number,
        account_type=record.account_type,
        cash_balance=record.cash_balance,
        buying_power=record.buying_power,
        market_value=record.long_market_value,
    )


def _to_position(record: SchwabPositionRecord) -> Position:
    return Position(
        symbol=record.symbol,
        quantity=record.long_quantity - record.short_quantity,
        average_price=record.average_price,
        market_value=record.market_value,
        day_pl=record.current_day_profit_loss,
    )


def _to_order(record: SchwabOrderRecord) -> Order:
    status = normalize_order_status(record.status)
    order_type = _parse_order_type(record.order_type)
    return Order(
        order_id=record.order_id,
        symbol=record.symbol,
        action=_parse_action(record.instruction),
        order_type=order_type,
        quantity=record.quantity,
        limit_price=record.price if order_type == OrderType.LIMIT else None,
        status=status,
        filled_quantity=record.filled_quantity,
        filled_price=record.price,
        submitted_at=parse_timestamp(record.entered_time),
        filled_at=parse_timestamp(record.close_time) if status == OrderStatus.FILLED else None,
        raw_response=record.raw,
    )


# =====================================================================
# Adapter
# =====================================================================


class SchwabBrokerage(BaseBrokerage):
    """Schwab implementation of the brokerage interface.

    Example:
        broker = SchwabBrokerage.from_settings(load_settings())
        if broker.is_authenticated():
            accounts = await broker.get_accounts()
    """

    def __init__(self, transport: AuthenticatedTransport):
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings,
        http_client: Optional[httpx.AsyncClient] = None,
        session: Optional[OAuthSession] = None,
    ) -> "SchwabBrokerage":
        """Build an adapter whose session is restored from the token file."""
        if session is None:
            session = OAuthSession.from_settings(settings, http_client=http_client)
            session.load()
        transport = AuthenticatedTransport(
            session,
            settings.base_url,
            http_client=http_client,
            timeout=settings.request_timeout,
        )
        return cls(transport)

    @property
    def broker_type(self) -> BrokerType:
        return BrokerType.SCHWAB

    @property
    def session(self) -> OAuthSession:
        return self._transport.session

    def is_authenticated(self) -> bool:
        return self._transport.session.is_authenticated()

    # -- Accounts ----------------------------------------------------------

    async def get_accounts(self) -> list[Account]:
        """Get all linked accounts."""
        resp = await self._transport.send("GET", ACCOUNTS_PATH)
        data = self._decode(resp, "get accounts")
        if not isinstance(data, list):
            raise ResponseParseError("get accounts: expected a JSON array")
        return [_to_account(SchwabAccountRecord.from_api(a)) for a in data]

    async def get_positions(self, account_id: str) -> list[Position]:
        """Get positions for a specific account."""
        resp = await self._transport.send(
            "GET",
            f"{ACCOUNTS_PATH}/{account_id}",
            params={"fields": "positions"},
        )
        data = self._decode(resp, "get positions")
        return [_to_position(r) for r in SchwabPositionRecord.list_from_account(data)]

    # -- Orders ------------------------------------------------------------

    async def place_order(self, account_id: str, order: OrderRequest) -> Order:
        """Submit an order.

        Schwab answers with an empty body and the new order's URL in the
        ``Location`` header.
        """
        path = ORDERS_PATH.format(account_id=account_id)
        resp = await self._transport.send("POST", path, json=build_order_payload(order))
        self._check(resp, "place order")

        order_id = order_id_from_location(resp.headers.get("Location", ""))
        if not order_id:
            logger.warning(
                "Order for %s accepted without a Location header; order id unknown",
                order.symbol,
            )
        else:
            logger.info("Placed %s %s order %s for %s x%s",
                        order.order_type.value, order.action.value, order_id,
                        order.symbol, order.quantity)

        return Order(
            order_id=order_id,
            symbol=order.symbol,
            action=order.action,
            order_type=order.order_type,
            quantity=order.quantity,
            limit_price=order.limit_price,
            status=OrderStatus.PENDING,
            submitted_at=datetime.now(timezone.utc),
        )

    async def get_order_status(self, account_id: str, order_id: str) -> Order:
        """Get a specific order."""
        path = f"{ORDERS_PATH.format(account_id=account_id)}/{order_id}"
        resp = await self._transport.send("GET", path)
        data = self._decode(resp, "get order")
        return _to_order(SchwabOrderRecord.from_api(data))

    async def cancel_pending_order(self, account_id: str, order_id: str) -> None:
        """Cancel an order."""
        path = f"{ORDERS_PATH.format(account_id=account_id)}/{order_id}"
        resp = await self._transport.send("DELETE", path)
        if resp.status_code not in (200, 204):
            raise VendorAPIError(resp.status_code, resp.text, "cancel order")
        logger.info("Cancelled order %s", order_id)

    async def get_recent_orders(self, account_id: str, limit: int) -> list[Order]:
        """Get recent orders for an account."""
        resp = await self._transport.send(
            "GET",
            ORDERS_PATH.format(account_id=account_id),
            params={"maxResults": limit},
        )
        data = self._decode(resp, "get orders")
        if not isinstance(data, list):
            raise ResponseParseError("get orders: expected a JSON array")
        orders = []
        for raw in data:
            record = SchwabOrderRecord.from_api(raw)
            orders.append(_to_order(record))
        return orders

    # -- Market Data -------------------------------------------------------

    async def get_quote(self, symbol: str) -> Quote:
        """Get the quote payload for a symbol, keyed as Schwab returns it."""
        resp = await self._transport.send("GET", QUOTES_PATH, params={"symbols": symbol})
        data = self._decode(resp, "get quote")
        if not isinstance(data, dict):
            raise ResponseParseError("get quote: expected a JSON object")
        return data

    # -- Internals ---------------------------------------------------------

    @staticmethod
    def _check(resp: httpx.Response, operation: str) -> None:
        if not resp.is_success:
            raise VendorAPIError(resp.status_code, resp.text, operation)

    def _decode(self, resp: httpx.Response, operation: str) -> Any:
        self._check(resp, operation)
        try:
            return resp.json()
        except ValueError as e:
            raise ResponseParseError(f"failed to parse {operation} response: {e}") from e

    async def aclose(self) -> None:
        await self._transport.aclose()
        await self._transport.session.aclose()
