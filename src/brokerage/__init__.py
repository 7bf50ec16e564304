"""Brokerage Abstraction.

Vendor-neutral interface, canonical entities and error types shared by
every brokerage adapter.

Example:
    from src.brokerage import BrokerType, OrderRequest, OrderAction, OrderType
    from src.brokerage import create_brokerage
    from src.settings import load_settings

    broker = create_brokerage(BrokerType.SCHWAB, load_settings())
    accounts = await broker.get_accounts()

    order = OrderRequest(
        symbol="AAPL",
        action=OrderAction.BUY,
        quantity=10,
        order_type=OrderType.LIMIT,
        limit_price=150.25,
    )
    placed = await broker.place_order(accounts[0].account_id, order)
"""

from src.brokerage.config import (
    BrokerType,
    OrderAction,
    OrderType,
    OrderStatus,
    OAUTH_ENDPOINTS,
    API_BASE_URLS,
)

from src.brokerage.exceptions import (
    BrokerageError,
    ConfigError,
    CredentialStoreError,
    AuthExchangeError,
    RefreshError,
    NoRefreshTokenError,
    NotAuthenticatedError,
    TransportError,
    RefreshFailedError,
    VendorAPIError,
    ResponseParseError,
    OrderValidationError,
)

from src.brokerage.models import (
    Account,
    Position,
    Order,
    OrderRequest,
    Quote,
)

from src.brokerage.interface import BrokerageInterface, BaseBrokerage
from src.brokerage.factory import create_brokerage


__all__ = [
    # Config
    "BrokerType",
    "OrderAction",
    "OrderType",
    "OrderStatus",
    "OAUTH_ENDPOINTS",
    "API_BASE_URLS",
    # Errors
    "BrokerageError",
    "ConfigError",
    "CredentialStoreError",
    "AuthExchangeError",
    "RefreshError",
    "NoRefreshTokenError",
    "NotAuthenticatedError",
    "TransportError",
    "RefreshFailedError",
    "VendorAPIError",
    "ResponseParseError",
    "OrderValidationError",
    # Models
    "Account",
    "Position",
    "Order",
    "OrderRequest",
    "Quote",
    # Interface
    "BrokerageInterface",
    "BaseBrokerage",
    # Factory
    "create_brokerage",
]
