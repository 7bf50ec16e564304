"""Brokerage Data Models.

Canonical, vendor-neutral dataclasses for accounts, positions, orders and
quotes. Adapters build these fresh for every response.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from src.brokerage.config import OrderAction, OrderType, OrderStatus
from src.brokerage.exceptions import OrderValidationError


# Vendor quote schemas vary too much to model; they are passed through as-is.
Quote = dict[str, Any]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _safe_div(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return 0.0
    return numerator / denominator


# =============================================================================
# Account Models
# =============================================================================

@dataclass
class Account:
    """Brokerage account balances."""
    account_id: str
    account_number: str = ""
    account_type: str = ""
    cash_balance: float = 0.0
    buying_power: float = 0.0
    market_value: float = 0.0

    @property
    def total_value(self) -> float:
        """Cash plus market value, never taken from the vendor."""
        return self.cash_balance + self.market_value


# =============================================================================
# Position Models
# =============================================================================

@dataclass
class Position:
    """Account position.

    ``quantity`` is signed (long minus short). Price and P&L figures are
    derived from market value and average cost, and collapse to 0 rather
    than dividing by a zero quantity or cost basis. ``day_pl`` is the
    vendor-reported profit or loss for the current trading day.
    """
    symbol: str
    quantity: float = 0.0
    average_price: float = 0.0
    market_value: float = 0.0
    day_pl: float = 0.0

    @property
    def cost_basis(self) -> float:
        return self.average_price * self.quantity

    @property
    def current_price(self) -> float:
        return _safe_div(self.market_value, self.quantity)

    @property
    def unrealized_pl(self) -> float:
        return self.market_value - self.cost_basis

    @property
    def unrealized_pl_pct(self) -> float:
        return _safe_div(self.unrealized_pl, self.cost_basis) * 100

    @property
    def side(self) -> str:
        return "short" if self.quantity < 0 else "long"


# =============================================================================
# Order Models
# =============================================================================

@dataclass
class OrderRequest:
    """Request to place an order."""
    symbol: str
    action: OrderAction
    quantity: float
    order_type: OrderType = OrderType.MARKET
    limit_price: Optional[float] = None

    def __post_init__(self):
        self.action = OrderAction(self.action)
        self.order_type = OrderType(self.order_type)
        if not self.symbol:
            raise OrderValidationError("symbol is required")
        if self.quantity <= 0:
            raise OrderValidationError(
                f"quantity must be positive, got {self.quantity}"
            )
        if self.order_type == OrderType.LIMIT:
            if self.limit_price is None:
                raise OrderValidationError("limit orders require a limit_price")
            if self.limit_price <= 0:
                raise OrderValidationError(
                    f"limit_price must be positive, got {self.limit_price}"
                )


@dataclass
class Order:
    """Order information."""
    order_id: str = ""
    symbol: str = ""
    action: Optional[OrderAction] = None
    order_type: Optional[OrderType] = None
    quantity: float = 0.0
    limit_price: Optional[float] = None

    # Status
    status: OrderStatus = OrderStatus.PENDING

    # Fill info
    filled_quantity: float = 0.0
    filled_price: float = 0.0

    # Timestamps
    submitted_at: Optional[datetime] = None
    filled_at: Optional[datetime] = None

    # Vendor JSON object for this order, kept for audit; None when the
    # vendor answered without an order body
    raw_response: Any = field(default=None, repr=False)

    @property
    def remaining_quantity(self) -> float:
        return max(0.0, self.quantity - self.filled_quantity)

    @property
    def is_open(self) -> bool:
        return self.status == OrderStatus.PENDING

    def with_status(self, status: OrderStatus) -> "Order":
        """Return a copy moved to ``status``.

        Raises:
            ValueError: If the lifecycle does not allow the transition.
        """
        if not self.status.can_transition_to(status):
            raise ValueError(
                f"illegal order transition {self.status.value} -> {status.value}"
            )
        filled_at = self.filled_at
        if status == OrderStatus.FILLED and filled_at is None:
            filled_at = _utc_now()
        return Order(
            order_id=self.order_id,
            symbol=self.symbol,
            action=self.action,
            order_type=self.order_type,
            quantity=self.quantity,
            limit_price=self.limit_price,
            status=status,
            filled_quantity=self.filled_quantity,
            filled_price=self.filled_price,
            submitted_at=self.submitted_at,
            filled_at=filled_at,
            raw_response=self.raw_response,
        )
