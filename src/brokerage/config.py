"""Brokerage Configuration.

Enums and endpoint constants shared by every brokerage implementation.
"""

from enum import Enum


# =============================================================================
# Enums
# =============================================================================

class BrokerType(str, Enum):
    """Supported broker types."""
    SCHWAB = "schwab"


class OrderAction(str, Enum):
    """Order side."""
    BUY = "buy"
    SELL = "sell"


class OrderType(str, Enum):
    """Order type."""
    MARKET = "market"
    LIMIT = "limit"


class OrderStatus(str, Enum):
    """Canonical order lifecycle status.

    PENDING is the only non-terminal state; it may move to any of the
    three terminal states and nothing else.
    """
    PENDING = "pending"
    FILLED = "filled"
    CANCELLED = "cancelled"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not OrderStatus.PENDING

    def can_transition_to(self, new_status: "OrderStatus") -> bool:
        """Check whether moving from this status to ``new_status`` is legal."""
        return self is OrderStatus.PENDING and new_status.is_terminal


# =============================================================================
# Endpoints
# =============================================================================

# OAuth endpoints
OAUTH_ENDPOINTS = {
    BrokerType.SCHWAB: {
        "authorize": "https://api.schwabapi.com/v1/oauth/authorize",
        "token": "https://api.schwabapi.com/v1/oauth/token",
    },
}


# API base URLs
API_BASE_URLS = {
    BrokerType.SCHWAB: "https://api.schwabapi.com",
}
