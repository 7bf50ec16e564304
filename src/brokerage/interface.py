"""Brokerage Interface Protocol.

Defines the vendor-neutral interface that all brokerage adapters must follow.
"""

from abc import ABC, abstractmethod
from typing import Optional, Protocol, runtime_checkable

from src.brokerage.config import BrokerType
from src.brokerage.models import (
    Account,
    Position,
    Order,
    OrderRequest,
    Quote,
)


@runtime_checkable
class BrokerageInterface(Protocol):
    """Protocol defining the unified brokerage interface.

    Callers hold this type only, never a concrete adapter.
    """

    @property
    def broker_type(self) -> BrokerType:
        """Get the broker type."""
        ...

    def is_authenticated(self) -> bool:
        """Check whether a currently valid credential is held.

        Returns:
            True if a credential exists and has not expired.
        """
        ...

    # Accounts
    async def get_accounts(self) -> list[Account]:
        """Get all accounts for the authenticated user.

        Returns:
            List of Account objects.
        """
        ...

    async def get_positions(self, account_id: str) -> list[Position]:
        """Get all positions for an account.

        Args:
            account_id: Vendor account identifier.

        Returns:
            List of Position objects.
        """
        ...

    # Orders
    async def place_order(self, account_id: str, order: OrderRequest) -> Order:
        """Submit a new order.

        Args:
            account_id: Vendor account identifier.
            order: Order request.

        Returns:
            The submitted Order, status pending.
        """
        ...

    async def get_order_status(self, account_id: str, order_id: str) -> Order:
        """Get the current state of an order.

        Args:
            account_id: Vendor account identifier.
            order_id: Order ID.

        Returns:
            Order object.
        """
        ...

    async def cancel_pending_order(self, account_id: str, order_id: str) -> None:
        """Cancel a pending order.

        Args:
            account_id: Vendor account identifier.
            order_id: Order ID.
        """
        ...

    async def get_recent_orders(self, account_id: str, limit: int) -> list[Order]:
        """Get recent orders for an account.

        Args:
            account_id: Vendor account identifier.
            limit: Maximum number of orders.

        Returns:
            List of Order objects.
        """
        ...

    # Market Data
    async def get_quote(self, symbol: str) -> Quote:
        """Get the current quote for a symbol.

        Args:
            symbol: Stock symbol.

        Returns:
            Vendor quote payload, keyed by field name.
        """
        ...


class BaseBrokerage(ABC):
    """Abstract base class for brokerage adapters.

    Example:
        class MyBrokerage(BaseBrokerage):
            async def get_accounts(self) -> list[Account]:
                ...
    """

    @property
    @abstractmethod
    def broker_type(self) -> BrokerType:
        """Get the broker type."""
        pass

    @abstractmethod
    def is_authenticated(self) -> bool:
        """Check whether a currently valid credential is held."""
        pass

    @abstractmethod
    async def get_accounts(self) -> list[Account]:
        """Get all accounts."""
        pass

    @abstractmethod
    async def get_positions(self, account_id: str) -> list[Position]:
        """Get all positions for an account."""
        pass

    async def get_position(self, account_id: str, symbol: str) -> Optional[Position]:
        """Get the position for a symbol, if held."""
        positions = await self.get_positions(account_id)
        for pos in positions:
            if pos.symbol == symbol:
                return pos
        return None

    @abstractmethod
    async def place_order(self, account_id: str, order: OrderRequest) -> Order:
        """Submit a new order."""
        pass

    @abstractmethod
    async def get_order_status(self, account_id: str, order_id: str) -> Order:
        """Get an order by ID."""
        pass

    @abstractmethod
    async def cancel_pending_order(self, account_id: str, order_id: str) -> None:
        """Cancel a pending order."""
        pass

    @abstractmethod
    async def get_recent_orders(self, account_id: str, limit: int) -> list[Order]:
        """Get recent orders."""
        pass

    @abstractmethod
    async def get_quote(self, symbol: str) -> Quote:
        """Get the quote for a symbol."""
        pass

    async def aclose(self) -> None:
        """Release network resources held by the adapter."""
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
