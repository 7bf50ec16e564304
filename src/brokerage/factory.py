"""Brokerage Factory.

Builds the concrete adapter for a broker type; callers receive the
interface only.
"""

from typing import Optional

import httpx

from src.brokerage.config import BrokerType
from src.brokerage.interface import BrokerageInterface


def create_brokerage(
    broker_type: BrokerType,
    settings,
    http_client: Optional[httpx.AsyncClient] = None,
) -> BrokerageInterface:
    """Factory function to create a brokerage instance.

    Args:
        broker_type: Type of broker.
        settings: Vendor settings (client credentials, endpoints, token file).
        http_client: Optional shared HTTP client.

    Returns:
        Brokerage instance implementing BrokerageInterface, with its session
        restored from the persisted credential.

    Raises:
        ValueError: If the broker type has no implementation.
    """
    if broker_type == BrokerType.SCHWAB:
        from src.schwab.client import SchwabBrokerage
        return SchwabBrokerage.from_settings(settings, http_client=http_client)

    raise ValueError(f"unsupported broker type: {broker_type}")


__all__ = ["create_brokerage"]
