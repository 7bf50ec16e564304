"""Schwab Brokerage Adapter.

Implements the brokerage interface against Schwab's Trader API
(https://developer.schwab.com/).

Example:
    from src.schwab import SchwabBrokerage
    from src.settings import load_settings

    broker = SchwabBrokerage.from_settings(load_settings())
    positions = await broker.get_positions(account_id)
"""

from src.schwab.client import (
    SchwabBrokerage,
    build_order_payload,
    normalize_order_status,
    order_id_from_location,
)

__all__ = [
    "SchwabBrokerage",
    "build_order_payload",
    "normalize_order_status",
    "order_id_from_location",
]
