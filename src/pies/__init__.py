"""Pies.

Target-weighted baskets of assets and their status in an account.
"""

from src.pies.models import Asset, Slice, Pie, SliceStatus, PieStatus
from src.pies.investor import Investor

__all__ = [
    "Asset",
    "Slice",
    "Pie",
    "SliceStatus",
    "PieStatus",
    "Investor",
]
