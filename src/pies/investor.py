"""Investor.

Binds an account to a brokerage and reports pie allocations.
"""

import logging

from src.brokerage.interface import BrokerageInterface
from src.pies.models import Pie, PieStatus, SliceStatus

logger = logging.getLogger(__name__)


class Investor:
    """An investor account reached through any brokerage implementation.

    Example:
        investor = Investor(broker, account_id="12345678")
        status = await investor.get_pie_status(pie)
    """

    def __init__(self, brokerage: BrokerageInterface, account_id: str):
        self.brokerage = brokerage
        self.account_id = account_id

    async def get_pie_status(self, pie: Pie) -> PieStatus:
        """Compare the account's holdings of ``pie`` against its targets.

        Slice weights are measured against the combined market value of the
        pie's own symbols; with nothing held every current weight is 0.
        """
        positions = {
            p.symbol: p for p in await self.brokerage.get_positions(self.account_id)
        }

        slices = []
        for s in pie.slices:
            pos = positions.get(s.asset.symbol)
            slices.append(SliceStatus(
                symbol=s.asset.symbol,
                target_weight=s.weight,
                quantity=pos.quantity if pos else 0.0,
                market_value=pos.market_value if pos else 0.0,
            ))

        total = sum(s.market_value for s in slices)
        if total != 0:
            for s in slices:
                s.current_weight = s.market_value / total

        status = PieStatus(pie_name=pie.name, account_id=self.account_id, slices=slices)
        logger.info(
            "Pie %s: market value %.2f, max drift %.4f",
            pie.name, status.market_value, status.max_drift,
        )
        return status
