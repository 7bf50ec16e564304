"""Pie Data Models.

A pie is a named basket of assets with target weights.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class Asset:
    """Tradable asset referenced by a pie slice."""
    symbol: str
    name: str = ""
    asset_id: str = ""
    type_name: str = "EQUITY"
    status: str = ""
    is_active: bool = True


@dataclass
class Slice:
    """One asset and its target weight (0-1) within a pie."""
    weight: float
    asset: Asset


@dataclass
class Pie:
    """Target allocation across a set of assets."""
    pie_id: str = ""
    name: str = ""
    description: str = ""
    slices: list[Slice] = field(default_factory=list)

    @property
    def symbols(self) -> list[str]:
        return [s.asset.symbol for s in self.slices]

    @property
    def total_weight(self) -> float:
        return sum(s.weight for s in self.slices)

    def validate(self, tolerance: float = 1e-6) -> None:
        """Check weights are non-negative, sum to 1, and symbols are unique.

        Raises:
            ValueError: If the pie is inconsistent.
        """
        if not self.slices:
            raise ValueError(f"pie {self.name!r} has no slices")
        for s in self.slices:
            if s.weight < 0:
                raise ValueError(f"negative weight for {s.asset.symbol}")
        if abs(self.total_weight - 1.0) > tolerance:
            raise ValueError(
                f"pie {self.name!r} weights sum to {self.total_weight:.4f}, expected 1.0"
            )
        if len(set(self.symbols)) != len(self.symbols):
            raise ValueError(f"pie {self.name!r} lists a symbol more than once")


@dataclass
class SliceStatus:
    """Current state of one slice against its target."""
    symbol: str
    target_weight: float
    quantity: float = 0.0
    market_value: float = 0.0
    current_weight: float = 0.0

    @property
    def drift(self) -> float:
        """Current minus target weight."""
        return self.current_weight - self.target_weight


@dataclass
class PieStatus:
    """Allocation snapshot of a pie within one account."""
    pie_name: str
    account_id: str
    slices: list[SliceStatus] = field(default_factory=list)
    as_of: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def market_value(self) -> float:
        return sum(s.market_value for s in self.slices)

    @property
    def max_drift(self) -> float:
        if not self.slices:
            return 0.0
        return max(abs(s.drift) for s in self.slices)
