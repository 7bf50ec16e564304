"""Schwab wire schemas.

Narrow, adapter-local views of the Trader API JSON payloads. They mirror
the vendor's field names and are mapped into canonical entities by
``src.schwab.client``; nothing outside this package should import them.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional
import math

from src.brokerage.exceptions import ResponseParseError

_TIME_FORMATS = ("%Y-%m-%dT%H:%M:%S%z", "%Y-%m-%dT%H:%M:%S.%f%z")


def _object(data: Any, what: str) -> dict:
    if not isinstance(data, dict):
        raise ResponseParseError(f"expected JSON object for {what}, got {type(data).__name__}")
    return data


def _number(data: dict, key: str, what: str) -> float:
    value = data.get(key)
    if value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ResponseParseError(f"{what}.{key} is not numeric: {value!r}") from e
    if not math.isfinite(number):
        raise ResponseParseError(f"{what}.{key} is not finite: {value!r}")
    return number


def _string(data: dict, key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    return str(value)


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse a Schwab timestamp such as ``2024-03-15T14:30:00+0000``.

    Returns None for empty or unrecognized values.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        parsed = None
        for fmt in _TIME_FORMATS:
            try:
                parsed = datetime.strptime(value, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class SchwabAccountRecord:
    """``securitiesAccount`` entry of ``GET /accounts``."""
    account_id: str = ""
    account_number: str = ""
    account_type: str = ""
    cash_balance: float = 0.0
    buying_power: float = 0.0
    long_market_value: float = 0.0

    @classmethod
    def from_api(cls, data: Any) -> "SchwabAccountRecord":
        acct = _object(_object(data, "account").get("securitiesAccount", {}), "securitiesAccount")
        balances = _object(acct.get("currentBalances", {}), "currentBalances")
        return cls(
            account_id=_string(acct, "accountId"),
            account_number=_string(acct, "accountNumber"),
            account_type=_string(acct, "type"),
            cash_balance=_number(balances, "cashBalance", "currentBalances"),
            buying_power=_number(balances, "buyingPower", "currentBalances"),
            long_market_value=_number(balances, "longMarketValue", "currentBalances"),
        )


@dataclass
class SchwabPositionRecord:
    """Entry of ``securitiesAccount.positions``."""
    symbol: str = ""
    long_quantity: float = 0.0
    short_quantity: float = 0.0
    average_price: float = 0.0
    market_value: float = 0.0
    current_day_profit_loss: float = 0.0

    @classmethod
    def from_api(cls, data: Any) -> "SchwabPositionRecord":
        pos = _object(data, "position")
        instrument = _object(pos.get("instrument", {}), "instrument")
        return cls(
            symbol=_string(instrument, "symbol"),
            long_quantity=_number(pos, "longQuantity", "position"),
            short_quantity=_number(pos, "shortQuantity", "position"),
            average_price=_number(pos, "averagePrice", "position"),
            market_value=_number(pos, "marketValue", "position"),
            current_day_profit_loss=_number(pos, "currentDayProfitLoss", "position"),
        )

    @classmethod
    def list_from_account(cls, data: Any) -> list["SchwabPositionRecord"]:
        """Extract positions from a ``GET /accounts/{id}?fields=positions`` body."""
        acct = _object(_object(data, "account").get("securitiesAccount", {}), "securitiesAccount")
        positions = acct.get("positions") or []
        if not isinstance(positions, list):
            raise ResponseParseError("securitiesAccount.positions is not a list")
        return [cls.from_api(p) for p in positions]


@dataclass
class SchwabOrderRecord:
    """Order body of ``GET /accounts/{id}/orders[/{orderId}]``."""
    order_id: str = ""
    status: str = ""
    order_type: str = ""
    quantity: float = 0.0
    filled_quantity: float = 0.0
    price: float = 0.0
    entered_time: str = ""
    close_time: str = ""
    instruction: str = ""
    symbol: str = ""
    raw: dict = field(default_factory=dict, repr=False)

    @classmethod
    def from_api(cls, data: Any) -> "SchwabOrderRecord":
        order = _object(data, "order")
        legs = order.get("orderLegCollection") or []
        if not isinstance(legs, list):
            raise ResponseParseError("orderLegCollection is not a list")
        first_leg = _object(legs[0], "orderLegCollection[0]") if legs else {}
        instrument = _object(first_leg.get("instrument", {}), "instrument")
        return cls(
            order_id=_string(order, "orderId"),
            status=_string(order, "status"),
            order_type=_string(order, "orderType"),
            quantity=_number(order, "quantity", "order"),
            filled_quantity=_number(order, "filledQuantity", "order"),
            price=_number(order, "price", "order"),
            entered_time=_string(order, "enteredTime"),
            close_time=_string(order, "closeTime"),
            instruction=_string(first_leg, "instruction"),
            symbol=_string(instrument, "symbol"),
            raw=order,
        )
