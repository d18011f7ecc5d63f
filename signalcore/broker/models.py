"""Broker data models — typed representations of exchange order-history objects."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from signalcore.strategy.models import Direction


class ExitType(str, Enum):
    """How a position was closed."""

    STOP_LOSS = "STOP_LOSS"
    TAKE_PROFIT_1 = "TAKE_PROFIT_1"
    TAKE_PROFIT_2 = "TAKE_PROFIT_2"
    TAKE_PROFIT_3 = "TAKE_PROFIT_3"
    TRAILING_STOP = "TRAILING_STOP"
    MANUAL = "MANUAL"
    TIME_BASED_EXIT = "TIME_BASED_EXIT"
    LIQUIDATION = "LIQUIDATION"


def _float(value) -> float:
    if value in (None, ""):
        return 0.0
    return float(value)


def _bool(value) -> bool:
    if isinstance(value, str):
        return value.lower() == "true"
    return bool(value)


@dataclass(frozen=True)
class ExchangeOrder:
    """One entry of the exchange's order history."""

    order_id: str
    symbol: str
    side: str  # "Buy" or "Sell"
    order_type: str  # "Limit" or "Market"
    order_status: str  # "Filled", "Cancelled", ...
    stop_order_type: str = ""  # "", "Stop", "StopLoss", "TakeProfit", "TrailingStop"
    reduce_only: bool = False
    price: float = 0.0
    avg_price: float = 0.0
    qty: float = 0.0
    updated_time: int = 0  # epoch ms

    @property
    def fill_price(self) -> float:
        """Average fill price, falling back to the order price."""
        return self.avg_price or self.price

    @classmethod
    def from_api(cls, data: dict) -> "ExchangeOrder":
        """Parse an order from the exchange's camelCase JSON (numbers as strings)."""
        return cls(
            order_id=str(data.get("orderId", "")),
            symbol=data.get("symbol", ""),
            side=data.get("side", ""),
            order_type=data.get("orderType", ""),
            order_status=data.get("orderStatus", ""),
            stop_order_type=data.get("stopOrderType") or "",
            reduce_only=_bool(data.get("reduceOnly", False)),
            price=_float(data.get("price")),
            avg_price=_float(data.get("avgPrice")),
            qty=_float(data.get("qty")),
            updated_time=int(_float(data.get("updatedTime"))),
        )


@dataclass(frozen=True)
class PositionRecord:
    """A (closed) position as tracked by the bot."""

    symbol: str
    side: Direction
    entry_price: float
    quantity: float
    stop_loss: float
    take_profits: tuple[float, ...] = ()
    opened_at: int = 0
    closed_at: Optional[int] = None
