"""
Fill, trade, and position records for the paper broker.

**Conceptual**: Three records carry the economics of trading:

  - Execution: what the execution engine decided (this order filled this
    many units at this price). Consumed once by the broker's ledger update.
  - Trade: the booked result of an Execution, including the fee and the
    realized P&L. Append-only history.
  - Position: the net holding in one asset with its average cost.

All three are immutable. Position arithmetic returns new Position objects.
"""

from dataclasses import dataclass
from typing import Optional

import pandas as pd

from src.data.schemas import Asset
from src.orders.models import CreateOrder


@dataclass(frozen=True)
class Execution:
    """
    One fill produced by the execution engine.

    Attributes:
        order: The order that produced the fill. For a bracket this is the
              bracket itself, not the leg that traded.
        quantity: Signed filled quantity (positive = bought).
        price: Fill price, already including any slippage.
    """
    order: CreateOrder
    quantity: float
    price: float

    @property
    def asset(self) -> Asset:
        return self.order.asset

    @property
    def value(self) -> float:
        """Signed notional: quantity * price."""
        return self.quantity * self.price


@dataclass(frozen=True)
class Trade:
    """
    Booked fill.

    Attributes:
        time: Event time of the fill.
        asset: Traded asset.
        size: Signed quantity (positive = bought).
        price: Fill price.
        fee: Fee charged for the fill, in the asset's currency.
        pnl: Realized P&L of the fill net of the fee.
        order_id: Id of the order that produced the fill.
    """
    time: pd.Timestamp
    asset: Asset
    size: float
    price: float
    fee: float
    pnl: float
    order_id: int

    @property
    def total_cost(self) -> float:
        """Cash leaving the account for this trade (negative when cash comes in)."""
        return self.size * self.price + self.fee


@dataclass(frozen=True)
class Position:
    """
    Net holding of one asset.

    Attributes:
        asset: The asset held.
        size: Signed quantity. Positive = long, negative = short, zero = flat.
        avg_price: Size-weighted average entry price of the open quantity.
        spot_price: Last known market price, used for valuation.
        last_update: Time of the last fill or price refresh.
    """
    asset: Asset
    size: float
    avg_price: float
    spot_price: Optional[float] = None
    last_update: Optional[pd.Timestamp] = None

    def __post_init__(self):
        if self.spot_price is None:
            object.__setattr__(self, "spot_price", self.avg_price)

    @classmethod
    def empty(cls, asset: Asset) -> "Position":
        return cls(asset, 0.0, 0.0)

    @property
    def closed(self) -> bool:
        return self.size == 0

    @property
    def long(self) -> bool:
        return self.size > 0

    @property
    def short(self) -> bool:
        return self.size < 0

    @property
    def market_value(self) -> float:
        """size * spot_price; negative for shorts."""
        return self.size * self.spot_price

    @property
    def unrealized_pnl(self) -> float:
        return self.size * (self.spot_price - self.avg_price)

    def merge(self, other: "Position") -> "Position":
        """
        Combine this position with a fill represented as a Position.

        **Rules**:
          - Flat position: the result is `other`.
          - Same direction: sizes add; avg_price is the size-weighted average.
          - Opposite direction, not crossing zero: size shrinks; avg_price is unchanged.
          - Exactly to zero: a flat position (size 0) is returned.
          - Crossing zero: the remainder is a new position at `other.avg_price`.

        The result carries `other`'s spot price and time, since that is the
        most recent price information.
        """
        new_size = self.size + other.size
        spot, when = other.spot_price, other.last_update

        if self.size == 0:
            return Position(self.asset, other.size, other.avg_price, spot, when)

        if new_size == 0:
            return Position(self.asset, 0.0, 0.0, spot, when)

        if self.size * other.size > 0:
            avg = (self.size * self.avg_price + other.size * other.avg_price) / new_size
            return Position(self.asset, new_size, avg, spot, when)

        if new_size * self.size > 0:
            return Position(self.asset, new_size, self.avg_price, spot, when)

        return Position(self.asset, new_size, other.avg_price, spot, when)

    def realized_pnl(self, other: "Position") -> float:
        """
        P&L realized by applying the fill `other` to this position.

        Only the part of `other` that closes existing quantity realizes P&L:
            closed_qty * (other.avg_price - self.avg_price) * sign(self.size)

        Example:
            >>> held = Position(asset, 10, 150.0)
            >>> held.realized_pnl(Position(asset, -10, 160.0))
            100.0
        """
        if self.size == 0 or self.size * other.size > 0:
            return 0.0
        closed_qty = min(abs(self.size), abs(other.size))
        sign = 1.0 if self.size > 0 else -1.0
        return closed_qty * (other.avg_price - self.avg_price) * sign
