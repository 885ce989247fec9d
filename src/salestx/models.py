from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Union


def to_decimal(value: Any) -> Decimal:
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    if not value.is_finite():
        raise ValueError(f"{value} is not a finite amount")
    return value


def to_date(value: Union[date, str]) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


@dataclass
class Product:
    name: str
    price: Decimal

    def __post_init__(self):
        self.price = to_decimal(self.price)


@dataclass
class Order:
    product_id: int
    order_date: date
    amount: Decimal

    def __post_init__(self):
        self.order_date = to_date(self.order_date)
        self.amount = to_decimal(self.amount)


@dataclass
class MonthlySales:
    """Running sales total for a product in a given month"""

    product_id: int
    report_month: int
    total_amount: Decimal

    def __post_init__(self):
        self.total_amount = to_decimal(self.total_amount)
