from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_DOWN, ROUND_HALF_EVEN, ROUND_HALF_UP, ROUND_UP
from typing import Literal


MONEY_QUANT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

MoneyRounding = Literal["half_up", "half_even", "up", "down"]


_ROUNDING_MAP: dict[str, str] = {
    "half_up": ROUND_HALF_UP,
    "half_even": ROUND_HALF_EVEN,
    "up": ROUND_UP,
    "down": ROUND_DOWN,
}


def quantize_money(value: Decimal, *, rounding: MoneyRounding = "half_up") -> Decimal:
    mode = _ROUNDING_MAP.get(str(rounding), ROUND_HALF_UP)
    return Decimal(value).quantize(MONEY_QUANT, rounding=mode)


def to_money(value: object) -> Decimal | None:
    """Coerce a loosely typed amount to Decimal; None when it is not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float, str)):
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            return None
    else:
        return None
    if not amount.is_finite():
        return None
    return amount


def percent_of(amount: Decimal, percent: Decimal) -> Decimal:
    return amount * percent / HUNDRED


def format_money(value: Decimal, *, symbol: str = "", rounding: MoneyRounding = "half_up") -> str:
    """Whole amounts print without decimals (300), others with two (12.50)."""
    if value == value.to_integral_value():
        return f"{symbol}{value.to_integral_value():f}"
    return f"{symbol}{quantize_money(value, rounding=rounding):f}"


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    discount: Decimal
    total: Decimal


def compute_order_total(
    *,
    subtotal: Decimal,
    discount: Decimal,
    rounding: MoneyRounding = "half_up",
) -> OrderTotals:
    subtotal_q = quantize_money(subtotal if subtotal > 0 else ZERO, rounding=rounding)
    discount_q = quantize_money(discount if discount > 0 else ZERO, rounding=rounding)
    total = subtotal_q - discount_q
    if total < 0:
        total = Decimal("0.00")
    return OrderTotals(subtotal=subtotal_q, discount=discount_q, total=quantize_money(total, rounding=rounding))
