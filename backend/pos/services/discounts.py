"""Coupon shapes and the two discount calculators.

Everything here is pure: inputs are frozen dataclasses, results are fresh
Decimals, and a zero discount is the only "not applicable" signal. Amounts are
never rounded here; freezing and display round via :mod:`pos.services.pricing`.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Literal

from pos.services import pricing
from pos.services.pricing import ZERO


PortionSize = Literal["half", "full"]
CouponKind = Literal["fixed", "percentage"]

MIN_ORDER_NOT_MET = "min_order_not_met"
NOT_APPLICABLE = "not_applicable"


def normalize_dish_name(name: str | None) -> str:
    return (name or "").strip().lower()


@dataclass(frozen=True)
class FixedOff:
    value: Decimal


@dataclass(frozen=True)
class PercentOff:
    value: Decimal
    cap: Decimal | None = None


DiscountRule = FixedOff | PercentOff


def discount_rule(kind: str | None, value: object, max_discount_amount: object = None) -> DiscountRule | None:
    """Build the tagged rule for a stored coupon; None when the stored shape is unusable."""
    amount = pricing.to_money(value)
    if amount is None or amount <= 0:
        return None
    kind_value = getattr(kind, "value", kind)
    if kind_value == "fixed":
        return FixedOff(value=amount)
    if kind_value == "percentage":
        if amount > pricing.HUNDRED:
            return None
        cap = pricing.to_money(max_discount_amount)
        return PercentOff(value=amount, cap=cap if cap is not None and cap > 0 else None)
    return None


@dataclass(frozen=True)
class RegularCoupon:
    id: str
    name: str
    rule: DiscountRule | None
    min_order_amount: Decimal | None = None
    description: str | None = None

    @property
    def type(self) -> CouponKind | None:
        if isinstance(self.rule, FixedOff):
            return "fixed"
        if isinstance(self.rule, PercentOff):
            return "percentage"
        return None

    @property
    def max_discount_amount(self) -> Decimal | None:
        return self.rule.cap if isinstance(self.rule, PercentOff) else None


@dataclass(frozen=True)
class DishCoupon:
    id: str
    coupon_code: str
    dish_name: str
    discount_percentage: Decimal
    dish_key: str = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "dish_key", normalize_dish_name(self.dish_name))


@dataclass(frozen=True)
class OrderLineItem:
    name: str
    price: Decimal
    quantity: int
    modifications: tuple[str, ...] = ()
    portion_size: PortionSize | None = None
    key: str = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "key", normalize_dish_name(self.name))

    @property
    def extended_price(self) -> Decimal:
        return self.price * self.quantity


def _minimum_order(coupon: RegularCoupon) -> Decimal | None:
    minimum = coupon.min_order_amount
    if minimum is None or minimum <= 0:
        return None
    return minimum


def calculate_coupon_discount(coupon: RegularCoupon | None, subtotal: object) -> Decimal:
    amount = pricing.to_money(subtotal)
    if coupon is None or amount is None or amount <= 0:
        return ZERO
    minimum = _minimum_order(coupon)
    if minimum is not None and amount < minimum:
        return ZERO

    rule = coupon.rule
    if isinstance(rule, FixedOff):
        return min(rule.value, amount)
    if isinstance(rule, PercentOff):
        discount = pricing.percent_of(amount, rule.value)
        if rule.cap is not None:
            discount = min(discount, rule.cap)
        return min(discount, amount)
    return ZERO


def regular_coupon_block_reason(coupon: RegularCoupon | None, subtotal: object) -> str | None:
    """Why a regular coupon yields nothing for this subtotal, or None when it applies."""
    if calculate_coupon_discount(coupon, subtotal) > 0:
        return None
    amount = pricing.to_money(subtotal)
    minimum = _minimum_order(coupon) if coupon is not None else None
    if minimum is not None and amount is not None and amount < minimum:
        return MIN_ORDER_NOT_MET
    return NOT_APPLICABLE


@dataclass(frozen=True)
class DishApplicability:
    applicable: bool
    matching_items: tuple[OrderLineItem, ...]


def matching_items(dish_coupon: DishCoupon, items: Iterable[OrderLineItem]) -> tuple[OrderLineItem, ...]:
    if not dish_coupon.dish_key:
        return ()
    return tuple(item for item in items if item.key == dish_coupon.dish_key)


def is_dish_coupon_applicable(dish_coupon: DishCoupon, items: Sequence[OrderLineItem]) -> DishApplicability:
    matches = matching_items(dish_coupon, items)
    return DishApplicability(applicable=len(matches) > 0, matching_items=matches)


def matched_extended_price(matches: Iterable[OrderLineItem]) -> Decimal:
    return sum((item.extended_price for item in matches if item.price > 0 and item.quantity > 0), start=ZERO)


def calculate_dish_coupon_discount(dish_coupon: DishCoupon | None, items: Sequence[OrderLineItem]) -> Decimal:
    if dish_coupon is None:
        return ZERO
    percentage = dish_coupon.discount_percentage
    if percentage is None or percentage <= 0 or percentage > pricing.HUNDRED:
        return ZERO
    check = is_dish_coupon_applicable(dish_coupon, items)
    if not check.applicable:
        return ZERO
    extended = matched_extended_price(check.matching_items)
    if extended <= 0:
        return ZERO
    return pricing.percent_of(extended, percentage)
