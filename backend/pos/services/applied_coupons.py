from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Literal

from pos.core.config import settings
from pos.services import discounts, pricing
from pos.services.coupon_selection import (
    CouponValidation,
    SelectionState,
    dish_not_applicable,
    regular_not_applicable,
    validate_coupon_combination,
)
from pos.services.discounts import DishCoupon, OrderLineItem, RegularCoupon
from pos.services.pricing import ZERO

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AppliedRegularCoupon:
    coupon_id: str
    name: str
    type: discounts.CouponKind
    discount_amount: Decimal
    applied_at: datetime | None = None


@dataclass(frozen=True)
class AppliedDishCoupon:
    coupon_id: str
    coupon_code: str
    dish_name: str
    discount_percentage: Decimal
    discount_amount: Decimal
    matched_item_count: int
    applied_at: datetime | None = None


@dataclass(frozen=True)
class OrderCoupons:
    regular_coupon: AppliedRegularCoupon | None = None
    dish_coupons: tuple[AppliedDishCoupon, ...] = ()

    @property
    def is_empty(self) -> bool:
        return self.regular_coupon is None and not self.dish_coupons


def _freeze_amount(amount: Decimal, ceiling: Decimal) -> Decimal:
    frozen = pricing.quantize_money(amount, rounding=settings.money_rounding)
    if frozen > ceiling:
        frozen = pricing.quantize_money(ceiling, rounding="down")
    return frozen


def create_applied_regular_coupon(
    coupon: RegularCoupon, subtotal: Decimal, *, applied_at: datetime | None = None
) -> AppliedRegularCoupon | None:
    discount = discounts.calculate_coupon_discount(coupon, subtotal)
    if discount <= 0 or coupon.type is None:
        return None
    frozen = _freeze_amount(discount, pricing.to_money(subtotal) or ZERO)
    if frozen <= 0:
        return None
    return AppliedRegularCoupon(
        coupon_id=coupon.id,
        name=coupon.name,
        type=coupon.type,
        discount_amount=frozen,
        applied_at=applied_at or _now(),
    )


def create_applied_dish_coupon(
    dish_coupon: DishCoupon, items: Sequence[OrderLineItem], *, applied_at: datetime | None = None
) -> AppliedDishCoupon | None:
    discount = discounts.calculate_dish_coupon_discount(dish_coupon, items)
    if discount <= 0:
        return None
    matches = discounts.matching_items(dish_coupon, items)
    frozen = _freeze_amount(discount, discounts.matched_extended_price(matches))
    if frozen <= 0:
        return None
    return AppliedDishCoupon(
        coupon_id=dish_coupon.id,
        coupon_code=dish_coupon.coupon_code,
        dish_name=dish_coupon.dish_name,
        discount_percentage=dish_coupon.discount_percentage,
        discount_amount=frozen,
        matched_item_count=len(matches),
        applied_at=applied_at or _now(),
    )


@dataclass(frozen=True)
class DiscountBreakdown:
    regular: Decimal
    dishes: tuple[tuple[str, Decimal], ...]
    dish_total: Decimal


@dataclass(frozen=True)
class DiscountTotals:
    total_discount: Decimal
    breakdown: DiscountBreakdown
    exceeds_subtotal: bool = False


def calculate_total_discount(
    order_coupons: OrderCoupons | None,
    subtotal: Decimal | None = None,
    items: Sequence[OrderLineItem] | None = None,
) -> DiscountTotals:
    """Sum the frozen amounts.

    ``items`` is accepted for call-site parity and never read: the total must
    match what was frozen even if the live order has changed since. The sum is
    not capped at ``subtotal``; ``exceeds_subtotal`` reports when it is larger.
    """
    coupons = order_coupons or OrderCoupons()
    regular = coupons.regular_coupon.discount_amount if coupons.regular_coupon is not None else ZERO
    dishes = tuple((applied.dish_name, applied.discount_amount) for applied in coupons.dish_coupons)
    dish_total = sum((amount for _, amount in dishes), start=ZERO)
    total = regular + dish_total
    limit = pricing.to_money(subtotal)
    exceeds = limit is not None and total > limit
    return DiscountTotals(
        total_discount=total,
        breakdown=DiscountBreakdown(regular=regular, dishes=dishes, dish_total=dish_total),
        exceeds_subtotal=exceeds,
    )


@dataclass(frozen=True)
class ApplyResult:
    validation: CouponValidation
    order_coupons: OrderCoupons | None = None
    totals: DiscountTotals | None = None


def build_order_coupons(
    selection: SelectionState,
    subtotal: Decimal,
    items: Sequence[OrderLineItem],
    *,
    currency_symbol: str | None = None,
) -> ApplyResult:
    validation = validate_coupon_combination(
        selection.regular, selection.dishes, subtotal, items, currency_symbol=currency_symbol
    )
    if not validation.is_valid:
        return ApplyResult(validation=validation)

    # Every selected coupon must freeze to a positive amount.
    applied_at = _now()
    regular = None
    if selection.regular is not None:
        regular = create_applied_regular_coupon(selection.regular, subtotal, applied_at=applied_at)
        if regular is None:
            return ApplyResult(validation=regular_not_applicable(selection.regular, currency_symbol=currency_symbol))
    dish_coupons: list[AppliedDishCoupon] = []
    for dish in selection.dishes:
        applied = create_applied_dish_coupon(dish, items, applied_at=applied_at)
        if applied is None:
            return ApplyResult(validation=dish_not_applicable(dish))
        dish_coupons.append(applied)
    order_coupons = OrderCoupons(regular_coupon=regular, dish_coupons=tuple(dish_coupons))
    totals = calculate_total_discount(order_coupons, subtotal)
    if totals.exceeds_subtotal:
        logger.warning(
            "coupon_discount_exceeds_subtotal",
            extra={"subtotal": subtotal, "total_discount": totals.total_discount},
        )
    return ApplyResult(validation=validation, order_coupons=order_coupons, totals=totals)


def remove_all_coupons() -> tuple[OrderCoupons, DiscountTotals]:
    empty = OrderCoupons()
    return empty, calculate_total_discount(empty)


def _pick(payload: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in payload:
            return payload[key]
    return None


def _amount(payload: Mapping[str, Any]) -> Decimal:
    amount = pricing.to_money(_pick(payload, "discount_amount", "discountAmount"))
    return amount if amount is not None and amount > 0 else ZERO


def order_discount_from_payload(payload: Mapping[str, Any] | None) -> Decimal:
    """Total discount stored on a persisted order.

    Reads both the aggregate shape (``regular_coupon`` + ``dish_coupons``) and
    the older single-coupon record that only carried ``discount_amount``.
    """
    if not payload:
        return ZERO
    regular = _pick(payload, "regular_coupon", "regularCoupon")
    dishes = _pick(payload, "dish_coupons", "dishCoupons")
    if regular is None and dishes is None:
        return _amount(payload)
    total = _amount(regular) if isinstance(regular, Mapping) else ZERO
    for dish in dishes or []:
        if isinstance(dish, Mapping):
            total += _amount(dish)
    return total


@dataclass(frozen=True)
class CouponSummary:
    text: str
    details: tuple[str, ...] = field(default_factory=tuple)
    kind: Literal["none", "regular", "dish", "mixed"] = "none"


def summarize_order_coupons(order_coupons: OrderCoupons | None, *, currency_symbol: str | None = None) -> CouponSummary:
    """Headline and per-coupon lines shown on pending orders and receipts."""
    if order_coupons is None or order_coupons.is_empty:
        return CouponSummary(text="")
    symbol = settings.currency_symbol if currency_symbol is None else currency_symbol

    def line(label: str, amount: Decimal) -> str:
        return f"{label}: -{symbol}{pricing.quantize_money(amount, rounding=settings.money_rounding)}"

    regular = order_coupons.regular_coupon
    dishes = order_coupons.dish_coupons
    if regular is not None and dishes:
        details = [line(regular.name, regular.discount_amount)]
        details.extend(line(dish.dish_name, dish.discount_amount) for dish in dishes)
        return CouponSummary(text=f"{1 + len(dishes)} Coupons Applied", details=tuple(details), kind="mixed")
    if regular is not None:
        return CouponSummary(
            text=f"Coupon: {regular.name}",
            details=(line(regular.name, regular.discount_amount),),
            kind="regular",
        )
    return CouponSummary(
        text=f"{len(dishes)} Dish Coupons Applied",
        details=tuple(line(dish.coupon_code, dish.discount_amount) for dish in dishes),
        kind="dish",
    )
