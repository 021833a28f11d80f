from __future__ import annotations

import enum
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from pos.core.config import settings
from pos.services import discounts, pricing
from pos.services.discounts import DishCoupon, OrderLineItem, RegularCoupon


class CouponErrorCode(str, enum.Enum):
    no_selection = "no_selection"
    not_applicable = "not_applicable"
    min_order_not_met = "min_order_not_met"
    duplicate_dish_coupon = "duplicate_dish_coupon"


@dataclass(frozen=True)
class CouponValidation:
    is_valid: bool
    error: str | None = None
    code: CouponErrorCode | None = None
    min_order_amount: Decimal | None = None
    dish_name: str | None = None


VALID = CouponValidation(is_valid=True)


@dataclass(frozen=True)
class SelectionState:
    regular: RegularCoupon | None = None
    dishes: tuple[DishCoupon, ...] = ()

    @property
    def is_empty(self) -> bool:
        return self.regular is None and not self.dishes

    def has_dish_coupon(self, coupon_id: str) -> bool:
        return any(selected.id == coupon_id for selected in self.dishes)


EMPTY_SELECTION = SelectionState()


def _symbol(currency_symbol: str | None) -> str:
    return settings.currency_symbol if currency_symbol is None else currency_symbol


def _duplicate_dish_message(dish_name: str) -> str:
    return f"Only one coupon per dish is allowed. {dish_name} already has a coupon selected."


def regular_coupon_message(coupon: RegularCoupon, reason: str, *, currency_symbol: str | None = None) -> str:
    if reason == discounts.MIN_ORDER_NOT_MET and coupon.min_order_amount is not None:
        minimum = pricing.format_money(coupon.min_order_amount, symbol=_symbol(currency_symbol))
        return f"Minimum order of {minimum} required for {coupon.name}"
    return f"{coupon.name} is not applicable to this order"


def regular_not_applicable(coupon: RegularCoupon, *, currency_symbol: str | None = None) -> CouponValidation:
    return CouponValidation(
        is_valid=False,
        error=regular_coupon_message(coupon, discounts.NOT_APPLICABLE, currency_symbol=currency_symbol),
        code=CouponErrorCode.not_applicable,
    )


def dish_not_applicable(dish_coupon: DishCoupon) -> CouponValidation:
    return CouponValidation(
        is_valid=False,
        error=f"No dish available for this discount: {dish_coupon.dish_name}",
        code=CouponErrorCode.not_applicable,
        dish_name=dish_coupon.dish_name,
    )


@dataclass(frozen=True)
class RegularCouponOption:
    coupon: RegularCoupon
    estimated_discount: Decimal
    reason: str | None
    message: str | None

    @property
    def applicable(self) -> bool:
        return self.reason is None


def get_selectable_regular_coupons(
    catalog: Sequence[RegularCoupon], subtotal: Decimal, *, currency_symbol: str | None = None
) -> list[RegularCouponOption]:
    options: list[RegularCouponOption] = []
    for coupon in catalog:
        reason = discounts.regular_coupon_block_reason(coupon, subtotal)
        options.append(
            RegularCouponOption(
                coupon=coupon,
                estimated_discount=discounts.calculate_coupon_discount(coupon, subtotal),
                reason=reason,
                message=regular_coupon_message(coupon, reason, currency_symbol=currency_symbol) if reason else None,
            )
        )
    return options


def get_applicable_dish_coupons(
    catalog: Sequence[DishCoupon],
    items: Sequence[OrderLineItem],
    already_selected: Sequence[DishCoupon],
) -> list[DishCoupon]:
    selected_by_dish = {selected.dish_key: selected.id for selected in already_selected}
    applicable: list[DishCoupon] = []
    for coupon in catalog:
        if not discounts.is_dish_coupon_applicable(coupon, items).applicable:
            continue
        owner = selected_by_dish.get(coupon.dish_key)
        if owner is not None and owner != coupon.id:
            continue
        applicable.append(coupon)
    return applicable


def validate_coupon_combination(
    regular: RegularCoupon | None,
    dish_coupons: Sequence[DishCoupon],
    subtotal: Decimal,
    items: Sequence[OrderLineItem],
    *,
    currency_symbol: str | None = None,
) -> CouponValidation:
    if regular is None and not dish_coupons:
        return CouponValidation(is_valid=False, error="Please select a coupon", code=CouponErrorCode.no_selection)

    if regular is not None:
        reason = discounts.regular_coupon_block_reason(regular, subtotal)
        if reason == discounts.MIN_ORDER_NOT_MET:
            return CouponValidation(
                is_valid=False,
                error=regular_coupon_message(regular, reason, currency_symbol=currency_symbol),
                code=CouponErrorCode.min_order_not_met,
                min_order_amount=regular.min_order_amount,
            )
        if reason is not None:
            return regular_not_applicable(regular, currency_symbol=currency_symbol)

    for dish_coupon in dish_coupons:
        if discounts.calculate_dish_coupon_discount(dish_coupon, items) <= 0:
            return dish_not_applicable(dish_coupon)

    seen: set[str] = set()
    for dish_coupon in dish_coupons:
        if dish_coupon.dish_key in seen:
            return CouponValidation(
                is_valid=False,
                error=_duplicate_dish_message(dish_coupon.dish_name),
                code=CouponErrorCode.duplicate_dish_coupon,
                dish_name=dish_coupon.dish_name,
            )
        seen.add(dish_coupon.dish_key)

    return VALID


@dataclass(frozen=True)
class SelectionToggle:
    state: SelectionState
    validation: CouponValidation = VALID


def toggle_regular(state: SelectionState, coupon: RegularCoupon) -> SelectionToggle:
    if state.regular is not None and state.regular.id == coupon.id:
        return SelectionToggle(state=SelectionState(regular=None, dishes=state.dishes))
    return SelectionToggle(state=SelectionState(regular=coupon, dishes=state.dishes))


def toggle_dish(state: SelectionState, coupon: DishCoupon) -> SelectionToggle:
    if state.has_dish_coupon(coupon.id):
        remaining = tuple(selected for selected in state.dishes if selected.id != coupon.id)
        return SelectionToggle(state=SelectionState(regular=state.regular, dishes=remaining))
    if any(selected.dish_key == coupon.dish_key for selected in state.dishes):
        return SelectionToggle(
            state=state,
            validation=CouponValidation(
                is_valid=False,
                error=_duplicate_dish_message(coupon.dish_name),
                code=CouponErrorCode.duplicate_dish_coupon,
                dish_name=coupon.dish_name,
            ),
        )
    return SelectionToggle(state=SelectionState(regular=state.regular, dishes=(*state.dishes, coupon)))
