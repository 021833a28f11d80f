"""Coupon picker session: Idle -> Selecting -> Validating -> Applied | Selecting.

The UI keeps a :class:`CouponSession` between interactions; every transition
returns a new session and leaves the old one untouched.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Sequence
from dataclasses import dataclass, replace
from decimal import Decimal

from pos.services import applied_coupons, coupon_selection
from pos.services.applied_coupons import OrderCoupons
from pos.services.coupon_selection import EMPTY_SELECTION, CouponValidation, SelectionState
from pos.services.discounts import DishCoupon, OrderLineItem, RegularCoupon

logger = logging.getLogger(__name__)


class SessionPhase(str, enum.Enum):
    idle = "idle"
    selecting = "selecting"
    validating = "validating"
    applied = "applied"


def selection_from_order_coupons(
    order_coupons: OrderCoupons | None,
    regular_catalog: Sequence[RegularCoupon],
    dish_catalog: Sequence[DishCoupon],
) -> SelectionState:
    """Re-select the catalog coupons behind a previously applied aggregate.

    Coupons that have left the catalog since are dropped.
    """
    if order_coupons is None:
        return EMPTY_SELECTION
    regular = None
    if order_coupons.regular_coupon is not None:
        regular = next((c for c in regular_catalog if c.id == order_coupons.regular_coupon.coupon_id), None)
    dishes_by_id = {coupon.id: coupon for coupon in dish_catalog}
    dishes = tuple(
        dishes_by_id[applied.coupon_id] for applied in order_coupons.dish_coupons if applied.coupon_id in dishes_by_id
    )
    return SelectionState(regular=regular, dishes=dishes)


@dataclass(frozen=True)
class CouponSession:
    phase: SessionPhase = SessionPhase.idle
    selection: SelectionState = EMPTY_SELECTION
    validation: CouponValidation | None = None
    order_coupons: OrderCoupons | None = None
    total_discount: Decimal | None = None

    @classmethod
    def open(
        cls,
        regular_catalog: Sequence[RegularCoupon],
        dish_catalog: Sequence[DishCoupon],
        existing: OrderCoupons | None = None,
        *,
        selection: SelectionState | None = None,
    ) -> CouponSession:
        """Start picking; an explicit ``selection`` wins over one restored from ``existing``."""
        if selection is None or selection.is_empty:
            selection = selection_from_order_coupons(existing, regular_catalog, dish_catalog)
        return cls(phase=SessionPhase.selecting, selection=selection)

    def _require_open(self) -> None:
        if self.phase not in (SessionPhase.selecting, SessionPhase.validating):
            raise ValueError(f"coupon session is {self.phase.value}")

    def toggle_regular(self, coupon: RegularCoupon) -> CouponSession:
        self._require_open()
        toggled = coupon_selection.toggle_regular(self.selection, coupon)
        return replace(self, phase=SessionPhase.selecting, selection=toggled.state, validation=None)

    def toggle_dish(self, coupon: DishCoupon) -> CouponSession:
        self._require_open()
        toggled = coupon_selection.toggle_dish(self.selection, coupon)
        error = None if toggled.validation.is_valid else toggled.validation
        return replace(self, phase=SessionPhase.selecting, selection=toggled.state, validation=error)

    def applicable_dish_coupons(
        self, dish_catalog: Sequence[DishCoupon], items: Sequence[OrderLineItem]
    ) -> list[DishCoupon]:
        return coupon_selection.get_applicable_dish_coupons(dish_catalog, items, self.selection.dishes)

    def confirm(
        self, subtotal: Decimal, items: Sequence[OrderLineItem], *, currency_symbol: str | None = None
    ) -> CouponSession:
        self._require_open()
        validating = replace(self, phase=SessionPhase.validating, validation=None)
        result = applied_coupons.build_order_coupons(
            validating.selection, subtotal, items, currency_symbol=currency_symbol
        )
        if not result.validation.is_valid:
            return replace(validating, phase=SessionPhase.selecting, validation=result.validation)
        total = result.totals.total_discount if result.totals is not None else None
        logger.info(
            "coupon_selection_applied",
            extra={
                "regular_coupon": self.selection.regular.id if self.selection.regular else None,
                "dish_coupons": [dish.id for dish in self.selection.dishes],
                "total_discount": total,
            },
        )
        return replace(
            validating,
            phase=SessionPhase.applied,
            validation=result.validation,
            order_coupons=result.order_coupons,
            total_discount=total,
        )

    def remove_all(self) -> CouponSession:
        if self.phase not in (SessionPhase.selecting, SessionPhase.applied):
            raise ValueError(f"coupon session is {self.phase.value}")
        empty, totals = applied_coupons.remove_all_coupons()
        return CouponSession(phase=SessionPhase.idle, order_coupons=empty, total_discount=totals.total_discount)

    def close(self) -> CouponSession:
        """Dismiss the picker; an in-progress selection is discarded."""
        if self.phase == SessionPhase.applied:
            return replace(self, phase=SessionPhase.idle, selection=EMPTY_SELECTION, validation=None)
        return CouponSession()
