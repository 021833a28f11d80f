from __future__ import annotations

from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from pos.core.config import settings
from pos.db.session import get_session
from pos.schemas.coupons import (
    AppliedDishCouponSchema,
    AppliedRegularCouponSchema,
    CouponApplyRequest,
    CouponApplyResponse,
    CouponOptionsRequest,
    CouponOptionsResponse,
    CouponRead,
    CouponSelection,
    CouponSummaryRead,
    CouponToggleRequest,
    CouponToggleResponse,
    DishCouponOption,
    DishCouponRead,
    DishDiscountLine,
    OrderCouponsClearRequest,
    OrderCouponsSchema,
    OrderCouponTotalsRequest,
    OrderCouponTotalsResponse,
    RegularCouponOption,
    StoredOrderDiscountRequest,
    StoredOrderDiscountResponse,
)
from pos.services import applied_coupons, coupon_catalog, coupon_selection, discounts, pricing
from pos.services.applied_coupons import AppliedDishCoupon, AppliedRegularCoupon, OrderCoupons
from pos.services.coupon_session import CouponSession, SessionPhase

router = APIRouter(tags=["coupon-selection"])

SessionDep = Annotated[AsyncSession, Depends(get_session)]


def _to_order_coupons_schema(order_coupons: OrderCoupons) -> OrderCouponsSchema:
    regular = order_coupons.regular_coupon
    return OrderCouponsSchema(
        regular_coupon=(
            AppliedRegularCouponSchema(
                coupon_id=regular.coupon_id,
                name=regular.name,
                type=regular.type,
                discount_amount=regular.discount_amount,
                applied_at=regular.applied_at,
            )
            if regular is not None
            else None
        ),
        dish_coupons=[
            AppliedDishCouponSchema(
                coupon_id=dish.coupon_id,
                coupon_code=dish.coupon_code,
                dish_name=dish.dish_name,
                discount_percentage=dish.discount_percentage,
                discount_amount=dish.discount_amount,
                matched_item_count=dish.matched_item_count,
                applied_at=dish.applied_at,
            )
            for dish in order_coupons.dish_coupons
        ],
    )


def _to_order_coupons(payload: OrderCouponsSchema) -> OrderCoupons:
    regular = payload.regular_coupon
    return OrderCoupons(
        regular_coupon=(
            AppliedRegularCoupon(
                coupon_id=regular.coupon_id,
                name=regular.name,
                type=regular.type,
                discount_amount=regular.discount_amount,
                applied_at=regular.applied_at,
            )
            if regular is not None
            else None
        ),
        dish_coupons=tuple(
            AppliedDishCoupon(
                coupon_id=dish.coupon_id,
                coupon_code=dish.coupon_code,
                dish_name=dish.dish_name,
                discount_percentage=dish.discount_percentage or pricing.ZERO,
                discount_amount=dish.discount_amount,
                matched_item_count=dish.matched_item_count,
                applied_at=dish.applied_at,
            )
            for dish in payload.dish_coupons
        ),
    )


def _selection_schema(selection: coupon_selection.SelectionState) -> CouponSelection:
    regular_id, dish_ids = coupon_catalog.selection_ids(selection)
    return CouponSelection(regular_coupon_id=regular_id, dish_coupon_ids=dish_ids)


def _money(value: Decimal) -> Decimal:
    return pricing.quantize_money(value, rounding=settings.money_rounding)


@router.post("/locations/{location_id}/coupon-options")
async def coupon_options(location_id: str, payload: CouponOptionsRequest, session: SessionDep) -> CouponOptionsResponse:
    regular_rows = await coupon_catalog.get_location_coupons(session, location_id)
    dish_rows = await coupon_catalog.get_location_dish_coupons(session, location_id)
    snapshot = coupon_catalog.CatalogSnapshot(
        location_id=location_id,
        regular=tuple(coupon_catalog.to_regular_coupon(row) for row in regular_rows),
        dishes=tuple(coupon_catalog.to_dish_coupon(row) for row in dish_rows),
    )
    requested = coupon_catalog.resolve_selection(
        snapshot, payload.selection.regular_coupon_id, payload.selection.dish_coupon_ids
    )
    session_state = CouponSession.open(
        snapshot.regular,
        snapshot.dishes,
        _to_order_coupons(payload.applied) if payload.applied is not None else None,
        selection=requested,
    )
    selection = session_state.selection
    items = payload.domain_items()

    regular_by_id = {str(row.id): row for row in regular_rows}
    regular_options = [
        RegularCouponOption(
            coupon=CouponRead.model_validate(regular_by_id[option.coupon.id], from_attributes=True),
            estimated_discount=_money(option.estimated_discount),
            applicable=option.applicable,
            reason=option.reason,
            message=option.message,
            selected=selection.regular is not None and selection.regular.id == option.coupon.id,
        )
        for option in coupon_selection.get_selectable_regular_coupons(snapshot.regular, payload.subtotal)
    ]

    dish_by_id = {str(row.id): row for row in dish_rows}
    dish_options = [
        DishCouponOption(
            coupon=DishCouponRead.model_validate(dish_by_id[coupon.id], from_attributes=True),
            estimated_discount=_money(discounts.calculate_dish_coupon_discount(coupon, items)),
            matched_item_count=len(discounts.matching_items(coupon, items)),
            selected=selection.has_dish_coupon(coupon.id),
        )
        for coupon in session_state.applicable_dish_coupons(snapshot.dishes, items)
    ]
    return CouponOptionsResponse(
        selection=_selection_schema(selection), regular_coupons=regular_options, dish_coupons=dish_options
    )


@router.post("/locations/{location_id}/coupon-selection/toggle")
async def toggle_coupon(location_id: str, payload: CouponToggleRequest, session: SessionDep) -> CouponToggleResponse:
    snapshot = await coupon_catalog.load_catalog_snapshot(session, location_id)
    selection = coupon_catalog.resolve_selection(
        snapshot, payload.selection.regular_coupon_id, payload.selection.dish_coupon_ids
    )
    if payload.kind == "regular":
        toggled = coupon_selection.toggle_regular(selection, coupon_catalog.require_regular(snapshot, payload.coupon_id))
    else:
        toggled = coupon_selection.toggle_dish(selection, coupon_catalog.require_dish(snapshot, payload.coupon_id))
    validation = toggled.validation
    return CouponToggleResponse(
        selection=_selection_schema(toggled.state),
        error=validation.error,
        code=validation.code.value if validation.code is not None else None,
    )


@router.post("/locations/{location_id}/coupon-selection/apply")
async def apply_coupons(location_id: str, payload: CouponApplyRequest, session: SessionDep) -> CouponApplyResponse:
    snapshot = await coupon_catalog.load_catalog_snapshot(session, location_id)
    selection = coupon_catalog.resolve_selection(
        snapshot, payload.selection.regular_coupon_id, payload.selection.dish_coupon_ids
    )
    picker = CouponSession.open(snapshot.regular, snapshot.dishes, selection=selection)
    result = picker.confirm(payload.subtotal, payload.domain_items())
    if result.phase != SessionPhase.applied or result.order_coupons is None or result.total_discount is None:
        validation = result.validation
        return CouponApplyResponse(
            is_valid=False,
            error=validation.error if validation is not None else None,
            code=validation.code.value if validation is not None and validation.code is not None else None,
        )
    totals = pricing.compute_order_total(
        subtotal=payload.subtotal, discount=result.total_discount, rounding=settings.money_rounding
    )
    return CouponApplyResponse(
        is_valid=True,
        order_coupons=_to_order_coupons_schema(result.order_coupons),
        total_discount=result.total_discount,
        order_total=totals.total,
    )


@router.post("/order-coupons/remove-all")
def remove_all_order_coupons(payload: OrderCouponsClearRequest) -> CouponApplyResponse:
    empty, totals = applied_coupons.remove_all_coupons()
    order_totals = pricing.compute_order_total(
        subtotal=payload.subtotal, discount=totals.total_discount, rounding=settings.money_rounding
    )
    return CouponApplyResponse(
        is_valid=True,
        order_coupons=_to_order_coupons_schema(empty),
        total_discount=_money(totals.total_discount),
        order_total=order_totals.total,
    )


@router.post("/order-coupons/stored-discount")
def stored_order_discount(payload: StoredOrderDiscountRequest) -> StoredOrderDiscountResponse:
    discount = applied_coupons.order_discount_from_payload(payload.payload)
    order_totals = pricing.compute_order_total(
        subtotal=payload.subtotal, discount=discount, rounding=settings.money_rounding
    )
    return StoredOrderDiscountResponse(total_discount=order_totals.discount, order_total=order_totals.total)


@router.post("/order-coupons/totals")
def order_coupon_totals(payload: OrderCouponTotalsRequest) -> OrderCouponTotalsResponse:
    order_coupons = _to_order_coupons(payload.order_coupons)
    totals = applied_coupons.calculate_total_discount(order_coupons, payload.subtotal)
    order_totals = pricing.compute_order_total(
        subtotal=payload.subtotal, discount=totals.total_discount, rounding=settings.money_rounding
    )
    summary = applied_coupons.summarize_order_coupons(order_coupons)
    return OrderCouponTotalsResponse(
        total_discount=totals.total_discount,
        regular_discount=totals.breakdown.regular,
        dish_discounts=[
            DishDiscountLine(dish_name=dish_name, discount_amount=amount) for dish_name, amount in totals.breakdown.dishes
        ],
        dish_discount_total=totals.breakdown.dish_total,
        order_total=order_totals.total,
        exceeds_subtotal=totals.exceeds_subtotal,
        summary=CouponSummaryRead(text=summary.text, details=list(summary.details), kind=summary.kind),
    )
