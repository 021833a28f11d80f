from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pos.models.coupons import Coupon, CouponType, DishCoupon
from pos.schemas.coupons import CouponCreate, CouponUpdate, DishCouponBulkCreate, DishCouponUpdate
from pos.services import discounts, pricing
from pos.services.coupon_selection import SelectionState

logger = logging.getLogger(__name__)

_DETAIL_LOCATION_REQUIRED = "Location ID is required"
_DETAIL_COUPON_NOT_FOUND = "Coupon not found"
_DETAIL_DISH_COUPON_NOT_FOUND = "Dish coupon not found"
_DETAIL_CATALOG_UNAVAILABLE = "Failed to load coupons"
_WHITESPACE_RE = re.compile(r"\s+")


class CatalogUnavailable(HTTPException):
    """The catalog store could not be read; distinct from a coupon validation outcome."""

    code = "catalog_unavailable"

    def __init__(self) -> None:
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=_DETAIL_CATALOG_UNAVAILABLE)


def generate_coupon_code(dish_name: str, percentage: Decimal | int) -> str:
    base = _WHITESPACE_RE.sub("", dish_name.strip()).upper()
    pct = Decimal(percentage)
    pct_text = f"{pct.to_integral_value():f}" if pct == pct.to_integral_value() else f"{pct.normalize():f}"
    return f"{base}{pct_text}"


def _require_location(location_id: str | None) -> str:
    cleaned = (location_id or "").strip()
    if not cleaned:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_DETAIL_LOCATION_REQUIRED)
    return cleaned


async def _active_rows(session: AsyncSession, model: type[Coupon] | type[DishCoupon], location_id: str) -> list:
    try:
        result = await session.execute(
            select(model)
            .where(model.location_id == location_id, model.is_active.is_(True))
            .order_by(model.created_at.desc())
        )
    except SQLAlchemyError as exc:
        logger.warning(
            "coupon_catalog_load_failed",
            extra={"location_id": location_id, "table": model.__tablename__, "error": str(exc)},
        )
        raise CatalogUnavailable() from exc
    return list(result.scalars().all())


async def get_location_coupons(session: AsyncSession, location_id: str) -> list[Coupon]:
    """Active regular coupons of a location, newest first."""
    return await _active_rows(session, Coupon, _require_location(location_id))


async def get_location_dish_coupons(session: AsyncSession, location_id: str) -> list[DishCoupon]:
    """Active dish coupons of a location, newest first."""
    return await _active_rows(session, DishCoupon, _require_location(location_id))


def _contains(term: str, *values: str) -> bool:
    needle = term.strip().lower()
    return not needle or any(needle in (value or "").lower() for value in values)


async def search_coupons(session: AsyncSession, location_id: str, term: str | None) -> list[Coupon]:
    coupons = await get_location_coupons(session, location_id)
    return [coupon for coupon in coupons if _contains(term or "", coupon.name)]


async def search_dish_coupons(session: AsyncSession, location_id: str, term: str | None) -> list[DishCoupon]:
    coupons = await get_location_dish_coupons(session, location_id)
    return [coupon for coupon in coupons if _contains(term or "", coupon.dish_name, coupon.coupon_code)]


async def get_coupon_by_id(session: AsyncSession, coupon_id: UUID) -> Coupon | None:
    return await session.get(Coupon, coupon_id)


async def _get_coupon_or_404(session: AsyncSession, coupon_id: UUID) -> Coupon:
    coupon = await get_coupon_by_id(session, coupon_id)
    if coupon is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_DETAIL_COUPON_NOT_FOUND)
    return coupon


async def create_coupon(session: AsyncSession, location_id: str, payload: CouponCreate) -> Coupon:
    coupon = Coupon(
        location_id=_require_location(location_id),
        name=payload.name.strip(),
        type=payload.type,
        value=payload.value,
        min_order_amount=payload.min_order_amount,
        max_discount_amount=payload.max_discount_amount if payload.type == CouponType.percentage else None,
        description=payload.description,
        is_active=payload.is_active,
        created_by=payload.created_by,
    )
    session.add(coupon)
    await session.commit()
    await session.refresh(coupon)
    logger.info("coupon_created", extra={"coupon_id": str(coupon.id), "location_id": coupon.location_id})
    return coupon


async def update_coupon(session: AsyncSession, coupon_id: UUID, payload: CouponUpdate) -> Coupon:
    coupon = await _get_coupon_or_404(session, coupon_id)
    data = payload.model_dump(exclude_unset=True)
    new_type = data.get("type") or coupon.type
    new_value = data.get("value") if data.get("value") is not None else coupon.value
    if new_type == CouponType.percentage and Decimal(new_value) > 100:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Percentage value must be between 0 and 100")
    for field, value in data.items():
        setattr(coupon, field, value)
    if coupon.type != CouponType.percentage:
        coupon.max_discount_amount = None
    session.add(coupon)
    await session.commit()
    await session.refresh(coupon)
    return coupon


async def deactivate_coupon(session: AsyncSession, coupon_id: UUID) -> Coupon:
    coupon = await _get_coupon_or_404(session, coupon_id)
    coupon.is_active = False
    session.add(coupon)
    await session.commit()
    await session.refresh(coupon)
    logger.info("coupon_deactivated", extra={"coupon_id": str(coupon.id)})
    return coupon


async def get_dish_coupon_by_id(session: AsyncSession, coupon_id: UUID) -> DishCoupon | None:
    return await session.get(DishCoupon, coupon_id)


async def _get_dish_coupon_or_404(session: AsyncSession, coupon_id: UUID) -> DishCoupon:
    coupon = await get_dish_coupon_by_id(session, coupon_id)
    if coupon is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_DETAIL_DISH_COUPON_NOT_FOUND)
    return coupon


async def create_dish_coupons(session: AsyncSession, location_id: str, payload: DishCouponBulkCreate) -> list[DishCoupon]:
    location = _require_location(location_id)
    dish_name = payload.dish_name.strip()
    if not dish_name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Dish name is required")

    created: list[DishCoupon] = []
    for percentage in payload.percentages:
        if percentage <= 0 or percentage > 100:
            logger.warning("dish_coupon_percentage_skipped", extra={"dish_name": dish_name, "percentage": percentage})
            continue
        coupon = DishCoupon(
            location_id=location,
            coupon_code=generate_coupon_code(dish_name, percentage),
            dish_name=dish_name,
            discount_percentage=percentage,
            is_active=True,
            created_by=payload.created_by,
        )
        session.add(coupon)
        created.append(coupon)

    if not created:
        return created
    await session.commit()
    for coupon in created:
        await session.refresh(coupon)
    logger.info("dish_coupons_created", extra={"location_id": location, "dish_name": dish_name, "count": len(created)})
    return created


async def update_dish_coupon(session: AsyncSession, coupon_id: UUID, payload: DishCouponUpdate) -> DishCoupon:
    coupon = await _get_dish_coupon_or_404(session, coupon_id)
    data = payload.model_dump(exclude_unset=True)
    if "dish_name" in data and data["dish_name"] is not None:
        data["dish_name"] = data["dish_name"].strip()
    for field, value in data.items():
        setattr(coupon, field, value)
    session.add(coupon)
    await session.commit()
    await session.refresh(coupon)
    return coupon


async def delete_dish_coupon(session: AsyncSession, coupon_id: UUID) -> None:
    coupon = await _get_dish_coupon_or_404(session, coupon_id)
    await session.delete(coupon)
    await session.commit()
    logger.info("dish_coupon_deleted", extra={"coupon_id": str(coupon_id)})


def to_regular_coupon(row: Coupon) -> discounts.RegularCoupon:
    minimum = pricing.to_money(row.min_order_amount)
    return discounts.RegularCoupon(
        id=str(row.id),
        name=row.name,
        rule=discounts.discount_rule(row.type, row.value, row.max_discount_amount),
        min_order_amount=minimum,
        description=row.description,
    )


def to_dish_coupon(row: DishCoupon) -> discounts.DishCoupon:
    return discounts.DishCoupon(
        id=str(row.id),
        coupon_code=row.coupon_code,
        dish_name=row.dish_name,
        discount_percentage=Decimal(row.discount_percentage),
    )


@dataclass(frozen=True)
class CatalogSnapshot:
    """Both catalogs of a location as read at the start of a selection session."""

    location_id: str
    regular: tuple[discounts.RegularCoupon, ...]
    dishes: tuple[discounts.DishCoupon, ...]

    def find_regular(self, coupon_id: UUID | str) -> discounts.RegularCoupon | None:
        key = str(coupon_id)
        return next((coupon for coupon in self.regular if coupon.id == key), None)

    def find_dish(self, coupon_id: UUID | str) -> discounts.DishCoupon | None:
        key = str(coupon_id)
        return next((coupon for coupon in self.dishes if coupon.id == key), None)


async def load_catalog_snapshot(session: AsyncSession, location_id: str) -> CatalogSnapshot:
    regular_rows = await get_location_coupons(session, location_id)
    dish_rows = await get_location_dish_coupons(session, location_id)
    return CatalogSnapshot(
        location_id=location_id.strip(),
        regular=tuple(to_regular_coupon(row) for row in regular_rows),
        dishes=tuple(to_dish_coupon(row) for row in dish_rows),
    )


def require_regular(snapshot: CatalogSnapshot, coupon_id: UUID) -> discounts.RegularCoupon:
    coupon = snapshot.find_regular(coupon_id)
    if coupon is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_DETAIL_COUPON_NOT_FOUND)
    return coupon


def require_dish(snapshot: CatalogSnapshot, coupon_id: UUID) -> discounts.DishCoupon:
    coupon = snapshot.find_dish(coupon_id)
    if coupon is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_DETAIL_DISH_COUPON_NOT_FOUND)
    return coupon


def resolve_selection(
    snapshot: CatalogSnapshot, regular_coupon_id: UUID | None, dish_coupon_ids: Iterable[UUID]
) -> SelectionState:
    """Selection sent by the picker, looked up in the session's catalog snapshot."""
    regular = require_regular(snapshot, regular_coupon_id) if regular_coupon_id is not None else None
    return SelectionState(regular=regular, dishes=tuple(require_dish(snapshot, coupon_id) for coupon_id in dish_coupon_ids))


def selection_ids(selection: SelectionState) -> tuple[UUID | None, list[UUID]]:
    regular_id = UUID(selection.regular.id) if selection.regular is not None else None
    return regular_id, [UUID(dish.id) for dish in selection.dishes]
