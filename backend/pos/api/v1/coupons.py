from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from pos.db.session import get_session
from pos.schemas.coupons import (
    CouponCreate,
    CouponRead,
    CouponUpdate,
    DishCouponBulkCreate,
    DishCouponRead,
    DishCouponUpdate,
)
from pos.services import coupon_catalog

_DETAIL_COUPON_NOT_FOUND = "Coupon not found"
_DETAIL_DISH_COUPON_NOT_FOUND = "Dish coupon not found"

router = APIRouter(tags=["coupons"])

SessionDep = Annotated[AsyncSession, Depends(get_session)]
SearchQuery = Annotated[str | None, Query(max_length=120)]


@router.get("/locations/{location_id}/coupons")
async def list_location_coupons(location_id: str, session: SessionDep, q: SearchQuery = None) -> list[CouponRead]:
    coupons = await coupon_catalog.search_coupons(session, location_id, q)
    return [CouponRead.model_validate(coupon, from_attributes=True) for coupon in coupons]


@router.post("/locations/{location_id}/coupons", status_code=status.HTTP_201_CREATED)
async def create_location_coupon(location_id: str, payload: CouponCreate, session: SessionDep) -> CouponRead:
    coupon = await coupon_catalog.create_coupon(session, location_id, payload)
    return CouponRead.model_validate(coupon, from_attributes=True)


@router.get("/coupons/{coupon_id}")
async def get_coupon(coupon_id: UUID, session: SessionDep) -> CouponRead:
    coupon = await coupon_catalog.get_coupon_by_id(session, coupon_id)
    if coupon is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_DETAIL_COUPON_NOT_FOUND)
    return CouponRead.model_validate(coupon, from_attributes=True)


@router.patch("/coupons/{coupon_id}")
async def update_coupon(coupon_id: UUID, payload: CouponUpdate, session: SessionDep) -> CouponRead:
    coupon = await coupon_catalog.update_coupon(session, coupon_id, payload)
    return CouponRead.model_validate(coupon, from_attributes=True)


@router.delete("/coupons/{coupon_id}")
async def deactivate_coupon(coupon_id: UUID, session: SessionDep) -> CouponRead:
    coupon = await coupon_catalog.deactivate_coupon(session, coupon_id)
    return CouponRead.model_validate(coupon, from_attributes=True)


@router.get("/locations/{location_id}/dish-coupons")
async def list_location_dish_coupons(
    location_id: str, session: SessionDep, q: SearchQuery = None
) -> list[DishCouponRead]:
    coupons = await coupon_catalog.search_dish_coupons(session, location_id, q)
    return [DishCouponRead.model_validate(coupon, from_attributes=True) for coupon in coupons]


@router.post("/locations/{location_id}/dish-coupons", status_code=status.HTTP_201_CREATED)
async def create_location_dish_coupons(
    location_id: str, payload: DishCouponBulkCreate, session: SessionDep
) -> list[DishCouponRead]:
    coupons = await coupon_catalog.create_dish_coupons(session, location_id, payload)
    return [DishCouponRead.model_validate(coupon, from_attributes=True) for coupon in coupons]


@router.get("/dish-coupons/{coupon_id}")
async def get_dish_coupon(coupon_id: UUID, session: SessionDep) -> DishCouponRead:
    coupon = await coupon_catalog.get_dish_coupon_by_id(session, coupon_id)
    if coupon is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_DETAIL_DISH_COUPON_NOT_FOUND)
    return DishCouponRead.model_validate(coupon, from_attributes=True)


@router.patch("/dish-coupons/{coupon_id}")
async def update_dish_coupon(coupon_id: UUID, payload: DishCouponUpdate, session: SessionDep) -> DishCouponRead:
    coupon = await coupon_catalog.update_dish_coupon(session, coupon_id, payload)
    return DishCouponRead.model_validate(coupon, from_attributes=True)


@router.delete("/dish-coupons/{coupon_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_dish_coupon(coupon_id: UUID, session: SessionDep) -> Response:
    await coupon_catalog.delete_dish_coupon(session, coupon_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
