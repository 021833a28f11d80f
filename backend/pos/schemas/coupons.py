from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from pos.models.coupons import CouponType
from pos.services.discounts import OrderLineItem, normalize_dish_name


class CouponRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    location_id: str
    name: str
    type: CouponType
    value: Decimal
    min_order_amount: Decimal | None = None
    max_discount_amount: Decimal | None = None
    description: str | None = None
    is_active: bool
    created_by: str
    created_at: datetime
    updated_at: datetime


class CouponCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    type: CouponType = CouponType.fixed
    value: Decimal = Field(gt=0)
    min_order_amount: Decimal | None = Field(default=None, ge=0)
    max_discount_amount: Decimal | None = Field(default=None, ge=0)
    description: str | None = None
    is_active: bool = True
    created_by: str = Field(min_length=1, max_length=64)

    @model_validator(mode="after")
    def _percentage_bounds(self) -> "CouponCreate":
        if self.type == CouponType.percentage and self.value > 100:
            raise ValueError("Percentage value must be between 0 and 100")
        return self


class CouponUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    type: CouponType | None = None
    value: Decimal | None = Field(default=None, gt=0)
    min_order_amount: Decimal | None = Field(default=None, ge=0)
    max_discount_amount: Decimal | None = Field(default=None, ge=0)
    description: str | None = None
    is_active: bool | None = None

    @field_validator("name", "type", "value", "is_active")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("Field cannot be null")
        return value


class DishCouponRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    location_id: str
    coupon_code: str
    dish_name: str
    discount_percentage: Decimal
    is_active: bool
    created_by: str
    created_at: datetime
    updated_at: datetime


class DishCouponBulkCreate(BaseModel):
    dish_name: str = Field(min_length=1, max_length=120)
    percentages: list[Decimal] = Field(min_length=1, max_length=20)
    created_by: str = Field(min_length=1, max_length=64)


class DishCouponUpdate(BaseModel):
    coupon_code: str | None = Field(default=None, min_length=1, max_length=80)
    dish_name: str | None = Field(default=None, min_length=1, max_length=120)
    discount_percentage: Decimal | None = Field(default=None, gt=0, le=100)
    is_active: bool | None = None

    @field_validator("coupon_code", "dish_name", "discount_percentage", "is_active")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("Field cannot be null")
        return value


class OrderLineItemIn(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    price: Decimal = Field(ge=0)
    quantity: int = Field(default=1, ge=1)
    modifications: list[str] = Field(default_factory=list)
    portion_size: Literal["half", "full"] | None = None

    def to_domain(self) -> OrderLineItem:
        return OrderLineItem(
            name=self.name,
            price=self.price,
            quantity=self.quantity,
            modifications=tuple(self.modifications),
            portion_size=self.portion_size,
        )


class CouponSelection(BaseModel):
    regular_coupon_id: UUID | None = None
    dish_coupon_ids: list[UUID] = Field(default_factory=list)


class OrderContext(BaseModel):
    subtotal: Decimal = Field(ge=0)
    items: list[OrderLineItemIn] = Field(default_factory=list)

    def domain_items(self) -> list[OrderLineItem]:
        return [item.to_domain() for item in self.items]


class RegularCouponOption(BaseModel):
    coupon: CouponRead
    estimated_discount: Decimal
    applicable: bool
    reason: str | None = None
    message: str | None = None
    selected: bool = False


class DishCouponOption(BaseModel):
    coupon: DishCouponRead
    estimated_discount: Decimal
    matched_item_count: int
    selected: bool = False


class CouponOptionsResponse(BaseModel):
    selection: CouponSelection
    regular_coupons: list[RegularCouponOption]
    dish_coupons: list[DishCouponOption]


class CouponToggleRequest(OrderContext):
    selection: CouponSelection = Field(default_factory=CouponSelection)
    kind: Literal["regular", "dish"]
    coupon_id: UUID


class CouponToggleResponse(BaseModel):
    selection: CouponSelection
    error: str | None = None
    code: str | None = None


class CouponApplyRequest(OrderContext):
    selection: CouponSelection


class AppliedRegularCouponSchema(BaseModel):
    coupon_id: str
    name: str
    type: Literal["fixed", "percentage"]
    discount_amount: Decimal = Field(ge=0)
    applied_at: datetime | None = None


class AppliedDishCouponSchema(BaseModel):
    coupon_id: str
    coupon_code: str = ""
    dish_name: str
    discount_percentage: Decimal | None = None
    discount_amount: Decimal = Field(ge=0)
    matched_item_count: int = Field(default=0, ge=0)
    applied_at: datetime | None = None


class OrderCouponsSchema(BaseModel):
    regular_coupon: AppliedRegularCouponSchema | None = None
    dish_coupons: list[AppliedDishCouponSchema] = Field(default_factory=list)

    @model_validator(mode="after")
    def _one_coupon_per_dish(self) -> "OrderCouponsSchema":
        seen: set[str] = set()
        for dish in self.dish_coupons:
            key = normalize_dish_name(dish.dish_name)
            if key in seen:
                raise ValueError(f"Only one coupon per dish is allowed. {dish.dish_name} already has a coupon applied.")
            seen.add(key)
        return self


class CouponOptionsRequest(OrderContext):
    selection: CouponSelection = Field(default_factory=CouponSelection)
    # Coupons already applied to the order; restores the picker when no selection is sent.
    applied: OrderCouponsSchema | None = None


class CouponSummaryRead(BaseModel):
    text: str
    details: list[str] = Field(default_factory=list)
    kind: Literal["none", "regular", "dish", "mixed"] = "none"


class CouponApplyResponse(BaseModel):
    is_valid: bool
    error: str | None = None
    code: str | None = None
    order_coupons: OrderCouponsSchema | None = None
    total_discount: Decimal = Decimal("0.00")
    order_total: Decimal | None = None


class OrderCouponTotalsRequest(BaseModel):
    subtotal: Decimal = Field(ge=0)
    order_coupons: OrderCouponsSchema


class OrderCouponsClearRequest(BaseModel):
    subtotal: Decimal = Field(ge=0)


class StoredOrderDiscountRequest(BaseModel):
    subtotal: Decimal = Field(ge=0)
    # Raw applied-coupon field of a saved order, aggregate or legacy single-coupon shape.
    payload: dict[str, Any] | None = None


class StoredOrderDiscountResponse(BaseModel):
    total_discount: Decimal
    order_total: Decimal


class DishDiscountLine(BaseModel):
    dish_name: str
    discount_amount: Decimal


class OrderCouponTotalsResponse(BaseModel):
    total_discount: Decimal
    regular_discount: Decimal
    dish_discounts: list[DishDiscountLine]
    dish_discount_total: Decimal
    order_total: Decimal
    exceeds_subtotal: bool
    summary: CouponSummaryRead
