from datetime import datetime, timezone
from decimal import Decimal

from pos.services import applied_coupons
from pos.services.applied_coupons import AppliedDishCoupon, AppliedRegularCoupon, OrderCoupons
from pos.services.coupon_selection import CouponErrorCode, SelectionState
from pos.services.discounts import DishCoupon, FixedOff, OrderLineItem, PercentOff, RegularCoupon


def _dish(coupon_id: str, dish_name: str, percentage: str) -> DishCoupon:
    return DishCoupon(
        id=coupon_id,
        coupon_code=f"{dish_name.replace(' ', '').upper()}{percentage}",
        dish_name=dish_name,
        discount_percentage=Decimal(percentage),
    )


def _item(name: str, price: str, quantity: int = 1) -> OrderLineItem:
    return OrderLineItem(name=name, price=Decimal(price), quantity=quantity)


APPLIED_AT = datetime(2026, 1, 5, 12, 30, tzinfo=timezone.utc)


def test_applied_regular_coupon_freezes_amount() -> None:
    coupon = RegularCoupon(id="r-1", name="TENOFF", rule=PercentOff(Decimal("10"), Decimal("30")))
    applied = applied_coupons.create_applied_regular_coupon(coupon, Decimal("500"), applied_at=APPLIED_AT)
    assert applied == AppliedRegularCoupon(
        coupon_id="r-1", name="TENOFF", type="percentage", discount_amount=Decimal("30.00"), applied_at=APPLIED_AT
    )


def test_applied_regular_coupon_is_none_when_not_applicable() -> None:
    coupon = RegularCoupon(id="r-1", name="MIN300", rule=FixedOff(Decimal("40")), min_order_amount=Decimal("300"))
    assert applied_coupons.create_applied_regular_coupon(coupon, Decimal("250")) is None


def test_applied_dish_coupon_records_matched_items() -> None:
    items = [_item("Biryani", "180", 2), _item("biryani", "200"), _item("Naan", "40")]
    applied = applied_coupons.create_applied_dish_coupon(_dish("d-1", "Biryani", "20"), items, applied_at=APPLIED_AT)
    assert applied is not None
    assert applied.discount_amount == Decimal("112.00")
    assert applied.matched_item_count == 2
    assert applied.coupon_code == "BIRYANI20"
    assert applied.discount_percentage == Decimal("20")


def test_applied_dish_coupon_is_none_without_matches() -> None:
    assert applied_coupons.create_applied_dish_coupon(_dish("d-1", "Biryani", "20"), [_item("Naan", "40")]) is None


def test_frozen_amount_is_rounded_to_minor_units() -> None:
    applied = applied_coupons.create_applied_dish_coupon(_dish("d-1", "Lassi", "12.5"), [_item("Lassi", "59.99")])
    assert applied is not None
    assert applied.discount_amount == Decimal("7.50")


def test_total_is_the_sum_of_frozen_amounts() -> None:
    order_coupons = OrderCoupons(
        regular_coupon=AppliedRegularCoupon(coupon_id="r-1", name="FLAT50", type="fixed", discount_amount=Decimal("50.00")),
        dish_coupons=(
            AppliedDishCoupon("d-1", "BIRYANI20", "Biryani", Decimal("20"), Decimal("72.00"), 1),
            AppliedDishCoupon("d-2", "LASSI10", "Lassi", Decimal("10"), Decimal("12.00"), 2),
        ),
    )

    totals = applied_coupons.calculate_total_discount(order_coupons, Decimal("600"), [])

    assert totals.total_discount == Decimal("134.00")
    assert totals.breakdown.regular == Decimal("50.00")
    assert totals.breakdown.dish_total == Decimal("84.00")
    assert totals.breakdown.dishes == (("Biryani", Decimal("72.00")), ("Lassi", Decimal("12.00")))
    assert totals.exceeds_subtotal is False


def test_total_ignores_live_items() -> None:
    items = [_item("Biryani", "180", 2)]
    applied = applied_coupons.create_applied_dish_coupon(_dish("d-1", "Biryani", "20"), items)
    order_coupons = OrderCoupons(dish_coupons=(applied,))

    totals = applied_coupons.calculate_total_discount(order_coupons, Decimal("0"), [])

    assert totals.total_discount == Decimal("72.00")


def test_total_is_not_capped_at_subtotal() -> None:
    order_coupons = OrderCoupons(
        regular_coupon=AppliedRegularCoupon(coupon_id="r-1", name="FLAT100", type="fixed", discount_amount=Decimal("100")),
        dish_coupons=(AppliedDishCoupon("d-1", "RICE50", "Fried Rice", Decimal("50"), Decimal("75"), 1),),
    )
    totals = applied_coupons.calculate_total_discount(order_coupons, Decimal("150"))
    assert totals.total_discount == Decimal("175")
    assert totals.exceeds_subtotal is True


def test_empty_aggregate_totals_zero() -> None:
    assert applied_coupons.calculate_total_discount(None).total_discount == 0
    empty, totals = applied_coupons.remove_all_coupons()
    assert empty.is_empty
    assert totals.total_discount == 0


def test_build_order_coupons_returns_validation_failure_without_aggregate() -> None:
    first = _dish("d-1", "Fried Rice", "10")
    second = _dish("d-2", "Fried Rice", "20")
    result = applied_coupons.build_order_coupons(
        SelectionState(dishes=(first, second)), Decimal("150"), [_item("Fried Rice", "150")]
    )
    assert result.validation.is_valid is False
    assert result.validation.code == CouponErrorCode.duplicate_dish_coupon
    assert result.order_coupons is None


def test_build_order_coupons_freezes_every_selected_coupon() -> None:
    regular = RegularCoupon(id="r-1", name="FLAT50", rule=FixedOff(Decimal("50")))
    selection = SelectionState(regular=regular, dishes=(_dish("d-1", "Biryani", "20"), _dish("d-2", "Lassi", "10")))
    items = [_item("Biryani", "180", 2), _item("Lassi", "60", 2)]

    result = applied_coupons.build_order_coupons(selection, Decimal("480"), items)

    assert result.validation.is_valid is True
    assert result.order_coupons is not None
    assert result.order_coupons.regular_coupon is not None
    assert result.order_coupons.regular_coupon.discount_amount == Decimal("50.00")
    assert [dish.discount_amount for dish in result.order_coupons.dish_coupons] == [Decimal("72.00"), Decimal("12.00")]
    assert result.totals is not None
    assert result.totals.total_discount == Decimal("134.00")
    dish_names = [dish.dish_name.lower() for dish in result.order_coupons.dish_coupons]
    assert len(dish_names) == len(set(dish_names))


def test_order_discount_from_aggregate_and_legacy_payloads() -> None:
    aggregate = {
        "regularCoupon": {"couponId": "r-1", "name": "FLAT50", "type": "fixed", "discountAmount": 50},
        "dishCoupons": [{"couponId": "d-1", "dishName": "Biryani", "discountAmount": "72.00"}],
    }
    snake = {"regular_coupon": None, "dish_coupons": [{"dish_name": "Lassi", "discount_amount": "12.5"}]}
    legacy = {"couponId": "r-1", "name": "FLAT50", "type": "fixed", "discountAmount": 50}

    assert applied_coupons.order_discount_from_payload(aggregate) == Decimal("122.00")
    assert applied_coupons.order_discount_from_payload(snake) == Decimal("12.5")
    assert applied_coupons.order_discount_from_payload(legacy) == Decimal("50")
    assert applied_coupons.order_discount_from_payload(None) == 0
    assert applied_coupons.order_discount_from_payload({"dishCoupons": []}) == 0


def test_summary_for_each_kind() -> None:
    regular = AppliedRegularCoupon(coupon_id="r-1", name="FLAT50", type="fixed", discount_amount=Decimal("50"))
    dish = AppliedDishCoupon("d-1", "BIRYANI20", "Biryani", Decimal("20"), Decimal("72"), 1)

    only_regular = applied_coupons.summarize_order_coupons(OrderCoupons(regular_coupon=regular), currency_symbol="₹")
    assert only_regular.kind == "regular"
    assert only_regular.text == "Coupon: FLAT50"
    assert only_regular.details == ("FLAT50: -₹50.00",)

    only_dish = applied_coupons.summarize_order_coupons(OrderCoupons(dish_coupons=(dish,)), currency_symbol="₹")
    assert only_dish.kind == "dish"
    assert only_dish.text == "1 Dish Coupons Applied"
    assert only_dish.details == ("BIRYANI20: -₹72.00",)

    mixed = applied_coupons.summarize_order_coupons(
        OrderCoupons(regular_coupon=regular, dish_coupons=(dish,)), currency_symbol="₹"
    )
    assert mixed.kind == "mixed"
    assert mixed.text == "2 Coupons Applied"
    assert mixed.details == ("FLAT50: -₹50.00", "Biryani: -₹72.00")

    assert applied_coupons.summarize_order_coupons(OrderCoupons()).kind == "none"


def test_build_order_coupons_refuses_a_coupon_that_freezes_to_zero() -> None:
    tea = _dish("d-1", "Tea", "1")
    items = [_item("Tea", "0.40"), _item("Biryani", "180")]

    selection = SelectionState(dishes=(_dish("d-2", "Biryani", "10"), tea))

    result = applied_coupons.build_order_coupons(selection, Decimal("180.40"), items)

    assert result.validation.is_valid is False
    assert result.validation.code == CouponErrorCode.not_applicable
    assert result.validation.error == "No dish available for this discount: Tea"
    assert result.order_coupons is None


def test_build_order_coupons_refuses_a_regular_coupon_that_freezes_to_zero() -> None:
    tiny = RegularCoupon(id="r-1", name="TINY", rule=PercentOff(Decimal("1")))
    result = applied_coupons.build_order_coupons(SelectionState(regular=tiny), Decimal("0.40"), [_item("Tea", "0.40")])
    assert result.validation.code == CouponErrorCode.not_applicable
    assert result.validation.error == "TINY is not applicable to this order"
    assert result.totals is None
