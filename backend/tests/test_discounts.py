from decimal import Decimal

import pytest

from pos.services import discounts
from pos.services.discounts import DishCoupon, FixedOff, OrderLineItem, PercentOff, RegularCoupon


def _fixed(value: str, *, min_order: str | None = None) -> RegularCoupon:
    return RegularCoupon(
        id="fixed-1",
        name="Flat off",
        rule=FixedOff(Decimal(value)),
        min_order_amount=Decimal(min_order) if min_order else None,
    )


def _percent(value: str, *, cap: str | None = None, min_order: str | None = None) -> RegularCoupon:
    return RegularCoupon(
        id="pct-1",
        name="Percent off",
        rule=PercentOff(Decimal(value), Decimal(cap) if cap else None),
        min_order_amount=Decimal(min_order) if min_order else None,
    )


def _dish(dish_name: str, percentage: str, *, coupon_id: str = "dish-1") -> DishCoupon:
    return DishCoupon(
        id=coupon_id,
        coupon_code=f"{dish_name.replace(' ', '').upper()}{percentage}",
        dish_name=dish_name,
        discount_percentage=Decimal(percentage),
    )


def _item(name: str, price: str, quantity: int = 1) -> OrderLineItem:
    return OrderLineItem(name=name, price=Decimal(price), quantity=quantity)


def test_fixed_coupon_discount() -> None:
    assert discounts.calculate_coupon_discount(_fixed("50"), Decimal("200")) == Decimal("50")


def test_fixed_coupon_never_exceeds_subtotal() -> None:
    assert discounts.calculate_coupon_discount(_fixed("50"), Decimal("30")) == Decimal("30")


def test_percentage_coupon_is_capped() -> None:
    coupon = _percent("10", cap="30")
    assert discounts.calculate_coupon_discount(coupon, Decimal("500")) == Decimal("30")
    assert discounts.calculate_coupon_discount(coupon, Decimal("200")) == Decimal("20")


def test_percentage_without_cap_keeps_fractional_amount() -> None:
    assert discounts.calculate_coupon_discount(_percent("12.5"), Decimal("99.99")) == Decimal("12.49875")


def test_minimum_order_threshold() -> None:
    coupon = _fixed("40", min_order="300")
    assert discounts.calculate_coupon_discount(coupon, Decimal("250")) == 0
    assert discounts.calculate_coupon_discount(coupon, Decimal("299.99")) == 0
    assert discounts.calculate_coupon_discount(coupon, Decimal("300")) == Decimal("40")
    assert discounts.regular_coupon_block_reason(coupon, Decimal("250")) == discounts.MIN_ORDER_NOT_MET
    assert discounts.regular_coupon_block_reason(coupon, Decimal("300")) is None


@pytest.mark.parametrize("subtotal", [Decimal("0"), Decimal("-10"), None, "abc", float("nan")])
def test_unusable_subtotal_yields_zero(subtotal) -> None:
    assert discounts.calculate_coupon_discount(_fixed("10"), subtotal) == 0


def test_malformed_coupons_yield_zero() -> None:
    assert discounts.calculate_coupon_discount(None, Decimal("100")) == 0
    broken = RegularCoupon(id="x", name="Broken", rule=None)
    assert discounts.calculate_coupon_discount(broken, Decimal("100")) == 0
    assert discounts.regular_coupon_block_reason(broken, Decimal("100")) == discounts.NOT_APPLICABLE


def test_discount_rule_from_stored_fields() -> None:
    assert discounts.discount_rule("fixed", "50") == FixedOff(Decimal("50"))
    assert discounts.discount_rule("percentage", 10, 30) == PercentOff(Decimal("10"), Decimal("30"))
    assert discounts.discount_rule("percentage", 10, 0) == PercentOff(Decimal("10"), None)
    assert discounts.discount_rule("percentage", 150) is None
    assert discounts.discount_rule("fixed", -5) is None
    assert discounts.discount_rule("bogo", 5) is None
    assert discounts.discount_rule("fixed", None) is None


def test_coupon_exposes_type_and_cap() -> None:
    assert _fixed("5").type == "fixed"
    assert _fixed("5").max_discount_amount is None
    assert _percent("5", cap="7").type == "percentage"
    assert _percent("5", cap="7").max_discount_amount == Decimal("7")


def test_dish_coupon_discount_on_matching_items() -> None:
    items = [_item("Biryani", "180", 2), _item("Naan", "40", 3)]
    assert discounts.calculate_dish_coupon_discount(_dish("Biryani", "20"), items) == Decimal("72")


def test_dish_coupon_without_matching_items() -> None:
    coupon = _dish("Biryani", "20")
    items = [_item("Paneer Tikka", "220")]
    assert discounts.calculate_dish_coupon_discount(coupon, items) == 0
    check = discounts.is_dish_coupon_applicable(coupon, items)
    assert check.applicable is False
    assert check.matching_items == ()


def test_dish_name_match_ignores_case_and_outer_whitespace() -> None:
    coupon = _dish("  Chilli Chicken ", "10")
    items = [_item("chilli chicken", "200"), _item("CHILLI CHICKEN  ", "200", 2), _item("Chilli  Chicken", "999")]
    check = discounts.is_dish_coupon_applicable(coupon, items)
    assert len(check.matching_items) == 2
    assert discounts.calculate_dish_coupon_discount(coupon, items) == Decimal("60")


def test_dish_coupon_with_invalid_percentage_yields_zero() -> None:
    items = [_item("Biryani", "180")]
    assert discounts.calculate_dish_coupon_discount(_dish("Biryani", "0"), items) == 0
    assert discounts.calculate_dish_coupon_discount(_dish("Biryani", "120"), items) == 0
    assert discounts.calculate_dish_coupon_discount(None, items) == 0


def test_calculators_are_idempotent() -> None:
    coupon = _percent("15", cap="100")
    dish = _dish("Biryani", "20")
    items = [_item("Biryani", "180", 2)]
    assert discounts.calculate_coupon_discount(coupon, Decimal("480")) == discounts.calculate_coupon_discount(
        coupon, Decimal("480")
    )
    assert discounts.calculate_dish_coupon_discount(dish, items) == discounts.calculate_dish_coupon_discount(dish, items)


@pytest.mark.parametrize("subtotal", ["0.01", "1", "49.99", "250", "10000"])
def test_regular_discount_stays_within_subtotal(subtotal: str) -> None:
    amount = Decimal(subtotal)
    for coupon in (_fixed("50"), _percent("100"), _percent("30", cap="20")):
        discount = discounts.calculate_coupon_discount(coupon, amount)
        assert Decimal("0") <= discount <= amount


def test_dish_discount_stays_within_matched_price() -> None:
    items = [_item("Fried Rice", "150", 2), _item("Fried Rice", "75", 1)]
    discount = discounts.calculate_dish_coupon_discount(_dish("Fried Rice", "100"), items)
    assert discount == discounts.matched_extended_price(items) == Decimal("375")


def test_line_item_extended_price() -> None:
    assert _item("Lassi", "60", 3).extended_price == Decimal("180")
