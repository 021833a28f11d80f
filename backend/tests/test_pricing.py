from decimal import Decimal

import pytest

from pos.services import pricing


def test_quantize_money_rounding_modes() -> None:
    assert pricing.quantize_money(Decimal("1.005"), rounding="half_up") == Decimal("1.01")
    assert pricing.quantize_money(Decimal("1.005"), rounding="half_even") == Decimal("1.00")
    assert pricing.quantize_money(Decimal("1.015"), rounding="half_even") == Decimal("1.02")
    assert pricing.quantize_money(Decimal("1.001"), rounding="up") == Decimal("1.01")
    assert pricing.quantize_money(Decimal("1.009"), rounding="down") == Decimal("1.00")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (Decimal("12.50"), Decimal("12.50")),
        (30, Decimal("30")),
        ("  99.9 ", Decimal("99.9")),
        (None, None),
        (True, None),
        ("abc", None),
        (float("inf"), None),
        ([], None),
    ],
)
def test_to_money(raw, expected) -> None:
    assert pricing.to_money(raw) == expected


def test_format_money_drops_decimals_for_whole_amounts() -> None:
    assert pricing.format_money(Decimal("300"), symbol="₹") == "₹300"
    assert pricing.format_money(Decimal("300.00")) == "300"
    assert pricing.format_money(Decimal("12.5"), symbol="₹") == "₹12.50"


def test_compute_order_total_respects_rounding_mode() -> None:
    totals = pricing.compute_order_total(subtotal=Decimal("100.005"), discount=Decimal("10"), rounding="down")
    assert totals.subtotal == Decimal("100.00")
    assert totals.discount == Decimal("10.00")
    assert totals.total == Decimal("90.00")


def test_compute_order_total_floors_at_zero() -> None:
    totals = pricing.compute_order_total(subtotal=Decimal("150"), discount=Decimal("175"))
    assert totals.total == Decimal("0.00")
    assert totals.discount == Decimal("175.00")
