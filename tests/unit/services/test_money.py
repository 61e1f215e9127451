from __future__ import annotations

from decimal import Decimal

import pytest

from eventtalent.core.exceptions import ValidationException
from eventtalent.services.money import compute_fee_split, to_money


def test_fee_split_ten_percent_of_ten_thousand():
    split = compute_fee_split(Decimal("10000.00"), Decimal("0.10"))

    assert split.gross_amount == Decimal("10000.00")
    assert split.platform_fee_amount == Decimal("1000.00")
    assert split.talent_amount == Decimal("9000.00")


@pytest.mark.parametrize(
    "gross, rate",
    [
        ("0.01", "0.10"),
        ("33.33", "0.15"),
        ("1234.57", "0.125"),
        ("99999.99", "0.0999"),
    ],
)
def test_fee_split_always_adds_back_to_gross(gross, rate):
    split = compute_fee_split(Decimal(gross), Decimal(rate))

    assert split.platform_fee_amount + split.talent_amount == split.gross_amount
    assert split.platform_fee_amount >= 0
    assert split.talent_amount >= 0


@pytest.mark.parametrize("gross", ["0", "0.00", "-5.00"])
def test_fee_split_rejects_non_positive_gross(gross):
    with pytest.raises(ValidationException):
        compute_fee_split(Decimal(gross), Decimal("0.10"))


def test_to_money_rejects_floats_and_extra_precision():
    with pytest.raises(ValidationException):
        to_money(10.5)
    with pytest.raises(ValidationException):
        to_money("10.005")
    with pytest.raises(ValidationException):
        to_money("not-a-number")


def test_to_money_accepts_integers_and_strings():
    assert to_money(10) == Decimal("10.00")
    assert to_money("12.5") == Decimal("12.50")
