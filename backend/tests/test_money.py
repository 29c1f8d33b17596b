"""Денежные суммы: Decimal, точное сложение, округление только при выводе."""
from decimal import Decimal

import pytest

from backoffice.core.money import format_money, from_db_total, money_sum, to_money


def test_to_money_accepts_strings_and_ints():
    assert to_money("150.00") == Decimal("150.00")
    assert to_money(" 12.5 ") == Decimal("12.5")
    assert to_money(7) == Decimal("7")


@pytest.mark.parametrize("value", [0.1, "abc", "NaN", "Infinity", True])
def test_to_money_rejects(value):
    with pytest.raises(ValueError):
        to_money(value)


def test_money_sum_is_exact():
    # Во float это 0.30000000000000004
    assert money_sum([Decimal("0.10"), Decimal("0.20")]) == Decimal("0.30")
    assert money_sum([Decimal("0.01")] * 1000) == Decimal("10.00")
    assert money_sum([]) == Decimal("0")


def test_format_money_rounds_half_even():
    assert format_money(Decimal("150")) == "150.00"
    assert format_money(Decimal("0.125")) == "0.12"
    assert format_money(Decimal("0.135")) == "0.14"
    assert format_money(Decimal("-5.5")) == "-5.50"


def test_from_db_total():
    assert from_db_total(None) == Decimal("0")
    assert from_db_total(0.30000000000000004) == Decimal("0.30")
    assert from_db_total(Decimal("12.34")) == Decimal("12.34")
    assert from_db_total(0) == Decimal("0")
