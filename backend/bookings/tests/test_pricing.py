from datetime import date
from decimal import Decimal

import pytest

from bookings.pricing import (
    count_nights,
    format_amount,
    format_price,
    percent_of,
    remaining_balance,
    stay_price,
    to_amount,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, 0),
        (0, 0),
        (30000, 30000),
        ("30000", 30000),
        ("100 000", 100000),
        ("100\u202f000", 100000),
        ("100\xa0000", 100000),
        ("", 0),
        (Decimal("1500"), 1500),
        (Decimal("1500.5"), 1501),
        (Decimal("1500.49"), 1500),
    ],
)
def test_to_amount_normalises_external_values(value, expected):
    assert to_amount(value) == expected


def test_to_amount_refuses_floats_and_booleans():
    with pytest.raises(TypeError):
        to_amount(10.5)
    with pytest.raises(TypeError):
        to_amount(True)


@pytest.mark.parametrize("value", ["abc", "12,5,0", Decimal("NaN"), "Infinity"])
def test_to_amount_rejects_garbage(value):
    with pytest.raises(ValueError):
        to_amount(value)


def test_format_amount_groups_thousands():
    assert format_amount(0) == "0"
    assert format_amount(999) == "999"
    assert format_amount(100000) == "100 000"
    assert format_amount(1234567, separator=".") == "1.234.567"
    assert format_amount(-70000) == "-70 000"


def test_format_price_appends_currency_label(settings):
    settings.BOOKING_CURRENCY_LABEL = "FCFA"
    assert format_price(100000) == "100 000 FCFA"
    assert format_price(5000, currency_label="XOF") == "5 000 XOF"


@pytest.mark.parametrize(
    "total, paid, expected",
    [
        (100000, 0, 100000),
        (100000, 30000, 70000),
        (100000, 100000, 0),
        (100000, 120000, 0),
        (0, 0, 0),
    ],
)
def test_remaining_balance_never_negative(total, paid, expected):
    assert remaining_balance(total, paid) == expected


def test_remaining_balance_clamps_over_a_grid():
    for total in range(0, 2001, 250):
        for paid in range(0, 3001, 125):
            balance = remaining_balance(total, paid)
            assert balance >= 0
            assert balance == (total - paid if paid <= total else 0)


def test_percent_of_rounds_half_up():
    assert percent_of(100000, 30) == 30000
    assert percent_of(25, 10) == 3
    assert percent_of(24, 10) == 2
    assert percent_of(12345, 0) == 0
    assert percent_of(12345, 100) == 12345


def test_nights_and_stay_price():
    assert count_nights(date(2026, 3, 10), date(2026, 3, 12)) == 2
    assert count_nights(date(2026, 3, 10), date(2026, 3, 10)) == 0
    assert stay_price(50000, 2) == 100000
