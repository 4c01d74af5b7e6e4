# Overview: Pytest coverage for request value parsing and business-day math.

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from ezorder.errors import ValidationError
from ezorder.time_utils import (
    as_utc_naive,
    business_date,
    business_day_bounds,
    parse_business_date,
    to_utc_z,
)
from ezorder.validation import parse_int, parse_money, to_money


class TestParseMoney:

    @pytest.mark.parametrize("raw, expected", [
        ("100", Decimal("100.00")),
        (" 12.345 ", Decimal("12.35")),
        (7, Decimal("7.00")),
        (Decimal("0.1"), Decimal("0.10")),
    ])
    def test_accepts_plain_numbers(self, raw, expected):
        assert parse_money(raw, "amount") == expected

    @pytest.mark.parametrize("raw", ["abc", "1e3", "NaN", "Infinity", True, [], "-1", "10000000000.00"])
    def test_rejects(self, raw):
        with pytest.raises(ValidationError):
            parse_money(raw, "amount")

    def test_optional(self):
        assert parse_money(None, "amount", required=False) is None
        with pytest.raises(ValidationError) as exc:
            parse_money("", "amount")
        assert exc.value.message == "amount is required"

    def test_to_money_quantizes(self):
        assert to_money(None) == Decimal("0.00")
        assert to_money(2.005) == Decimal("2.01")


class TestParseInt:

    def test_strings_and_ints(self):
        assert parse_int("42", "id") == 42
        assert parse_int(3, "id") == 3
        assert parse_int(None, "id", required=False) is None

    @pytest.mark.parametrize("raw", ["4.2", 4.0, False, "x"])
    def test_rejects_non_integers(self, raw):
        with pytest.raises(ValidationError):
            parse_int(raw, "id")

    def test_minimum(self):
        with pytest.raises(ValidationError):
            parse_int("0", "page", minimum=1)


class TestBusinessDay:

    def test_late_utc_evening_is_previous_civil_day(self):
        # 03:00 UTC is 21:00 the day before in Tegucigalpa (UTC-6)
        assert business_date(datetime(2026, 10, 19, 3, 0)) == date(2026, 10, 18)
        assert business_date(datetime(2026, 10, 19, 7, 0)) == date(2026, 10, 19)

    def test_aware_values_are_normalized(self):
        aware = datetime(2026, 10, 19, 3, 0, tzinfo=timezone.utc)
        assert as_utc_naive(aware) == datetime(2026, 10, 19, 3, 0)
        assert business_date(aware) == date(2026, 10, 18)

    def test_day_bounds(self):
        start, end = business_day_bounds(date(2026, 10, 19))
        assert start == datetime(2026, 10, 19, 6, 0)
        assert end == datetime(2026, 10, 20, 5, 59, 59, 999999)

    def test_parse_business_date(self):
        assert parse_business_date("2026-10-19") == date(2026, 10, 19)
        assert parse_business_date("2026-10-19T02:00:00Z") == date(2026, 10, 18)
        assert parse_business_date("") is None
        with pytest.raises(ValueError):
            parse_business_date("19/10/2026")

    def test_to_utc_z(self):
        assert to_utc_z(datetime(2026, 10, 19, 12, 30, 15, 500)) == "2026-10-19T12:30:15Z"
