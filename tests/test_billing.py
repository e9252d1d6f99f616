"""
test_billing.py — Billing arithmetic and the UTBMS catalogue.
"""

from decimal import Decimal

import pytest

from utils.billing import (
    round_to_increment, minutes_to_decimal_hours, calculate_billable_amount, to_money,
)
from utils import utbms


class TestRoundToIncrement:
    def test_zero_and_negative_are_zero(self):
        assert round_to_increment(0) == 0
        assert round_to_increment(-5) == 0
        assert round_to_increment(None) == 0

    def test_rounds_up_to_six_minutes(self):
        assert round_to_increment(1) == 6
        assert round_to_increment(6) == 6
        assert round_to_increment(7) == 12
        assert round_to_increment(61) == 66

    def test_other_increments(self):
        assert round_to_increment(7, 15) == 15
        assert round_to_increment(31, 30) == 60

    @pytest.mark.parametrize("minutes", [1, 5, 6, 13, 59, 60, 119, 481])
    @pytest.mark.parametrize("increment", [6, 15, 30])
    def test_never_below_input_and_divisible(self, minutes, increment):
        rounded = round_to_increment(minutes, increment)
        assert rounded >= minutes
        assert rounded % increment == 0
        assert rounded - minutes < increment

    def test_rejects_non_positive_increment(self):
        with pytest.raises(ValueError):
            round_to_increment(10, 0)


class TestAmounts:
    def test_decimal_hours(self):
        assert minutes_to_decimal_hours(6) == Decimal("0.10")
        assert minutes_to_decimal_hours(90) == Decimal("1.50")
        assert minutes_to_decimal_hours(0) == Decimal("0.00")

    def test_billable_amount_uses_rounded_time(self):
        # 7 minutes → 12 minutes → 0.2h × 300
        assert calculate_billable_amount(7, "300.00") == Decimal("60.00")
        assert calculate_billable_amount(60, Decimal("250")) == Decimal("250.00")

    def test_billable_amount_no_rate_is_zero(self):
        assert calculate_billable_amount(60, None) == Decimal("0.00")

    def test_monotone_in_minutes_and_rate(self):
        previous = Decimal("0")
        for minutes in range(0, 240, 7):
            amount = calculate_billable_amount(minutes, "275.50")
            assert amount >= previous
            previous = amount

        low = calculate_billable_amount(45, "100")
        high = calculate_billable_amount(45, "100.01")
        assert high >= low

    def test_to_money(self):
        assert to_money("12.345") == Decimal("12.35")
        assert to_money(None) == Decimal("0.00")


class TestUtbms:
    def test_known_codes(self):
        assert utbms.is_valid_code("L110")
        assert utbms.is_valid_code("HI_L621")
        assert not utbms.is_valid_code("X999")
        assert not utbms.is_valid_code(None)

    def test_category_lookup(self):
        assert utbms.category_for("L310") == "court"
        assert utbms.category_for("L510") == "client"

    def test_every_categorised_code_is_in_catalogue(self):
        for codes in utbms.UTBMS_CATEGORIES.values():
            for code in codes:
                assert code in utbms.UTBMS_CODES

    def test_catalogue_entries(self):
        catalogue = utbms.catalogue()
        assert len(catalogue) == len(utbms.UTBMS_CODES)
        assert all("code" in row and "category" in row for row in catalogue)

    def test_default_templates_use_valid_codes(self):
        assert utbms.DEFAULT_ACTIVITY_TEMPLATES
        for template in utbms.DEFAULT_ACTIVITY_TEMPLATES:
            assert utbms.is_valid_code(template["utbms_code"])
            assert template["default_rate"] > 0
