"""Tests for obligation field validation"""
from datetime import date

import pytest

from cuentas.domain.calendar_math import OPEN_ENDED_PERIOD
from cuentas.domain.errors import ValidationError
from cuentas.domain.obligation import (
    validate_description, validate_amount, validate_period, validate_payment_day,
    validate_installments, validate_deadline, resolve_recurring_range,
)


class TestDescription:
    def test_stripped(self):
        assert validate_description("  Arriendo  ") == "Arriendo"

    def test_too_short(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_description("ab")
        assert exc_info.value.field == "description"

    def test_too_long(self):
        with pytest.raises(ValidationError):
            validate_description("x" * 201)

    def test_boundaries_accepted(self):
        assert validate_description("abc") == "abc"
        assert len(validate_description("x" * 200)) == 200


class TestAmount:
    def test_positive_int(self):
        assert validate_amount(150000) == 150000

    @pytest.mark.parametrize("value", [0, -1, 1.5, "100", True, None])
    def test_rejected(self, value):
        with pytest.raises(ValidationError) as exc_info:
            validate_amount(value)
        assert exc_info.value.field == "amount"


class TestPeriod:
    def test_valid(self):
        assert validate_period(2025, 6) == (2025, 6)

    @pytest.mark.parametrize("year,month", [(2025, 0), (2025, 13), (0, 5), (10000, 1)])
    def test_out_of_range(self, year, month):
        with pytest.raises(ValidationError):
            validate_period(year, month)


class TestPaymentDay:
    def test_none_allowed(self):
        assert validate_payment_day(None) is None

    def test_31_allowed(self):
        assert validate_payment_day(31) == 31

    @pytest.mark.parametrize("day", [0, 32, -5])
    def test_invalid_rejected_not_clamped(self, day):
        with pytest.raises(ValidationError) as exc_info:
            validate_payment_day(day)
        assert exc_info.value.field == "payment_day_of_month"


class TestInstallmentsAndDeadline:
    def test_installments_max(self):
        assert validate_installments(240) == 240
        with pytest.raises(ValidationError):
            validate_installments(241)

    def test_deadline_in_past_allowed(self):
        assert validate_deadline(date(2020, 1, 1)) == date(2020, 1, 1)

    def test_deadline_string_rejected(self):
        with pytest.raises(ValidationError):
            validate_deadline("2025-06-01")


class TestResolveRecurringRange:
    def test_open_ended_by_default(self):
        assert resolve_recurring_range((2025, 1)) == ((2025, 1), OPEN_ENDED_PERIOD)

    def test_explicit_end(self):
        assert resolve_recurring_range((2025, 1), (2025, 12)) == ((2025, 1), (2025, 12))

    def test_installments(self):
        assert resolve_recurring_range((2025, 11), installments=3) == ((2025, 11), (2026, 1))

    def test_end_before_start(self):
        with pytest.raises(ValidationError) as exc_info:
            resolve_recurring_range((2025, 6), (2025, 5))
        assert exc_info.value.field == "period_end"

    def test_end_and_installments_exclusive(self):
        with pytest.raises(ValidationError):
            resolve_recurring_range((2025, 1), (2025, 12), installments=12)

    def test_goal_needs_bounded_end(self):
        with pytest.raises(ValidationError):
            resolve_recurring_range((2025, 1), is_goal=True)

    def test_goal_with_installments(self):
        assert resolve_recurring_range((2025, 1), installments=6, is_goal=True) == ((2025, 1), (2025, 6))
