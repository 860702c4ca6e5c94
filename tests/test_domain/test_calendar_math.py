"""Tests for month/year arithmetic"""
import pytest

from cuentas.domain.calendar_math import (
    days_in_month, clamp_day, month_index, from_month_index, add_installments,
    installments_between, is_open_ended, iter_months, OPEN_ENDED_PERIOD,
)


class TestDaysInMonth:
    def test_february_regular_year(self):
        assert days_in_month(2026, 2) == 28

    def test_february_leap_year(self):
        assert days_in_month(2024, 2) == 29

    def test_century_not_leap(self):
        assert days_in_month(1900, 2) == 28

    def test_thirty_day_month(self):
        assert days_in_month(2025, 4) == 30


class TestClampDay:
    def test_day_31_in_february(self):
        """31 -> 28 в феврале 2026"""
        assert clamp_day(31, 2026, 2) == 28

    def test_day_31_in_leap_february(self):
        assert clamp_day(31, 2024, 2) == 29

    def test_day_within_month_unchanged(self):
        assert clamp_day(15, 2026, 2) == 15

    def test_day_31_in_april(self):
        assert clamp_day(31, 2025, 4) == 30


class TestMonthIndex:
    def test_roundtrip_december(self):
        assert from_month_index(month_index(2025, 12)) == (2025, 12)

    def test_roundtrip_january(self):
        assert from_month_index(month_index(2026, 1)) == (2026, 1)

    def test_ordering_across_years(self):
        assert month_index(2025, 12) < month_index(2026, 1)


class TestInstallments:
    def test_twelve_from_january(self):
        assert add_installments(2025, 1, 12) == (2025, 12)

    def test_crosses_year(self):
        assert add_installments(2025, 11, 3) == (2026, 1)

    def test_single_installment(self):
        assert add_installments(2025, 6, 1) == (2025, 6)

    def test_zero_rejected(self):
        with pytest.raises(ValueError):
            add_installments(2025, 6, 0)

    def test_between_inverse_of_add(self):
        end = add_installments(2025, 3, 18)
        assert installments_between(2025, 3, *end) == 18

    def test_between_minimum_one(self):
        assert installments_between(2025, 6, 2025, 1) == 1


class TestOpenEnded:
    def test_sentinel(self):
        assert is_open_ended(*OPEN_ENDED_PERIOD)

    def test_regular_period(self):
        assert not is_open_ended(2030, 12)


class TestIterMonths:
    def test_inclusive_range_across_year(self):
        assert list(iter_months((2025, 11), (2026, 2))) == [(2025, 11), (2025, 12), (2026, 1), (2026, 2)]

    def test_single_month(self):
        assert list(iter_months((2025, 6), (2025, 6))) == [(2025, 6)]

    def test_empty_when_reversed(self):
        assert list(iter_months((2025, 6), (2025, 5))) == []
